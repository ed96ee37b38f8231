from __future__ import annotations

import itertools
import threading
import uuid
from dataclasses import replace
from datetime import UTC, datetime, timedelta

from src.snippets.errors import NotFound
from src.snippets.types import SnippetFields, SnippetRecord


def _now() -> datetime:
    return datetime.now(UTC)


class MemorySnippetStore:
    """In-process `SnippetStore` for local development and tests.

    Rows are lost on restart. `updated_at` is strictly increasing per row even
    when the wall clock does not advance between two writes.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._rows: dict[str, SnippetRecord] = {}
        self._seq: dict[str, int] = {}
        self._counter = itertools.count()

    def list_snippets(self, *, owner_id: str) -> list[SnippetRecord]:
        with self._lock:
            mine = [r for r in self._rows.values() if r.owner_id == owner_id]
            mine.sort(key=lambda r: (r.created_at or "", self._seq[r.id]), reverse=True)
            return mine

    def create_snippet(self, *, owner_id: str, fields: SnippetFields) -> SnippetRecord:
        now = _now().isoformat()
        record = SnippetRecord(
            id=str(uuid.uuid4()),
            title=fields.title,
            language=fields.language,
            code=fields.code,
            owner_id=owner_id,
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self._rows[record.id] = record
            self._seq[record.id] = next(self._counter)
        return record

    def update_snippet(
        self, *, owner_id: str, snippet_id: str, title: str, code: str
    ) -> None:
        with self._lock:
            current = self._rows.get(snippet_id)
            if current is None or current.owner_id != owner_id:
                raise NotFound(snippet_id)
            ts = _now()
            if current.updated_at:
                prev = datetime.fromisoformat(current.updated_at)
                if ts <= prev:
                    ts = prev + timedelta(microseconds=1)
            self._rows[snippet_id] = replace(
                current, title=title, code=code, updated_at=ts.isoformat()
            )

    def delete_snippet(self, *, owner_id: str, snippet_id: str) -> None:
        with self._lock:
            current = self._rows.get(snippet_id)
            if current is None or current.owner_id != owner_id:
                raise NotFound(snippet_id)
            del self._rows[snippet_id]
            del self._seq[snippet_id]

    def get(self, snippet_id: str) -> SnippetRecord | None:
        with self._lock:
            return self._rows.get(snippet_id)
