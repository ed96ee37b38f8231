from __future__ import annotations

import logging
import re
import threading
import uuid
from typing import TYPE_CHECKING, Any, Protocol

import requests

from src.db.hasura_client import HasuraError, sql_str, tuples_to_dicts
from src.snippets.errors import NotFound, TransportFailure
from src.snippets.types import LANGUAGES, SnippetFields, SnippetRecord

if TYPE_CHECKING:  # pragma: no cover
    from src.db.hasura_client import HasuraClient

_log = logging.getLogger(__name__)

TABLE_NAME = "code_snippets"
_COLUMNS = "id, title, language, code, user_id, created_at, updated_at"
_SCHEMA_NAME_RE = re.compile(r"^[a-z_][a-z0-9_]{0,62}$")


class SnippetStore(Protocol):
    """Owner-scoped persistence for playground snippets.

    Implementations raise `NotFound` when an update/delete targets a row that
    does not exist for that owner, and `TransportFailure` for everything that
    is not about record existence. They never retry on their own.
    """

    def list_snippets(self, *, owner_id: str) -> list[SnippetRecord]: ...

    def create_snippet(
        self, *, owner_id: str, fields: SnippetFields
    ) -> SnippetRecord: ...

    def update_snippet(
        self, *, owner_id: str, snippet_id: str, title: str, code: str
    ) -> None: ...

    def delete_snippet(self, *, owner_id: str, snippet_id: str) -> None: ...


_schema_ready: set[str] = set()
_schema_lock = threading.Lock()


def ensure_snippets_schema(client: HasuraClient, *, schema: str = "public") -> None:
    if schema in _schema_ready:
        return
    with _schema_lock:
        if schema in _schema_ready:
            return
        _log.info("Running %s.%s schema migration (once per process)", schema, TABLE_NAME)
        allowed = ", ".join(sql_str(lang) for lang in LANGUAGES)
        client.run_sql(
            f"""
            CREATE SCHEMA IF NOT EXISTS {schema};
            CREATE TABLE IF NOT EXISTS {schema}.{TABLE_NAME} (
              id text PRIMARY KEY,
              title text NOT NULL,
              language text NOT NULL CHECK (language IN ({allowed})),
              code text NOT NULL,
              user_id text NOT NULL,
              created_at timestamptz NOT NULL DEFAULT now(),
              updated_at timestamptz NOT NULL DEFAULT now()
            );
            CREATE INDEX IF NOT EXISTS idx_{TABLE_NAME}_user_created
              ON {schema}.{TABLE_NAME}(user_id, created_at DESC);
            """.strip()
        )
        _schema_ready.add(schema)


def reset_schema_cache() -> None:
    with _schema_lock:
        _schema_ready.clear()


class HasuraSnippetStore:
    """`SnippetStore` backed by the `code_snippets` table, via Hasura run_sql."""

    def __init__(self, client: HasuraClient, *, schema: str = "public") -> None:
        if not _SCHEMA_NAME_RE.match(schema):
            raise ValueError(f"invalid schema name: {schema!r}")
        self._client = client
        self._schema = schema

    @property
    def _table(self) -> str:
        return f"{self._schema}.{TABLE_NAME}"

    def _run(self, sql: str, *, read_only: bool = False) -> list[dict[str, Any]]:
        try:
            ensure_snippets_schema(self._client, schema=self._schema)
            res = self._client.run_sql(sql, read_only=read_only)
        except HasuraError as exc:
            _log.warning("Snippet store request failed: %s", exc)
            raise TransportFailure(str(exc)) from exc
        except requests.RequestException as exc:
            _log.warning("Snippet store unreachable: %s", exc, exc_info=True)
            raise TransportFailure(f"snippet store unreachable: {exc}") from exc
        # Every code_snippets column is NOT NULL, so "NULL" is real text here.
        return tuples_to_dicts(res, null_sentinel=False)

    def list_snippets(self, *, owner_id: str) -> list[SnippetRecord]:
        rows = self._run(
            f"""
            SELECT {_COLUMNS}
            FROM {self._table}
            WHERE user_id = {sql_str(owner_id)}
            ORDER BY created_at DESC, id DESC;
            """.strip(),
            read_only=True,
        )
        out: list[SnippetRecord] = []
        for r in rows:
            try:
                out.append(SnippetRecord.from_row(r))
            except (KeyError, ValueError):
                # Rows written by other clients may carry languages we do not render.
                _log.warning("Skipping malformed snippet row id=%r", r.get("id"))
        return out

    def create_snippet(self, *, owner_id: str, fields: SnippetFields) -> SnippetRecord:
        snippet_id = str(uuid.uuid4())
        rows = self._run(
            f"""
            INSERT INTO {self._table} (id, title, language, code, user_id)
            VALUES (
              {sql_str(snippet_id)},
              {sql_str(fields.title)},
              {sql_str(fields.language)},
              {sql_str(fields.code)},
              {sql_str(owner_id)}
            )
            RETURNING {_COLUMNS};
            """.strip()
        )
        if not rows:
            raise TransportFailure("insert did not return the created snippet")
        return SnippetRecord.from_row(rows[0])

    def update_snippet(
        self, *, owner_id: str, snippet_id: str, title: str, code: str
    ) -> None:
        rows = self._run(
            f"""
            UPDATE {self._table}
            SET title = {sql_str(title)}, code = {sql_str(code)}, updated_at = now()
            WHERE id = {sql_str(snippet_id)} AND user_id = {sql_str(owner_id)}
            RETURNING id;
            """.strip()
        )
        if not rows:
            raise NotFound(snippet_id)

    def delete_snippet(self, *, owner_id: str, snippet_id: str) -> None:
        rows = self._run(
            f"""
            DELETE FROM {self._table}
            WHERE id = {sql_str(snippet_id)} AND user_id = {sql_str(owner_id)}
            RETURNING id;
            """.strip()
        )
        if not rows:
            raise NotFound(snippet_id)
