from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal, Union

from src.snippets.errors import NotFound, TransportFailure, Unauthenticated
from src.snippets.types import Language, SnippetFields, SnippetRecord

if TYPE_CHECKING:  # pragma: no cover
    from src.playground.buffers import SourceBufferSet
    from src.session.gate import SessionGate
    from src.snippets.store import SnippetStore

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Unselected:
    pass


@dataclass(frozen=True)
class Selected:
    snippet_id: str
    # Captured on create/load; updates never change it.
    language: Language


SelectionState = Union[Unselected, Selected]

UNSELECTED = Unselected()


@dataclass(frozen=True)
class SaveResult:
    action: Literal["created", "updated"]
    snippet_id: str


class SelectionController:
    """Tracks which stored snippet the buffers mirror and routes saves.

    Unselected saves create a snippet from the active buffer; Selected saves
    update the selected snippet. Every mutation is followed by a fresh list
    fetch from the store, so `snippets` is never patched locally.
    """

    def __init__(
        self,
        *,
        buffers: SourceBufferSet,
        store: SnippetStore,
        session: SessionGate | None = None,
        default_title: str = "My Code Snippet",
    ) -> None:
        self.buffers = buffers
        self._store = store
        self._session = session
        self._default_title = default_title
        self.title = default_title
        self.state: SelectionState = UNSELECTED
        self.snippets: list[SnippetRecord] = []
        # Refresh bookkeeping: a list response only lands if it was issued
        # after the last applied one.
        self._refresh_issued = 0
        self._refresh_applied = 0
        self._selection_epoch = 0

    @property
    def selected_id(self) -> str | None:
        return self.state.snippet_id if isinstance(self.state, Selected) else None

    def _owner(self, session: SessionGate | None) -> str | None:
        gate = session if session is not None else self._session
        if gate is None:
            return None
        return gate.current_owner_id() or None

    def _require_owner(self, session: SessionGate | None) -> str:
        owner = self._owner(session)
        if not owner:
            raise Unauthenticated()
        return owner

    def _select(self, snippet_id: str, language: Language) -> None:
        self.state = Selected(snippet_id=snippet_id, language=language)
        self._selection_epoch = self._refresh_issued

    def _unselect(self) -> None:
        self.state = UNSELECTED
        self.title = self._default_title

    def find_snippet(self, snippet_id: str) -> SnippetRecord:
        for record in self.snippets:
            if record.id == snippet_id:
                return record
        raise NotFound(snippet_id)

    def load_snippet(self, record: SnippetRecord) -> None:
        # Only the buffer of the snippet's language is replaced.
        self.buffers.set(record.language, record.code)
        self.buffers.activate(record.language)
        self.title = record.title
        self._select(record.id, record.language)

    def new_snippet(self) -> None:
        self._unselect()

    async def refresh(self, *, session: SessionGate | None = None) -> list[SnippetRecord]:
        owner = self._owner(session)
        if not owner:
            self.snippets = []
            return []
        return await self._refresh(owner)

    async def _refresh(self, owner: str) -> list[SnippetRecord]:
        self._refresh_issued += 1
        ticket = self._refresh_issued
        items = await asyncio.to_thread(self._store.list_snippets, owner_id=owner)
        if ticket <= self._refresh_applied:
            _log.debug("Dropping stale snippet list (ticket %d)", ticket)
            return list(self.snippets)
        self._refresh_applied = ticket
        self.snippets = list(items)

        state = self.state
        if (
            isinstance(state, Selected)
            and ticket > self._selection_epoch
            and all(r.id != state.snippet_id for r in items)
        ):
            _log.info("Selected snippet %s no longer listed; clearing selection", state.snippet_id)
            self._unselect()
        return list(items)

    async def _refresh_best_effort(self, owner: str) -> None:
        try:
            await self._refresh(owner)
        except TransportFailure:
            _log.warning("Snippet list refresh failed", exc_info=True)

    async def save(
        self, title: str | None = None, *, session: SessionGate | None = None
    ) -> SaveResult:
        owner = self._require_owner(session)
        title = (self.title if title is None else title).strip() or self._default_title
        state = self.state

        if isinstance(state, Selected):
            try:
                await asyncio.to_thread(
                    self._store.update_snippet,
                    owner_id=owner,
                    snippet_id=state.snippet_id,
                    title=title,
                    code=self.buffers.active_code(),
                )
            except NotFound:
                _log.warning("Snippet %s vanished before update; clearing selection", state.snippet_id)
                # A newer selection made meanwhile stays in place.
                if self.state == state:
                    self._unselect()
                await self._refresh_best_effort(owner)
                raise
            _log.info("Updated snippet %s", state.snippet_id)
            self.title = title
            await self._refresh_best_effort(owner)
            return SaveResult(action="updated", snippet_id=state.snippet_id)

        language = self.buffers.active
        record = await asyncio.to_thread(
            self._store.create_snippet,
            owner_id=owner,
            fields=SnippetFields(title=title, language=language, code=self.buffers.get(language)),
        )
        _log.info("Created snippet %s (%s)", record.id, record.language)
        self.title = record.title
        self._select(record.id, record.language)
        await self._refresh_best_effort(owner)
        return SaveResult(action="created", snippet_id=record.id)

    async def delete(self, snippet_id: str, *, session: SessionGate | None = None) -> bool:
        """Delete a snippet; returns False when it was already gone."""
        owner = self._require_owner(session)
        removed = True
        try:
            await asyncio.to_thread(
                self._store.delete_snippet, owner_id=owner, snippet_id=snippet_id
            )
        except NotFound:
            _log.info("Snippet %s already deleted", snippet_id)
            removed = False

        if self.selected_id == snippet_id:
            self._unselect()
        await self._refresh_best_effort(owner)
        return removed

    def to_dict(self) -> dict[str, Any]:
        state = self.state
        return {
            "title": self.title,
            "selected_snippet_id": state.snippet_id if isinstance(state, Selected) else None,
            "selected_language": state.language if isinstance(state, Selected) else None,
            "snippets": [r.to_dict() for r in self.snippets],
        }
