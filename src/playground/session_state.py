from __future__ import annotations

import logging
import re
import secrets
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass

from src.playground import config
from src.playground.buffers import SourceBufferSet
from src.playground.composer import compose_buffers
from src.playground.sandbox import (
    InMemoryPreviewSurface,
    PreviewSurfaceRegistry,
    SandboxExecutor,
)
from src.playground.selection import SelectionController
from src.session.gate import anonymous, for_owner
from src.snippets.store import SnippetStore

_log = logging.getLogger(__name__)

_SESSION_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]{0,63}$")


def normalize_session_id(raw: str) -> str:
    sid = (raw or "").strip()
    if not _SESSION_ID_RE.match(sid):
        raise ValueError("invalid playground session id")
    return sid


@dataclass
class PlaygroundSession:
    session_id: str
    owner_id: str | None
    # Unguessable; never derived from session_id.
    surface_id: str
    buffers: SourceBufferSet
    controller: SelectionController
    surface: InMemoryPreviewSurface
    executor: SandboxExecutor
    last_access: float = 0.0

    @property
    def preview_url(self) -> str:
        return f"/preview/{self.surface_id}"

    def run(self) -> int:
        """Compose the current buffers and hand them to the preview; returns the revision."""
        document = compose_buffers(self.buffers)
        self.executor.execute(document)
        _, revision = self.surface.snapshot()
        return revision


# Keyed by (owner, session id) in least-recently-used order.
_sessions: OrderedDict[tuple[str, str], PlaygroundSession] = OrderedDict()
_sessions_lock = threading.Lock()
_surfaces: PreviewSurfaceRegistry | None = None
_store: SnippetStore | None = None


def _surface_registry() -> PreviewSurfaceRegistry:
    global _surfaces
    if _surfaces is None:
        _surfaces = PreviewSurfaceRegistry(max_surfaces=config.max_preview_surfaces())
    return _surfaces


def snippet_store() -> SnippetStore:
    global _store
    if _store is None:
        backend = config.snippet_backend()
        if backend == "hasura":
            from src.db.provisioning import hasura_client_from_env
            from src.snippets.store import HasuraSnippetStore

            _store = HasuraSnippetStore(
                hasura_client_from_env(), schema=config.snippets_schema()
            )
        else:
            from src.snippets.memory_store import MemorySnippetStore

            _log.warning("Using in-memory snippet store; snippets are lost on restart")
            _store = MemorySnippetStore()
    return _store


def set_snippet_store(store: SnippetStore | None) -> None:
    global _store
    _store = store


def _drop_locked(key: tuple[str, str]) -> None:
    session = _sessions.pop(key, None)
    if session is not None:
        _surface_registry().release(session.surface_id)


def _cleanup_idle_locked(now: float) -> int:
    ttl = config.playground_idle_ttl_s()
    if ttl <= 0:
        return 0
    cutoff = now - ttl
    stale = [key for key, s in _sessions.items() if s.last_access < cutoff]
    for key in stale:
        _log.info("Evicting idle playground %r (owner %r)", key[1], key[0] or None)
        _drop_locked(key)
    return len(stale)


def cleanup_idle(*, now: float | None = None) -> int:
    """Evict playgrounds idle longer than the configured TTL; returns how many."""
    with _sessions_lock:
        return _cleanup_idle_locked(time.time() if now is None else now)


def get_session(
    session_id: str, *, owner_id: str | None = None, now: float | None = None
) -> PlaygroundSession:
    """Return the caller's playground for `session_id`, creating it on first use.

    The same session id opened by different owners yields different
    playgrounds, so buffers and snippet lists never cross owners.
    """
    sid = normalize_session_id(session_id)
    key = (owner_id or "", sid)
    ts = time.time() if now is None else now
    with _sessions_lock:
        _cleanup_idle_locked(ts)
        existing = _sessions.get(key)
        if existing is not None:
            existing.last_access = ts
            _sessions.move_to_end(key)
            return existing

        registry = _surface_registry()
        while _sessions and registry.is_full():
            victim = next(iter(_sessions))
            _log.info("Evicting least recently used playground %r", victim[1])
            _drop_locked(victim)
        surface_id = secrets.token_hex(16)
        surface = registry.acquire(surface_id)

        buffers = SourceBufferSet()
        session = PlaygroundSession(
            session_id=sid,
            owner_id=owner_id or None,
            surface_id=surface_id,
            buffers=buffers,
            controller=SelectionController(
                buffers=buffers,
                store=snippet_store(),
                session=for_owner(owner_id) if owner_id else anonymous(),
                default_title=config.default_snippet_title(),
            ),
            surface=surface,
            executor=SandboxExecutor(surface),
            last_access=ts,
        )
        _sessions[key] = session
        return session


def find_surface(surface_id: str) -> InMemoryPreviewSurface | None:
    return _surface_registry().get(normalize_session_id(surface_id))


def clear_all() -> None:
    global _surfaces
    with _sessions_lock:
        _sessions.clear()
        _surfaces = None
