from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from src.session.context import ContextStore


class SessionGate(Protocol):
    """The only session capability the playground depends on."""

    def current_owner_id(self) -> str | None: ...


@dataclass(frozen=True)
class SessionInfo:
    owner_id: str | None = None
    email: str | None = None


class SessionContext(ContextStore[SessionInfo]):
    def __init__(self, info: SessionInfo | None = None) -> None:
        super().__init__(info or SessionInfo())

    def current_owner_id(self) -> str | None:
        owner = (self.get().owner_id or "").strip()
        return owner or None


def anonymous() -> SessionContext:
    return SessionContext()


def for_owner(owner_id: str, *, email: str | None = None) -> SessionContext:
    return SessionContext(SessionInfo(owner_id=owner_id, email=email))
