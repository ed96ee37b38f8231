from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import replace
from typing import Any, Generic, TypeVar

_log = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[T], None]


class ContextStore(Generic[T]):
    """Holds one piece of shared UI state with an explicit lifecycle.

    `init` sets the starting value, `update` replaces fields and notifies
    subscribers, `subscribe` returns an unsubscribe callable. Values are
    frozen dataclasses so readers never observe a half-applied update.
    """

    def __init__(self, initial: T) -> None:
        self._lock = threading.Lock()
        self._value = initial
        self._listeners: list[Listener[T]] = []

    def init(self, value: T) -> None:
        with self._lock:
            self._value = value

    def get(self) -> T:
        with self._lock:
            return self._value

    def update(self, **changes: Any) -> T:
        with self._lock:
            self._value = replace(self._value, **changes)  # type: ignore[type-var]
            value = self._value
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(value)
            except Exception:
                _log.warning("Context listener failed", exc_info=True)
        return value

    def subscribe(self, listener: Listener[T]) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe
