from __future__ import annotations

import html
import logging
import threading
from typing import Protocol

_log = logging.getLogger(__name__)

# Without allow-same-origin the preview gets an opaque origin: no access to the
# host's cookies, storage or DOM. Without allow-top-navigation/allow-popups it
# cannot move the host page either.
IFRAME_SANDBOX = "allow-scripts"
PREVIEW_CSP = f"sandbox {IFRAME_SANDBOX}"

EMPTY_PREVIEW = "<!DOCTYPE html>\n<html><head></head><body></body></html>\n"


class SurfaceUnavailable(RuntimeError):
    pass


class PreviewSurface(Protocol):
    def render(self, document: str) -> None: ...


class InMemoryPreviewSurface:
    """Holds the latest composed document of one playground for the preview route."""

    def __init__(self, surface_id: str) -> None:
        self.surface_id = surface_id
        self._lock = threading.Lock()
        self._document = EMPTY_PREVIEW
        self._revision = 0
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def render(self, document: str) -> None:
        with self._lock:
            if self._released:
                raise SurfaceUnavailable(f"preview surface {self.surface_id!r} was released")
            self._document = document
            self._revision += 1

    def snapshot(self) -> tuple[str, int]:
        with self._lock:
            return self._document, self._revision

    def release(self) -> None:
        with self._lock:
            self._released = True
            self._document = EMPTY_PREVIEW


class PreviewSurfaceRegistry:
    def __init__(self, *, max_surfaces: int = 1000) -> None:
        self._lock = threading.Lock()
        self._max = max(1, int(max_surfaces))
        self._surfaces: dict[str, InMemoryPreviewSurface] = {}

    def acquire(self, surface_id: str) -> InMemoryPreviewSurface:
        with self._lock:
            surface = self._surfaces.get(surface_id)
            if surface is not None and not surface.released:
                return surface
            if len(self._surfaces) >= self._max and surface_id not in self._surfaces:
                raise SurfaceUnavailable(
                    f"no preview surface available (limit {self._max} reached)"
                )
            surface = InMemoryPreviewSurface(surface_id)
            self._surfaces[surface_id] = surface
            return surface

    def is_full(self) -> bool:
        with self._lock:
            return len(self._surfaces) >= self._max

    def get(self, surface_id: str) -> InMemoryPreviewSurface | None:
        with self._lock:
            return self._surfaces.get(surface_id)

    def release(self, surface_id: str) -> None:
        with self._lock:
            surface = self._surfaces.pop(surface_id, None)
        if surface is not None:
            surface.release()


class SandboxExecutor:
    """One-way handoff of a composed document to an isolated preview surface.

    There is no result channel: whatever the document's script does (throw,
    loop, log) happens inside the sandboxed frame and is never observed here.
    """

    def __init__(self, surface: PreviewSurface) -> None:
        self._surface = surface

    def execute(self, document: str) -> None:
        if self._surface is None:
            raise SurfaceUnavailable("no preview surface attached")
        self._surface.render(document)
        _log.debug("Rendered preview document (%d chars)", len(document))


def preview_headers() -> dict[str, str]:
    return {
        "Content-Security-Policy": PREVIEW_CSP,
        "X-Content-Type-Options": "nosniff",
        "Referrer-Policy": "no-referrer",
        "Cache-Control": "no-store",
    }


def render_iframe(src: str, *, title: str = "Code Preview") -> str:
    """Sandboxed iframe pointing at a preview URL."""
    return (
        f'<iframe id="preview" title="{html.escape(title, quote=True)}" '
        f'sandbox="{IFRAME_SANDBOX}" '
        f'src="{html.escape(src, quote=True)}"></iframe>'
    )
