from __future__ import annotations

from dataclasses import dataclass

from src.playground.buffers import SourceBufferSet, require_buffer_name
from src.snippets.types import Language


@dataclass(frozen=True)
class ExportFile:
    filename: str
    content_type: str
    content: str


_EXPORT_NAMES: dict[Language, tuple[str, str]] = {
    "html": ("code.html", "text/html"),
    "css": ("styles.css", "text/css"),
    "js": ("script.js", "text/javascript"),
}


def export_buffer(buffers: SourceBufferSet, name: Language | None = None) -> ExportFile:
    """Package one buffer's raw text as a downloadable file (active buffer by default)."""
    lang = require_buffer_name(name) if name is not None else buffers.active
    filename, content_type = _EXPORT_NAMES[lang]
    return ExportFile(filename=filename, content_type=content_type, content=buffers.get(lang))
