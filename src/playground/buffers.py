from __future__ import annotations

from dataclasses import dataclass

from src.snippets.types import Language, parse_language

DEFAULT_HTML = "<div>\n  <h1>Hello, World!</h1>\n  <p>Start coding here...</p>\n</div>"
DEFAULT_CSS = (
    "body {\n  font-family: Arial, sans-serif;\n  padding: 20px;\n}\n\n"
    "h1 {\n  color: #333;\n}"
)
DEFAULT_JS = "// JavaScript code here\nconsole.log('Hello, World!');"


def require_buffer_name(raw: str) -> Language:
    name = parse_language(raw)
    if name is None:
        raise ValueError(f"unknown buffer: {raw!r} (expected html, css or js)")
    return name


@dataclass
class SourceBufferSet:
    """The three editor buffers of one playground.

    `html` is the document structure, `css` the presentation and `js` the
    behavior. Exactly one of them is active at a time; switching does not
    touch the contents of the others.
    """

    html: str = DEFAULT_HTML
    css: str = DEFAULT_CSS
    js: str = DEFAULT_JS
    active: Language = "html"

    def get(self, name: Language) -> str:
        return getattr(self, require_buffer_name(name))

    def set(self, name: Language, code: str) -> None:
        setattr(self, require_buffer_name(name), code if code is not None else "")

    def activate(self, name: Language) -> None:
        self.active = require_buffer_name(name)

    def active_code(self) -> str:
        return self.get(self.active)

    def edit_active(self, code: str) -> None:
        self.set(self.active, code)

    def to_dict(self) -> dict[str, str]:
        return {"html": self.html, "css": self.css, "js": self.js, "active": self.active}
