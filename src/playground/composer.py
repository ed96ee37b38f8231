from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from src.playground.buffers import SourceBufferSet


def compose_document(html: str, css: str, js: str) -> str:
    """Assemble the three fragments into one renderable HTML document.

    Fragments are embedded verbatim in a fixed order: the stylesheet in
    <head>, then the markup as body content, then the script after the
    markup so it can query the elements it needs. Nothing is escaped or
    validated; isolation is the preview sandbox's job.
    """
    return (
        "<!DOCTYPE html>\n"
        "<html>\n"
        "  <head>\n"
        '    <meta charset="utf-8">\n'
        f"    <style>{css}</style>\n"
        "  </head>\n"
        "  <body>\n"
        f"    {html}\n"
        f"    <script>{js}</script>\n"
        "  </body>\n"
        "</html>\n"
    )


def compose_buffers(buffers: SourceBufferSet) -> str:
    return compose_document(buffers.html, buffers.css, buffers.js)
