from __future__ import annotations

from src.playground.buffers import SourceBufferSet
from src.playground.composer import compose_buffers, compose_document


def test_compose_is_deterministic() -> None:
    a = compose_document("<p>x</p>", "p { color: red; }", "console.log(1)")
    b = compose_document("<p>x</p>", "p { color: red; }", "console.log(1)")
    assert a == b


def test_compose_orders_style_then_body_then_script() -> None:
    doc = compose_document("STRUCTURE_MARK", "PRESENTATION_MARK", "BEHAVIOR_MARK")

    style_open = doc.index("<style>")
    body_open = doc.index("<body>")
    script_open = doc.index("<script>")

    assert style_open < doc.index("PRESENTATION_MARK") < doc.index("</style>")
    assert body_open < doc.index("STRUCTURE_MARK") < script_open
    assert script_open < doc.index("BEHAVIOR_MARK") < doc.index("</script>")
    assert doc.index("</style>") < body_open


def test_compose_embeds_fragments_verbatim() -> None:
    html = '<div id="a">&amp; "quoted"</div>'
    css = "a::after { content: '<'; }"
    js = "if (1 < 2 && 3 > 2) { document.title = '</b>'; }"
    doc = compose_document(html, css, js)
    assert html in doc
    assert css in doc
    assert js in doc


def test_compose_accepts_empty_and_boundary_like_inputs() -> None:
    assert "<style></style>" in compose_document("", "", "")

    hostile = "</script></style></body></html><!--"
    doc = compose_document(hostile, hostile, hostile)
    assert doc.count(hostile) == 3


def test_compose_buffers_uses_current_values() -> None:
    buffers = SourceBufferSet(html="<i>h</i>", css="i{}", js="void 0")
    assert compose_buffers(buffers) == compose_document("<i>h</i>", "i{}", "void 0")
