from __future__ import annotations

import pytest

from src.playground.sandbox import (
    EMPTY_PREVIEW,
    InMemoryPreviewSurface,
    PreviewSurfaceRegistry,
    SandboxExecutor,
    SurfaceUnavailable,
    preview_headers,
    render_iframe,
)


def test_execute_replaces_previous_document() -> None:
    surface = InMemoryPreviewSurface("s1")
    executor = SandboxExecutor(surface)

    assert executor.execute("<p>one</p>") is None
    assert executor.execute("<p>two</p>") is None

    document, revision = surface.snapshot()
    assert document == "<p>two</p>"
    assert revision == 2


def test_throwing_user_script_is_not_observed_by_host() -> None:
    surface = InMemoryPreviewSurface("s1")
    SandboxExecutor(surface).execute("<script>throw new Error('boom'); while(true){}</script>")
    assert "boom" in surface.snapshot()[0]


def test_released_surface_reports_plumbing_failure() -> None:
    surface = InMemoryPreviewSurface("s1")
    surface.release()
    with pytest.raises(SurfaceUnavailable):
        SandboxExecutor(surface).execute("<p>x</p>")
    assert surface.snapshot()[0] == EMPTY_PREVIEW


def test_registry_reuses_and_limits_surfaces() -> None:
    reg = PreviewSurfaceRegistry(max_surfaces=1)
    first = reg.acquire("a")
    assert reg.acquire("a") is first
    with pytest.raises(SurfaceUnavailable):
        reg.acquire("b")

    reg.release("a")
    assert first.released
    assert reg.get("a") is None
    assert reg.acquire("b") is not first


def test_preview_headers_sandbox_without_same_origin() -> None:
    headers = preview_headers()
    csp = headers["Content-Security-Policy"]
    assert csp.startswith("sandbox")
    assert "allow-scripts" in csp
    assert "allow-same-origin" not in csp
    assert "allow-top-navigation" not in csp
    assert headers["Cache-Control"] == "no-store"


def test_render_iframe_is_sandboxed_and_escaped() -> None:
    markup = render_iframe('/preview/abc?r=1&x="y"')
    assert 'sandbox="allow-scripts"' in markup
    assert 'src="/preview/abc?r=1&amp;x=&quot;y&quot;"' in markup
    assert "allow-same-origin" not in markup


def test_registry_reports_full() -> None:
    reg = PreviewSurfaceRegistry(max_surfaces=2)
    reg.acquire("a")
    assert not reg.is_full()
    reg.acquire("b")
    assert reg.is_full()
    reg.release("a")
    assert not reg.is_full()
