from __future__ import annotations

import pytest

pytest.importorskip("fastapi")
pytest.importorskip("dotenv")

SECRET = '{"type":"HS256","key":"api-test-secret"}'


def _client(**kwargs):
    from fastapi.testclient import TestClient

    from src.runtimes.http_server import app

    return TestClient(app, **kwargs)


def _auth(sub: str = "user-1") -> dict[str, str]:
    from src.session.jwt import mint_session_jwt

    return {"authorization": f"Bearer {mint_session_jwt(jwt_secret_json=SECRET, sub=sub)}"}


@pytest.fixture
def jwt_mode(monkeypatch):
    monkeypatch.setenv("AUTH_MODE", "jwt")
    monkeypatch.setenv("CODEHUB_JWT_SECRET", SECRET)


def test_healthz() -> None:
    r = _client().get("/healthz")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_run_renders_sandboxed_preview() -> None:
    client = _client()
    client.put("/api/playground/p1/buffers/html", json={"code": "<h2 id='t'>Hi</h2>"})
    client.put("/api/playground/p1/buffers/js", json={"code": "throw new Error('x')"})

    r = client.post("/api/playground/p1/run")
    assert r.status_code == 200
    assert r.json()["revision"] == 1
    preview_url = r.json()["preview_url"]
    assert preview_url.startswith("/preview/")
    assert "p1" not in preview_url

    preview = client.get(preview_url)
    assert preview.status_code == 200
    assert preview.headers["content-security-policy"] == "sandbox allow-scripts"
    assert preview.headers["cache-control"] == "no-store"
    body = preview.text
    assert body.index("<h2 id='t'>Hi</h2>") < body.index("throw new Error('x')")


def test_preview_before_first_run_is_empty() -> None:
    r = _client().get("/preview/never-run")
    assert r.status_code == 200
    assert "<body></body>" in r.text
    assert r.headers["content-security-policy"].startswith("sandbox")


def test_invalid_session_and_buffer_names() -> None:
    client = _client()
    assert client.get("/api/playground/bad id!").status_code in (400, 404)
    r = client.put("/api/playground/p1/buffers/python", json={"code": "x"})
    assert r.status_code == 400
    assert r.json()["error"] == "invalid_buffer"


def test_export_active_buffer_download() -> None:
    client = _client()
    client.put("/api/playground/p2/buffers/js", json={"code": "console.log(1)"})
    client.post("/api/playground/p2/active", json={"buffer": "js"})

    r = client.get("/api/playground/p2/export")
    assert r.status_code == 200
    assert r.text == "console.log(1)"
    assert r.headers["content-type"].startswith("text/javascript")
    assert 'filename="script.js"' in r.headers["content-disposition"]

    css = client.get("/api/playground/p2/export", params={"buffer": "css"})
    assert 'filename="styles.css"' in css.headers["content-disposition"]


def test_copy_returns_raw_buffer() -> None:
    client = _client()
    client.put("/api/playground/p3/buffers/css", json={"code": "a { color: red; }"})
    r = client.get("/api/playground/p3/buffers/css")
    assert r.text == "a { color: red; }"


def test_save_requires_authentication(jwt_mode) -> None:
    from src.playground import session_state
    from src.snippets.memory_store import MemorySnippetStore

    store = MemorySnippetStore()
    session_state.set_snippet_store(store)

    r = _client().post("/api/playground/p4/save", json={"title": "Demo"})
    assert r.status_code == 401
    assert r.json()["error"] == "not_authenticated"
    assert store.list_snippets(owner_id="user-1") == []


def test_invalid_token_is_treated_as_anonymous(jwt_mode) -> None:
    r = _client().post(
        "/api/playground/p4/save",
        json={"title": "Demo"},
        headers={"authorization": "Bearer not.a.token"},
    )
    assert r.status_code == 401


def test_snippet_lifecycle_over_http(jwt_mode) -> None:
    client = _client(headers=_auth())
    headers = _auth()

    client.put("/api/playground/p5/buffers/html", json={"code": "<b>hi</b>"})
    created = client.post(
        "/api/playground/p5/save", json={"title": "Demo"}, headers=headers
    )
    assert created.status_code == 201
    body = created.json()
    snippet_id = body["snippet_id"]
    assert body["action"] == "created"
    assert body["selected_snippet_id"] == snippet_id
    assert [s["title"] for s in body["snippets"]] == ["Demo"]

    client.put("/api/playground/p5/buffers/html", json={"code": "<b>bye</b>"})
    updated = client.post(
        "/api/playground/p5/save", json={"title": "Demo"}, headers=headers
    )
    assert updated.status_code == 200
    assert updated.json()["action"] == "updated"
    assert updated.json()["snippet_id"] == snippet_id
    assert len(updated.json()["snippets"]) == 1

    # Another user never sees it.
    other = client.get("/api/playground/p6/snippets", headers=_auth("user-2"))
    assert other.json()["snippets"] == []

    new = client.post("/api/playground/p5/new")
    assert new.json()["selected_snippet_id"] is None

    client.put("/api/playground/p5/buffers/html", json={"code": "<i>scratch</i>"})
    loaded = client.post(f"/api/playground/p5/snippets/{snippet_id}/load")
    assert loaded.status_code == 200
    assert loaded.json()["buffers"]["html"] == "<b>bye</b>"
    assert loaded.json()["buffers"]["active"] == "html"
    assert loaded.json()["selected_snippet_id"] == snippet_id

    deleted = client.delete(f"/api/playground/p5/snippets/{snippet_id}", headers=headers)
    assert deleted.status_code == 200
    assert deleted.json()["status"] == "deleted"
    assert deleted.json()["selected_snippet_id"] is None
    assert deleted.json()["snippets"] == []

    again = client.delete(f"/api/playground/p5/snippets/{snippet_id}", headers=headers)
    assert again.status_code == 200
    assert again.json()["status"] == "already_deleted"


def test_save_after_external_delete_is_not_found(jwt_mode) -> None:
    from src.playground import session_state
    from src.snippets.memory_store import MemorySnippetStore

    store = MemorySnippetStore()
    session_state.set_snippet_store(store)
    client = _client(headers=_auth())
    headers = _auth()

    snippet_id = client.post(
        "/api/playground/p7/save", json={"title": "Demo"}, headers=headers
    ).json()["snippet_id"]
    store.delete_snippet(owner_id="user-1", snippet_id=snippet_id)

    r = client.post("/api/playground/p7/save", json={"title": "Demo"}, headers=headers)
    assert r.status_code == 404
    assert r.json()["error"] == "not_found"

    state = client.get("/api/playground/p7").json()
    assert state["selected_snippet_id"] is None
    assert store.list_snippets(owner_id="user-1") == []


def test_load_unknown_snippet_is_not_found() -> None:
    r = _client().post("/api/playground/p8/snippets/nope/load")
    assert r.status_code == 404


def test_store_outage_maps_to_502(jwt_mode) -> None:
    from src.playground import session_state
    from src.snippets.errors import TransportFailure

    class _DownStore:
        def list_snippets(self, *, owner_id):
            raise TransportFailure("store offline")

    session_state.set_snippet_store(_DownStore())  # type: ignore[arg-type]
    r = _client().get("/api/playground/p9/snippets", headers=_auth())
    assert r.status_code == 502
    assert r.json() == {"error": "store_unavailable", "detail": "store offline"}


def test_preferences_toggle_sets_cookies() -> None:
    client = _client()
    r = client.put("/api/preferences", json={"locale": "ar", "toggle_theme": True})
    assert r.status_code == 200
    assert r.json() == {"locale": "ar", "theme": "dark", "direction": "rtl"}
    assert "lang=ar" in r.headers.get("set-cookie", "")

    page = _client(cookies={"lang": "ar", "theme": "dark"}).get("/playground/p10")
    assert page.status_code == 200
    assert 'dir="rtl"' in page.text
    assert 'sandbox="allow-scripts"' in page.text

    bad = client.put("/api/preferences", json={"locale": "fr"})
    assert bad.status_code == 400


def test_shared_session_id_does_not_leak_records(jwt_mode) -> None:
    alice = _client(headers=_auth("alice"))
    alice.put("/api/playground/shared/buffers/html", json={"code": "<p>SECRET-A</p>"})
    saved = alice.post("/api/playground/shared/save", json={"title": "private"})
    assert saved.status_code == 201
    snippet_id = saved.json()["snippet_id"]

    anon = _client()
    state = anon.get("/api/playground/shared").json()
    assert state["snippets"] == []
    assert state["selected_snippet_id"] is None
    assert "SECRET-A" not in state["buffers"]["html"]
    assert anon.post(f"/api/playground/shared/snippets/{snippet_id}/load").status_code == 404

    bob = _client(headers=_auth("bob"))
    assert bob.get("/api/playground/shared/snippets").json()["snippets"] == []
    assert bob.post(f"/api/playground/shared/snippets/{snippet_id}/load").status_code == 404
    assert "SECRET-A" not in bob.get("/api/playground/shared/buffers/html").text

    # Alice still sees her own playground.
    mine = alice.get("/api/playground/shared").json()
    assert mine["selected_snippet_id"] == snippet_id
    assert [s["title"] for s in mine["snippets"]] == ["private"]
    assert mine["preview_url"] != state["preview_url"]


def test_surface_cap_evicts_least_recently_used(monkeypatch) -> None:
    monkeypatch.setenv("CODEHUB_MAX_PREVIEW_SURFACES", "2")
    client = _client()

    client.put("/api/playground/s0/buffers/html", json={"code": "<p>first</p>"})
    statuses = [client.get(f"/api/playground/s{i}").status_code for i in range(4)]
    assert statuses == [200, 200, 200, 200]

    # s0 was evicted to make room; reopening it starts from the seed buffers.
    assert client.get("/api/playground/s0/buffers/html").text != "<p>first</p>"


def test_playground_page_controls() -> None:
    client = _client()
    page = client.get("/playground/p11").text
    state = client.get("/api/playground/p11").json()

    assert f'src="{state["preview_url"]}"' in page
    assert 'data-token-key="codehub.session_token"' in page
    assert '"authorization"' in page
    assert 'addEventListener("input"' in page
    assert "await flush();" in page
    for control in ("save", "run", "copy", "download", "refresh", "new", "snippets"):
        assert f'id="{control}"' in page
