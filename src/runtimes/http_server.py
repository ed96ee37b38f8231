from __future__ import annotations

import logging
from typing import Any

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, Response

from src.playground import config
from src.playground import session_state as playground_state
from src.playground.buffers import require_buffer_name
from src.playground.export import export_buffer
from src.playground.page import render_playground_page
from src.playground.sandbox import EMPTY_PREVIEW, SurfaceUnavailable, preview_headers
from src.session.gate import SessionContext, anonymous, for_owner
from src.session.jwt import InvalidSessionToken, decode_session_jwt
from src.session.preferences import PreferencesContext, parse_locale, parse_theme
from src.snippets.errors import NotFound, SnippetError, TransportFailure, Unauthenticated

# Load local env after imports to keep linting (E402) happy.
load_dotenv()

app = FastAPI()
logger = logging.getLogger(__name__)

_PREFERENCE_COOKIE_MAX_AGE = 60 * 60 * 24 * 365


def _session_from_request(request: Request) -> SessionContext:
    """Build the per-request session gate from the Authorization header."""
    if config.auth_mode() == "none":
        return for_owner(config.local_owner_id())

    header = (request.headers.get("authorization") or "").strip()
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return anonymous()
    try:
        claims = decode_session_jwt(token.strip(), jwt_secret_json=config.jwt_secret())
    except InvalidSessionToken as e:
        logger.info("Rejected session token: %s", e)
        return anonymous()
    email = claims.get("email")
    return for_owner(str(claims["sub"]), email=str(email) if email else None)


def _error(code: str, status_code: int, detail: str | None = None) -> JSONResponse:
    body: dict[str, Any] = {"error": code}
    if detail:
        body["detail"] = detail
    return JSONResponse(body, status_code=status_code)


def _snippet_error_response(exc: SnippetError) -> JSONResponse:
    if isinstance(exc, Unauthenticated):
        return _error(exc.code, 401)
    if isinstance(exc, NotFound):
        return _error(exc.code, 404, str(exc))
    if isinstance(exc, TransportFailure):
        return _error(exc.code, 502, str(exc))
    return _error(exc.code, 500, str(exc))


async def _json_body(request: Request) -> dict[str, Any]:
    body: Any
    try:
        body = await request.json()
    except Exception:
        body = {}
    if not isinstance(body, dict):
        body = {}
    return body


def _playground_or_error(session_id: str, request: Request):
    """Open the caller's own playground for `session_id`."""
    owner_id = _session_from_request(request).current_owner_id()
    try:
        return playground_state.get_session(session_id, owner_id=owner_id), None
    except ValueError:
        return None, _error("invalid_session_id", 400)
    except SurfaceUnavailable as e:
        logger.warning("Cannot open playground %r: %s", session_id, e)
        return None, _error("preview_unavailable", 503, str(e))


def _state_dto(pg: Any) -> dict[str, Any]:
    return {
        "session_id": pg.session_id,
        "buffers": pg.buffers.to_dict(),
        "preview_url": pg.preview_url,
        **pg.controller.to_dict(),
    }


_cors_origins = config.cors_allow_origins()
if _cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.on_event("startup")
async def _startup() -> None:
    mode = config.auth_mode()
    if mode == "jwt" and not config.jwt_secret():
        raise RuntimeError("AUTH_MODE=jwt requires CODEHUB_JWT_SECRET")
    logger.info(
        "Playground server starting (auth=%s, snippets=%s)",
        mode,
        config.snippet_backend(),
    )


@app.get("/")
async def root() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/playground/{session_id}")
async def playground_page(session_id: str, request: Request) -> Response:
    pg, err = _playground_or_error(session_id, request)
    if err is not None:
        return err
    prefs = PreferencesContext.from_cookies(request.cookies).get()
    return HTMLResponse(
        render_playground_page(
            session_id=pg.session_id,
            buffers=pg.buffers,
            title=pg.controller.title,
            preview_url=pg.preview_url,
            prefs=prefs,
        )
    )


@app.get("/api/playground/{session_id}")
async def api_playground_state(session_id: str, request: Request) -> JSONResponse:
    pg, err = _playground_or_error(session_id, request)
    if err is not None:
        return err
    return JSONResponse(_state_dto(pg), status_code=200)


@app.get("/api/playground/{session_id}/buffers/{name}")
async def api_read_buffer(session_id: str, name: str, request: Request) -> Response:
    pg, err = _playground_or_error(session_id, request)
    if err is not None:
        return err
    try:
        lang = require_buffer_name(name)
    except ValueError:
        return _error("invalid_buffer", 400)
    return Response(pg.buffers.get(lang), media_type="text/plain; charset=utf-8")


@app.put("/api/playground/{session_id}/buffers/{name}")
async def api_edit_buffer(session_id: str, name: str, request: Request) -> JSONResponse:
    pg, err = _playground_or_error(session_id, request)
    if err is not None:
        return err
    try:
        lang = require_buffer_name(name)
    except ValueError:
        return _error("invalid_buffer", 400)
    body = await _json_body(request)
    code = body.get("code")
    if not isinstance(code, str):
        return _error("missing_code", 400)
    pg.buffers.set(lang, code)
    return JSONResponse({"buffer": lang, "length": len(code)}, status_code=200)


@app.post("/api/playground/{session_id}/active")
async def api_activate_buffer(session_id: str, request: Request) -> JSONResponse:
    pg, err = _playground_or_error(session_id, request)
    if err is not None:
        return err
    body = await _json_body(request)
    try:
        pg.buffers.activate(require_buffer_name(str(body.get("buffer") or "")))
    except ValueError:
        return _error("invalid_buffer", 400)
    return JSONResponse({"active": pg.buffers.active}, status_code=200)


@app.post("/api/playground/{session_id}/run")
async def api_run(session_id: str, request: Request) -> JSONResponse:
    pg, err = _playground_or_error(session_id, request)
    if err is not None:
        return err
    try:
        revision = pg.run()
    except SurfaceUnavailable as e:
        logger.warning("Preview surface unavailable for %s: %s", pg.session_id, e)
        return _error("preview_unavailable", 503, str(e))
    return JSONResponse(
        {"status": "rendered", "revision": revision, "preview_url": pg.preview_url},
        status_code=200,
    )


@app.get("/preview/{surface_id}")
async def preview(surface_id: str) -> Response:
    try:
        surface = playground_state.find_surface(surface_id)
    except ValueError:
        return _error("invalid_session_id", 400)
    document = EMPTY_PREVIEW if surface is None else surface.snapshot()[0]
    return Response(
        document, media_type="text/html; charset=utf-8", headers=preview_headers()
    )


@app.get("/api/playground/{session_id}/export")
async def api_export(
    session_id: str, request: Request, buffer: str | None = None
) -> Response:
    pg, err = _playground_or_error(session_id, request)
    if err is not None:
        return err
    try:
        exported = export_buffer(pg.buffers, require_buffer_name(buffer) if buffer else None)
    except ValueError:
        return _error("invalid_buffer", 400)
    return Response(
        exported.content,
        media_type=exported.content_type,
        headers={"Content-Disposition": f'attachment; filename="{exported.filename}"'},
    )


@app.get("/api/playground/{session_id}/snippets")
async def api_list_snippets(session_id: str, request: Request) -> JSONResponse:
    pg, err = _playground_or_error(session_id, request)
    if err is not None:
        return err
    try:
        await pg.controller.refresh()
    except SnippetError as e:
        return _snippet_error_response(e)
    return JSONResponse(_state_dto(pg), status_code=200)


@app.post("/api/playground/{session_id}/snippets/{snippet_id}/load")
async def api_load_snippet(
    session_id: str, snippet_id: str, request: Request
) -> JSONResponse:
    pg, err = _playground_or_error(session_id, request)
    if err is not None:
        return err
    try:
        record = pg.controller.find_snippet(snippet_id)
    except NotFound as e:
        return _snippet_error_response(e)
    pg.controller.load_snippet(record)
    return JSONResponse(_state_dto(pg), status_code=200)


@app.post("/api/playground/{session_id}/save")
async def api_save_snippet(session_id: str, request: Request) -> JSONResponse:
    pg, err = _playground_or_error(session_id, request)
    if err is not None:
        return err
    body = await _json_body(request)
    raw_title = body.get("title")
    title = raw_title if isinstance(raw_title, str) else None
    try:
        result = await pg.controller.save(title)
    except SnippetError as e:
        return _snippet_error_response(e)
    return JSONResponse(
        {"action": result.action, "snippet_id": result.snippet_id, **_state_dto(pg)},
        status_code=201 if result.action == "created" else 200,
    )


@app.delete("/api/playground/{session_id}/snippets/{snippet_id}")
async def api_delete_snippet(
    session_id: str, snippet_id: str, request: Request
) -> JSONResponse:
    pg, err = _playground_or_error(session_id, request)
    if err is not None:
        return err
    try:
        removed = await pg.controller.delete(snippet_id)
    except SnippetError as e:
        return _snippet_error_response(e)
    return JSONResponse(
        {"status": "deleted" if removed else "already_deleted", **_state_dto(pg)},
        status_code=200,
    )


@app.post("/api/playground/{session_id}/new")
async def api_new_snippet(session_id: str, request: Request) -> JSONResponse:
    pg, err = _playground_or_error(session_id, request)
    if err is not None:
        return err
    pg.controller.new_snippet()
    return JSONResponse(_state_dto(pg), status_code=200)


@app.get("/api/preferences")
async def api_get_preferences(request: Request) -> JSONResponse:
    prefs = PreferencesContext.from_cookies(request.cookies)
    return JSONResponse(prefs.get().to_dict(), status_code=200)


@app.put("/api/preferences")
async def api_put_preferences(request: Request) -> JSONResponse:
    prefs = PreferencesContext.from_cookies(request.cookies)
    body = await _json_body(request)

    if "locale" in body:
        locale = parse_locale(body.get("locale"))
        if locale is None:
            return _error("invalid_locale", 400)
        prefs.set_locale(locale)
    if "theme" in body:
        theme = parse_theme(body.get("theme"))
        if theme is None:
            return _error("invalid_theme", 400)
        prefs.update(theme=theme)
    elif body.get("toggle_theme"):
        prefs.toggle_theme()

    resp = JSONResponse(prefs.get().to_dict(), status_code=200)
    for name, value in prefs.cookies().items():
        resp.set_cookie(
            name, value, max_age=_PREFERENCE_COOKIE_MAX_AGE, samesite="lax"
        )
    return resp
