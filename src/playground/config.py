from __future__ import annotations

import os


def _env(name: str) -> str | None:
    v = (os.environ.get(name) or "").strip()
    return v or None


def _env_int(name: str, default: int) -> int:
    raw = _env(name)
    if raw is None:
        return int(default)
    try:
        return int(raw)
    except ValueError:
        return int(default)


def _csv_env(name: str) -> list[str]:
    raw = _env(name) or ""
    return [part.strip() for part in raw.split(",") if part.strip()]


def hasura_configured() -> bool:
    return bool(_env("HASURA_BASE_URL") and _env("HASURA_GRAPHQL_ADMIN_SECRET"))


def jwt_secret() -> str:
    return _env("CODEHUB_JWT_SECRET") or ""


def auth_mode() -> str:
    # Modes:
    # - none: every request acts as the single local owner (development)
    # - jwt: owner is the `sub` of a verified bearer token
    mode = (_env("AUTH_MODE") or "").lower()
    if mode:
        if mode not in ("none", "jwt"):
            raise RuntimeError(f"unsupported AUTH_MODE={mode!r} (expected none or jwt)")
        return mode
    return "jwt" if jwt_secret() else "none"


def local_owner_id() -> str:
    return _env("CODEHUB_LOCAL_OWNER_ID") or "local"


def snippet_backend() -> str:
    """Return "hasura" or "memory"; defaults to hasura when it is configured."""
    raw = (_env("CODEHUB_SNIPPET_BACKEND") or "").lower()
    if raw in ("hasura", "memory"):
        return raw
    return "hasura" if hasura_configured() else "memory"


def snippets_schema() -> str:
    return _env("CODEHUB_SNIPPETS_SCHEMA") or "public"


def default_snippet_title() -> str:
    return _env("CODEHUB_DEFAULT_SNIPPET_TITLE") or "My Code Snippet"


def max_preview_surfaces() -> int:
    return max(1, _env_int("CODEHUB_MAX_PREVIEW_SURFACES", 1000))


def cors_allow_origins() -> list[str]:
    return _csv_env("CORS_ALLOW_ORIGINS")


def playground_idle_ttl_s() -> int:
    """Idle seconds before a playground session is evicted; 0 disables."""
    return max(0, _env_int("CODEHUB_PLAYGROUND_IDLE_TTL_S", 3600))
