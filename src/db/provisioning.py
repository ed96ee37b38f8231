from __future__ import annotations

import os

from src.db.hasura_client import HasuraClient, HasuraConfig


def _env(name: str) -> str | None:
    v = (os.environ.get(name) or "").strip()
    return v or None


def require_hasura_from_env() -> None:
    if not (_env("HASURA_BASE_URL") and _env("HASURA_GRAPHQL_ADMIN_SECRET")):
        raise RuntimeError(
            "Hasura not configured (missing HASURA_BASE_URL or HASURA_GRAPHQL_ADMIN_SECRET)"
        )


def hasura_client_from_env() -> HasuraClient:
    require_hasura_from_env()
    timeout_raw = _env("HASURA_TIMEOUT_S")
    try:
        timeout_s = float(timeout_raw) if timeout_raw else 30.0
    except ValueError:
        timeout_s = 30.0
    return HasuraClient(
        HasuraConfig(
            base_url=_env("HASURA_BASE_URL") or "",
            admin_secret=_env("HASURA_GRAPHQL_ADMIN_SECRET") or "",
            source_name=_env("HASURA_SOURCE_NAME") or "default",
            timeout_s=timeout_s,
        )
    )
