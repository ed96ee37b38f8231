import sys
from pathlib import Path

import pytest

# Ensure the repo root is on sys.path so tests can import the local `src/` package.
ROOT = str(Path(__file__).resolve().parents[1])
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)


@pytest.fixture(autouse=True)
def _isolated_playground(monkeypatch: pytest.MonkeyPatch):
    # Unit tests never talk to a real Hasura; keep every test on a fresh in-memory store.
    for name in (
        "AUTH_MODE",
        "CODEHUB_JWT_SECRET",
        "HASURA_BASE_URL",
        "HASURA_GRAPHQL_ADMIN_SECRET",
        "CODEHUB_DEFAULT_SNIPPET_TITLE",
        "CODEHUB_MAX_PREVIEW_SURFACES",
        "CODEHUB_PLAYGROUND_IDLE_TTL_S",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("CODEHUB_SNIPPET_BACKEND", "memory")

    from src.playground import session_state
    from src.snippets.store import reset_schema_cache

    session_state.clear_all()
    session_state.set_snippet_store(None)
    reset_schema_cache()
    yield
    session_state.clear_all()
    session_state.set_snippet_store(None)
