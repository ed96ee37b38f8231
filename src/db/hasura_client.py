from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any

import requests

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class HasuraConfig:
    base_url: str
    admin_secret: str
    source_name: str = "default"
    timeout_s: float = 30.0


class HasuraError(RuntimeError):
    """Raised when Hasura answers with an error status."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class HasuraClient:
    def __init__(
        self, cfg: HasuraConfig, *, session: requests.Session | None = None
    ) -> None:
        self._cfg = cfg
        self._http = session or requests.Session()

    @property
    def cfg(self) -> HasuraConfig:
        return self._cfg

    def _url(self, path: str) -> str:
        return f"{self._cfg.base_url.rstrip('/')}/{path.lstrip('/')}"

    def _headers(self) -> dict[str, str]:
        return {
            "x-hasura-admin-secret": self._cfg.admin_secret,
            "content-type": "application/json",
        }

    def run_sql(
        self, sql: str, *, read_only: bool = False, _retries: int = 3
    ) -> dict[str, Any]:
        payload = {
            "type": "run_sql",
            "args": {
                "source": self._cfg.source_name,
                "sql": sql,
                "read_only": bool(read_only),
            },
        }
        for attempt in range(_retries):
            resp = self._http.post(
                self._url("/v2/query"),
                headers=self._headers(),
                json=payload,
                timeout=self._cfg.timeout_s,
            )
            # 409 is Hasura's concurrent-metadata conflict; it is safe to resend.
            if resp.status_code == 409 and attempt < _retries - 1:
                _log.debug("run_sql conflict, attempt %d/%d", attempt + 1, _retries)
                time.sleep(0.2 * (attempt + 1))
                continue
            if resp.status_code >= 400:
                raise HasuraError(
                    f"run_sql failed ({resp.status_code}): {resp.text}",
                    status_code=resp.status_code,
                )
            return resp.json()
        raise HasuraError("run_sql: retries exhausted")


def tuples_to_dicts(
    res: dict[str, Any], *, null_sentinel: bool = True
) -> list[dict[str, Any]]:
    """Turn a `TuplesOk` run_sql result into a list of row dicts.

    run_sql renders SQL NULL as the string "NULL", indistinguishable from the
    text value "NULL". Pass `null_sentinel=False` for tables whose columns are
    all NOT NULL so such values survive.
    """
    rows = res.get("result")
    if not isinstance(rows, list) or len(rows) < 2:
        return []
    header = rows[0]
    if not isinstance(header, list):
        return []
    out: list[dict[str, Any]] = []
    for r in rows[1:]:
        if not isinstance(r, list):
            continue
        d: dict[str, Any] = {}
        for idx, col in enumerate(header):
            if isinstance(col, str) and idx < len(r):
                val = r[idx]
                d[col] = None if null_sentinel and val == "NULL" else val
        out.append(d)
    return out


def sql_str(value: str) -> str:
    """Return a single-quoted SQL string literal (escaping internal single quotes)."""
    return "'" + (value or "").replace("'", "''") + "'"
