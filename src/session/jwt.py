from __future__ import annotations

import base64
import hashlib
import hmac
import json
import time
from dataclasses import dataclass
from typing import Any


class InvalidSessionToken(ValueError):
    pass


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _b64url_decode(seg: str) -> bytes:
    pad = "=" * ((4 - (len(seg) % 4)) % 4)
    return base64.urlsafe_b64decode((seg + pad).encode("ascii"))


def _json_segment(data: dict[str, Any]) -> str:
    return _b64url_encode(
        json.dumps(data, separators=(",", ":"), sort_keys=True).encode("utf-8")
    )


@dataclass(frozen=True)
class JwtSecret:
    alg: str
    key: bytes


def parse_jwt_secret(raw: str) -> JwtSecret:
    """Parse CODEHUB_JWT_SECRET.

    Same JSON shape the auth provider publishes for HS256:
      {"type":"HS256","key":"..."}
    """
    raw = (raw or "").strip()
    if not raw:
        raise ValueError("missing CODEHUB_JWT_SECRET")

    try:
        data = json.loads(raw)
    except Exception as exc:
        raise ValueError("CODEHUB_JWT_SECRET must be JSON") from exc

    if not isinstance(data, dict):
        raise ValueError("CODEHUB_JWT_SECRET must be a JSON object")

    alg = str(data.get("type") or "").strip().upper()
    key = data.get("key")
    if alg != "HS256":
        raise ValueError(f"unsupported jwt type: {alg!r} (expected 'HS256')")
    if not isinstance(key, str) or not key:
        raise ValueError("CODEHUB_JWT_SECRET missing key")

    return JwtSecret(alg="HS256", key=key.encode("utf-8"))


def mint_session_jwt(
    *,
    jwt_secret_json: str,
    sub: str,
    email: str | None = None,
    ttl_s: int = 3600,
    now_s: int | None = None,
) -> str:
    """Issue a session token; used by tests and local tooling."""
    cfg = parse_jwt_secret(jwt_secret_json)

    now = int(time.time() if now_s is None else now_s)
    payload: dict[str, Any] = {
        "sub": sub,
        "iat": now,
        "exp": now + max(1, int(ttl_s)),
        "role": "authenticated",
    }
    if email:
        payload["email"] = email

    signing_input = (
        _json_segment({"alg": "HS256", "typ": "JWT"}) + "." + _json_segment(payload)
    ).encode("ascii")
    sig = hmac.new(cfg.key, signing_input, hashlib.sha256).digest()
    return signing_input.decode("ascii") + "." + _b64url_encode(sig)


def decode_session_jwt(
    token: str, *, jwt_secret_json: str, now_s: int | None = None, leeway_s: int = 30
) -> dict[str, Any]:
    """Verify an HS256 session token and return its claims.

    Raises InvalidSessionToken on a malformed token, a bad signature, an
    unexpected algorithm, expiry, or a missing `sub`.
    """
    cfg = parse_jwt_secret(jwt_secret_json)
    parts = (token or "").strip().split(".")
    if len(parts) != 3:
        raise InvalidSessionToken("malformed token")

    try:
        header = json.loads(_b64url_decode(parts[0]))
        claims = json.loads(_b64url_decode(parts[1]))
        got = _b64url_decode(parts[2])
    except Exception as exc:
        raise InvalidSessionToken("malformed token") from exc

    if not isinstance(header, dict) or str(header.get("alg") or "") != cfg.alg:
        raise InvalidSessionToken("unexpected token algorithm")

    signing_input = ".".join(parts[:2]).encode("ascii")
    expected = hmac.new(cfg.key, signing_input, hashlib.sha256).digest()
    if not hmac.compare_digest(expected, got):
        raise InvalidSessionToken("bad signature")

    if not isinstance(claims, dict):
        raise InvalidSessionToken("claims must be an object")

    now = int(time.time() if now_s is None else now_s)
    exp = claims.get("exp")
    if exp is not None:
        try:
            expired = now > int(exp) + max(0, leeway_s)
        except (TypeError, ValueError) as exc:
            raise InvalidSessionToken("invalid exp claim") from exc
        if expired:
            raise InvalidSessionToken("token expired")

    sub = str(claims.get("sub") or "").strip()
    if not sub:
        raise InvalidSessionToken("token has no subject")
    return claims
