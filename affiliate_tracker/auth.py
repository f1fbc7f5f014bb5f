"""Actor authentication for the affiliate API.

Affiliates carry a bearer JWT whose `sub` is their actor id; admins send the
shared X-Admin-Key. Identity is resolved here and passed into services as a
plain argument.
"""
from __future__ import annotations

import base64
import hashlib
import hmac
import json
import time
import uuid
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config.settings import settings

# ---- JWT (HS256, minimal) ----

_JWT_ALGO = "HS256"
_ACCESS_TTL = 3600 * 24 * 7  # 7 days


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()


def _b64url_decode(s: str) -> bytes:
    s += "=" * (-len(s) % 4)
    return base64.urlsafe_b64decode(s)


def _secret() -> bytes:
    return settings.JWT_SECRET.encode()


def _sign(payload: dict) -> str:
    header = _b64url(json.dumps({"alg": _JWT_ALGO, "typ": "JWT"}).encode())
    body = _b64url(json.dumps(payload).encode())
    sig = hmac.new(_secret(), f"{header}.{body}".encode(), hashlib.sha256).digest()
    return f"{header}.{body}.{_b64url(sig)}"


def _verify(token: str) -> Optional[dict]:
    """Decode a token; None if malformed, tampered or expired."""
    parts = token.split(".")
    if len(parts) != 3:
        return None
    try:
        expected = hmac.new(_secret(), f"{parts[0]}.{parts[1]}".encode(), hashlib.sha256).digest()
        if not hmac.compare_digest(expected, _b64url_decode(parts[2])):
            return None
        payload = json.loads(_b64url_decode(parts[1]))
    except (ValueError, TypeError):
        return None
    if not isinstance(payload, dict) or payload.get("exp", 0) < time.time():
        return None
    return payload


def create_token(actor_id: str, ttl: int = _ACCESS_TTL) -> str:
    now = int(time.time())
    return _sign({
        "sub": actor_id, "iat": now, "exp": now + ttl,
        "type": "access", "jti": uuid.uuid4().hex[:8],
    })


# ---- FastAPI dependencies ----

_bearer = HTTPBearer(auto_error=False)


async def get_current_actor(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> Optional[str]:
    if not creds:
        return None
    payload = _verify(creds.credentials)
    if not payload or payload.get("type") != "access" or not payload.get("sub"):
        return None
    return str(payload["sub"])


async def require_actor(actor_id: Optional[str] = Depends(get_current_actor)) -> str:
    if not actor_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return actor_id


def verify_admin(x_admin_key: str = Header(None)) -> None:
    """Verify the admin API key (timing-safe)."""
    expected = settings.ADMIN_API_KEY
    if not expected:
        raise HTTPException(503, "Admin endpoints disabled")
    if not x_admin_key or not hmac.compare_digest(x_admin_key, expected):
        raise HTTPException(403, "Invalid admin key")
