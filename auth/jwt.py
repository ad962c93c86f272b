"""
JWT-style token creation and verification.

Tokens are base64-encoded JSON payloads (``user_id``, ``role``, ``exp``)
signed with HMAC-SHA256.  Secret key is loaded from ``config.jwt_secret``
(env var: ``JWT_SECRET``).
"""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from base64 import b64decode, b64encode
from typing import Any, Dict

from fastapi import HTTPException, status

from config.settings import config


def _sign(raw: bytes) -> str:
    return hmac.new(config.jwt_secret.encode(), raw, hashlib.sha256).hexdigest()


def create_token(user_id: str, role: str) -> str:
    """Create a signed token containing ``user_id``, ``role`` and expiry."""
    payload = {
        "user_id": user_id,
        "role": role,
        "exp": int(time.time()) + config.jwt_expiry_seconds,
    }
    raw = json.dumps(payload).encode()
    return b64encode(raw).decode() + "." + _sign(raw)


def verify_token(token: str) -> Dict[str, Any]:
    """
    Verify token and return its payload.

    Raises ``HTTPException(401)`` on invalid or expired tokens.
    """
    try:
        parts = token.split(".", 1)
        if len(parts) != 2:
            raise ValueError("bad format")
        raw = b64decode(parts[0])
        if not hmac.compare_digest(parts[1], _sign(raw)):
            raise ValueError("bad signature")
        payload = json.loads(raw)
        if payload.get("exp", 0) < time.time():
            raise ValueError("token expired")
        if "user_id" not in payload or "role" not in payload:
            raise ValueError("incomplete payload")
        return payload
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid or expired token: {exc}",
        )
