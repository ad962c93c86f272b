"""
FastAPI dependencies for authentication.

``get_current_user`` turns the Bearer token into the ``Identity`` handed
to the core; ``require_roles`` gates a route on the caller's role.
"""

from __future__ import annotations

import uuid
from typing import Callable, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from auth.jwt import verify_token
from core.policy import Identity

_bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> Identity:
    """
    Extract and verify the Bearer token, returning the authenticated
    identity (user id + role).
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
    payload = verify_token(credentials.credentials)
    try:
        user_id = uuid.UUID(str(payload["user_id"]))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
    return Identity(id=user_id, role=payload["role"])


def require_roles(*roles: str) -> Callable:
    """Dependency factory: 403 unless the caller holds one of *roles*."""

    async def _check(identity: Identity = Depends(get_current_user)) -> Identity:
        if identity.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Forbidden",
            )
        return identity

    return _check
