"""
Auth API routes: register, login.

Route prefix: /api/v1/auth
"""

from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import db_session
from auth.jwt import create_token
from auth.password import hash_password, verify_password
from database.models import User
from utils.schemas import (
    ApiResponse,
    LoginRequest,
    LoginResponse,
    LoginUser,
    RegisterRequest,
    UserOut,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


@router.post(
    "/register",
    response_model=ApiResponse[UserOut],
    status_code=status.HTTP_201_CREATED,
)
async def register(
    req: RegisterRequest,
    session: AsyncSession = Depends(db_session),
) -> ApiResponse[UserOut]:
    """Register a new user."""
    email = req.email.strip().lower()
    result = await session.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User already exists",
        )

    user = User(
        id=uuid.uuid4(),
        name=req.name,
        email=email,
        password_hash=hash_password(req.password),
        role=req.role,
    )
    session.add(user)
    await session.flush()

    logger.info("Registered user %s (%s) as %s", req.name, user.id, user.role)
    return ApiResponse(
        data=UserOut(id=user.id, name=user.name, email=user.email, role=user.role),
    )


@router.post("/login", response_model=ApiResponse[LoginResponse])
async def login(
    req: LoginRequest,
    session: AsyncSession = Depends(db_session),
) -> ApiResponse[LoginResponse]:
    """Login with email + password."""
    result = await session.execute(
        select(User).where(User.email == req.email.strip().lower())
    )
    user = result.scalar_one_or_none()

    if user is None or not verify_password(req.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    token = create_token(str(user.id), user.role)
    logger.info("Login: %s (%s)", user.name, user.id)

    return ApiResponse(
        data=LoginResponse(
            token=token,
            user=LoginUser(id=user.id, name=user.name, role=user.role),
        ),
    )
