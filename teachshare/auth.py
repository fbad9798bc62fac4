"""JWT authentication and access-tier dependencies."""

import os
import secrets
from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, Request, status
from passlib.hash import bcrypt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from teachshare.constants import (
    INSUFFICIENT_RC_ERR_MSG,
    NOT_ADMIN_ERR_MSG,
    NOT_MODERATOR_ERR_MSG,
    NOT_TEACHER_ERR_MSG,
    UNAUTHED_ERR_MSG,
)
from teachshare.database import get_db
from teachshare.logging_config import bind_user_context, get_logger
from teachshare.models import User

logger = get_logger(__name__)

# ---------------------------------------------------------------------------
# JWT Configuration
# ---------------------------------------------------------------------------

JWT_SECRET = os.getenv("JWT_SECRET_KEY", "")
if not JWT_SECRET:
    raise RuntimeError("JWT_SECRET_KEY environment variable is required")
JWT_ALGORITHM = "HS256"
JWT_ACCESS_TOKEN_EXPIRE_MINUTES = 60
JWT_REFRESH_TOKEN_EXPIRE_DAYS = 30

TEACHER_ROLES = ("teacher", "moderator", "admin")
MODERATOR_ROLES = ("moderator", "admin")


def create_access_token(user_id: str) -> str:
    """Create a JWT access token."""
    expire = datetime.now(timezone.utc) + timedelta(minutes=JWT_ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {"sub": user_id, "exp": expire, "type": "access"}
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def create_refresh_token(user_id: str) -> str:
    """Create a JWT refresh token."""
    expire = datetime.now(timezone.utc) + timedelta(days=JWT_REFRESH_TOKEN_EXPIRE_DAYS)
    payload = {"sub": user_id, "exp": expire, "type": "refresh", "jti": secrets.token_urlsafe(16)}
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_jwt(token: str) -> dict:
    """Decode and validate a JWT token. Raises HTTPException on failure."""
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")


def hash_password(password: str) -> str:
    return bcrypt.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return bcrypt.verify(password, password_hash)


def constant_time_compare(a: str, b: str) -> bool:
    """Compare two strings in constant time to prevent timing attacks."""
    return secrets.compare_digest(a.encode(), b.encode())


# ---------------------------------------------------------------------------
# FastAPI Auth Dependencies
# ---------------------------------------------------------------------------


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    FastAPI dependency: extract and validate a Bearer access token.

    Returns the User ORM object or raises 401/403.
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=UNAUTHED_ERR_MSG,
        )

    token = auth_header.removeprefix("Bearer ").strip()
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=UNAUTHED_ERR_MSG,
        )

    payload = decode_jwt(token)
    if payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type",
        )

    user_id = payload.get("sub")
    try:
        user_uuid = UUID(user_id)
    except (TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    result = await db.execute(select(User).where(User.id == user_uuid))
    user = result.scalar_one_or_none()

    if user is None or user.status != "active":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User not found or suspended",
        )

    bind_user_context(user)
    return user


async def get_current_user_optional(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> User | None:
    """Optional auth: returns User or None."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    try:
        return await get_current_user(request, db)
    except HTTPException:
        return None


# ---------------------------------------------------------------------------
# Access tiers
# ---------------------------------------------------------------------------


async def require_teacher(user: User = Depends(get_current_user)) -> User:
    if user.role not in TEACHER_ROLES:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=NOT_TEACHER_ERR_MSG)
    return user


async def require_moderator(user: User = Depends(get_current_user)) -> User:
    if user.role not in MODERATOR_ROLES:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=NOT_MODERATOR_ERR_MSG)
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=NOT_ADMIN_ERR_MSG)
    return user


def check_min_credits(user: User, min_rc: int) -> None:
    """Raise 403 unless ``user`` holds at least ``min_rc`` reputation credits."""
    current = user.reputation_credits or 0
    if current < min_rc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"{INSUFFICIENT_RC_ERR_MSG}. Required: {min_rc}, Current: {current}",
        )


def require_min_credits(min_rc: int):
    """Dependency factory gating an endpoint on a reputation-credit balance."""

    async def dependency(user: User = Depends(get_current_user)) -> User:
        check_min_credits(user, min_rc)
        return user

    return dependency
