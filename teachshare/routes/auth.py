"""Authentication endpoints: register, login, logout, refresh, me."""

from datetime import datetime, timezone
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from teachshare.auth import (
    constant_time_compare,
    create_access_token,
    create_refresh_token,
    decode_jwt,
    get_current_user,
    hash_password,
    verify_password,
)
from teachshare.constants import RC_CONFIG
from teachshare.database import get_db
from teachshare.logging_config import get_logger
from teachshare.models import User
from teachshare.redis import (
    DAILY_LOGIN_TTL,
    REFRESH_TOKEN_TTL,
    claim_once,
    daily_login_key,
    get_redis,
    refresh_token_key,
)
from teachshare.schemas import (
    MessageResponse,
    TokenRefreshRequest,
    UserLoginRequest,
    UserLoginResponse,
    UserRegisterRequest,
    UserResponse,
)
from teachshare.services.reputation_service import apply_credits

logger = get_logger(__name__)
router = APIRouter(prefix="/api/auth", tags=["auth"])


async def _issue_tokens(user: User) -> tuple[str, str]:
    access_token = create_access_token(str(user.id))
    refresh_token = create_refresh_token(str(user.id))
    redis = get_redis()
    await redis.set(refresh_token_key(user.id), refresh_token, ex=REFRESH_TOKEN_TTL)
    return access_token, refresh_token


async def _grant_daily_login_bonus(db: AsyncSession, user: User) -> bool:
    """Award the once-per-UTC-day login credit. Skipped when Redis is down."""
    today = datetime.now(timezone.utc).date()
    try:
        first_today = await claim_once(daily_login_key(user.id, today), DAILY_LOGIN_TTL)
    except RuntimeError:
        return False
    if not first_today:
        return False
    await apply_credits(db, user, RC_CONFIG["DAILY_LOGIN"], "daily_login")
    return True


@router.post("/register", response_model=UserLoginResponse, status_code=201)
async def register(
    body: UserRegisterRequest,
    db: AsyncSession = Depends(get_db),
):
    """Register a new account."""
    existing = await db.execute(
        select(User).where((User.username == body.username) | (User.email == body.email.lower()))
    )
    if existing.scalar_one_or_none() is not None:
        raise HTTPException(status_code=409, detail="Username or email already taken")

    user = User(
        username=body.username,
        email=body.email.lower(),
        name=body.name,
        password_hash=hash_password(body.password),
        role="user",
        status="active",
        reputation_credits=0,
        contributor_level="newcomer",
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)

    access_token, refresh_token = await _issue_tokens(user)

    logger.info("user_registered", username=user.username, user_id=str(user.id))

    return UserLoginResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        user=UserResponse.model_validate(user),
    )


@router.post("/login", response_model=UserLoginResponse)
async def login(
    body: UserLoginRequest,
    db: AsyncSession = Depends(get_db),
):
    """Login with username and password."""
    result = await db.execute(select(User).where(User.username == body.username))
    user = result.scalar_one_or_none()

    if user is None or not verify_password(body.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    if user.status != "active":
        raise HTTPException(status_code=403, detail="Account suspended")

    user.last_login = datetime.now(timezone.utc)
    user.login_count = (user.login_count or 0) + 1
    bonus = await _grant_daily_login_bonus(db, user)
    await db.commit()
    await db.refresh(user)

    access_token, refresh_token = await _issue_tokens(user)

    logger.info("user_login", username=user.username, user_id=str(user.id), daily_bonus=bonus)

    return UserLoginResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        user=UserResponse.model_validate(user),
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(
    user: User = Depends(get_current_user),
):
    """Logout: delete the stored refresh token."""
    redis = get_redis()
    await redis.delete(refresh_token_key(user.id))
    logger.info("user_logout", user_id=str(user.id))
    return MessageResponse(message="Logged out")


@router.post("/refresh", response_model=UserLoginResponse)
async def refresh_token(
    body: TokenRefreshRequest,
    db: AsyncSession = Depends(get_db),
):
    """Validate a refresh token and issue a new token pair."""
    payload = decode_jwt(body.refresh_token)
    if payload.get("type") != "refresh":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token type")

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload")

    try:
        user_uuid = UUID(user_id)
    except (TypeError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload")

    redis = get_redis()
    stored = await redis.get(refresh_token_key(user_uuid))
    if stored is None or not constant_time_compare(stored, body.refresh_token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Refresh token revoked or expired"
        )

    result = await db.execute(select(User).where(User.id == user_uuid))
    user = result.scalar_one_or_none()
    if user is None or user.status != "active":
        raise HTTPException(status_code=403, detail="User not found or suspended")

    access_token, new_refresh = await _issue_tokens(user)

    return UserLoginResponse(
        access_token=access_token,
        refresh_token=new_refresh,
        user=UserResponse.model_validate(user),
    )


@router.get("/me", response_model=UserResponse)
async def get_me(
    user: User = Depends(get_current_user),
):
    """Get the current authenticated user."""
    return UserResponse.model_validate(user)
