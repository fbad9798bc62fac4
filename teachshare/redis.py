"""Redis connection and the short-lived keys TeachShare keeps in it.

Key layout:

    refresh:{user_id}                        the one live refresh token per user
    daily_login:{user_id}:{YYYY-MM-DD}       login bonus already paid that UTC day
    {action}:{resource_id}:user:{user_id}    engagement claim for a signed-in caller
    {action}:{resource_id}:ip:{address}      engagement claim for an anonymous caller

Engagement claims make views count once and download credits pay once per
caller per resource within ``ENGAGEMENT_TTL``.
"""

from datetime import date
from uuid import UUID

import redis.asyncio as aioredis

REFRESH_TOKEN_TTL = 30 * 24 * 3600
DAILY_LOGIN_TTL = 48 * 3600  # outlives the UTC day in every timezone
ENGAGEMENT_TTL = 3600
ENGAGEMENT_ACTIONS = ("view", "download")

_redis: aioredis.Redis | None = None


def get_redis() -> aioredis.Redis:
    """Get the shared Redis connection. Must be initialized first via init_redis()."""
    if _redis is None:
        raise RuntimeError("Redis not initialized, app not started")
    return _redis


async def init_redis(url: str = "redis://localhost:6379/0") -> aioredis.Redis:
    global _redis
    _redis = aioredis.from_url(url, decode_responses=True)
    await _redis.ping()
    return _redis


async def close_redis() -> None:
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------


def refresh_token_key(user_id: UUID | str) -> str:
    return f"refresh:{user_id}"


def daily_login_key(user_id: UUID | str, day: date) -> str:
    return f"daily_login:{user_id}:{day.isoformat()}"


def engagement_key(
    action: str,
    resource_id: UUID | str,
    user_id: UUID | str | None = None,
    client_ip: str | None = None,
) -> str:
    """Key identifying one caller's ``action`` on one resource.

    Signed-in callers are keyed by account so switching networks does not
    reset the claim; anonymous callers fall back to their address.
    """
    if action not in ENGAGEMENT_ACTIONS:
        raise ValueError(f"Unknown engagement action: {action}")
    if user_id is not None:
        return f"{action}:{resource_id}:user:{user_id}"
    return f"{action}:{resource_id}:ip:{client_ip or 'unknown'}"


async def claim_once(key: str, ttl_seconds: int) -> bool:
    """Atomically claim ``key`` for ``ttl_seconds``.

    Returns True the first time and False while the key is alive. Raises
    RuntimeError when Redis is not initialized; each caller decides whether
    that means "allow" or "deny".
    """
    claimed = await get_redis().set(key, "1", ex=ttl_seconds, nx=True)
    return bool(claimed)
