"""Reputation service: the RC ledger and contributor levels."""

from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from teachshare.constants import CONTRIBUTOR_LEVELS
from teachshare.logging_config import get_logger
from teachshare.models import RcTransaction, User
from teachshare.services.notification_service import create_notification

logger = get_logger(__name__)

LEVEL_ORDER = list(CONTRIBUTOR_LEVELS)


def get_contributor_level(rc: int) -> str:
    """Return the contributor level for a credit balance. Negative balances are newcomers."""
    level = LEVEL_ORDER[0]
    for name in LEVEL_ORDER:
        if rc >= CONTRIBUTOR_LEVELS[name]["min"]:
            level = name
    return level


def level_rank(level: str) -> int:
    """Position of ``level`` in the ladder; unknown names rank lowest."""
    try:
        return LEVEL_ORDER.index(level)
    except ValueError:
        return -1


def level_thresholds() -> dict[str, int]:
    return {name: bounds["min"] for name, bounds in CONTRIBUTOR_LEVELS.items()}


def level_progress(rc: int) -> dict:
    """Progress towards the next contributor level.

    ``progress_to_next`` is a percentage clamped to 0-100 and ``rc_to_next``
    never goes negative. At the top level there is no next level.
    """
    level = get_contributor_level(rc)
    idx = LEVEL_ORDER.index(level)
    if idx == len(LEVEL_ORDER) - 1:
        return {"level": level, "next_level": None, "progress_to_next": 100.0, "rc_to_next": 0}

    next_level = LEVEL_ORDER[idx + 1]
    floor = CONTRIBUTOR_LEVELS[level]["min"]
    ceiling = CONTRIBUTOR_LEVELS[next_level]["min"]
    progress = (rc - floor) / (ceiling - floor) * 100
    return {
        "level": level,
        "next_level": next_level,
        "progress_to_next": round(min(100.0, max(0.0, progress)), 2),
        "rc_to_next": max(0, ceiling - rc),
    }


async def apply_credits(
    db: AsyncSession,
    user: User,
    amount: int,
    reason: str,
    reference_type: str | None = None,
    reference_id: UUID | None = None,
    meta: dict | None = None,
) -> str | None:
    """
    Add ``amount`` (may be negative) to a loaded user's balance and record it.

    Writes an RcTransaction with the resulting balance, keeps
    ``contributor_level`` in sync and notifies the user on a level-up.
    Returns the new level name if the user leveled up, otherwise None.
    The caller commits.
    """
    old_level = user.contributor_level or LEVEL_ORDER[0]
    new_balance = (user.reputation_credits or 0) + amount
    new_level = get_contributor_level(new_balance)

    user.reputation_credits = new_balance
    user.contributor_level = new_level
    user.updated_at = datetime.now(timezone.utc)

    db.add(
        RcTransaction(
            user_id=user.id,
            amount=amount,
            reason=reason,
            reference_type=reference_type,
            reference_id=reference_id,
            balance_after=new_balance,
            meta=meta or {},
        )
    )

    logger.info(
        "credits_awarded",
        user_id=str(user.id),
        amount=amount,
        reason=reason,
        balance_after=new_balance,
    )

    if level_rank(new_level) > level_rank(old_level):
        logger.info("contributor_level_up", user_id=str(user.id), level=new_level)
        await create_notification(
            db,
            user_id=user.id,
            notification_type="level_up",
            title="You leveled up",
            body=f"You are now a {new_level} contributor with {new_balance} RC",
            link="/reputation",
            metadata={"previous_level": old_level, "new_level": new_level},
        )
        return new_level
    return None


async def award_credits(
    db: AsyncSession,
    user_id: UUID,
    amount: int,
    reason: str,
    reference_type: str | None = None,
    reference_id: UUID | None = None,
    meta: dict | None = None,
) -> str | None:
    """Load a user by id and apply credits. Missing users are logged and skipped."""
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        logger.warning("credits_recipient_missing", user_id=str(user_id), reason=reason)
        return None
    return await apply_credits(
        db, user, amount, reason, reference_type=reference_type, reference_id=reference_id, meta=meta
    )
