"""Reputation endpoints: RC history, level progress, leaderboard."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from teachshare.auth import get_current_user
from teachshare.database import get_db
from teachshare.logging_config import get_logger
from teachshare.models import RcTransaction, User
from teachshare.schemas import (
    LeaderboardEntry,
    RcTransactionResponse,
    ReputationStatsResponse,
    SyncLevelResponse,
)
from teachshare.services.reputation_service import (
    get_contributor_level,
    level_progress,
    level_rank,
    level_thresholds,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/api/reputation", tags=["reputation"])


@router.get("/history", response_model=list[RcTransactionResponse])
async def get_rc_history(
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Most recent ledger entries for the current user."""
    result = await db.execute(
        select(RcTransaction)
        .where(RcTransaction.user_id == user.id)
        .order_by(RcTransaction.created_at.desc())
        .limit(limit)
    )
    return [RcTransactionResponse.model_validate(t) for t in result.scalars().all()]


@router.get("/me", response_model=ReputationStatsResponse)
async def get_my_reputation(
    user: User = Depends(get_current_user),
):
    rc = user.reputation_credits or 0
    return ReputationStatsResponse(
        reputation_credits=rc,
        contributor_level=user.contributor_level,
        thresholds=level_thresholds(),
        **level_progress(rc),
    )


@router.get("/leaderboard", response_model=list[LeaderboardEntry])
async def get_leaderboard(
    limit: int = Query(10, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(User)
        .where(User.status == "active")
        .order_by(User.reputation_credits.desc())
        .limit(limit)
    )
    return [
        LeaderboardEntry(
            rank=rank,
            id=u.id,
            name=u.display_name,
            avatar_url=u.avatar_url,
            reputation_credits=u.reputation_credits,
            contributor_level=u.contributor_level,
            total_resources_approved=u.total_resources_approved,
            total_upvotes_received=u.total_upvotes_received,
            total_downloads_received=u.total_downloads_received,
        )
        for rank, u in enumerate(result.scalars().all(), start=1)
    ]


@router.post("/sync-level", response_model=SyncLevelResponse)
async def sync_level(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Recompute the stored contributor level from the current balance."""
    computed = get_contributor_level(user.reputation_credits or 0)
    previous = user.contributor_level
    if computed == previous:
        return SyncLevelResponse(leveled_up=False, current_level=computed)

    user.contributor_level = computed
    await db.commit()

    logger.info("contributor_level_synced", user_id=str(user.id), previous=previous, level=computed)
    if level_rank(computed) > level_rank(previous):
        return SyncLevelResponse(leveled_up=True, new_level=computed, previous_level=previous)
    return SyncLevelResponse(leveled_up=False, current_level=computed, previous_level=previous)


@router.get("/levels", response_model=dict[str, int])
async def get_levels():
    """Minimum RC for each contributor level."""
    return level_thresholds()
