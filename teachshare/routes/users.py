"""User endpoints: profiles, stats, listings and admin adjustments."""

from datetime import datetime, timezone
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from teachshare.auth import get_current_user, get_current_user_optional, require_admin
from teachshare.constants import RESOURCE_STATUSES, enum_pattern
from teachshare.database import get_db
from teachshare.logging_config import get_logger
from teachshare.models import Collection, Proposal, RcTransaction, Resource, User
from teachshare.schemas import (
    CollectionResponse,
    LeaderboardEntry,
    LevelProgress,
    PaginatedResponse,
    ProfileResponse,
    ProfileUpdateRequest,
    RcAdjustmentRequest,
    RcAdjustmentResponse,
    RcTransactionResponse,
    ResourceResponse,
    RoleUpdateRequest,
    RoleUpdateResponse,
    UserStatsResponse,
)
from teachshare.services.reputation_service import apply_credits, level_progress

logger = get_logger(__name__)
router = APIRouter(prefix="/api/users", tags=["users"])

LEADERBOARD_SORTS = {
    "rc": User.reputation_credits,
    "resources": User.total_resources_approved,
    "upvotes": User.total_upvotes_received,
    "downloads": User.total_downloads_received,
}


def _profile(user: User) -> ProfileResponse:
    return ProfileResponse.model_validate(user).model_copy(
        update={"level_info": LevelProgress(**level_progress(user.reputation_credits or 0))}
    )


async def _get_user_or_404(db: AsyncSession, user_id: UUID) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


# ---------------------------------------------------------------------------
# Current user
# ---------------------------------------------------------------------------


@router.get("/me", response_model=ProfileResponse)
async def get_my_profile(user: User = Depends(get_current_user)):
    return _profile(user)


@router.patch("/me", response_model=ProfileResponse)
async def update_my_profile(
    body: ProfileUpdateRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    for field, value in body.model_dump(exclude_unset=True).items():
        setattr(user, field, value)
    user.updated_at = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(user)

    logger.info("profile_updated", user_id=str(user.id))
    return _profile(user)


@router.get("/me/rc-history", response_model=PaginatedResponse)
async def get_my_rc_history(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    query = select(RcTransaction).where(RcTransaction.user_id == user.id)
    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0
    result = await db.execute(
        query.order_by(RcTransaction.created_at.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    items = [RcTransactionResponse.model_validate(t) for t in result.scalars().all()]
    return PaginatedResponse(items=items, total=total, page=page, per_page=per_page)


# ---------------------------------------------------------------------------
# Public listings
# ---------------------------------------------------------------------------


@router.get("/leaderboard", response_model=list[LeaderboardEntry])
async def get_user_leaderboard(
    sort_by: str = Query("rc", pattern=r"^(rc|resources|upvotes|downloads)$"),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(User)
        .where(User.status == "active")
        .order_by(LEADERBOARD_SORTS[sort_by].desc())
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


@router.get("/search", response_model=list[ProfileResponse])
async def search_users(
    query: str = Query(..., min_length=1, max_length=100),
    limit: int = Query(10, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
):
    """Case-insensitive match on name or username, highest RC first."""
    pattern = f"%{query}%"
    result = await db.execute(
        select(User)
        .where(
            User.status == "active",
            or_(User.name.ilike(pattern), User.username.ilike(pattern)),
        )
        .order_by(User.reputation_credits.desc())
        .limit(limit)
    )
    return [ProfileResponse.model_validate(u) for u in result.scalars().all()]


@router.get("/{user_id}", response_model=ProfileResponse)
async def get_profile(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    return _profile(await _get_user_or_404(db, user_id))


@router.get("/{user_id}/stats", response_model=UserStatsResponse)
async def get_user_stats(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    user = await _get_user_or_404(db, user_id)

    totals = (
        await db.execute(
            select(
                func.coalesce(func.sum(Resource.view_count), 0),
                func.coalesce(func.sum(Resource.comment_count), 0),
            ).where(Resource.contributor_id == user_id)
        )
    ).one()
    proposals = (
        await db.execute(select(func.count()).where(Proposal.author_id == user_id))
    ).scalar() or 0
    collections = (
        await db.execute(select(func.count()).where(Collection.owner_id == user_id))
    ).scalar() or 0

    return UserStatsResponse(
        reputation_credits=user.reputation_credits,
        contributor_level=user.contributor_level,
        total_resources_submitted=user.total_resources_submitted,
        total_resources_approved=user.total_resources_approved,
        total_upvotes_received=user.total_upvotes_received,
        total_downloads_received=user.total_downloads_received,
        total_views=totals[0] or 0,
        total_comments=totals[1] or 0,
        total_proposals=proposals,
        total_collections=collections,
    )


@router.get("/{user_id}/resources", response_model=list[ResourceResponse])
async def list_user_resources(
    user_id: UUID,
    status: str | None = Query(None, pattern=enum_pattern(RESOURCE_STATUSES)),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    viewer: User | None = Depends(get_current_user_optional),
):
    """A user's resources. Other people only ever see approved ones."""
    query = select(Resource).where(Resource.contributor_id == user_id)
    if viewer is None or viewer.id != user_id:
        query = query.where(Resource.status == "approved")
    elif status:
        query = query.where(Resource.status == status)

    result = await db.execute(query.order_by(Resource.created_at.desc()).limit(limit))
    return [ResourceResponse.model_validate(r) for r in result.scalars().all()]


@router.get("/{user_id}/collections", response_model=list[CollectionResponse])
async def list_user_public_collections(
    user_id: UUID,
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    viewer: User | None = Depends(get_current_user_optional),
):
    query = select(Collection).where(Collection.owner_id == user_id)
    if viewer is None or viewer.id != user_id:
        query = query.where(Collection.visibility == "public")

    result = await db.execute(query.order_by(Collection.updated_at.desc()).limit(limit))
    return [CollectionResponse.model_validate(c) for c in result.scalars().all()]


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


@router.patch("/{user_id}/role", response_model=RoleUpdateResponse)
async def update_user_role(
    user_id: UUID,
    body: RoleUpdateRequest,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    user = await _get_user_or_404(db, user_id)
    previous = user.role
    user.role = body.role
    user.updated_at = datetime.now(timezone.utc)
    await db.commit()

    logger.info(
        "user_role_changed",
        user_id=str(user.id),
        admin_id=str(admin.id),
        previous_role=previous,
        new_role=body.role,
    )
    return RoleUpdateResponse(previous_role=previous, new_role=body.role)


@router.post("/{user_id}/rc-adjustments", response_model=RcAdjustmentResponse)
async def adjust_user_credits(
    user_id: UUID,
    body: RcAdjustmentRequest,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """Manually credit or debit a user's RC balance."""
    user = await _get_user_or_404(db, user_id)
    await apply_credits(
        db,
        user,
        body.amount,
        "manual_adjustment",
        meta={"adjusted_by": str(admin.id), "note": body.reason},
    )
    await db.commit()

    logger.info(
        "credits_adjusted",
        user_id=str(user.id),
        admin_id=str(admin.id),
        amount=body.amount,
    )
    return RcAdjustmentResponse(
        new_balance=user.reputation_credits,
        new_level=user.contributor_level,
    )
