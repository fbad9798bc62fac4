"""Moderation endpoints: content flags, the pending review queue and featuring."""

from datetime import datetime, timezone
from uuid import UUID, uuid4

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from teachshare.auth import require_min_credits, require_moderator
from teachshare.constants import FLAG_STATUSES, FLAG_TARGET_TYPES, RC_CONFIG, enum_pattern
from teachshare.database import get_db
from teachshare.logging_config import get_logger
from teachshare.models import Collection, ModerationFlag, Resource, ResourceComment, User
from teachshare.routes.resources import get_resource_or_404
from teachshare.schemas import (
    BulkReviewRequest,
    BulkReviewResponse,
    FeatureRequest,
    FlagCountResponse,
    FlagCreatedResponse,
    FlagCreateRequest,
    FlagDetailResponse,
    FlagResolveRequest,
    FlagResponse,
    FlagTargetDetails,
    ModerationStatsResponse,
    PendingResourceResponse,
    ResourceResponse,
    ReviewRequest,
    ReviewResponse,
)
from teachshare.services.notification_service import (
    notify_flag_resolved,
    notify_resource_reviewed,
)
from teachshare.services.reputation_service import apply_credits, award_credits

logger = get_logger(__name__)
router = APIRouter(prefix="/api/moderation", tags=["moderation"])

require_flagger = require_min_credits(RC_CONFIG["MIN_RC_TO_FLAG"])

FLAG_TARGET_MODELS = {
    "resource": Resource,
    "comment": ResourceComment,
    "collection": Collection,
}


async def _get_flag_or_404(db: AsyncSession, flag_id: UUID) -> ModerationFlag:
    result = await db.execute(select(ModerationFlag).where(ModerationFlag.id == flag_id))
    flag = result.scalar_one_or_none()
    if flag is None:
        raise HTTPException(status_code=404, detail="Flag not found")
    return flag


async def _apply_review(
    db: AsyncSession,
    resource: Resource,
    moderator: User,
    decision: str,
    notes: str | None,
) -> str:
    """Approve or reject a pending resource, settle the contributor's credits and notify them."""
    now = datetime.now(timezone.utc)
    resource.status = "approved" if decision == "approve" else "rejected"
    resource.reviewed_by = moderator.id
    resource.reviewed_at = now
    resource.review_notes = notes
    resource.updated_at = now

    result = await db.execute(select(User).where(User.id == resource.contributor_id))
    contributor = result.scalar_one_or_none()

    if resource.status == "approved":
        resource.published_at = now
        if contributor is not None:
            contributor.total_resources_approved = (contributor.total_resources_approved or 0) + 1
            await apply_credits(
                db,
                contributor,
                RC_CONFIG["RESOURCE_APPROVED"],
                "resource_approved",
                reference_type="resource",
                reference_id=resource.id,
            )
    elif contributor is not None:
        await apply_credits(
            db,
            contributor,
            RC_CONFIG["RESOURCE_REJECTED"],
            "resource_rejected",
            reference_type="resource",
            reference_id=resource.id,
        )

    await notify_resource_reviewed(db, resource, notes)
    logger.info(
        "resource_reviewed",
        resource_id=str(resource.id),
        moderator_id=str(moderator.id),
        new_status=resource.status,
    )
    return resource.status


# ---------------------------------------------------------------------------
# Flags
# ---------------------------------------------------------------------------


@router.post("/flags", response_model=FlagCreatedResponse, status_code=201)
async def create_flag(
    body: FlagCreateRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_flagger),
):
    """Report a resource, comment or collection."""
    model = FLAG_TARGET_MODELS[body.target_type]
    target = await db.execute(select(model.id).where(model.id == body.target_id))
    if target.scalar_one_or_none() is None:
        raise HTTPException(status_code=404, detail=f"{body.target_type.capitalize()} not found")

    existing = await db.execute(
        select(ModerationFlag.id).where(
            ModerationFlag.target_type == body.target_type,
            ModerationFlag.target_id == body.target_id,
            ModerationFlag.reporter_id == user.id,
        )
    )
    if existing.scalar_one_or_none() is not None:
        raise HTTPException(status_code=409, detail="You have already flagged this content")

    flag = ModerationFlag(
        id=uuid4(),
        target_type=body.target_type,
        target_id=body.target_id,
        reporter_id=user.id,
        reason=body.reason,
        details=body.details,
        status="open",
    )
    db.add(flag)
    await apply_credits(
        db,
        user,
        RC_CONFIG["FLAG_SUBMITTED"],
        "flag_submitted",
        reference_type="flag",
        reference_id=flag.id,
    )
    await db.commit()

    logger.info(
        "content_flagged",
        flag_id=str(flag.id),
        target_type=body.target_type,
        target_id=str(body.target_id),
        reason=body.reason,
    )
    return FlagCreatedResponse(id=flag.id)


@router.get("/flags", response_model=list[FlagResponse])
async def list_flags(
    status: str | None = Query(None, pattern=enum_pattern(FLAG_STATUSES)),
    target_type: str | None = Query(None, pattern=enum_pattern(FLAG_TARGET_TYPES)),
    limit: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    moderator: User = Depends(require_moderator),
):
    query = select(ModerationFlag, User.name).outerjoin(
        User, ModerationFlag.reporter_id == User.id
    )
    if status:
        query = query.where(ModerationFlag.status == status)
    if target_type:
        query = query.where(ModerationFlag.target_type == target_type)

    result = await db.execute(query.order_by(ModerationFlag.created_at.desc()).limit(limit))
    return [
        FlagResponse.model_validate(flag).model_copy(update={"reporter_name": reporter_name})
        for flag, reporter_name in result.all()
    ]


@router.get("/flags/count", response_model=FlagCountResponse)
async def count_open_flags(
    target_type: str = Query(..., pattern=enum_pattern(FLAG_TARGET_TYPES)),
    target_id: UUID = Query(...),
    db: AsyncSession = Depends(get_db),
):
    """Number of open flags against a single target."""
    count = (
        await db.execute(
            select(func.count()).where(
                ModerationFlag.target_type == target_type,
                ModerationFlag.target_id == target_id,
                ModerationFlag.status == "open",
            )
        )
    ).scalar() or 0
    return FlagCountResponse(flag_count=count)


@router.get("/flags/{flag_id}", response_model=FlagDetailResponse)
async def get_flag(
    flag_id: UUID,
    db: AsyncSession = Depends(get_db),
    moderator: User = Depends(require_moderator),
):
    flag = await _get_flag_or_404(db, flag_id)
    out = FlagDetailResponse.model_validate(flag)

    if flag.target_type == "resource":
        result = await db.execute(select(Resource).where(Resource.id == flag.target_id))
        resource = result.scalar_one_or_none()
        if resource is not None:
            out = out.model_copy(
                update={
                    "target_details": FlagTargetDetails(
                        id=resource.id,
                        title=resource.title,
                        status=resource.status,
                        contributor_id=resource.contributor_id,
                    )
                }
            )
    return out


@router.post("/flags/{flag_id}/claim", response_model=FlagResponse)
async def claim_flag(
    flag_id: UUID,
    db: AsyncSession = Depends(get_db),
    moderator: User = Depends(require_moderator),
):
    """Move an open flag to under_review."""
    flag = await _get_flag_or_404(db, flag_id)
    if flag.status != "open":
        raise HTTPException(status_code=400, detail="Only open flags can be claimed")

    flag.status = "under_review"
    await db.commit()
    await db.refresh(flag)

    logger.info("flag_claimed", flag_id=str(flag.id), moderator_id=str(moderator.id))
    return FlagResponse.model_validate(flag)


@router.post("/flags/{flag_id}/resolve", response_model=ReviewResponse)
async def resolve_flag(
    flag_id: UUID,
    body: FlagResolveRequest,
    db: AsyncSession = Depends(get_db),
    moderator: User = Depends(require_moderator),
):
    """
    Uphold or dismiss a flag.

    Upheld flags reward the reporter and archive an approved resource target;
    dismissed flags cost the reporter. The moderator earns a credit either way.
    """
    flag = await _get_flag_or_404(db, flag_id)
    if flag.status not in ("open", "under_review"):
        raise HTTPException(status_code=400, detail="Flag has already been resolved")

    now = datetime.now(timezone.utc)
    upheld = body.resolution == "upheld"
    flag.status = "resolved" if upheld else "dismissed"
    flag.resolved_by = moderator.id
    flag.resolved_at = now
    flag.resolution_notes = body.notes

    if upheld:
        await award_credits(
            db,
            flag.reporter_id,
            RC_CONFIG["FLAG_UPHELD"],
            "flag_upheld",
            reference_type="flag",
            reference_id=flag.id,
        )
        if flag.target_type == "resource":
            result = await db.execute(select(Resource).where(Resource.id == flag.target_id))
            resource = result.scalar_one_or_none()
            if resource is not None and resource.status == "approved":
                resource.status = "archived"
                resource.updated_at = now
                logger.info("resource_archived", resource_id=str(resource.id), flag_id=str(flag.id))
    else:
        await award_credits(
            db,
            flag.reporter_id,
            RC_CONFIG["FLAG_DISMISSED"],
            "flag_dismissed",
            reference_type="flag",
            reference_id=flag.id,
        )

    await apply_credits(
        db,
        moderator,
        RC_CONFIG["MODERATION_ACTION"],
        "moderation_action",
        reference_type="flag",
        reference_id=flag.id,
    )
    await notify_flag_resolved(db, flag)
    await db.commit()

    logger.info(
        "flag_resolved",
        flag_id=str(flag.id),
        moderator_id=str(moderator.id),
        resolution=body.resolution,
    )
    return ReviewResponse(new_status=flag.status)


# ---------------------------------------------------------------------------
# Review queue
# ---------------------------------------------------------------------------


@router.get("/resources/pending", response_model=list[PendingResourceResponse])
async def list_pending_resources(
    limit: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    moderator: User = Depends(require_moderator),
):
    """Resources awaiting review, oldest first."""
    result = await db.execute(
        select(Resource, User)
        .outerjoin(User, Resource.contributor_id == User.id)
        .where(Resource.status == "pending")
        .order_by(Resource.created_at.asc())
        .limit(limit)
    )
    return [
        PendingResourceResponse(
            id=r.id,
            title=r.title,
            description=r.description,
            category=r.category,
            subject=r.subject,
            grade_level=r.grade_level,
            resource_type=r.resource_type,
            file_url=r.file_url,
            external_url=r.external_url,
            thumbnail_url=r.thumbnail_url,
            created_at=r.created_at,
            contributor_id=r.contributor_id,
            contributor_name=contributor.display_name if contributor else None,
            contributor_rc=contributor.reputation_credits if contributor else None,
            contributor_level=contributor.contributor_level if contributor else None,
        )
        for r, contributor in result.all()
    ]


@router.post("/resources/bulk-review", response_model=BulkReviewResponse)
async def bulk_review_resources(
    body: BulkReviewRequest,
    db: AsyncSession = Depends(get_db),
    moderator: User = Depends(require_moderator),
):
    """Apply one decision to many resources. Missing or non-pending ones are skipped."""
    result = await db.execute(
        select(Resource).where(Resource.id.in_(body.resource_ids), Resource.status == "pending")
    )
    processed = 0
    for resource in result.scalars().all():
        await _apply_review(db, resource, moderator, body.decision, body.notes)
        processed += 1
    await db.commit()

    logger.info("resources_bulk_reviewed", processed=processed, decision=body.decision)
    return BulkReviewResponse(processed=processed)


@router.post("/resources/{resource_id}/review", response_model=ReviewResponse)
async def review_resource(
    resource_id: UUID,
    body: ReviewRequest,
    db: AsyncSession = Depends(get_db),
    moderator: User = Depends(require_moderator),
):
    resource = await get_resource_or_404(db, resource_id)
    if resource.status != "pending":
        raise HTTPException(status_code=400, detail="Resource is not pending review")

    new_status = await _apply_review(db, resource, moderator, body.decision, body.notes)
    await db.commit()
    return ReviewResponse(new_status=new_status)


@router.patch("/resources/{resource_id}/feature", response_model=ResourceResponse)
async def feature_resource(
    resource_id: UUID,
    body: FeatureRequest,
    db: AsyncSession = Depends(get_db),
    moderator: User = Depends(require_moderator),
):
    """Toggle the featured and editor-pick flags."""
    resource = await get_resource_or_404(db, resource_id)
    if body.is_featured is not None:
        resource.is_featured = body.is_featured
    if body.is_editor_pick is not None:
        resource.is_editor_pick = body.is_editor_pick
    resource.updated_at = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(resource)

    logger.info(
        "resource_featured",
        resource_id=str(resource.id),
        is_featured=resource.is_featured,
        is_editor_pick=resource.is_editor_pick,
    )
    return ResourceResponse.model_validate(resource)


@router.get("/stats", response_model=ModerationStatsResponse)
async def get_moderation_stats(
    db: AsyncSession = Depends(get_db),
    moderator: User = Depends(require_moderator),
):
    today_start = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)

    pending = (
        await db.execute(select(func.count()).where(Resource.status == "pending"))
    ).scalar() or 0
    flag_counts = dict(
        (
            await db.execute(
                select(ModerationFlag.status, func.count())
                .where(ModerationFlag.status.in_(["open", "under_review"]))
                .group_by(ModerationFlag.status)
            )
        ).all()
    )
    resolved_today = (
        await db.execute(
            select(func.count()).where(
                ModerationFlag.status.in_(["resolved", "dismissed"]),
                ModerationFlag.resolved_at >= today_start,
            )
        )
    ).scalar() or 0

    return ModerationStatsResponse(
        pending_resources=pending,
        open_flags=flag_counts.get("open", 0),
        under_review_flags=flag_counts.get("under_review", 0),
        resolved_today=resolved_today,
    )
