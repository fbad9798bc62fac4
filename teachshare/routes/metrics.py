"""Metrics endpoints: teacher dashboard, site and admin stats, trending content."""

import calendar
from datetime import datetime, timedelta, timezone
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy import cast, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.types import Date

from teachshare.auth import get_current_user, require_admin
from teachshare.constants import RC_CONFIG, RESOURCE_STATUSES
from teachshare.database import get_db
from teachshare.models import (
    Collection,
    ModerationFlag,
    Proposal,
    RcTransaction,
    Resource,
    ResourceDownload,
    ResourceView,
    ResourceVote,
    User,
)
from teachshare.routes.resources import get_resource_or_404
from teachshare.schemas import (
    GovernanceMetricsResponse,
    SiteStatsResponse,
    TrendingResourceResponse,
)

router = APIRouter(prefix="/api/metrics", tags=["metrics"])


def period_start(period: str, now: datetime | None = None) -> datetime:
    """Start of a trending window ending at ``now``.

    ``month`` steps back one calendar month, clamping the day to the
    length of the previous month (March 31 -> February 28/29).
    """
    now = now or datetime.now(timezone.utc)
    if period == "day":
        return now - timedelta(days=1)
    if period == "week":
        return now - timedelta(days=7)
    if period == "month":
        year, month = (now.year, now.month - 1) if now.month > 1 else (now.year - 1, 12)
        day = min(now.day, calendar.monthrange(year, month)[1])
        return now.replace(year=year, month=month, day=day)
    raise ValueError(f"Unknown period: {period}")


async def _count(db: AsyncSession, query) -> int:
    return int((await db.execute(query)).scalar() or 0)


async def _grouped(db: AsyncSession, column, *criteria) -> dict[str, int]:
    query = select(column, func.count()).group_by(column)
    if criteria:
        query = query.where(*criteria)
    return {key: count for key, count in (await db.execute(query)).all()}


async def _by_day(db: AsyncSession, model, resource_id: UUID, since: datetime) -> list[dict]:
    day = cast(model.created_at, Date)
    result = await db.execute(
        select(day, func.count())
        .where(model.resource_id == resource_id, model.created_at >= since)
        .group_by(day)
        .order_by(day)
    )
    return [{"date": d.isoformat(), "count": c} for d, c in result.all()]


@router.get("/dashboard")
async def get_teacher_dashboard(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Contribution metrics for the current user."""
    now = datetime.now(timezone.utc)
    by_status = await _grouped(db, Resource.status, Resource.contributor_id == user.id)
    resource_counts = {status: by_status.get(status, 0) for status in RESOURCE_STATUSES}
    resource_counts["total"] = sum(by_status.values())

    agg = (
        await db.execute(
            select(
                func.coalesce(func.sum(Resource.view_count), 0),
                func.coalesce(func.sum(Resource.download_count), 0),
                func.coalesce(func.sum(Resource.upvote_count), 0),
                func.coalesce(func.sum(Resource.downvote_count), 0),
                func.coalesce(func.sum(Resource.comment_count), 0),
            ).where(Resource.contributor_id == user.id)
        )
    ).one()
    views, downloads, upvotes, downvotes, comments = (int(v or 0) for v in agg)

    rc_result = await db.execute(
        select(RcTransaction)
        .where(
            RcTransaction.user_id == user.id,
            RcTransaction.created_at >= now - timedelta(days=30),
        )
        .order_by(RcTransaction.created_at.desc())
        .limit(50)
    )
    top_result = await db.execute(
        select(Resource)
        .where(Resource.contributor_id == user.id, Resource.status == "approved")
        .order_by(Resource.net_votes.desc())
        .limit(5)
    )

    week_ago = now - timedelta(days=7)
    recent_views = await _count(
        db,
        select(func.count())
        .select_from(ResourceView)
        .join(Resource, ResourceView.resource_id == Resource.id)
        .where(Resource.contributor_id == user.id, ResourceView.created_at >= week_ago),
    )
    recent_downloads = await _count(
        db,
        select(func.count())
        .select_from(ResourceDownload)
        .join(Resource, ResourceDownload.resource_id == Resource.id)
        .where(Resource.contributor_id == user.id, ResourceDownload.created_at >= week_ago),
    )

    return {
        "resource_counts": resource_counts,
        "aggregates": {
            "total_views": views,
            "total_downloads": downloads,
            "total_upvotes": upvotes,
            "total_downvotes": downvotes,
            "net_votes": upvotes - downvotes,
            "total_comments": comments,
        },
        "recent_activity": {
            "views_last_7_days": recent_views,
            "downloads_last_7_days": recent_downloads,
        },
        "rc_history": [
            {"amount": t.amount, "reason": t.reason, "created_at": t.created_at}
            for t in rc_result.scalars().all()
        ],
        "top_resources": [
            {
                "id": r.id,
                "title": r.title,
                "view_count": r.view_count,
                "download_count": r.download_count,
                "net_votes": r.net_votes,
            }
            for r in top_result.scalars().all()
        ],
        "user": {
            "reputation_credits": user.reputation_credits,
            "contributor_level": user.contributor_level,
            "total_resources_submitted": user.total_resources_submitted,
            "total_resources_approved": user.total_resources_approved,
            "total_upvotes_received": user.total_upvotes_received,
            "total_downloads_received": user.total_downloads_received,
        },
    }


@router.get("/site", response_model=SiteStatsResponse)
async def get_site_stats(db: AsyncSession = Depends(get_db)):
    totals = (
        await db.execute(
            select(
                func.coalesce(func.sum(Resource.view_count), 0),
                func.coalesce(func.sum(Resource.download_count), 0),
            )
        )
    ).one()
    return SiteStatsResponse(
        total_users=await _count(db, select(func.count()).select_from(User)),
        total_resources=await _count(
            db, select(func.count()).where(Resource.status == "approved")
        ),
        total_collections=await _count(
            db, select(func.count()).where(Collection.visibility == "public")
        ),
        total_proposals=await _count(db, select(func.count()).select_from(Proposal)),
        active_proposals=await _count(
            db, select(func.count()).where(Proposal.status == "active")
        ),
        total_views=totals[0] or 0,
        total_downloads=totals[1] or 0,
        total_votes=await _count(db, select(func.count()).select_from(ResourceVote)),
    )


@router.get("/admin")
async def get_admin_dashboard(
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    week_ago = datetime.now(timezone.utc) - timedelta(days=7)
    top_result = await db.execute(
        select(User).order_by(User.reputation_credits.desc()).limit(10)
    )
    return {
        "users_by_role": await _grouped(db, User.role),
        "resources_by_status": await _grouped(db, Resource.status),
        "moderation": {
            "pending_resources": await _count(
                db, select(func.count()).where(Resource.status == "pending")
            ),
            "open_flags": await _count(
                db, select(func.count()).where(ModerationFlag.status == "open")
            ),
        },
        "growth": {
            "new_users_this_week": await _count(
                db, select(func.count()).where(User.created_at >= week_ago)
            ),
            "new_resources_this_week": await _count(
                db, select(func.count()).where(Resource.created_at >= week_ago)
            ),
        },
        "economy": {
            "total_rc_in_circulation": await _count(
                db, select(func.coalesce(func.sum(User.reputation_credits), 0))
            ),
        },
        "top_contributors": [
            {
                "id": u.id,
                "name": u.display_name,
                "reputation_credits": u.reputation_credits,
                "contributor_level": u.contributor_level,
                "total_resources_approved": u.total_resources_approved,
            }
            for u in top_result.scalars().all()
        ],
    }


@router.get("/resources/{resource_id}")
async def get_resource_analytics(
    resource_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    """Totals plus daily views and downloads over the last 30 days."""
    resource = await get_resource_or_404(db, resource_id)
    since = datetime.now(timezone.utc) - timedelta(days=30)
    return {
        "totals": {
            "views": resource.view_count,
            "downloads": resource.download_count,
            "upvotes": resource.upvote_count,
            "downvotes": resource.downvote_count,
            "net_votes": resource.net_votes,
            "comments": resource.comment_count,
        },
        "views_by_day": await _by_day(db, ResourceView, resource_id, since),
        "downloads_by_day": await _by_day(db, ResourceDownload, resource_id, since),
    }


@router.get("/content-breakdown")
async def get_content_breakdown(db: AsyncSession = Depends(get_db)):
    """Approved resources grouped by subject, category and grade level."""
    breakdown = {}
    for key, column in (
        ("by_subject", Resource.subject),
        ("by_category", Resource.category),
        ("by_grade_level", Resource.grade_level),
    ):
        count = func.count()
        result = await db.execute(
            select(column, count, func.coalesce(func.sum(Resource.view_count), 0))
            .where(Resource.status == "approved")
            .group_by(column)
            .order_by(count.desc())
        )
        breakdown[key] = [
            {"value": value, "count": n, "total_views": views or 0}
            for value, n, views in result.all()
        ]
    return breakdown


@router.get("/trending", response_model=list[TrendingResourceResponse])
async def get_trending(
    period: str = Query("week", pattern=r"^(day|week|month)$"),
    limit: int = Query(10, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
):
    """Resources ranked by views recorded within the period."""
    recent = func.count(ResourceView.id).label("recent_views")
    views = (
        select(ResourceView.resource_id, recent)
        .where(ResourceView.created_at >= period_start(period))
        .group_by(ResourceView.resource_id)
        .subquery()
    )
    result = await db.execute(
        select(Resource, User.name, views.c.recent_views)
        .join(views, views.c.resource_id == Resource.id)
        .outerjoin(User, Resource.contributor_id == User.id)
        .order_by(views.c.recent_views.desc())
        .limit(limit)
    )
    return [
        TrendingResourceResponse(
            id=r.id,
            title=r.title,
            summary=r.summary,
            thumbnail_url=r.thumbnail_url,
            subject=r.subject,
            grade_level=r.grade_level,
            net_votes=r.net_votes,
            contributor_name=contributor_name,
            recent_views=recent_views,
        )
        for r, contributor_name, recent_views in result.all()
    ]


@router.get("/governance", response_model=GovernanceMetricsResponse)
async def get_governance_metrics(db: AsyncSession = Depends(get_db)):
    by_status = await _grouped(db, Proposal.status)
    eligible = await _count(
        db,
        select(func.count()).where(
            User.reputation_credits >= RC_CONFIG["MIN_RC_TO_VOTE_ON_PROPOSAL"]
        ),
    )
    avg = (
        await db.execute(
            select(
                func.avg(Proposal.votes_for + Proposal.votes_against + Proposal.votes_abstain)
            ).where(Proposal.status.in_(["accepted", "rejected"]))
        )
    ).scalar()
    return GovernanceMetricsResponse(
        total_proposals=sum(by_status.values()),
        proposals_by_status=by_status,
        eligible_voters=eligible,
        average_participation=round(float(avg or 0)),
    )
