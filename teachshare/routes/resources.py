"""Resource endpoints: browse, submit, review lifecycle, views, downloads, votes, comments."""

from datetime import datetime, timezone
from uuid import UUID, uuid4

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from teachshare.auth import (
    MODERATOR_ROLES,
    get_current_user,
    get_current_user_optional,
    require_teacher,
)
from teachshare.constants import (
    GRADE_LEVELS,
    RC_CONFIG,
    RESOURCE_CATEGORIES,
    RESOURCE_STATUSES,
    RESOURCE_TYPES,
    SUBJECTS,
    enum_pattern,
)
from teachshare.database import get_db
from teachshare.logging_config import get_logger
from teachshare.models import (
    Resource,
    ResourceComment,
    ResourceDownload,
    ResourceView,
    ResourceVote,
    User,
)
from teachshare.redis import ENGAGEMENT_TTL, claim_once, engagement_key
from teachshare.schemas import (
    CommentCreateRequest,
    CommentResponse,
    CommentUpdateRequest,
    PaginatedResponse,
    ResourceCreateRequest,
    ResourceCreatedResponse,
    ResourceDetailResponse,
    ResourceDownloadResponse,
    ResourceResponse,
    ResourceUpdateRequest,
    ResourceVoteRequest,
    ResourceVoteResponse,
    SuccessResponse,
    UserSummary,
)
from teachshare.services.notification_service import notify_new_comment
from teachshare.services.reputation_service import apply_credits
from teachshare.services.resource_vote_service import compute_vote_delta

logger = get_logger(__name__)
router = APIRouter(prefix="/api/resources", tags=["resources"])

SORT_ORDERS = {
    "newest": Resource.created_at.desc(),
    "oldest": Resource.created_at.asc(),
    "popular": Resource.view_count.desc(),
    "highest_rated": Resource.net_votes.desc(),
    "most_downloaded": Resource.download_count.desc(),
}


def _engagement_key(action: str, resource_id: UUID, request: Request, user: User | None) -> str:
    if user is not None:
        return engagement_key(action, resource_id, user_id=user.id)
    client_ip = request.client.host if request.client else None
    return engagement_key(action, resource_id, client_ip=client_ip)


def _to_response(resource: Resource, contributor_name: str | None = None) -> ResourceResponse:
    out = ResourceResponse.model_validate(resource)
    return out.model_copy(update={"contributor_name": contributor_name})


async def get_resource_or_404(db: AsyncSession, resource_id: UUID) -> Resource:
    result = await db.execute(select(Resource).where(Resource.id == resource_id))
    resource = result.scalar_one_or_none()
    if resource is None:
        raise HTTPException(status_code=404, detail="Resource not found")
    return resource


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------


@router.get("", response_model=PaginatedResponse)
async def browse_resources(
    search: str | None = Query(None, max_length=200),
    subject: str | None = Query(None, pattern=enum_pattern(SUBJECTS)),
    grade_level: str | None = Query(None, pattern=enum_pattern(GRADE_LEVELS)),
    category: str | None = Query(None, pattern=enum_pattern(RESOURCE_CATEGORIES)),
    resource_type: str | None = Query(None, pattern=enum_pattern(RESOURCE_TYPES)),
    status: str = Query("approved", pattern=enum_pattern(RESOURCE_STATUSES)),
    contributor_id: UUID | None = Query(None),
    tags: str | None = Query(None, max_length=500),
    sort: str = Query("newest", pattern=enum_pattern(tuple(SORT_ORDERS))),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """Browse resources with filters and sorting. Defaults to approved resources."""
    query = select(Resource).where(Resource.status == status)

    if search:
        pattern = f"%{search}%"
        query = query.where(
            or_(Resource.title.ilike(pattern), Resource.description.ilike(pattern))
        )
    if subject:
        query = query.where(Resource.subject == subject)
    if grade_level:
        query = query.where(Resource.grade_level == grade_level)
    if category:
        query = query.where(Resource.category == category)
    if resource_type:
        query = query.where(Resource.resource_type == resource_type)
    if contributor_id:
        query = query.where(Resource.contributor_id == contributor_id)
    if tags:
        tag_list = [t.strip().lower() for t in tags.split(",") if t.strip()]
        if tag_list:
            query = query.where(Resource.tags.overlap(tag_list))

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0

    list_query = (
        query.add_columns(User.name.label("contributor_name"))
        .outerjoin(User, Resource.contributor_id == User.id)
        .order_by(SORT_ORDERS[sort], Resource.id)
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    rows = (await db.execute(list_query)).all()
    items = [_to_response(row[0], row.contributor_name) for row in rows]

    return PaginatedResponse(items=items, total=total, page=page, per_page=per_page)


@router.get("/featured", response_model=list[ResourceResponse])
async def list_featured(
    limit: int = Query(10, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
):
    """Featured approved resources, best rated first."""
    result = await db.execute(
        select(Resource)
        .where(Resource.status == "approved", Resource.is_featured.is_(True))
        .order_by(Resource.net_votes.desc())
        .limit(limit)
    )
    return [_to_response(r) for r in result.scalars().all()]


@router.get("/editor-picks", response_model=list[ResourceResponse])
async def list_editor_picks(
    limit: int = Query(10, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
):
    """Editor picks, newest first."""
    result = await db.execute(
        select(Resource)
        .where(Resource.status == "approved", Resource.is_editor_pick.is_(True))
        .order_by(Resource.created_at.desc())
        .limit(limit)
    )
    return [_to_response(r) for r in result.scalars().all()]


@router.get("/mine", response_model=PaginatedResponse)
async def list_my_resources(
    status: str | None = Query(None, pattern=enum_pattern(RESOURCE_STATUSES)),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """The caller's own resources in every status."""
    query = select(Resource).where(Resource.contributor_id == user.id)
    if status:
        query = query.where(Resource.status == status)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0
    result = await db.execute(
        query.order_by(Resource.created_at.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    items = [_to_response(r, user.name) for r in result.scalars().all()]
    return PaginatedResponse(items=items, total=total, page=page, per_page=per_page)


# ---------------------------------------------------------------------------
# Comments (static prefix, declared before /{resource_id})
# ---------------------------------------------------------------------------


@router.patch("/comments/{comment_id}", response_model=CommentResponse)
async def edit_comment(
    comment_id: UUID,
    body: CommentUpdateRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Edit your own comment."""
    result = await db.execute(select(ResourceComment).where(ResourceComment.id == comment_id))
    comment = result.scalar_one_or_none()
    if comment is None:
        raise HTTPException(status_code=404, detail="Comment not found")
    if comment.user_id != user.id:
        raise HTTPException(status_code=403, detail="You can only edit your own comments")

    comment.content = body.content
    comment.is_edited = True
    comment.updated_at = datetime.now(timezone.utc)
    await db.commit()

    return CommentResponse(
        id=comment.id,
        resource_id=comment.resource_id,
        user_id=comment.user_id,
        parent_id=comment.parent_id,
        content=comment.content,
        is_edited=True,
        created_at=comment.created_at,
        user_name=user.name,
        user_avatar=user.avatar_url,
    )


# ---------------------------------------------------------------------------
# Single resource
# ---------------------------------------------------------------------------


@router.get("/{resource_id}", response_model=ResourceDetailResponse)
async def get_resource(
    resource_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    """Get a resource with its contributor."""
    result = await db.execute(
        select(Resource, User)
        .outerjoin(User, Resource.contributor_id == User.id)
        .where(Resource.id == resource_id)
    )
    row = result.first()
    if row is None:
        raise HTTPException(status_code=404, detail="Resource not found")

    resource, contributor = row
    detail = ResourceDetailResponse.model_validate(resource)
    if contributor is not None:
        detail = detail.model_copy(
            update={
                "contributor_name": contributor.name,
                "contributor": UserSummary(
                    id=contributor.id, name=contributor.name, avatar_url=contributor.avatar_url
                ),
            }
        )
    return detail


@router.post("", response_model=ResourceCreatedResponse, status_code=201)
async def create_resource(
    body: ResourceCreateRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_teacher),
):
    """Submit a resource for review, or save it as a draft."""
    data = body.model_dump(exclude={"as_draft"})
    status = "draft" if body.as_draft else "pending"
    resource = Resource(id=uuid4(), contributor_id=user.id, status=status, **data)
    db.add(resource)

    if status == "pending":
        user.total_resources_submitted = (user.total_resources_submitted or 0) + 1
        await apply_credits(
            db,
            user,
            RC_CONFIG["RESOURCE_SUBMITTED"],
            "resource_submitted",
            reference_type="resource",
            reference_id=resource.id,
        )

    await db.commit()

    logger.info("resource_created", resource_id=str(resource.id), status=status, user_id=str(user.id))
    return ResourceCreatedResponse(id=resource.id, status=status)


@router.patch("/{resource_id}", response_model=ResourceResponse)
async def update_resource(
    resource_id: UUID,
    body: ResourceUpdateRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Update a resource. Owners and moderators only."""
    resource = await get_resource_or_404(db, resource_id)
    if resource.contributor_id != user.id and user.role not in MODERATOR_ROLES:
        raise HTTPException(status_code=403, detail="You can only edit your own resources")

    for field, value in body.model_dump(exclude_unset=True).items():
        setattr(resource, field, value)
    resource.updated_at = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(resource)

    logger.info("resource_updated", resource_id=str(resource.id), user_id=str(user.id))
    return _to_response(resource)


@router.post("/{resource_id}/submit", response_model=ResourceCreatedResponse)
async def submit_for_review(
    resource_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_teacher),
):
    """Move a draft into the moderation queue."""
    resource = await get_resource_or_404(db, resource_id)
    if resource.contributor_id != user.id:
        raise HTTPException(status_code=403, detail="You can only submit your own resources")
    if resource.status != "draft":
        raise HTTPException(status_code=400, detail="Only drafts can be submitted for review")

    resource.status = "pending"
    resource.updated_at = datetime.now(timezone.utc)
    user.total_resources_submitted = (user.total_resources_submitted or 0) + 1
    await apply_credits(
        db,
        user,
        RC_CONFIG["RESOURCE_SUBMITTED"],
        "resource_submitted",
        reference_type="resource",
        reference_id=resource.id,
    )
    await db.commit()

    logger.info("resource_submitted", resource_id=str(resource.id))
    return ResourceCreatedResponse(id=resource.id, status="pending")


# ---------------------------------------------------------------------------
# Engagement
# ---------------------------------------------------------------------------


@router.post("/{resource_id}/view", response_model=SuccessResponse)
async def track_view(
    resource_id: UUID,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: User | None = Depends(get_current_user_optional),
):
    """Record a view. Repeat views from the same viewer within an hour are ignored."""
    resource = await get_resource_or_404(db, resource_id)

    try:
        if not await claim_once(_engagement_key("view", resource_id, request, user), ENGAGEMENT_TTL):
            return SuccessResponse()
    except RuntimeError:
        pass  # Redis unavailable, count every view

    db.add(ResourceView(resource_id=resource.id, user_id=user.id if user else None))
    resource.view_count = (resource.view_count or 0) + 1
    await db.commit()
    return SuccessResponse()


async def _should_credit_download(resource: Resource, request: Request, user: User | None) -> bool:
    if user is not None and user.id == resource.contributor_id:
        return False
    try:
        return await claim_once(_engagement_key("download", resource.id, request, user), ENGAGEMENT_TTL)
    except RuntimeError:
        logger.warning("download_credit_skipped", resource_id=str(resource.id), reason="redis_unavailable")
        return False


@router.post("/{resource_id}/download", response_model=ResourceDownloadResponse)
async def track_download(
    resource_id: UUID,
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: User | None = Depends(get_current_user_optional),
):
    """Record a download and return the file location.

    Every download is counted. The contributor is credited at most once per
    caller per hour and never for their own downloads. An anonymous caller
    is identified by address, so an owner who signs out still earns nothing
    on repeat downloads.
    """
    resource = await get_resource_or_404(db, resource_id)

    db.add(ResourceDownload(resource_id=resource.id, user_id=user.id if user else None))
    resource.download_count = (resource.download_count or 0) + 1

    if await _should_credit_download(resource, request, user):
        owner_result = await db.execute(select(User).where(User.id == resource.contributor_id))
        owner = owner_result.scalar_one_or_none()
        if owner is not None:
            owner.total_downloads_received = (owner.total_downloads_received or 0) + 1
            await apply_credits(
                db,
                owner,
                RC_CONFIG["RESOURCE_DOWNLOAD"],
                "resource_downloaded",
                reference_type="resource",
                reference_id=resource.id,
            )

    await db.commit()
    return ResourceDownloadResponse(file_url=resource.file_url, external_url=resource.external_url)


@router.post("/{resource_id}/vote", response_model=ResourceVoteResponse)
async def vote_on_resource(
    resource_id: UUID,
    body: ResourceVoteRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Upvote, downvote or remove a vote. Contributors cannot vote on their own resources."""
    resource = await get_resource_or_404(db, resource_id)
    if resource.contributor_id == user.id:
        raise HTTPException(status_code=400, detail="You cannot vote on your own resources")

    existing_result = await db.execute(
        select(ResourceVote).where(
            ResourceVote.resource_id == resource_id,
            ResourceVote.user_id == user.id,
        )
    )
    existing = existing_result.scalar_one_or_none()
    previous = existing.value if existing is not None else None

    delta = compute_vote_delta(previous, body.value)
    if not delta.changed:
        return ResourceVoteResponse(vote=delta.new_value)

    now = datetime.now(timezone.utc)
    if delta.new_value is None:
        await db.delete(existing)
    elif existing is None:
        db.add(ResourceVote(resource_id=resource.id, user_id=user.id, value=delta.new_value))
    else:
        existing.value = delta.new_value
        existing.updated_at = now

    resource.upvote_count = (resource.upvote_count or 0) + delta.upvotes
    resource.downvote_count = (resource.downvote_count or 0) + delta.downvotes
    resource.net_votes = (resource.net_votes or 0) + delta.net

    owner_result = await db.execute(select(User).where(User.id == resource.contributor_id))
    owner = owner_result.scalar_one_or_none()
    if owner is not None:
        owner.total_upvotes_received = max(
            0, (owner.total_upvotes_received or 0) + delta.upvotes_received
        )
        if delta.credits:
            await apply_credits(
                db,
                owner,
                delta.credits,
                delta.reason,
                reference_type="resource",
                reference_id=resource.id,
                meta={"voter_id": str(user.id)},
            )

    await db.commit()

    logger.info(
        "resource_vote",
        resource_id=str(resource.id),
        user_id=str(user.id),
        previous=previous,
        vote=delta.new_value,
    )
    return ResourceVoteResponse(vote=delta.new_value)


@router.get("/{resource_id}/vote", response_model=ResourceVoteResponse)
async def get_my_vote(
    resource_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """The caller's current vote on a resource (1, -1 or null)."""
    result = await db.execute(
        select(ResourceVote.value).where(
            ResourceVote.resource_id == resource_id,
            ResourceVote.user_id == user.id,
        )
    )
    return ResourceVoteResponse(vote=result.scalar_one_or_none())


@router.get("/{resource_id}/comments", response_model=list[CommentResponse])
async def list_comments(
    resource_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    """Comments on a resource, oldest first."""
    result = await db.execute(
        select(ResourceComment, User.name, User.avatar_url)
        .outerjoin(User, ResourceComment.user_id == User.id)
        .where(ResourceComment.resource_id == resource_id)
        .order_by(ResourceComment.created_at.asc())
    )
    return [
        CommentResponse(
            id=c.id,
            resource_id=c.resource_id,
            user_id=c.user_id,
            parent_id=c.parent_id,
            content=c.content,
            is_edited=c.is_edited,
            created_at=c.created_at,
            user_name=name,
            user_avatar=avatar,
        )
        for c, name, avatar in result.all()
    ]


@router.post("/{resource_id}/comments", response_model=CommentResponse, status_code=201)
async def add_comment(
    resource_id: UUID,
    body: CommentCreateRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Comment on a resource, optionally replying to another comment."""
    resource = await get_resource_or_404(db, resource_id)

    if body.parent_id is not None:
        parent_result = await db.execute(
            select(ResourceComment).where(ResourceComment.id == body.parent_id)
        )
        parent = parent_result.scalar_one_or_none()
        if parent is None or parent.resource_id != resource.id:
            raise HTTPException(status_code=400, detail="Parent comment not found on this resource")

    comment = ResourceComment(
        id=uuid4(),
        resource_id=resource.id,
        user_id=user.id,
        parent_id=body.parent_id,
        content=body.content,
        created_at=datetime.now(timezone.utc),
    )
    db.add(comment)
    resource.comment_count = (resource.comment_count or 0) + 1
    await notify_new_comment(db, comment, resource, user)
    await db.commit()

    logger.info("resource_comment_added", resource_id=str(resource.id), comment_id=str(comment.id))
    return CommentResponse(
        id=comment.id,
        resource_id=resource.id,
        user_id=user.id,
        parent_id=comment.parent_id,
        content=comment.content,
        is_edited=False,
        created_at=comment.created_at,
        user_name=user.name,
        user_avatar=user.avatar_url,
    )


@router.get("/{resource_id}/related", response_model=list[ResourceResponse])
async def list_related(
    resource_id: UUID,
    limit: int = Query(5, ge=1, le=20),
    db: AsyncSession = Depends(get_db),
):
    """Approved resources sharing a subject or grade level, best rated first."""
    result = await db.execute(select(Resource).where(Resource.id == resource_id))
    source = result.scalar_one_or_none()
    if source is None:
        return []

    related = await db.execute(
        select(Resource)
        .where(
            Resource.status == "approved",
            Resource.id != source.id,
            or_(Resource.subject == source.subject, Resource.grade_level == source.grade_level),
        )
        .order_by(Resource.net_votes.desc())
        .limit(limit)
    )
    return [_to_response(r) for r in related.scalars().all()]
