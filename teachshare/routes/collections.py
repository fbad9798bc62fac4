"""Collection endpoints: curated, ordered lists of resources that others can follow."""

from datetime import datetime, timezone
from uuid import UUID, uuid4

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from teachshare.auth import get_current_user, get_current_user_optional
from teachshare.database import get_db
from teachshare.logging_config import get_logger
from teachshare.models import (
    Collection,
    CollectionFollower,
    CollectionResource,
    Resource,
    User,
)
from teachshare.schemas import (
    CollectionAddResourceRequest,
    CollectionCreateRequest,
    CollectionReorderRequest,
    CollectionResourceResponse,
    CollectionResponse,
    CollectionUpdateRequest,
    FollowResponse,
    IsFollowingResponse,
    SuccessResponse,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/api/collections", tags=["collections"])

BROWSE_SORTS = {
    "newest": Collection.created_at.desc(),
    "popular": Collection.follower_count.desc(),
    "most_resources": Collection.resource_count.desc(),
}


async def _get_collection_or_404(db: AsyncSession, collection_id: UUID) -> Collection:
    result = await db.execute(select(Collection).where(Collection.id == collection_id))
    collection = result.scalar_one_or_none()
    if collection is None:
        raise HTTPException(status_code=404, detail="Collection not found")
    return collection


async def _get_owned_collection(db: AsyncSession, collection_id: UUID, user: User) -> Collection:
    collection = await _get_collection_or_404(db, collection_id)
    if collection.owner_id != user.id:
        raise HTTPException(status_code=403, detail="You do not own this collection")
    return collection


def _check_visible(collection: Collection, user: User | None) -> None:
    """Private collections are only visible to their owner."""
    if collection.visibility == "private" and (user is None or user.id != collection.owner_id):
        raise HTTPException(status_code=403, detail="This collection is private")


def _touch(collection: Collection) -> None:
    collection.updated_at = datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------


@router.get("", response_model=list[CollectionResponse])
async def list_user_collections(
    user_id: UUID | None = Query(None),
    include_private: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    viewer: User | None = Depends(get_current_user_optional),
):
    """List a user's collections. Private ones appear only for the owner when requested."""
    target_id = user_id or (viewer.id if viewer else None)
    if target_id is None:
        raise HTTPException(status_code=400, detail="user_id is required")

    query = select(Collection).where(Collection.owner_id == target_id)
    is_owner = viewer is not None and viewer.id == target_id
    if not (is_owner and include_private):
        query = query.where(Collection.visibility.in_(["public", "unlisted"]))

    result = await db.execute(query.order_by(Collection.updated_at.desc()))
    return [CollectionResponse.model_validate(c) for c in result.scalars().all()]


@router.get("/public", response_model=list[CollectionResponse])
async def browse_public_collections(
    search: str | None = Query(None, max_length=200),
    sort: str = Query("newest", pattern=r"^(newest|popular|most_resources)$"),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """Browse public collections."""
    query = (
        select(Collection, User.name)
        .outerjoin(User, Collection.owner_id == User.id)
        .where(Collection.visibility == "public")
    )
    if search:
        pattern = f"%{search}%"
        query = query.where(
            or_(Collection.title.ilike(pattern), Collection.description.ilike(pattern))
        )
    result = await db.execute(query.order_by(BROWSE_SORTS[sort]).limit(limit))
    return [
        CollectionResponse.model_validate(c).model_copy(update={"owner_name": owner_name})
        for c, owner_name in result.all()
    ]


@router.get("/following", response_model=list[CollectionResponse])
async def list_followed_collections(
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Collections the caller follows, most recently followed first."""
    result = await db.execute(
        select(Collection)
        .join(CollectionFollower, CollectionFollower.collection_id == Collection.id)
        .where(CollectionFollower.user_id == user.id)
        .order_by(CollectionFollower.created_at.desc())
        .limit(limit)
    )
    return [CollectionResponse.model_validate(c) for c in result.scalars().all()]


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


@router.post("", response_model=CollectionResponse, status_code=201)
async def create_collection(
    body: CollectionCreateRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    collection = Collection(
        id=uuid4(),
        owner_id=user.id,
        resource_count=0,
        follower_count=0,
        **body.model_dump(),
    )
    db.add(collection)
    await db.commit()
    await db.refresh(collection)

    logger.info("collection_created", collection_id=str(collection.id), user_id=str(user.id))
    return CollectionResponse.model_validate(collection)


@router.get("/{collection_id}", response_model=CollectionResponse)
async def get_collection(
    collection_id: UUID,
    db: AsyncSession = Depends(get_db),
    viewer: User | None = Depends(get_current_user_optional),
):
    collection = await _get_collection_or_404(db, collection_id)
    _check_visible(collection, viewer)
    return CollectionResponse.model_validate(collection)


@router.patch("/{collection_id}", response_model=CollectionResponse)
async def update_collection(
    collection_id: UUID,
    body: CollectionUpdateRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    collection = await _get_owned_collection(db, collection_id, user)
    for field, value in body.model_dump(exclude_unset=True).items():
        setattr(collection, field, value)
    _touch(collection)
    await db.commit()
    await db.refresh(collection)
    return CollectionResponse.model_validate(collection)


@router.delete("/{collection_id}", response_model=SuccessResponse)
async def delete_collection(
    collection_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    collection = await _get_owned_collection(db, collection_id, user)
    await db.delete(collection)
    await db.commit()
    logger.info("collection_deleted", collection_id=str(collection_id), user_id=str(user.id))
    return SuccessResponse()


# ---------------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------------


@router.get("/{collection_id}/resources", response_model=list[CollectionResourceResponse])
async def list_collection_resources(
    collection_id: UUID,
    db: AsyncSession = Depends(get_db),
    viewer: User | None = Depends(get_current_user_optional),
):
    """Resources in a collection in display order."""
    collection = await _get_collection_or_404(db, collection_id)
    _check_visible(collection, viewer)

    result = await db.execute(
        select(CollectionResource, Resource)
        .join(Resource, CollectionResource.resource_id == Resource.id)
        .where(CollectionResource.collection_id == collection_id)
        .order_by(CollectionResource.order_index.asc())
    )
    return [
        CollectionResourceResponse(
            resource_id=resource.id,
            order_index=entry.order_index,
            note=entry.note,
            added_at=entry.added_at,
            title=resource.title,
            subject=resource.subject,
            grade_level=resource.grade_level,
            category=resource.category,
            status=resource.status,
            thumbnail_url=resource.thumbnail_url,
            net_votes=resource.net_votes,
        )
        for entry, resource in result.all()
    ]


@router.post("/{collection_id}/resources", response_model=SuccessResponse, status_code=201)
async def add_resource_to_collection(
    collection_id: UUID,
    body: CollectionAddResourceRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Append a resource, or insert it at ``order_index``."""
    collection = await _get_owned_collection(db, collection_id, user)

    resource_result = await db.execute(select(Resource.id).where(Resource.id == body.resource_id))
    if resource_result.scalar_one_or_none() is None:
        raise HTTPException(status_code=404, detail="Resource not found")

    existing = await db.execute(
        select(CollectionResource.id).where(
            CollectionResource.collection_id == collection_id,
            CollectionResource.resource_id == body.resource_id,
        )
    )
    if existing.scalar_one_or_none() is not None:
        raise HTTPException(status_code=409, detail="Resource is already in this collection")

    order_index = body.order_index
    if order_index is None:
        max_result = await db.execute(
            select(func.max(CollectionResource.order_index)).where(
                CollectionResource.collection_id == collection_id
            )
        )
        current_max = max_result.scalar()
        order_index = (current_max if current_max is not None else -1) + 1

    db.add(
        CollectionResource(
            collection_id=collection_id,
            resource_id=body.resource_id,
            order_index=order_index,
            note=body.note,
        )
    )
    collection.resource_count = (collection.resource_count or 0) + 1
    _touch(collection)
    await db.commit()

    logger.info(
        "collection_resource_added",
        collection_id=str(collection_id),
        resource_id=str(body.resource_id),
        order_index=order_index,
    )
    return SuccessResponse()


@router.delete("/{collection_id}/resources/{resource_id}", response_model=SuccessResponse)
async def remove_resource_from_collection(
    collection_id: UUID,
    resource_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    collection = await _get_owned_collection(db, collection_id, user)
    result = await db.execute(
        delete(CollectionResource).where(
            CollectionResource.collection_id == collection_id,
            CollectionResource.resource_id == resource_id,
        )
    )
    if result.rowcount:
        collection.resource_count = max(0, (collection.resource_count or 0) - 1)
        _touch(collection)
    await db.commit()
    return SuccessResponse()


@router.put("/{collection_id}/resources/order", response_model=SuccessResponse)
async def reorder_collection_resources(
    collection_id: UUID,
    body: CollectionReorderRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Set each listed resource's position to its index in ``resource_ids``."""
    collection = await _get_owned_collection(db, collection_id, user)
    for index, resource_id in enumerate(body.resource_ids):
        await db.execute(
            update(CollectionResource)
            .where(
                CollectionResource.collection_id == collection_id,
                CollectionResource.resource_id == resource_id,
            )
            .values(order_index=index)
        )
    _touch(collection)
    await db.commit()
    return SuccessResponse()


# ---------------------------------------------------------------------------
# Following
# ---------------------------------------------------------------------------


@router.post("/{collection_id}/follow", response_model=FollowResponse)
async def follow_collection(
    collection_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    collection = await _get_collection_or_404(db, collection_id)
    _check_visible(collection, user)

    existing = await db.execute(
        select(CollectionFollower.id).where(
            CollectionFollower.collection_id == collection_id,
            CollectionFollower.user_id == user.id,
        )
    )
    if existing.scalar_one_or_none() is not None:
        return FollowResponse(already_following=True)

    db.add(CollectionFollower(collection_id=collection_id, user_id=user.id))
    collection.follower_count = (collection.follower_count or 0) + 1
    await db.commit()

    logger.info("collection_followed", collection_id=str(collection_id), user_id=str(user.id))
    return FollowResponse()


@router.delete("/{collection_id}/follow", response_model=SuccessResponse)
async def unfollow_collection(
    collection_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    collection = await _get_collection_or_404(db, collection_id)
    result = await db.execute(
        delete(CollectionFollower).where(
            CollectionFollower.collection_id == collection_id,
            CollectionFollower.user_id == user.id,
        )
    )
    if result.rowcount:
        collection.follower_count = max(0, (collection.follower_count or 0) - 1)
    await db.commit()
    return SuccessResponse()


@router.get("/{collection_id}/follow", response_model=IsFollowingResponse)
async def is_following(
    collection_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    result = await db.execute(
        select(CollectionFollower.id).where(
            CollectionFollower.collection_id == collection_id,
            CollectionFollower.user_id == user.id,
        )
    )
    return IsFollowingResponse(is_following=result.scalar_one_or_none() is not None)
