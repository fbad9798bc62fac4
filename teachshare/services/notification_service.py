"""Notification service: creates in-app notifications for community events."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from teachshare.logging_config import get_logger
from teachshare.models import ModerationFlag, Notification, Proposal, Resource, ResourceComment, User

logger = get_logger(__name__)


async def create_notification(
    db: AsyncSession,
    user_id: UUID,
    notification_type: str,
    title: str,
    body: str,
    link: str | None = None,
    metadata: dict | None = None,
) -> Notification:
    """Insert a single notification."""
    notif = Notification(
        user_id=user_id,
        notification_type=notification_type,
        title=title,
        body=body,
        link=link,
        metadata_=metadata or {},
    )
    db.add(notif)
    return notif


async def notify_new_comment(
    db: AsyncSession,
    comment: ResourceComment,
    resource: Resource,
    commenter: User,
) -> None:
    """Notify the parent comment author on replies and the resource owner on new comments."""
    commenter_name = commenter.display_name
    link = f"/resources/{resource.id}"
    metadata = {"resource_id": str(resource.id), "comment_id": str(comment.id)}
    notified: set[UUID] = {commenter.id}

    if comment.parent_id:
        parent_result = await db.execute(
            select(ResourceComment).where(ResourceComment.id == comment.parent_id)
        )
        parent = parent_result.scalar_one_or_none()
        if parent is not None and parent.user_id not in notified:
            await create_notification(
                db,
                user_id=parent.user_id,
                notification_type="comment_reply",
                title="Reply to your comment",
                body=f"{commenter_name} replied to your comment on \"{resource.title}\"",
                link=link,
                metadata=metadata,
            )
            notified.add(parent.user_id)

    if resource.contributor_id not in notified:
        await create_notification(
            db,
            user_id=resource.contributor_id,
            notification_type="resource_comment",
            title="New comment on your resource",
            body=f"{commenter_name} commented on \"{resource.title}\"",
            link=link,
            metadata=metadata,
        )


async def notify_resource_reviewed(
    db: AsyncSession,
    resource: Resource,
    notes: str | None = None,
) -> Notification:
    approved = resource.status == "approved"
    return await create_notification(
        db,
        user_id=resource.contributor_id,
        notification_type="resource_reviewed",
        title="Resource approved" if approved else "Resource rejected",
        body=f"\"{resource.title}\" was {resource.status}" + (f": {notes}" if notes else ""),
        link=f"/resources/{resource.id}",
        metadata={"resource_id": str(resource.id), "status": resource.status},
    )


async def notify_flag_resolved(db: AsyncSession, flag: ModerationFlag) -> Notification:
    outcome = "upheld" if flag.status == "resolved" else "dismissed"
    return await create_notification(
        db,
        user_id=flag.reporter_id,
        notification_type="flag_resolved",
        title=f"Your report was {outcome}",
        body=f"Your report on a {flag.target_type} was {outcome} by a moderator",
        metadata={"flag_id": str(flag.id), "outcome": outcome},
    )


async def notify_proposal_closed(db: AsyncSession, proposal: Proposal) -> Notification:
    return await create_notification(
        db,
        user_id=proposal.author_id,
        notification_type="proposal_closed",
        title="Voting closed on your proposal",
        body=(
            f"\"{proposal.title}\" was {proposal.status} "
            f"({proposal.votes_for} for, {proposal.votes_against} against)"
        ),
        link=f"/governance/{proposal.id}",
        metadata={"proposal_id": str(proposal.id), "status": proposal.status},
    )
