"""SQLAlchemy ORM models for the TeachShare schema."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import (
    ARRAY,
    BigInteger,
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import Boolean, DateTime, Integer

from teachshare.constants import (
    COLLECTION_VISIBILITIES,
    FLAG_REASONS,
    FLAG_STATUSES,
    FLAG_TARGET_TYPES,
    GRADE_LEVELS,
    PROPOSAL_STATUSES,
    RESOURCE_CATEGORIES,
    RESOURCE_STATUSES,
    RESOURCE_TYPES,
    SUBJECTS,
    USER_ROLES,
    USER_STATUSES,
    VOTE_CHOICES,
    check_in,
)


class Base(DeclarativeBase):
    pass


def _counter() -> Mapped[int]:
    return mapped_column(Integer, nullable=False, default=0, server_default=text("0"))


def _created_at() -> Mapped[datetime]:
    return mapped_column(
        DateTime(timezone=True), server_default=text("now()"), nullable=False
    )


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        Index("idx_users_email", "email"),
        Index("idx_users_rc", "reputation_credits"),
        CheckConstraint(check_in("status", USER_STATUSES), name="ck_user_status"),
        CheckConstraint(check_in("role", USER_ROLES), name="ck_user_role"),
    )

    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), primary_key=True, default=uuid4
    )
    username: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    email: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        Text, nullable=False, default="active", server_default=text("'active'")
    )
    role: Mapped[str] = mapped_column(
        Text, nullable=False, default="user", server_default=text("'user'")
    )

    name: Mapped[str | None] = mapped_column(Text)
    bio: Mapped[str | None] = mapped_column(Text)
    avatar_url: Mapped[str | None] = mapped_column(Text)
    subjects: Mapped[list[str]] = mapped_column(
        ARRAY(String), nullable=False, default=list, server_default=text("'{}'")
    )
    grade_levels: Mapped[list[str]] = mapped_column(
        ARRAY(String), nullable=False, default=list, server_default=text("'{}'")
    )

    reputation_credits: Mapped[int] = _counter()
    contributor_level: Mapped[str] = mapped_column(
        Text, nullable=False, default="newcomer", server_default=text("'newcomer'")
    )
    total_resources_submitted: Mapped[int] = _counter()
    total_resources_approved: Mapped[int] = _counter()
    total_upvotes_received: Mapped[int] = _counter()
    total_downloads_received: Mapped[int] = _counter()

    last_login: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    login_count: Mapped[int] = _counter()
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _created_at()

    @property
    def display_name(self) -> str:
        return self.name or self.username


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------


class Resource(Base):
    __tablename__ = "resources"
    __table_args__ = (
        Index("idx_resources_status_created", "status", "created_at"),
        Index("idx_resources_contributor", "contributor_id"),
        Index("idx_resources_subject", "subject"),
        Index("idx_resources_grade_level", "grade_level"),
        CheckConstraint(check_in("status", RESOURCE_STATUSES), name="ck_resource_status"),
        CheckConstraint(
            check_in("category", RESOURCE_CATEGORIES), name="ck_resource_category"
        ),
        CheckConstraint(check_in("resource_type", RESOURCE_TYPES), name="ck_resource_type"),
        CheckConstraint(check_in("subject", SUBJECTS), name="ck_resource_subject"),
        CheckConstraint(
            check_in("grade_level", GRADE_LEVELS), name="ck_resource_grade_level"
        ),
    )

    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), primary_key=True, default=uuid4
    )
    contributor_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    summary: Mapped[str | None] = mapped_column(Text)
    category: Mapped[str] = mapped_column(Text, nullable=False)
    resource_type: Mapped[str] = mapped_column(Text, nullable=False)
    subject: Mapped[str] = mapped_column(Text, nullable=False)
    grade_level: Mapped[str] = mapped_column(Text, nullable=False)
    tags: Mapped[list[str]] = mapped_column(
        ARRAY(String), nullable=False, default=list, server_default=text("'{}'")
    )
    standards: Mapped[list[str]] = mapped_column(
        ARRAY(String), nullable=False, default=list, server_default=text("'{}'")
    )

    file_url: Mapped[str | None] = mapped_column(Text)
    file_name: Mapped[str | None] = mapped_column(Text)
    file_size: Mapped[int | None] = mapped_column(BigInteger)
    thumbnail_url: Mapped[str | None] = mapped_column(Text)
    external_url: Mapped[str | None] = mapped_column(Text)

    status: Mapped[str] = mapped_column(
        Text, nullable=False, default="pending", server_default=text("'pending'")
    )
    view_count: Mapped[int] = _counter()
    download_count: Mapped[int] = _counter()
    upvote_count: Mapped[int] = _counter()
    downvote_count: Mapped[int] = _counter()
    net_votes: Mapped[int] = _counter()
    comment_count: Mapped[int] = _counter()
    is_featured: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    is_editor_pick: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )

    reviewed_by: Mapped[UUID | None] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL")
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    review_notes: Mapped[str | None] = mapped_column(Text)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _created_at()


class ResourceVote(Base):
    __tablename__ = "resource_votes"
    __table_args__ = (
        UniqueConstraint("resource_id", "user_id", name="uq_resource_vote"),
        CheckConstraint("value IN (-1, 1)", name="ck_resource_vote_value"),
    )

    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), primary_key=True, default=uuid4
    )
    resource_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("resources.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    value: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _created_at()


class ResourceView(Base):
    __tablename__ = "resource_views"
    __table_args__ = (Index("idx_resource_views_resource_created", "resource_id", "created_at"),)

    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), primary_key=True, default=uuid4
    )
    resource_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("resources.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[UUID | None] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL")
    )
    created_at: Mapped[datetime] = _created_at()


class ResourceDownload(Base):
    __tablename__ = "resource_downloads"
    __table_args__ = (
        Index("idx_resource_downloads_resource_created", "resource_id", "created_at"),
    )

    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), primary_key=True, default=uuid4
    )
    resource_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("resources.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[UUID | None] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL")
    )
    created_at: Mapped[datetime] = _created_at()


class ResourceComment(Base):
    __tablename__ = "resource_comments"
    __table_args__ = (Index("idx_resource_comments_resource", "resource_id", "created_at"),)

    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), primary_key=True, default=uuid4
    )
    resource_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("resources.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    parent_id: Mapped[UUID | None] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("resource_comments.id", ondelete="CASCADE")
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_edited: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _created_at()


# ---------------------------------------------------------------------------
# Reputation ledger
# ---------------------------------------------------------------------------


class RcTransaction(Base):
    __tablename__ = "rc_transactions"
    __table_args__ = (Index("idx_rc_transactions_user_created", "user_id", "created_at"),)

    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), primary_key=True, default=uuid4
    )
    user_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    reference_type: Mapped[str | None] = mapped_column(Text)
    reference_id: Mapped[UUID | None] = mapped_column(PG_UUID(as_uuid=True))
    balance_after: Mapped[int] = mapped_column(Integer, nullable=False)
    meta: Mapped[dict] = mapped_column(
        JSONB, nullable=False, default=dict, server_default=text("'{}'::jsonb")
    )
    created_at: Mapped[datetime] = _created_at()


# ---------------------------------------------------------------------------
# Governance
# ---------------------------------------------------------------------------


class Proposal(Base):
    __tablename__ = "proposals"
    __table_args__ = (
        Index("idx_proposals_status_ends", "status", "voting_ends_at"),
        Index("idx_proposals_author", "author_id"),
        CheckConstraint(check_in("status", PROPOSAL_STATUSES), name="ck_proposal_status"),
    )

    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), primary_key=True, default=uuid4
    )
    author_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    summary: Mapped[str] = mapped_column(Text, nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    tags: Mapped[list[str]] = mapped_column(
        ARRAY(String), nullable=False, default=list, server_default=text("'{}'")
    )
    status: Mapped[str] = mapped_column(
        Text, nullable=False, default="draft", server_default=text("'draft'")
    )
    votes_for: Mapped[int] = _counter()
    votes_against: Mapped[int] = _counter()
    votes_abstain: Mapped[int] = _counter()
    total_rc_weight: Mapped[int] = _counter()
    snapshot_rc: Mapped[int | None] = mapped_column(Integer)
    min_rc_to_create: Mapped[int] = mapped_column(Integer, nullable=False)
    min_rc_to_vote: Mapped[int] = mapped_column(Integer, nullable=False)
    voting_duration_days: Mapped[int] = mapped_column(
        Integer, nullable=False, default=7, server_default=text("7")
    )
    activated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    voting_ends_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _created_at()

    @property
    def total_votes(self) -> int:
        return self.votes_for + self.votes_against + self.votes_abstain


class ProposalVote(Base):
    __tablename__ = "proposal_votes"
    __table_args__ = (
        UniqueConstraint("proposal_id", "voter_id", name="uq_proposal_vote"),
        CheckConstraint(check_in("choice", VOTE_CHOICES), name="ck_proposal_vote_choice"),
    )

    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), primary_key=True, default=uuid4
    )
    proposal_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("proposals.id", ondelete="CASCADE"),
        nullable=False,
    )
    voter_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    choice: Mapped[str] = mapped_column(Text, nullable=False)
    weight_rc: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = _created_at()


# ---------------------------------------------------------------------------
# Moderation
# ---------------------------------------------------------------------------


class ModerationFlag(Base):
    __tablename__ = "moderation_flags"
    __table_args__ = (
        UniqueConstraint(
            "target_type", "target_id", "reporter_id", name="uq_flag_reporter_target"
        ),
        Index("idx_flags_status_created", "status", "created_at"),
        CheckConstraint(check_in("target_type", FLAG_TARGET_TYPES), name="ck_flag_target"),
        CheckConstraint(check_in("reason", FLAG_REASONS), name="ck_flag_reason"),
        CheckConstraint(check_in("status", FLAG_STATUSES), name="ck_flag_status"),
    )

    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), primary_key=True, default=uuid4
    )
    target_type: Mapped[str] = mapped_column(Text, nullable=False)
    target_id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), nullable=False)
    reporter_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str] = mapped_column(
        Text, nullable=False, default="open", server_default=text("'open'")
    )
    resolved_by: Mapped[UUID | None] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL")
    )
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    resolution_notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = _created_at()


# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------


class Collection(Base):
    __tablename__ = "collections"
    __table_args__ = (
        Index("idx_collections_owner", "owner_id"),
        CheckConstraint(
            check_in("visibility", COLLECTION_VISIBILITIES), name="ck_collection_visibility"
        ),
    )

    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), primary_key=True, default=uuid4
    )
    owner_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    visibility: Mapped[str] = mapped_column(
        Text, nullable=False, default="private", server_default=text("'private'")
    )
    tags: Mapped[list[str]] = mapped_column(
        ARRAY(String), nullable=False, default=list, server_default=text("'{}'")
    )
    thumbnail_url: Mapped[str | None] = mapped_column(Text)
    resource_count: Mapped[int] = _counter()
    follower_count: Mapped[int] = _counter()
    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _created_at()


class CollectionResource(Base):
    __tablename__ = "collection_resources"
    __table_args__ = (
        UniqueConstraint("collection_id", "resource_id", name="uq_collection_resource"),
        Index("idx_collection_resources_order", "collection_id", "order_index"),
    )

    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), primary_key=True, default=uuid4
    )
    collection_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("collections.id", ondelete="CASCADE"),
        nullable=False,
    )
    resource_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("resources.id", ondelete="CASCADE"),
        nullable=False,
    )
    order_index: Mapped[int] = _counter()
    note: Mapped[str | None] = mapped_column(Text)
    added_at: Mapped[datetime] = _created_at()


class CollectionFollower(Base):
    __tablename__ = "collection_followers"
    __table_args__ = (
        UniqueConstraint("collection_id", "user_id", name="uq_collection_follower"),
    )

    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), primary_key=True, default=uuid4
    )
    collection_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("collections.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    created_at: Mapped[datetime] = _created_at()


# ---------------------------------------------------------------------------
# Notifications / waitlist
# ---------------------------------------------------------------------------


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        Index("idx_notifications_user_read", "user_id", "read_at"),
        Index("idx_notifications_user_created", "user_id", "created_at"),
    )

    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), primary_key=True, default=uuid4
    )
    user_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    notification_type: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    link: Mapped[str | None] = mapped_column(Text)
    metadata_: Mapped[dict] = mapped_column(
        "metadata", JSONB, nullable=False, default=dict, server_default=text("'{}'::jsonb")
    )
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = _created_at()


class WaitlistEntry(Base):
    __tablename__ = "waitlist"

    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), primary_key=True, default=uuid4
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    message: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = _created_at()
