"""Initial schema: users, resources, reputation ledger, governance, moderation, collections.

Revision ID: 001
Revises:
Create Date: 2026-10-16
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, UUID

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _in(column: str, *values: str) -> str:
    return f"{column} IN (" + ",".join(f"'{v}'" for v in values) + ")"


def _id() -> sa.Column:
    return sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()"))


def _ts(name: str = "created_at") -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()"))


def _counter(name: str) -> sa.Column:
    return sa.Column(name, sa.Integer(), nullable=False, server_default=sa.text("0"))


def _user_fk(name: str, nullable: bool = False, ondelete: str = "CASCADE") -> sa.Column:
    return sa.Column(name, UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete=ondelete), nullable=nullable)


def _text_array(name: str) -> sa.Column:
    return sa.Column(name, ARRAY(sa.String()), nullable=False, server_default=sa.text("'{}'"))


SUBJECTS = (
    "math", "science", "english", "history", "geography", "art", "music", "pe",
    "computer_science", "foreign_language", "social_studies", "stem", "special_education", "other",
)
GRADE_LEVELS = (
    "pre_k", "kindergarten", "1st", "2nd", "3rd", "4th", "5th", "6th", "7th", "8th",
    "9th", "10th", "11th", "12th", "higher_ed", "professional", "all",
)
CATEGORIES = (
    "lesson_plan", "worksheet", "assessment", "presentation", "video",
    "interactive", "reference", "template", "other",
)
RESOURCE_TYPES = ("pdf", "doc", "ppt", "video", "image", "link", "html", "zip", "other")
FLAG_REASONS = (
    "inappropriate_content", "copyright_violation", "inaccurate_information", "spam",
    "low_quality", "duplicate", "offensive_language", "other",
)


def upgrade() -> None:
    # --- Users ---
    op.create_table(
        "users",
        _id(),
        sa.Column("username", sa.Text(), nullable=False, unique=True),
        sa.Column("email", sa.Text(), nullable=False, unique=True),
        sa.Column("password_hash", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'active'")),
        sa.Column("role", sa.Text(), nullable=False, server_default=sa.text("'user'")),
        sa.Column("name", sa.Text()),
        sa.Column("bio", sa.Text()),
        sa.Column("avatar_url", sa.Text()),
        _text_array("subjects"),
        _text_array("grade_levels"),
        _counter("reputation_credits"),
        sa.Column("contributor_level", sa.Text(), nullable=False, server_default=sa.text("'newcomer'")),
        _counter("total_resources_submitted"),
        _counter("total_resources_approved"),
        _counter("total_upvotes_received"),
        _counter("total_downloads_received"),
        sa.Column("last_login", sa.DateTime(timezone=True)),
        _counter("login_count"),
        _ts(),
        _ts("updated_at"),
        sa.CheckConstraint(_in("status", "active", "suspended", "banned"), name="ck_user_status"),
        sa.CheckConstraint(_in("role", "user", "teacher", "moderator", "admin"), name="ck_user_role"),
    )
    op.create_index("idx_users_email", "users", ["email"])
    op.create_index("idx_users_rc", "users", ["reputation_credits"])

    # --- Resources ---
    op.create_table(
        "resources",
        _id(),
        _user_fk("contributor_id"),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("summary", sa.Text()),
        sa.Column("category", sa.Text(), nullable=False),
        sa.Column("resource_type", sa.Text(), nullable=False),
        sa.Column("subject", sa.Text(), nullable=False),
        sa.Column("grade_level", sa.Text(), nullable=False),
        _text_array("tags"),
        _text_array("standards"),
        sa.Column("file_url", sa.Text()),
        sa.Column("file_name", sa.Text()),
        sa.Column("file_size", sa.BigInteger()),
        sa.Column("thumbnail_url", sa.Text()),
        sa.Column("external_url", sa.Text()),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'pending'")),
        _counter("view_count"),
        _counter("download_count"),
        _counter("upvote_count"),
        _counter("downvote_count"),
        _counter("net_votes"),
        _counter("comment_count"),
        sa.Column("is_featured", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_editor_pick", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _user_fk("reviewed_by", nullable=True, ondelete="SET NULL"),
        sa.Column("reviewed_at", sa.DateTime(timezone=True)),
        sa.Column("review_notes", sa.Text()),
        sa.Column("published_at", sa.DateTime(timezone=True)),
        _ts(),
        _ts("updated_at"),
        sa.CheckConstraint(
            _in("status", "draft", "pending", "approved", "rejected", "archived"),
            name="ck_resource_status",
        ),
        sa.CheckConstraint(_in("category", *CATEGORIES), name="ck_resource_category"),
        sa.CheckConstraint(_in("resource_type", *RESOURCE_TYPES), name="ck_resource_type"),
        sa.CheckConstraint(_in("subject", *SUBJECTS), name="ck_resource_subject"),
        sa.CheckConstraint(_in("grade_level", *GRADE_LEVELS), name="ck_resource_grade_level"),
    )
    op.create_index("idx_resources_status_created", "resources", ["status", "created_at"])
    op.create_index("idx_resources_contributor", "resources", ["contributor_id"])
    op.create_index("idx_resources_subject", "resources", ["subject"])
    op.create_index("idx_resources_grade_level", "resources", ["grade_level"])

    op.create_table(
        "resource_votes",
        _id(),
        sa.Column("resource_id", UUID(as_uuid=True), sa.ForeignKey("resources.id", ondelete="CASCADE"), nullable=False),
        _user_fk("user_id"),
        sa.Column("value", sa.Integer(), nullable=False),
        _ts(),
        _ts("updated_at"),
        sa.UniqueConstraint("resource_id", "user_id", name="uq_resource_vote"),
        sa.CheckConstraint("value IN (-1, 1)", name="ck_resource_vote_value"),
    )

    for table in ("resource_views", "resource_downloads"):
        op.create_table(
            table,
            _id(),
            sa.Column("resource_id", UUID(as_uuid=True), sa.ForeignKey("resources.id", ondelete="CASCADE"), nullable=False),
            _user_fk("user_id", nullable=True, ondelete="SET NULL"),
            _ts(),
        )
        op.create_index(f"idx_{table}_resource_created", table, ["resource_id", "created_at"])

    op.create_table(
        "resource_comments",
        _id(),
        sa.Column("resource_id", UUID(as_uuid=True), sa.ForeignKey("resources.id", ondelete="CASCADE"), nullable=False),
        _user_fk("user_id"),
        sa.Column("parent_id", UUID(as_uuid=True), sa.ForeignKey("resource_comments.id", ondelete="CASCADE")),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("is_edited", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _ts(),
        _ts("updated_at"),
    )
    op.create_index("idx_resource_comments_resource", "resource_comments", ["resource_id", "created_at"])

    # --- Reputation ledger ---
    op.create_table(
        "rc_transactions",
        _id(),
        _user_fk("user_id"),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("reference_type", sa.Text()),
        sa.Column("reference_id", UUID(as_uuid=True)),
        sa.Column("balance_after", sa.Integer(), nullable=False),
        sa.Column("meta", JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        _ts(),
    )
    op.create_index("idx_rc_transactions_user_created", "rc_transactions", ["user_id", "created_at"])

    # --- Governance ---
    op.create_table(
        "proposals",
        _id(),
        _user_fk("author_id"),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("summary", sa.Text(), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        _text_array("tags"),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'draft'")),
        _counter("votes_for"),
        _counter("votes_against"),
        _counter("votes_abstain"),
        _counter("total_rc_weight"),
        sa.Column("snapshot_rc", sa.Integer()),
        sa.Column("min_rc_to_create", sa.Integer(), nullable=False),
        sa.Column("min_rc_to_vote", sa.Integer(), nullable=False),
        sa.Column("voting_duration_days", sa.Integer(), nullable=False, server_default=sa.text("7")),
        sa.Column("activated_at", sa.DateTime(timezone=True)),
        sa.Column("voting_ends_at", sa.DateTime(timezone=True)),
        sa.Column("closed_at", sa.DateTime(timezone=True)),
        _ts(),
        _ts("updated_at"),
        sa.CheckConstraint(
            _in("status", "draft", "active", "accepted", "rejected", "withdrawn", "expired"),
            name="ck_proposal_status",
        ),
    )
    op.create_index("idx_proposals_status_ends", "proposals", ["status", "voting_ends_at"])
    op.create_index("idx_proposals_author", "proposals", ["author_id"])

    op.create_table(
        "proposal_votes",
        _id(),
        sa.Column("proposal_id", UUID(as_uuid=True), sa.ForeignKey("proposals.id", ondelete="CASCADE"), nullable=False),
        _user_fk("voter_id"),
        sa.Column("choice", sa.Text(), nullable=False),
        sa.Column("weight_rc", sa.Integer(), nullable=False),
        _ts(),
        sa.UniqueConstraint("proposal_id", "voter_id", name="uq_proposal_vote"),
        sa.CheckConstraint(_in("choice", "for", "against", "abstain"), name="ck_proposal_vote_choice"),
    )

    # --- Moderation ---
    op.create_table(
        "moderation_flags",
        _id(),
        sa.Column("target_type", sa.Text(), nullable=False),
        sa.Column("target_id", UUID(as_uuid=True), nullable=False),
        _user_fk("reporter_id"),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("details", sa.Text()),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'open'")),
        _user_fk("resolved_by", nullable=True, ondelete="SET NULL"),
        sa.Column("resolved_at", sa.DateTime(timezone=True)),
        sa.Column("resolution_notes", sa.Text()),
        _ts(),
        sa.UniqueConstraint("target_type", "target_id", "reporter_id", name="uq_flag_reporter_target"),
        sa.CheckConstraint(_in("target_type", "resource", "comment", "collection"), name="ck_flag_target"),
        sa.CheckConstraint(_in("reason", *FLAG_REASONS), name="ck_flag_reason"),
        sa.CheckConstraint(_in("status", "open", "under_review", "resolved", "dismissed"), name="ck_flag_status"),
    )
    op.create_index("idx_flags_status_created", "moderation_flags", ["status", "created_at"])

    # --- Collections ---
    op.create_table(
        "collections",
        _id(),
        _user_fk("owner_id"),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("visibility", sa.Text(), nullable=False, server_default=sa.text("'private'")),
        _text_array("tags"),
        sa.Column("thumbnail_url", sa.Text()),
        _counter("resource_count"),
        _counter("follower_count"),
        _ts(),
        _ts("updated_at"),
        sa.CheckConstraint(_in("visibility", "public", "private", "unlisted"), name="ck_collection_visibility"),
    )
    op.create_index("idx_collections_owner", "collections", ["owner_id"])

    op.create_table(
        "collection_resources",
        _id(),
        sa.Column("collection_id", UUID(as_uuid=True), sa.ForeignKey("collections.id", ondelete="CASCADE"), nullable=False),
        sa.Column("resource_id", UUID(as_uuid=True), sa.ForeignKey("resources.id", ondelete="CASCADE"), nullable=False),
        _counter("order_index"),
        sa.Column("note", sa.Text()),
        _ts("added_at"),
        sa.UniqueConstraint("collection_id", "resource_id", name="uq_collection_resource"),
    )
    op.create_index("idx_collection_resources_order", "collection_resources", ["collection_id", "order_index"])

    op.create_table(
        "collection_followers",
        _id(),
        sa.Column("collection_id", UUID(as_uuid=True), sa.ForeignKey("collections.id", ondelete="CASCADE"), nullable=False),
        _user_fk("user_id"),
        _ts(),
        sa.UniqueConstraint("collection_id", "user_id", name="uq_collection_follower"),
    )

    # --- Notifications / waitlist ---
    op.create_table(
        "notifications",
        _id(),
        _user_fk("user_id"),
        sa.Column("notification_type", sa.Text(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("link", sa.Text()),
        sa.Column("metadata", JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("read_at", sa.DateTime(timezone=True)),
        _ts(),
    )
    op.create_index("idx_notifications_user_read", "notifications", ["user_id", "read_at"])
    op.create_index("idx_notifications_user_created", "notifications", ["user_id", "created_at"])

    op.create_table(
        "waitlist",
        _id(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=False, unique=True),
        sa.Column("message", sa.Text()),
        _ts(),
    )


def downgrade() -> None:
    for table in (
        "waitlist",
        "notifications",
        "collection_followers",
        "collection_resources",
        "collections",
        "moderation_flags",
        "proposal_votes",
        "proposals",
        "rc_transactions",
        "resource_comments",
        "resource_downloads",
        "resource_views",
        "resource_votes",
        "resources",
        "users",
    ):
        op.drop_table(table)
