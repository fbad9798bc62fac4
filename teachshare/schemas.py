"""Pydantic v2 request/response schemas for all endpoints."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from teachshare.constants import (
    COLLECTION_VISIBILITIES,
    FLAG_REASONS,
    FLAG_TARGET_TYPES,
    GRADE_LEVELS,
    RESOURCE_CATEGORIES,
    RESOURCE_TYPES,
    SUBJECTS,
    USER_ROLES,
    VOTE_CHOICES,
    enum_pattern,
)

HTTP_URL_PATTERN = r"^https?://\S+$"
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


def reject_null(value):
    """Partial updates may omit a required column but never clear it."""
    if value is None:
        raise ValueError("may be omitted but not set to null")
    return value


# ---------------------------------------------------------------------------
# Common
# ---------------------------------------------------------------------------


class PaginatedResponse(BaseModel):
    items: list = Field(default_factory=list)
    total: int = 0
    page: int = 1
    per_page: int = 20


class MessageResponse(BaseModel):
    message: str


class SuccessResponse(BaseModel):
    success: bool = True


class UserSummary(BaseModel):
    id: UUID
    name: str | None = None
    avatar_url: str | None = None


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class UserRegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_.-]+$")
    email: str = Field(..., min_length=5, max_length=200, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=8, max_length=128)
    name: str | None = Field(default=None, min_length=1, max_length=100)


class UserLoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    username: str
    email: str
    name: str | None = None
    status: str
    role: str
    reputation_credits: int = 0
    contributor_level: str = "newcomer"
    last_login: datetime | None = None
    created_at: datetime | None = None


class UserLoginResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = 3600
    user: UserResponse


class TokenRefreshRequest(BaseModel):
    refresh_token: str


# ---------------------------------------------------------------------------
# Waitlist
# ---------------------------------------------------------------------------


class WaitlistJoinRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=5, max_length=200, pattern=EMAIL_PATTERN)
    message: str | None = Field(default=None, max_length=1000)


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------


class ResourceCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=10000)
    summary: str | None = Field(default=None, max_length=500)
    category: str = Field(..., pattern=enum_pattern(RESOURCE_CATEGORIES))
    resource_type: str = Field(..., pattern=enum_pattern(RESOURCE_TYPES))
    subject: str = Field(..., pattern=enum_pattern(SUBJECTS))
    grade_level: str = Field(..., pattern=enum_pattern(GRADE_LEVELS))
    tags: list[str] = Field(default_factory=list, max_length=20)
    standards: list[str] = Field(default_factory=list, max_length=20)
    file_url: str | None = Field(default=None, pattern=HTTP_URL_PATTERN)
    file_name: str | None = Field(default=None, max_length=255)
    file_size: int | None = Field(default=None, ge=0)
    thumbnail_url: str | None = Field(default=None, pattern=HTTP_URL_PATTERN)
    external_url: str | None = Field(default=None, pattern=HTTP_URL_PATTERN)
    as_draft: bool = False


class ResourceUpdateRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=10000)
    summary: str | None = Field(default=None, max_length=500)
    category: str | None = Field(default=None, pattern=enum_pattern(RESOURCE_CATEGORIES))
    resource_type: str | None = Field(default=None, pattern=enum_pattern(RESOURCE_TYPES))
    subject: str | None = Field(default=None, pattern=enum_pattern(SUBJECTS))
    grade_level: str | None = Field(default=None, pattern=enum_pattern(GRADE_LEVELS))
    tags: list[str] | None = Field(default=None, max_length=20)
    standards: list[str] | None = Field(default=None, max_length=20)
    file_url: str | None = Field(default=None, pattern=HTTP_URL_PATTERN)
    file_name: str | None = Field(default=None, max_length=255)
    file_size: int | None = Field(default=None, ge=0)
    thumbnail_url: str | None = Field(default=None, pattern=HTTP_URL_PATTERN)
    external_url: str | None = Field(default=None, pattern=HTTP_URL_PATTERN)

    @field_validator(
        "title", "category", "resource_type", "subject", "grade_level", "tags", "standards", mode="before"
    )
    @classmethod
    def required_not_null(cls, v):
        return reject_null(v)


class ResourceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    contributor_id: UUID
    title: str
    description: str | None = None
    summary: str | None = None
    category: str
    resource_type: str
    subject: str
    grade_level: str
    tags: list[str] = Field(default_factory=list)
    standards: list[str] = Field(default_factory=list)
    file_url: str | None = None
    file_name: str | None = None
    file_size: int | None = None
    thumbnail_url: str | None = None
    external_url: str | None = None
    status: str
    view_count: int = 0
    download_count: int = 0
    upvote_count: int = 0
    downvote_count: int = 0
    net_votes: int = 0
    comment_count: int = 0
    is_featured: bool = False
    is_editor_pick: bool = False
    published_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    contributor_name: str | None = None


class ResourceDetailResponse(ResourceResponse):
    contributor: UserSummary | None = None
    reviewed_at: datetime | None = None
    review_notes: str | None = None


class ResourceCreatedResponse(BaseModel):
    id: UUID
    status: str


class ResourceVoteRequest(BaseModel):
    value: str = Field(..., pattern=r"^(up|down|remove)$")


class ResourceVoteResponse(BaseModel):
    success: bool = True
    vote: int | None = None


class ResourceDownloadResponse(BaseModel):
    file_url: str | None = None
    external_url: str | None = None


class CommentCreateRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=2000)
    parent_id: UUID | None = None


class CommentUpdateRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=2000)


class CommentResponse(BaseModel):
    id: UUID
    resource_id: UUID
    user_id: UUID
    parent_id: UUID | None = None
    content: str
    is_edited: bool = False
    created_at: datetime | None = None
    user_name: str | None = None
    user_avatar: str | None = None


# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------


class CollectionCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    visibility: str = Field(default="private", pattern=enum_pattern(COLLECTION_VISIBILITIES))
    tags: list[str] = Field(default_factory=list, max_length=20)
    thumbnail_url: str | None = Field(default=None, pattern=HTTP_URL_PATTERN)


class CollectionUpdateRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    visibility: str | None = Field(default=None, pattern=enum_pattern(COLLECTION_VISIBILITIES))
    tags: list[str] | None = Field(default=None, max_length=20)
    thumbnail_url: str | None = Field(default=None, pattern=HTTP_URL_PATTERN)

    @field_validator("title", "visibility", "tags", mode="before")
    @classmethod
    def required_not_null(cls, v):
        return reject_null(v)


class CollectionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    owner_id: UUID
    title: str
    description: str | None = None
    visibility: str
    tags: list[str] = Field(default_factory=list)
    thumbnail_url: str | None = None
    resource_count: int = 0
    follower_count: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None
    owner_name: str | None = None


class CollectionAddResourceRequest(BaseModel):
    resource_id: UUID
    order_index: int | None = Field(default=None, ge=0)
    note: str | None = Field(default=None, max_length=500)


class CollectionReorderRequest(BaseModel):
    resource_ids: list[UUID] = Field(..., min_length=1)


class CollectionResourceResponse(BaseModel):
    resource_id: UUID
    order_index: int
    note: str | None = None
    added_at: datetime | None = None
    title: str
    subject: str
    grade_level: str
    category: str
    status: str
    thumbnail_url: str | None = None
    net_votes: int = 0


class FollowResponse(BaseModel):
    success: bool = True
    already_following: bool = False


class IsFollowingResponse(BaseModel):
    is_following: bool


# ---------------------------------------------------------------------------
# Governance
# ---------------------------------------------------------------------------


class ProposalCreateRequest(BaseModel):
    title: str = Field(..., min_length=5, max_length=150)
    summary: str = Field(..., min_length=20, max_length=500)
    body: str = Field(..., min_length=100, max_length=10000)
    tags: list[str] = Field(default_factory=list, max_length=10)
    voting_duration_days: int = Field(default=7, ge=3, le=30)
    as_draft: bool = False


class ProposalUpdateRequest(BaseModel):
    title: str | None = Field(default=None, min_length=5, max_length=150)
    summary: str | None = Field(default=None, min_length=20, max_length=500)
    body: str | None = Field(default=None, min_length=100, max_length=10000)
    tags: list[str] | None = Field(default=None, max_length=10)
    voting_duration_days: int | None = Field(default=None, ge=3, le=30)

    @field_validator("title", "summary", "body", "tags", "voting_duration_days", mode="before")
    @classmethod
    def required_not_null(cls, v):
        return reject_null(v)


class ProposalAuthor(UserSummary):
    reputation_credits: int | None = None


class ProposalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    author_id: UUID
    title: str
    summary: str
    body: str | None = None
    tags: list[str] = Field(default_factory=list)
    status: str
    votes_for: int = 0
    votes_against: int = 0
    votes_abstain: int = 0
    total_rc_weight: int = 0
    snapshot_rc: int | None = None
    min_rc_to_create: int | None = None
    min_rc_to_vote: int | None = None
    voting_duration_days: int | None = None
    activated_at: datetime | None = None
    voting_ends_at: datetime | None = None
    closed_at: datetime | None = None
    created_at: datetime | None = None
    author: ProposalAuthor | None = None


class ProposalCreatedResponse(BaseModel):
    id: UUID
    status: str
    voting_ends_at: datetime | None = None
    rc_deducted: int = 0


class ProposalVoteRequest(BaseModel):
    choice: str = Field(..., pattern=enum_pattern(VOTE_CHOICES))


class ProposalVoteResponse(BaseModel):
    success: bool = True
    choice: str
    weight_rc: int


class ProposalVoteEntry(BaseModel):
    id: UUID
    voter_id: UUID
    voter_name: str | None = None
    choice: str
    weight_rc: int
    created_at: datetime | None = None


class MyProposalVoteResponse(BaseModel):
    has_voted: bool
    vote: str | None = None
    weight_rc: int | None = None


class ProposalCloseResponse(BaseModel):
    success: bool = True
    status: str
    passed: bool


class FinalizedProposal(BaseModel):
    id: UUID
    title: str
    status: str


class FinalizeExpiredResponse(BaseModel):
    finalized: int
    proposals: list[FinalizedProposal] = Field(default_factory=list)


class GovernanceStatsResponse(BaseModel):
    active: int = 0
    accepted: int = 0
    rejected: int = 0
    total_votes: int = 0
    total_rc_voted: int = 0


class GovernanceRequirementsResponse(BaseModel):
    min_rc_to_create: int
    min_rc_to_vote: int
    proposal_cost: int
    passed_reward: int


# ---------------------------------------------------------------------------
# Moderation
# ---------------------------------------------------------------------------


class FlagCreateRequest(BaseModel):
    target_type: str = Field(..., pattern=enum_pattern(FLAG_TARGET_TYPES))
    target_id: UUID
    reason: str = Field(..., pattern=enum_pattern(FLAG_REASONS))
    details: str | None = Field(default=None, max_length=1000)


class FlagCreatedResponse(BaseModel):
    id: UUID


class FlagResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    target_type: str
    target_id: UUID
    reporter_id: UUID
    reporter_name: str | None = None
    reason: str
    details: str | None = None
    status: str
    resolved_by: UUID | None = None
    resolved_at: datetime | None = None
    resolution_notes: str | None = None
    created_at: datetime | None = None


class FlagTargetDetails(BaseModel):
    id: UUID
    title: str
    status: str
    contributor_id: UUID


class FlagDetailResponse(FlagResponse):
    target_details: FlagTargetDetails | None = None


class FlagResolveRequest(BaseModel):
    resolution: str = Field(..., pattern=r"^(upheld|dismissed)$")
    notes: str | None = Field(default=None, max_length=1000)


class ReviewRequest(BaseModel):
    decision: str = Field(..., pattern=r"^(approve|reject)$")
    notes: str | None = Field(default=None, max_length=1000)


class BulkReviewRequest(ReviewRequest):
    resource_ids: list[UUID] = Field(..., min_length=1, max_length=100)


class ReviewResponse(BaseModel):
    success: bool = True
    new_status: str


class BulkReviewResponse(BaseModel):
    success: bool = True
    processed: int


class FeatureRequest(BaseModel):
    is_featured: bool | None = None
    is_editor_pick: bool | None = None


class PendingResourceResponse(BaseModel):
    id: UUID
    title: str
    description: str | None = None
    category: str
    subject: str
    grade_level: str
    resource_type: str
    file_url: str | None = None
    external_url: str | None = None
    thumbnail_url: str | None = None
    created_at: datetime | None = None
    contributor_id: UUID
    contributor_name: str | None = None
    contributor_rc: int | None = None
    contributor_level: str | None = None


class ModerationStatsResponse(BaseModel):
    pending_resources: int = 0
    open_flags: int = 0
    under_review_flags: int = 0
    resolved_today: int = 0


class FlagCountResponse(BaseModel):
    flag_count: int = 0


# ---------------------------------------------------------------------------
# Reputation
# ---------------------------------------------------------------------------


class RcTransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    amount: int
    reason: str
    reference_type: str | None = None
    reference_id: UUID | None = None
    balance_after: int
    meta: dict = Field(default_factory=dict)
    created_at: datetime | None = None


class LevelProgress(BaseModel):
    level: str
    next_level: str | None = None
    progress_to_next: float
    rc_to_next: int


class ReputationStatsResponse(LevelProgress):
    reputation_credits: int
    contributor_level: str
    thresholds: dict[str, int]


class LeaderboardEntry(BaseModel):
    rank: int
    id: UUID
    name: str | None = None
    avatar_url: str | None = None
    reputation_credits: int
    contributor_level: str
    total_resources_approved: int = 0
    total_upvotes_received: int = 0
    total_downloads_received: int = 0


class SyncLevelResponse(BaseModel):
    leveled_up: bool
    new_level: str | None = None
    previous_level: str | None = None
    current_level: str | None = None


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class ProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    username: str
    name: str | None = None
    bio: str | None = None
    avatar_url: str | None = None
    role: str
    subjects: list[str] = Field(default_factory=list)
    grade_levels: list[str] = Field(default_factory=list)
    reputation_credits: int = 0
    contributor_level: str = "newcomer"
    total_resources_submitted: int = 0
    total_resources_approved: int = 0
    total_upvotes_received: int = 0
    total_downloads_received: int = 0
    created_at: datetime | None = None
    level_info: LevelProgress | None = None


class ProfileUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    bio: str | None = Field(default=None, max_length=500)
    avatar_url: str | None = Field(default=None, pattern=HTTP_URL_PATTERN)
    subjects: list[str] | None = None
    grade_levels: list[str] | None = None

    @field_validator("subjects", "grade_levels", mode="before")
    @classmethod
    def required_not_null(cls, v):
        return reject_null(v)


class UserStatsResponse(BaseModel):
    reputation_credits: int = 0
    contributor_level: str = "newcomer"
    total_resources_submitted: int = 0
    total_resources_approved: int = 0
    total_upvotes_received: int = 0
    total_downloads_received: int = 0
    total_views: int = 0
    total_comments: int = 0
    total_proposals: int = 0
    total_collections: int = 0


class RoleUpdateRequest(BaseModel):
    role: str = Field(..., pattern=enum_pattern(USER_ROLES))


class RoleUpdateResponse(BaseModel):
    success: bool = True
    previous_role: str
    new_role: str


class RcAdjustmentRequest(BaseModel):
    amount: int
    reason: str = Field(..., min_length=1, max_length=200)


class RcAdjustmentResponse(BaseModel):
    success: bool = True
    new_balance: int
    new_level: str


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------


class SiteStatsResponse(BaseModel):
    total_users: int = 0
    total_resources: int = 0
    total_collections: int = 0
    total_proposals: int = 0
    active_proposals: int = 0
    total_views: int = 0
    total_downloads: int = 0
    total_votes: int = 0


class TrendingResourceResponse(BaseModel):
    id: UUID
    title: str
    summary: str | None = None
    thumbnail_url: str | None = None
    subject: str
    grade_level: str
    net_votes: int = 0
    contributor_name: str | None = None
    recent_views: int = 0


class GovernanceMetricsResponse(BaseModel):
    total_proposals: int = 0
    proposals_by_status: dict[str, int] = Field(default_factory=dict)
    eligible_voters: int = 0
    average_participation: int = 0


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


class NotificationResponse(BaseModel):
    id: UUID
    user_id: UUID
    notification_type: str
    title: str
    body: str
    link: str | None = None
    metadata: dict = Field(default_factory=dict)
    read_at: datetime | None = None
    created_at: datetime | None = None


class NotificationListResponse(BaseModel):
    items: list[NotificationResponse] = Field(default_factory=list)
    total: int = 0
    unread_count: int = 0


class NotificationUnreadCountResponse(BaseModel):
    unread_count: int = 0
