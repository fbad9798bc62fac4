"""Domain constants: reputation credit rules, contributor levels, enumerations."""

# ---------------------------------------------------------------------------
# Auth error messages
# ---------------------------------------------------------------------------

UNAUTHED_ERR_MSG = "Please login (10001)"
NOT_ADMIN_ERR_MSG = "You do not have required permission (10002)"
NOT_TEACHER_ERR_MSG = "Teacher role required (10003)"
NOT_MODERATOR_ERR_MSG = "Moderator role required (10004)"
INSUFFICIENT_RC_ERR_MSG = "Insufficient Reputation Credits (10005)"

# ---------------------------------------------------------------------------
# Reputation credits
# ---------------------------------------------------------------------------

RC_CONFIG = {
    # Earning
    "RESOURCE_SUBMITTED": 5,
    "RESOURCE_APPROVED": 25,
    "RESOURCE_REJECTED": -5,
    "RESOURCE_UPVOTE_RECEIVED": 2,
    "RESOURCE_DOWNVOTE_RECEIVED": -1,
    "RESOURCE_DOWNLOAD": 1,
    "PROPOSAL_CREATED": -50,
    "PROPOSAL_PASSED": 100,
    "PROPOSAL_VOTE_CAST": 1,
    "FLAG_SUBMITTED": 1,
    "FLAG_UPHELD": 10,
    "FLAG_DISMISSED": -5,
    "MODERATION_ACTION": 1,
    "DAILY_LOGIN": 1,
    # Requirements
    "MIN_RC_TO_CREATE_PROPOSAL": 100,
    "MIN_RC_TO_VOTE_ON_PROPOSAL": 10,
    "MIN_RC_TO_FLAG": 5,
}

RC_REASONS = (
    "resource_submitted",
    "resource_approved",
    "resource_rejected",
    "resource_upvoted",
    "resource_downvoted",
    "resource_vote_removed",
    "resource_downloaded",
    "proposal_created",
    "proposal_passed",
    "proposal_vote_cast",
    "flag_submitted",
    "flag_upheld",
    "flag_dismissed",
    "moderation_action",
    "manual_adjustment",
    "daily_login",
)

# Ordered lowest to highest; max is inclusive, None means unbounded.
CONTRIBUTOR_LEVELS = {
    "newcomer": {"min": 0, "max": 49},
    "contributor": {"min": 50, "max": 199},
    "trusted": {"min": 200, "max": 499},
    "expert": {"min": 500, "max": 999},
    "master": {"min": 1000, "max": None},
}

# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

# ---------------------------------------------------------------------------
# Enumerations (stored as TEXT with CHECK constraints)
# ---------------------------------------------------------------------------

USER_ROLES = ("user", "teacher", "moderator", "admin")
USER_STATUSES = ("active", "suspended", "banned")

RESOURCE_STATUSES = ("draft", "pending", "approved", "rejected", "archived")
RESOURCE_CATEGORIES = (
    "lesson_plan",
    "worksheet",
    "assessment",
    "presentation",
    "video",
    "interactive",
    "reference",
    "template",
    "other",
)
RESOURCE_TYPES = ("pdf", "doc", "ppt", "video", "image", "link", "html", "zip", "other")
SUBJECTS = (
    "math",
    "science",
    "english",
    "history",
    "geography",
    "art",
    "music",
    "pe",
    "computer_science",
    "foreign_language",
    "social_studies",
    "stem",
    "special_education",
    "other",
)
GRADE_LEVELS = (
    "pre_k",
    "kindergarten",
    "1st",
    "2nd",
    "3rd",
    "4th",
    "5th",
    "6th",
    "7th",
    "8th",
    "9th",
    "10th",
    "11th",
    "12th",
    "higher_ed",
    "professional",
    "all",
)

PROPOSAL_STATUSES = ("draft", "active", "accepted", "rejected", "withdrawn", "expired")
PROPOSAL_CLOSED_STATUSES = ("accepted", "rejected", "withdrawn", "expired")
VOTE_CHOICES = ("for", "against", "abstain")

FLAG_TARGET_TYPES = ("resource", "comment", "collection")
FLAG_REASONS = (
    "inappropriate_content",
    "copyright_violation",
    "inaccurate_information",
    "spam",
    "low_quality",
    "duplicate",
    "offensive_language",
    "other",
)
FLAG_STATUSES = ("open", "under_review", "resolved", "dismissed")

COLLECTION_VISIBILITIES = ("public", "private", "unlisted")


def enum_pattern(values: tuple[str, ...]) -> str:
    """Regex accepting exactly one of ``values`` (for pydantic/Query patterns)."""
    return "^(" + "|".join(values) + ")$"


def check_in(column: str, values: tuple[str, ...]) -> str:
    """SQL CHECK expression restricting ``column`` to ``values``."""
    return f"{column} IN (" + ",".join(f"'{v}'" for v in values) + ")"
