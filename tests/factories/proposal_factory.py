"""Governance proposal test data factory."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID, uuid4

from teachshare.models import Proposal


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ProposalFactory:
    """Factory for creating Proposal test instances."""

    _counter: int = field(default=0, repr=False)

    @classmethod
    def create(
        cls,
        id: UUID | None = None,
        author_id: UUID | None = None,
        status: str = "draft",
        votes_for: int = 0,
        votes_against: int = 0,
        votes_abstain: int = 0,
        **kwargs: Any,
    ) -> Proposal:
        """Create a Proposal instance with sensible defaults."""
        cls._counter = getattr(cls, "_counter", 0) + 1

        values = {
            "title": f"Proposal {cls._counter}: tag resources with standards",
            "summary": "Ask contributors to tag every resource with a standard.",
            "body": "Standards tags make planning easier. " * 5,
            "tags": ["standards"],
            "total_rc_weight": 0,
            "snapshot_rc": None,
            "min_rc_to_create": 100,
            "min_rc_to_vote": 10,
            "voting_duration_days": 7,
            "activated_at": None,
            "voting_ends_at": None,
            "closed_at": None,
            "created_at": _utcnow(),
            "updated_at": _utcnow(),
        }
        values.update(kwargs)

        return Proposal(
            id=id or uuid4(),
            author_id=author_id or uuid4(),
            status=status,
            votes_for=votes_for,
            votes_against=votes_against,
            votes_abstain=votes_abstain,
            **values,
        )

    @classmethod
    def create_active(cls, **kwargs: Any) -> Proposal:
        """Create a Proposal that is open for voting for another five days."""
        now = _utcnow()
        kwargs.setdefault("activated_at", now - timedelta(days=2))
        kwargs.setdefault("voting_ends_at", now + timedelta(days=5))
        kwargs.setdefault("snapshot_rc", 150)
        return cls.create(status="active", **kwargs)

    @classmethod
    def create_expired(cls, **kwargs: Any) -> Proposal:
        """Create an active Proposal whose voting window has already ended."""
        now = _utcnow()
        kwargs.setdefault("activated_at", now - timedelta(days=8))
        kwargs.setdefault("voting_ends_at", now - timedelta(hours=1))
        return cls.create(status="active", **kwargs)
