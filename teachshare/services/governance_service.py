"""Governance: proposal outcome resolution and closing."""

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from teachshare.constants import RC_CONFIG
from teachshare.logging_config import get_logger
from teachshare.models import Proposal
from teachshare.services.notification_service import notify_proposal_closed
from teachshare.services.reputation_service import award_credits

logger = get_logger(__name__)


def resolve_proposal(votes_for: int, votes_against: int, allow_expiry: bool = False) -> str:
    """
    Decide a proposal's closing status from its tallies.

    A strict majority of "for" over "against" accepts; ties reject.
    Abstentions never count. With ``allow_expiry`` a proposal that drew
    no decisive votes at all expires instead of being rejected.
    """
    if allow_expiry and votes_for + votes_against == 0:
        return "expired"
    return "accepted" if votes_for > votes_against else "rejected"


async def close_proposal(
    db: AsyncSession,
    proposal: Proposal,
    allow_expiry: bool = False,
    now: datetime | None = None,
) -> str:
    """Close an active proposal, reward the author if it passed and notify them.

    Returns the new status. The caller commits.
    """
    now = now or datetime.now(timezone.utc)
    new_status = resolve_proposal(proposal.votes_for, proposal.votes_against, allow_expiry)
    proposal.status = new_status
    proposal.closed_at = now
    proposal.updated_at = now

    if new_status == "accepted":
        await award_credits(
            db,
            proposal.author_id,
            RC_CONFIG["PROPOSAL_PASSED"],
            "proposal_passed",
            reference_type="proposal",
            reference_id=proposal.id,
        )
    await notify_proposal_closed(db, proposal)

    logger.info(
        "proposal_closed",
        proposal_id=str(proposal.id),
        status=new_status,
        votes_for=proposal.votes_for,
        votes_against=proposal.votes_against,
    )
    return new_status


async def finalize_expired_proposals(db: AsyncSession) -> list[Proposal]:
    """Close every active proposal whose voting window has passed, then commit."""
    now = datetime.now(timezone.utc)
    result = await db.execute(
        select(Proposal)
        .where(Proposal.status == "active", Proposal.voting_ends_at < now)
        .order_by(Proposal.voting_ends_at.asc())
    )
    expired = list(result.scalars().all())

    for proposal in expired:
        await close_proposal(db, proposal, allow_expiry=True, now=now)

    if expired:
        await db.commit()
        logger.info("proposals_finalized", count=len(expired))
    return expired
