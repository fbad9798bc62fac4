"""Governance endpoints: RC-gated proposals with RC-weighted voting."""

from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from teachshare.auth import get_current_user, require_admin, require_min_credits
from teachshare.constants import PROPOSAL_CLOSED_STATUSES, RC_CONFIG, enum_pattern
from teachshare.database import get_db
from teachshare.logging_config import get_logger
from teachshare.models import Proposal, ProposalVote, User
from teachshare.schemas import (
    FinalizedProposal,
    FinalizeExpiredResponse,
    GovernanceRequirementsResponse,
    GovernanceStatsResponse,
    MyProposalVoteResponse,
    PaginatedResponse,
    ProposalAuthor,
    ProposalCloseResponse,
    ProposalCreatedResponse,
    ProposalCreateRequest,
    ProposalResponse,
    ProposalUpdateRequest,
    ProposalVoteEntry,
    ProposalVoteRequest,
    ProposalVoteResponse,
    SuccessResponse,
)
from teachshare.services.governance_service import close_proposal, finalize_expired_proposals
from teachshare.services.reputation_service import apply_credits

logger = get_logger(__name__)
router = APIRouter(prefix="/api/governance", tags=["governance"])

MIN_RC_TO_CREATE = RC_CONFIG["MIN_RC_TO_CREATE_PROPOSAL"]
MIN_RC_TO_VOTE = RC_CONFIG["MIN_RC_TO_VOTE_ON_PROPOSAL"]

require_proposer = require_min_credits(MIN_RC_TO_CREATE)
require_voter = require_min_credits(MIN_RC_TO_VOTE)


def _to_response(
    proposal: Proposal, author: User | None = None, include_body: bool = True
) -> ProposalResponse:
    out = ProposalResponse.model_validate(proposal)
    update: dict = {}
    if not include_body:
        update["body"] = None
    if author is not None:
        update["author"] = ProposalAuthor(
            id=author.id,
            name=author.name,
            avatar_url=author.avatar_url,
            reputation_credits=author.reputation_credits,
        )
    return out.model_copy(update=update) if update else out


async def _get_proposal_or_404(db: AsyncSession, proposal_id: UUID) -> Proposal:
    result = await db.execute(select(Proposal).where(Proposal.id == proposal_id))
    proposal = result.scalar_one_or_none()
    if proposal is None:
        raise HTTPException(status_code=404, detail="Proposal not found")
    return proposal


async def _activate(db: AsyncSession, proposal: Proposal, author: User) -> None:
    """Open voting: snapshot the author's RC, set the window and charge the proposal cost."""
    now = datetime.now(timezone.utc)
    proposal.status = "active"
    proposal.snapshot_rc = author.reputation_credits
    proposal.activated_at = now
    proposal.voting_ends_at = now + timedelta(days=proposal.voting_duration_days)
    proposal.updated_at = now
    await apply_credits(
        db,
        author,
        RC_CONFIG["PROPOSAL_CREATED"],
        "proposal_created",
        reference_type="proposal",
        reference_id=proposal.id,
    )


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------


@router.get("/requirements", response_model=GovernanceRequirementsResponse)
async def get_requirements():
    """Credit thresholds and costs for taking part in governance."""
    return GovernanceRequirementsResponse(
        min_rc_to_create=MIN_RC_TO_CREATE,
        min_rc_to_vote=MIN_RC_TO_VOTE,
        proposal_cost=-RC_CONFIG["PROPOSAL_CREATED"],
        passed_reward=RC_CONFIG["PROPOSAL_PASSED"],
    )


@router.get("/stats", response_model=GovernanceStatsResponse)
async def get_governance_stats(db: AsyncSession = Depends(get_db)):
    counts = dict(
        (await db.execute(select(Proposal.status, func.count()).group_by(Proposal.status))).all()
    )
    vote_totals = (
        await db.execute(
            select(func.count(ProposalVote.id), func.coalesce(func.sum(ProposalVote.weight_rc), 0))
        )
    ).one()
    return GovernanceStatsResponse(
        active=counts.get("active", 0),
        accepted=counts.get("accepted", 0),
        rejected=counts.get("rejected", 0),
        total_votes=vote_totals[0] or 0,
        total_rc_voted=vote_totals[1] or 0,
    )


@router.get("/proposals/active", response_model=list[ProposalResponse])
async def list_active_proposals(
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """Proposals open for voting, closing soonest first."""
    now = datetime.now(timezone.utc)
    result = await db.execute(
        select(Proposal, User)
        .outerjoin(User, Proposal.author_id == User.id)
        .where(Proposal.status == "active", Proposal.voting_ends_at >= now)
        .order_by(Proposal.voting_ends_at.asc())
        .limit(limit)
    )
    return [_to_response(p, author, include_body=False) for p, author in result.all()]


@router.get("/proposals/history", response_model=PaginatedResponse)
async def list_proposal_history(
    status: str | None = Query(None, pattern=enum_pattern(PROPOSAL_CLOSED_STATUSES)),
    author_id: UUID | None = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """Closed proposals, most recently closed first."""
    query = select(Proposal)
    if status:
        query = query.where(Proposal.status == status)
    else:
        query = query.where(Proposal.status.in_(PROPOSAL_CLOSED_STATUSES))
    if author_id:
        query = query.where(Proposal.author_id == author_id)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0
    result = await db.execute(
        query.add_columns(User)
        .outerjoin(User, Proposal.author_id == User.id)
        .order_by(Proposal.closed_at.desc().nulls_last())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    items = [_to_response(p, author, include_body=False) for p, author in result.all()]
    return PaginatedResponse(items=items, total=total, page=page, per_page=per_page)


@router.get("/users/{user_id}/proposals", response_model=list[ProposalResponse])
async def list_user_proposals(
    user_id: UUID,
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Proposal)
        .where(Proposal.author_id == user_id)
        .order_by(Proposal.created_at.desc())
        .limit(limit)
    )
    return [_to_response(p, include_body=False) for p in result.scalars().all()]


@router.post("/proposals/finalize-expired", response_model=FinalizeExpiredResponse)
async def finalize_expired(
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """Close every active proposal whose voting window has ended."""
    finalized = await finalize_expired_proposals(db)
    logger.info("proposals_finalized_manually", count=len(finalized), admin_id=str(admin.id))
    return FinalizeExpiredResponse(
        finalized=len(finalized),
        proposals=[FinalizedProposal(id=p.id, title=p.title, status=p.status) for p in finalized],
    )


# ---------------------------------------------------------------------------
# Single proposal
# ---------------------------------------------------------------------------


@router.get("/proposals/{proposal_id}", response_model=ProposalResponse)
async def get_proposal(
    proposal_id: UUID,
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Proposal, User)
        .outerjoin(User, Proposal.author_id == User.id)
        .where(Proposal.id == proposal_id)
    )
    row = result.first()
    if row is None:
        raise HTTPException(status_code=404, detail="Proposal not found")
    proposal, author = row
    return _to_response(proposal, author)


@router.get("/proposals/{proposal_id}/votes", response_model=list[ProposalVoteEntry])
async def list_proposal_votes(
    proposal_id: UUID,
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    """Votes on a proposal, heaviest first."""
    result = await db.execute(
        select(ProposalVote, User.name)
        .outerjoin(User, ProposalVote.voter_id == User.id)
        .where(ProposalVote.proposal_id == proposal_id)
        .order_by(ProposalVote.weight_rc.desc())
        .limit(limit)
    )
    return [
        ProposalVoteEntry(
            id=v.id,
            voter_id=v.voter_id,
            voter_name=name,
            choice=v.choice,
            weight_rc=v.weight_rc,
            created_at=v.created_at,
        )
        for v, name in result.all()
    ]


@router.post("/proposals", response_model=ProposalCreatedResponse, status_code=201)
async def create_proposal(
    body: ProposalCreateRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_proposer),
):
    """Create a proposal. Unless saved as a draft, voting opens immediately and the cost is charged."""
    proposal = Proposal(
        id=uuid4(),
        author_id=user.id,
        title=body.title,
        summary=body.summary,
        body=body.body,
        tags=body.tags,
        status="draft",
        voting_duration_days=body.voting_duration_days,
        min_rc_to_create=MIN_RC_TO_CREATE,
        min_rc_to_vote=MIN_RC_TO_VOTE,
        votes_for=0,
        votes_against=0,
        votes_abstain=0,
        total_rc_weight=0,
    )
    db.add(proposal)
    if not body.as_draft:
        await _activate(db, proposal, user)
    await db.commit()

    logger.info("proposal_created", proposal_id=str(proposal.id), status=proposal.status)
    return ProposalCreatedResponse(
        id=proposal.id,
        status=proposal.status,
        voting_ends_at=proposal.voting_ends_at,
        rc_deducted=0 if body.as_draft else -RC_CONFIG["PROPOSAL_CREATED"],
    )


@router.post("/proposals/{proposal_id}/activate", response_model=ProposalCreatedResponse)
async def activate_proposal(
    proposal_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_proposer),
):
    """Open voting on one of your drafts."""
    proposal = await _get_proposal_or_404(db, proposal_id)
    if proposal.author_id != user.id:
        raise HTTPException(status_code=403, detail="Only the author can activate this proposal")
    if proposal.status != "draft":
        raise HTTPException(status_code=400, detail="Only draft proposals can be activated")

    await _activate(db, proposal, user)
    await db.commit()

    logger.info("proposal_activated", proposal_id=str(proposal.id))
    return ProposalCreatedResponse(
        id=proposal.id,
        status=proposal.status,
        voting_ends_at=proposal.voting_ends_at,
        rc_deducted=-RC_CONFIG["PROPOSAL_CREATED"],
    )


@router.patch("/proposals/{proposal_id}", response_model=ProposalResponse)
async def update_proposal(
    proposal_id: UUID,
    body: ProposalUpdateRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    proposal = await _get_proposal_or_404(db, proposal_id)
    if proposal.author_id != user.id:
        raise HTTPException(status_code=403, detail="Only the author can edit this proposal")
    if proposal.status != "draft":
        raise HTTPException(status_code=400, detail="Only draft proposals can be edited")

    for field, value in body.model_dump(exclude_unset=True).items():
        setattr(proposal, field, value)
    proposal.updated_at = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(proposal)
    return _to_response(proposal)


@router.post("/proposals/{proposal_id}/withdraw", response_model=SuccessResponse)
async def withdraw_proposal(
    proposal_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    proposal = await _get_proposal_or_404(db, proposal_id)
    if proposal.author_id != user.id:
        raise HTTPException(status_code=403, detail="Only the author can withdraw this proposal")
    if proposal.status not in ("draft", "active"):
        raise HTTPException(status_code=400, detail="This proposal can no longer be withdrawn")

    now = datetime.now(timezone.utc)
    proposal.status = "withdrawn"
    proposal.closed_at = now
    proposal.updated_at = now
    await db.commit()

    logger.info("proposal_withdrawn", proposal_id=str(proposal.id))
    return SuccessResponse()


@router.post("/proposals/{proposal_id}/vote", response_model=ProposalVoteResponse)
async def vote_on_proposal(
    proposal_id: UUID,
    body: ProposalVoteRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_voter),
):
    """Cast a vote weighted by the voter's current RC. One vote per user."""
    proposal = await _get_proposal_or_404(db, proposal_id)
    if proposal.status != "active":
        raise HTTPException(status_code=400, detail="Voting is not open")
    now = datetime.now(timezone.utc)
    if proposal.voting_ends_at is not None and now > proposal.voting_ends_at:
        raise HTTPException(status_code=400, detail="Voting period has ended")

    existing = await db.execute(
        select(ProposalVote.id).where(
            ProposalVote.proposal_id == proposal_id,
            ProposalVote.voter_id == user.id,
        )
    )
    if existing.scalar_one_or_none() is not None:
        raise HTTPException(status_code=409, detail="You have already voted on this proposal")

    weight = user.reputation_credits or 0
    db.add(
        ProposalVote(proposal_id=proposal.id, voter_id=user.id, choice=body.choice, weight_rc=weight)
    )
    if body.choice == "for":
        proposal.votes_for = (proposal.votes_for or 0) + 1
    elif body.choice == "against":
        proposal.votes_against = (proposal.votes_against or 0) + 1
    else:
        proposal.votes_abstain = (proposal.votes_abstain or 0) + 1
    proposal.total_rc_weight = (proposal.total_rc_weight or 0) + weight

    await apply_credits(
        db,
        user,
        RC_CONFIG["PROPOSAL_VOTE_CAST"],
        "proposal_vote_cast",
        reference_type="proposal",
        reference_id=proposal.id,
    )
    await db.commit()

    logger.info(
        "proposal_vote_cast",
        proposal_id=str(proposal.id),
        user_id=str(user.id),
        choice=body.choice,
        weight_rc=weight,
    )
    return ProposalVoteResponse(choice=body.choice, weight_rc=weight)


@router.get("/proposals/{proposal_id}/my-vote", response_model=MyProposalVoteResponse)
async def get_my_proposal_vote(
    proposal_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    result = await db.execute(
        select(ProposalVote).where(
            ProposalVote.proposal_id == proposal_id,
            ProposalVote.voter_id == user.id,
        )
    )
    vote = result.scalar_one_or_none()
    if vote is None:
        return MyProposalVoteResponse(has_voted=False)
    return MyProposalVoteResponse(has_voted=True, vote=vote.choice, weight_rc=vote.weight_rc)


@router.post("/proposals/{proposal_id}/close", response_model=ProposalCloseResponse)
async def close_voting(
    proposal_id: UUID,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """Close voting early. Passes only on a strict for/against majority."""
    proposal = await _get_proposal_or_404(db, proposal_id)
    if proposal.status != "active":
        raise HTTPException(status_code=400, detail="Proposal is not active")

    new_status = await close_proposal(db, proposal)
    await db.commit()

    logger.info("proposal_closed_by_admin", proposal_id=str(proposal.id), admin_id=str(admin.id))
    return ProposalCloseResponse(status=new_status, passed=new_status == "accepted")
