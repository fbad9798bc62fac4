"""Public waitlist signup."""

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from teachshare.database import get_db
from teachshare.logging_config import get_logger
from teachshare.models import WaitlistEntry
from teachshare.schemas import SuccessResponse, WaitlistJoinRequest

logger = get_logger(__name__)
router = APIRouter(prefix="/api/waitlist", tags=["waitlist"])


@router.post("", response_model=SuccessResponse, status_code=201)
async def join_waitlist(
    body: WaitlistJoinRequest,
    db: AsyncSession = Depends(get_db),
):
    """Join the waitlist. Joining twice with the same email is a no-op."""
    email = body.email.lower()
    existing = await db.execute(select(WaitlistEntry).where(WaitlistEntry.email == email))
    if existing.scalar_one_or_none() is not None:
        return SuccessResponse()

    db.add(WaitlistEntry(name=body.name, email=email, message=body.message))
    await db.commit()
    logger.info("waitlist_joined", email=email)
    return SuccessResponse()
