"""Background scheduler that finalizes proposals whose voting window has ended.

Runs as an asyncio task during the application lifespan.
"""

import asyncio
import os

from teachshare.database import get_db_session
from teachshare.logging_config import get_logger
from teachshare.services.governance_service import finalize_expired_proposals

logger = get_logger(__name__)

PROPOSAL_FINALIZE_INTERVAL_MINUTES = int(os.getenv("PROPOSAL_FINALIZE_INTERVAL_MINUTES", "15"))

_scheduler_task: asyncio.Task | None = None
_stop_event: asyncio.Event | None = None


async def run_finalize_cycle() -> int:
    """Single cycle: finalize expired proposals. Returns how many were closed."""
    async with get_db_session() as session:
        finalized = await finalize_expired_proposals(session)
    return len(finalized)


async def scheduler_loop(stop_event: asyncio.Event, interval_seconds: float | None = None):
    """Main scheduler loop. Runs until stop_event is set."""
    interval = interval_seconds or PROPOSAL_FINALIZE_INTERVAL_MINUTES * 60
    logger.info("scheduler_started", interval_seconds=interval)

    while not stop_event.is_set():
        try:
            await run_finalize_cycle()
        except Exception:
            logger.exception("scheduler_cycle_error")

        # Wait for the interval or until stopped
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval)
            break
        except asyncio.TimeoutError:
            pass


async def start_scheduler() -> None:
    """Start the finalizer loop as a background task."""
    global _scheduler_task, _stop_event
    _stop_event = asyncio.Event()
    _scheduler_task = asyncio.create_task(scheduler_loop(_stop_event))
    logger.info("scheduler_task_created")


async def stop_scheduler() -> None:
    """Stop the finalizer loop gracefully."""
    global _scheduler_task, _stop_event
    if _stop_event is not None:
        _stop_event.set()
    if _scheduler_task is not None:
        _scheduler_task.cancel()
        try:
            await _scheduler_task
        except asyncio.CancelledError:
            pass
    _scheduler_task = None
    _stop_event = None
    logger.info("scheduler_stopped")
