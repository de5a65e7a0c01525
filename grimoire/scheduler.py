"""Periodic leaderboard rebuild."""

import logging
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler

if TYPE_CHECKING:
    from .server import RecordsStore

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()


async def refresh_leaderboard(records: "RecordsStore") -> None:
    """Rebuild the leaderboard cache from every user's progression."""
    try:
        entries = await records.refresh_leaderboard()
        logger.info(f"Leaderboard refreshed: {len(entries)} entries")
    except Exception as e:
        logger.error(f"Leaderboard refresh failed: {type(e).__name__}: {e}")


def start_scheduler(records: "RecordsStore", interval_minutes: int) -> None:
    """Start the leaderboard refresh scheduler."""
    scheduler.add_job(
        refresh_leaderboard,
        'interval',
        minutes=interval_minutes,
        args=[records],
        id="refresh_leaderboard",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(f"Leaderboard scheduler started (every {interval_minutes} min)")


def stop_scheduler() -> None:
    """Stop the scheduler."""
    if scheduler.running:
        scheduler.shutdown()
    logger.info("Leaderboard scheduler stopped")
