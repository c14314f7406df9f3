"""
Nightly Sync Scheduler
Runs the Zoho Books nightly sync inside the API process (APScheduler cron trigger)
"""
import logging
from typing import Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from app.services.sync.orchestration.books_sync import BooksSyncOrchestrator

logger = logging.getLogger(__name__)

NIGHTLY_JOB_ID = "zoho_books_nightly_sync"


async def run_scheduled_sync(orchestrator: BooksSyncOrchestrator):
    """Scheduler callback. Failures are logged, never raised into the scheduler."""
    logger.info("[ZohoBooks] scheduled sync start")
    try:
        results = await orchestrator.run_nightly()
        logger.info(f"[ZohoBooks] scheduled sync done: {results}")
    except Exception as e:
        logger.error(f"[ZohoBooks] scheduled sync failed: {e}", exc_info=True)


def start_sync_scheduler(
    get_orchestrator: Callable[[], BooksSyncOrchestrator],
    *,
    hour: int,
    minute: int,
    timezone_name: str
) -> AsyncIOScheduler:
    """
    Start the nightly cron job on the running event loop.

    Must be called from inside the event loop (FastAPI lifespan).
    """
    scheduler = AsyncIOScheduler(timezone=timezone_name)

    async def nightly_job():
        await run_scheduled_sync(get_orchestrator())

    scheduler.add_job(
        nightly_job,
        CronTrigger(hour=hour, minute=minute, timezone=timezone_name),
        id=NIGHTLY_JOB_ID,
        max_instances=1,
        coalesce=True,
        replace_existing=True
    )
    scheduler.start()

    logger.info(f"✅ Scheduler started: {hour:02d}:{minute:02d} {timezone_name}")
    return scheduler
