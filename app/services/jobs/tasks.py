"""
Dramatiq Background Tasks
Runs Zoho Books syncs outside the request cycle
"""
import dramatiq
import asyncio
import logging
from typing import Any, Dict
from supabase import create_client

logger = logging.getLogger(__name__)

SYNC_MODES = ("delta", "full", "nightly")


def count_failed_modules(results: Dict[str, Dict[str, Any]]) -> int:
    return sum(1 for r in results.values() if r.get("status") == "error")


async def run_books_sync(mode: str) -> Dict[str, Dict[str, Any]]:
    """
    Build a fresh sync engine, run it, and close its HTTP client.

    Workers and cron jobs run in separate processes, so they can't share the
    API process's global clients.

    Args:
        mode: "delta", "full" (backfill) or "nightly" (delta unless ZOHO_FULL_REFRESH)
    """
    from app.core.config import settings
    from app.core.dependencies import create_http_client, create_sync_orchestrator

    if mode not in SYNC_MODES:
        raise ValueError(f"Unknown sync mode {mode!r}. Must be one of: {', '.join(SYNC_MODES)}")

    http_client = create_http_client()
    supabase = create_client(settings.supabase_url, settings.supabase_service_key)

    try:
        orchestrator = create_sync_orchestrator(http_client, supabase)
        if mode == "full":
            return await orchestrator.run_full_backfill()
        if mode == "nightly":
            return await orchestrator.run_nightly()
        return await orchestrator.run_delta()
    finally:
        # Cleanup HTTP client in the same event loop
        await http_client.aclose()


def _run_task(mode: str) -> Dict[str, Dict[str, Any]]:
    logger.info(f"🚀 Starting Zoho Books {mode} sync job")

    results = asyncio.run(run_books_sync(mode))

    failed = count_failed_modules(results)
    if failed:
        logger.error(f"❌ Zoho Books {mode} sync job finished with {failed} failed module(s): {results}")
    else:
        logger.info(f"✅ Zoho Books {mode} sync job complete: {results}")
    return results


# No queue retries: the next scheduled delta re-covers a failed run's window.
@dramatiq.actor(max_retries=0)
def sync_books_delta_task():
    """Background job for an on-demand delta sync of all modules."""
    return _run_task("delta")


@dramatiq.actor(max_retries=0)
def sync_books_backfill_task():
    """Background job for a full backfill of all modules."""
    return _run_task("full")
