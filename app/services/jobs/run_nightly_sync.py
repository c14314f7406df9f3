"""
CLI Entry Point for the Nightly Zoho Books Sync
Called by cron every day at 22:30 Asia/Kolkata (30 22 * * *)
"""
import sys
import asyncio
import logging

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def main():
    """
    Delta-sync invoices and purchase orders (full refresh when ZOHO_FULL_REFRESH=true).
    Exits 1 if any module failed.
    """
    from app.services.jobs.tasks import run_books_sync, count_failed_modules

    logger.info("🌙 Zoho Books nightly sync cron job started")

    try:
        results = asyncio.run(run_books_sync("nightly"))
    except Exception as e:
        logger.error(f"❌ Zoho Books nightly sync cron job failed: {e}", exc_info=True)
        sys.exit(1)

    failed = count_failed_modules(results)
    if failed:
        logger.error(f"❌ Zoho Books nightly sync finished with {failed} failed module(s)")
        sys.exit(1)

    logger.info("✅ Zoho Books nightly sync cron job completed successfully")
    sys.exit(0)


if __name__ == "__main__":
    main()
