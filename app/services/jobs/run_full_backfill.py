"""
CLI Entry Point for a Full Zoho Books Backfill
Run by hand for first-time population or after extended downtime
"""
import sys
import json
import asyncio
import logging

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def main():
    """Backfill every invoice and purchase order. Exits 1 if any module failed."""
    from app.services.jobs.tasks import run_books_sync, count_failed_modules

    logger.info("Starting full backfill (invoices + purchase orders)...")

    try:
        results = asyncio.run(run_books_sync("full"))
    except Exception as e:
        logger.error(f"❌ Backfill failed: {e}", exc_info=True)
        sys.exit(1)

    logger.info(f"Backfill finished:\n{json.dumps(results, indent=2, default=str)}")

    if count_failed_modules(results):
        sys.exit(1)
    sys.exit(0)


if __name__ == "__main__":
    main()
