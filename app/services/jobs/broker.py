"""
Dramatiq Redis Broker
Queue for on-demand Zoho Books syncs (delta, full backfill)
"""
import logging
from typing import Optional
import dramatiq
from dramatiq.brokers.redis import RedisBroker
from dramatiq.middleware import AgeLimit, Callbacks, Pipelines, Retries, ShutdownNotifications

from app.core.config import settings

logger = logging.getLogger(__name__)


def build_broker(redis_url: Optional[str] = None) -> RedisBroker:
    """
    Redis broker with an explicit middleware stack.

    TimeLimit is left out: a full backfill walks an unbounded number of pages.
    Retries is pinned to zero.
    """
    middleware = [
        AgeLimit(),
        Retries(max_retries=0),
        Callbacks(),
        Pipelines(),
        ShutdownNotifications(),
    ]

    if not redis_url:
        logger.warning("⚠️  REDIS_URL not set - background sync jobs will use localhost Redis")
        return RedisBroker(middleware=middleware)

    logger.info(f"✅ Redis broker for sync jobs: {redis_url[:20]}...")
    return RedisBroker(url=redis_url, middleware=middleware)


broker = build_broker(settings.redis_url)
dramatiq.set_broker(broker)
