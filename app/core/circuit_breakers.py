"""
Retry Logic
Bounded retries for transient Zoho API failures (timeouts, 429, 5xx)
"""
import logging
from tenacity import (
    AsyncRetrying,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception,
    before_sleep_log
)

from app.services.sync.errors import ApiError

logger = logging.getLogger(__name__)


def is_transient_api_error(exc: BaseException) -> bool:
    return isinstance(exc, ApiError) and exc.is_transient


# ============================================================================
# ZOHO PAGE RETRY
# ============================================================================

def page_retrying(max_attempts: int = 1, min_wait: float = 1, max_wait: float = 10) -> AsyncRetrying:
    """
    Retry controller for a single page fetch.

    Only transient ApiErrors are retried; auth failures, 4xx and the second
    401 are raised on the first attempt. max_attempts=1 means no retry.

    Usage:
        async for attempt in page_retrying(3):
            with attempt:
                data = await client.call(path, params)

    Strategy:
    - Exponential backoff: 1s, 2s, 4s ... capped at max_wait
    - Logs before each retry
    - Re-raises the last error when attempts are exhausted
    """
    return AsyncRetrying(
        retry=retry_if_exception(is_transient_api_error),
        stop=stop_after_attempt(max(1, max_attempts)),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True
    )
