"""
Rate Limiting Middleware
Throttles the admin sync triggers using slowapi

RATE LIMITS:
- Global: 100 requests/minute per client (default)
- Inline/background sync triggers: see routes

SECURITY: Requests carrying an API key are keyed on a key prefix, others on IP
"""
import logging
from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request

logger = logging.getLogger(__name__)


def rate_limit_key_func(request: Request) -> str:
    """
    Determine rate limit key.

    STRATEGY:
    - Admin requests (X-API-Key present): key on the first 8 chars of the key
    - Everything else: key on IP address
    """
    api_key = request.headers.get("X-API-Key")
    if api_key:
        return f"key:{api_key[:8]}"

    ip = get_remote_address(request)
    logger.debug(f"Rate limit key: ip={ip}")
    return f"ip:{ip}"


limiter = Limiter(
    key_func=rate_limit_key_func,
    default_limits=["100/minute"],
    storage_uri="memory://",  # In-memory storage (single instance)
)
