"""
Security and Authentication
API key authentication for the admin sync triggers

SECURITY FEATURES:
- API key read from X-API-Key header
- Timing-safe comparison
"""
import logging
import hmac
from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import APIKeyHeader

from app.core.config import settings

logger = logging.getLogger(__name__)

# Security schemes
api_key_scheme = APIKeyHeader(name="X-API-Key", auto_error=False)


# ============================================================================
# API KEY AUTHENTICATION (admin triggers)
# ============================================================================

async def verify_api_key(api_key: Optional[str] = Depends(api_key_scheme)) -> bool:
    """
    Verify the admin API key.

    Uses timing-safe comparison to prevent timing attacks.

    Returns:
        True if API key is valid

    Raises:
        HTTPException if API key is invalid or missing
    """
    if not settings.admin_api_key:
        logger.error("Admin API key authentication attempted but ADMIN_API_KEY not configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="API key authentication not configured"
        )

    if not api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API key required (X-API-Key header)"
        )

    # Timing-safe comparison (prevents timing attacks)
    if not hmac.compare_digest(api_key, settings.admin_api_key):
        logger.warning(f"Invalid admin API key attempt: {api_key[:4]}...")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key"
        )

    logger.info("✅ Admin API key authenticated")
    return True
