"""
Unified Configuration
All environment variables and settings in one place

ARCHITECTURE:
- Supabase (PostgREST) stores the mirrored Zoho Books records
- PostgreSQL (psycopg) stores the per-module sync cursors / locks
- Zoho OAuth refresh token is exchanged for short-lived access tokens at runtime

SECURITY:
- All secrets loaded from environment variables
- No hardcoded credentials
"""
from typing import Optional
import logging
from pydantic_settings import BaseSettings
from pydantic import Field, model_validator

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings.
    Validates all environment variables at startup.
    """

    # ============================================================================
    # SERVER
    # ============================================================================

    environment: str = Field(default="production", description="Environment: development/staging/production")
    port: int = Field(default=8080, description="Server port")
    debug: bool = Field(default=False, description="Debug mode")

    # ============================================================================
    # DATABASE
    # ============================================================================

    database_url: str = Field(description="PostgreSQL connection string (psycopg - sync cursors)")
    supabase_url: str = Field(description="Supabase project URL (mirrored records)")
    supabase_service_key: str = Field(description="Supabase service key (backend uses this)")

    # ============================================================================
    # ZOHO BOOKS
    # ============================================================================

    zoho_accounts_base_url: str = Field(default="https://accounts.zoho.in", description="Zoho accounts (OAuth) base URL")
    zoho_books_base_url: str = Field(default="https://www.zohoapis.in/books/v3", description="Zoho Books API base URL")
    zoho_client_id: Optional[str] = Field(default=None, description="Zoho OAuth client ID")
    zoho_client_secret: Optional[str] = Field(default=None, description="Zoho OAuth client secret")
    zoho_refresh_token: Optional[str] = Field(default=None, description="Zoho OAuth refresh token")
    zoho_org_id: Optional[str] = Field(default=None, description="Zoho Books organization ID")
    zoho_request_timeout: float = Field(default=20.0, description="Per-request timeout for Zoho API calls (seconds)")
    token_refresh_skew_seconds: int = Field(default=60, description="Refresh the access token this many seconds before expiry")

    # ============================================================================
    # SYNC
    # ============================================================================

    zoho_full_refresh: bool = Field(default=False, description="Nightly run walks the full dataset instead of a delta window")
    sync_lookback_days: int = Field(default=90, description="Delta window when a module has never synced")
    sync_overlap_days: int = Field(default=1, description="Days to look back before the last successful sync")
    sync_page_size: int = Field(default=200, description="Zoho list page size (API maximum)")
    sync_page_retry_attempts: int = Field(default=1, description="Attempts per page on transient errors (1 = no retry)")

    # ============================================================================
    # SCHEDULER
    # ============================================================================

    sync_scheduler_enabled: bool = Field(default=True, description="Run the nightly sync inside the API process")
    sync_cron_hour: int = Field(default=22, description="Nightly sync hour")
    sync_cron_minute: int = Field(default=30, description="Nightly sync minute")
    sync_timezone: str = Field(default="Asia/Kolkata", description="Timezone for the nightly schedule and delta dates")

    # ============================================================================
    # BACKGROUND JOBS
    # ============================================================================

    redis_url: Optional[str] = Field(default=None, description="Redis connection URL (dramatiq broker)")

    # ============================================================================
    # API KEYS
    # ============================================================================

    admin_api_key: Optional[str] = Field(default=None, description="API key for admin sync triggers (X-API-Key)")

    # ============================================================================
    # PRODUCTION INFRASTRUCTURE
    # ============================================================================

    sentry_dsn: Optional[str] = Field(default=None, description="Sentry DSN for error tracking")

    @model_validator(mode='after')
    def validate_settings(self):
        """
        Validate critical settings at startup.

        SECURITY CHECKS:
        - Warn if Zoho OAuth credentials are incomplete
        - Warn if running in production without Sentry
        - Warn if debug mode enabled in production
        """
        if self.environment == "production":
            if self.debug:
                logger.warning("⚠️  DEBUG MODE ENABLED IN PRODUCTION! This is insecure.")

            if not self.sentry_dsn:
                logger.warning("⚠️  Sentry not configured in production. Error tracking disabled.")

        if not (self.zoho_client_id and self.zoho_client_secret and self.zoho_refresh_token):
            logger.warning("⚠️  Zoho OAuth credentials incomplete. Token refresh will fail.")

        if not self.zoho_org_id:
            logger.warning("⚠️  ZOHO_ORG_ID not set. Requests will not carry an organization header.")

        if self.sync_page_retry_attempts < 1:
            raise ValueError("sync_page_retry_attempts must be >= 1")

        logger.info("=" * 80)
        logger.info("Zoho Books Sync Configuration Loaded")
        logger.info("=" * 80)
        logger.info(f"Environment: {self.environment}")
        logger.info(f"Debug: {self.debug}")
        logger.info(f"Supabase URL: {self.supabase_url}")
        logger.info(f"Zoho Books API: {self.zoho_books_base_url}")
        logger.info(f"Zoho Org: {'✅ Configured' if self.zoho_org_id else '❌ Not configured'}")
        logger.info(f"Nightly mode: {'full refresh' if self.zoho_full_refresh else 'delta'}")
        if self.sync_scheduler_enabled:
            logger.info(f"Scheduler: ✅ {self.sync_cron_hour:02d}:{self.sync_cron_minute:02d} {self.sync_timezone}")
        else:
            logger.info("Scheduler: ❌ Disabled")
        logger.info(f"Redis: {'✅ Configured' if self.redis_url else '❌ Not configured'}")
        logger.info(f"Sentry: {'✅ Configured' if self.sentry_dsn else '❌ Not configured'}")
        logger.info("=" * 80)

        return self

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


# Global settings instance
settings = Settings()
