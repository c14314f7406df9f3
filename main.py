"""
Zoho Books Sync
===============
Version: 1.0.0

FastAPI application entry point.

Architecture:
- app/core/: Configuration, dependencies, security, retry policy
- app/middleware/: Error handling, rate limiting
- app/models/: Pydantic schemas
- app/services/sync/: Zoho OAuth, API client, page walker, upsert writer, cursor lock, orchestrator
- app/services/jobs/: Dramatiq tasks, nightly scheduler, cron CLIs
- app/api/v1/routes/: API endpoints
"""
import sys
import logging
import traceback
from contextlib import asynccontextmanager
from fastapi import FastAPI

# Startup error handling
try:
    from app.core.config import settings
    from app.core.dependencies import initialize_clients, shutdown_clients, get_sync_orchestrator

    from app.middleware.error_handler import ErrorHandlerMiddleware, register_exception_handlers

    from app.api.v1.routes.health import router as health_router
    from app.api.v1.routes.sync import router as sync_router

    from app.services.jobs.scheduler import start_sync_scheduler

except Exception as e:
    print(f"🚨 FATAL STARTUP ERROR: {e}", file=sys.stderr)
    print(f"Traceback:\n{traceback.format_exc()}", file=sys.stderr)
    sys.exit(1)

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.environment == "production" else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# ============================================================================
# SENTRY ERROR TRACKING
# ============================================================================

if settings.sentry_dsn:
    try:
        import sentry_sdk
        from sentry_sdk.integrations.fastapi import FastApiIntegration
        from sentry_sdk.integrations.logging import LoggingIntegration

        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            environment=settings.environment,
            traces_sample_rate=0.1,
            integrations=[
                FastApiIntegration(),
                LoggingIntegration(level=logging.INFO, event_level=logging.ERROR)
            ]
        )
        logger.info("✅ Sentry error tracking initialized")
    except Exception as e:
        logger.warning(f"⚠️  Failed to initialize Sentry: {e}")
else:
    logger.info("ℹ️  Sentry not configured (SENTRY_DSN not set)")

# ============================================================================
# LIFECYCLE MANAGEMENT
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown."""
    # Startup
    logger.info("=" * 80)
    logger.info("Starting Zoho Books Sync")
    logger.info("=" * 80)
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Port: {settings.port}")
    logger.info(f"Debug: {settings.debug}")

    await initialize_clients()

    app.state.scheduler = None
    if settings.sync_scheduler_enabled:
        app.state.scheduler = start_sync_scheduler(
            get_sync_orchestrator,
            hour=settings.sync_cron_hour,
            minute=settings.sync_cron_minute,
            timezone_name=settings.sync_timezone
        )
    else:
        logger.info("ℹ️  Nightly scheduler disabled (SYNC_SCHEDULER_ENABLED=false)")

    logger.info("=" * 80)
    logger.info("✅ Zoho Books Sync started successfully")
    logger.info("=" * 80)

    yield

    # Shutdown
    logger.info("Shutting down Zoho Books Sync...")
    if app.state.scheduler:
        app.state.scheduler.shutdown(wait=False)
        logger.info("✅ Scheduler stopped")
    await shutdown_clients()
    logger.info("✅ Shutdown complete")


# ============================================================================
# APP INITIALIZATION
# ============================================================================

app = FastAPI(
    title="Zoho Books Sync API",
    description="Zoho Books invoice and purchase order mirror",
    version="1.0.0",
    docs_url="/docs" if settings.debug else None,  # Disable docs in production
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan
)

# ============================================================================
# RATE LIMITING
# ============================================================================

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from app.middleware.rate_limit import limiter

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
logger.info("✅ Rate limiting enabled")

# ============================================================================
# ERROR HANDLING
# ============================================================================

register_exception_handlers(app)

# Global error handler (must be last)
app.add_middleware(ErrorHandlerMiddleware)

# ============================================================================
# ROUTES
# ============================================================================

app.include_router(health_router)
app.include_router(sync_router)

logger.info("✅ All routes registered")

# ============================================================================
# MAIN
# ============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=settings.debug,
        log_level="info"
    )
