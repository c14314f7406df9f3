"""
Dependency Injection
Provides reusable dependencies for FastAPI routes, the worker and CLI jobs

DEPENDENCIES:
- Supabase client (mirrored records)
- HTTP client (Zoho OAuth + Books API)
- Sync orchestrator (credential manager + API client + stores)
"""
import logging
from typing import Optional

import httpx
from supabase import create_client, Client

from app.core.config import settings
from app.services.sync.database import PostgresCursorStore, ensure_sync_schema
from app.services.sync.oauth import CredentialManager
from app.services.sync.orchestration.books_sync import BooksSyncOrchestrator
from app.services.sync.persistence import SupabaseRecordStore
from app.services.sync.providers.zoho_books import ZohoBooksClient

logger = logging.getLogger(__name__)

# ============================================================================
# GLOBAL CLIENTS (initialized once, reused across requests)
# ============================================================================

_supabase_client: Optional[Client] = None

_http_client: Optional[httpx.AsyncClient] = None

_sync_orchestrator: Optional[BooksSyncOrchestrator] = None


# ============================================================================
# FACTORIES
# ============================================================================

def create_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.zoho_request_timeout),
        limits=httpx.Limits(max_keepalive_connections=5, max_connections=10)
    )


def create_sync_orchestrator(http_client: httpx.AsyncClient, supabase: Client) -> BooksSyncOrchestrator:
    """
    Build a complete sync engine.

    Each engine owns its own CredentialManager, so separate engines (API
    process, worker, CLI) never share token state.
    """
    credentials = CredentialManager(
        http_client,
        accounts_base_url=settings.zoho_accounts_base_url,
        client_id=settings.zoho_client_id,
        client_secret=settings.zoho_client_secret,
        refresh_token=settings.zoho_refresh_token,
        skew_seconds=settings.token_refresh_skew_seconds,
        timeout=settings.zoho_request_timeout
    )
    client = ZohoBooksClient(
        http_client,
        credentials,
        base_url=settings.zoho_books_base_url,
        organization_id=settings.zoho_org_id,
        timeout=settings.zoho_request_timeout
    )
    return BooksSyncOrchestrator(
        client,
        SupabaseRecordStore(supabase),
        PostgresCursorStore(settings.database_url),
        lookback_days=settings.sync_lookback_days,
        overlap_days=settings.sync_overlap_days,
        per_page=settings.sync_page_size,
        page_retry_attempts=settings.sync_page_retry_attempts,
        full_refresh_nightly=settings.zoho_full_refresh,
        timezone_name=settings.sync_timezone
    )


# ============================================================================
# INITIALIZATION (called on app startup)
# ============================================================================

async def initialize_clients():
    """
    Initialize all global clients on app startup.

    Called from main.py lifespan event.
    """
    global _supabase_client, _http_client, _sync_orchestrator

    logger.info("Initializing global clients...")

    # Supabase
    try:
        _supabase_client = create_client(
            settings.supabase_url,
            settings.supabase_service_key  # Backend uses service role
        )
        logger.info("✅ Supabase client initialized")
    except Exception as e:
        logger.error(f"❌ Failed to initialize Supabase: {e}")
        raise

    # Sync tables
    try:
        ensure_sync_schema(settings.database_url)
    except Exception as e:
        logger.error(f"❌ Failed to prepare sync schema: {e}")
        raise

    _http_client = create_http_client()
    _sync_orchestrator = create_sync_orchestrator(_http_client, _supabase_client)
    logger.info("✅ Zoho Books sync engine initialized")

    logger.info("✅ All clients initialized successfully")


async def shutdown_clients():
    """
    Shutdown all global clients on app shutdown.

    Called from main.py lifespan event.
    """
    global _supabase_client, _http_client, _sync_orchestrator

    logger.info("Shutting down global clients...")

    if _http_client:
        try:
            await _http_client.aclose()
            logger.info("✅ HTTP client closed")
        except Exception as e:
            logger.error(f"Error closing HTTP client: {e}")

    # Supabase doesn't need explicit cleanup
    _supabase_client = None
    _http_client = None
    _sync_orchestrator = None

    logger.info("✅ All clients shutdown complete")


# ============================================================================
# DEPENDENCY FUNCTIONS (injected into routes)
# ============================================================================

def get_sync_orchestrator() -> BooksSyncOrchestrator:
    """
    Get the process-wide sync engine.

    Usage:
        @router.post("/admin/zoho/sync")
        async def sync(orchestrator: BooksSyncOrchestrator = Depends(get_sync_orchestrator)):
            return await orchestrator.run_delta()
    """
    if _sync_orchestrator is None:
        logger.error("Sync orchestrator not initialized")
        raise RuntimeError("Sync orchestrator not initialized. Call initialize_clients() first.")

    return _sync_orchestrator
