"""
Sync Routes
Admin triggers for the Zoho Books sync (backfill, delta, per-module) and cursor status
"""
import logging
from typing import Union
from fastapi import APIRouter, Depends, HTTPException, Query, Request

from app.core.security import verify_api_key
from app.core.dependencies import get_sync_orchestrator
from app.middleware.rate_limit import limiter
from app.models.schemas.sync import (
    ModuleSyncResult,
    SyncCursorState,
    SyncQueuedResponse,
    SyncRunResponse,
    SyncStatusResponse
)
from app.services.jobs.tasks import sync_books_backfill_task, sync_books_delta_task
from app.services.sync.modules import MODULES_BY_NAME
from app.services.sync.orchestration.books_sync import MODE_DELTA, MODE_FULL, BooksSyncOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/zoho", tags=["sync"], dependencies=[Depends(verify_api_key)])


def _run_response(results: dict) -> SyncRunResponse:
    failed = any(r.get("status") == "error" for r in results.values())
    return SyncRunResponse(
        status="ERROR" if failed else "OK",
        results={name: ModuleSyncResult(**r) for name, r in results.items()}
    )


@router.post("/backfill-all", response_model=Union[SyncRunResponse, SyncQueuedResponse])
@limiter.limit("10/hour")
async def backfill_all(
    request: Request,
    background: bool = Query(False, description="Queue as a background job instead of running inline"),
    orchestrator: BooksSyncOrchestrator = Depends(get_sync_orchestrator)
):
    """
    Full backfill of every module (no date filter).

    Used for first-run population or recovery after extended downtime.
    Guarded by the same per-module lock as the nightly sync.
    """
    if background:
        sync_books_backfill_task.send()
        logger.info("✅ Zoho Books backfill job queued")
        return SyncQueuedResponse(
            job="backfill",
            message="Full backfill started in background. Use GET /admin/zoho/sync/status to check progress."
        )

    logger.info("Zoho Books full backfill requested")
    results = await orchestrator.run_full_backfill()
    return _run_response(results)


@router.post("/sync", response_model=Union[SyncRunResponse, SyncQueuedResponse])
@limiter.limit("30/hour")
async def sync_delta(
    request: Request,
    background: bool = Query(False, description="Queue as a background job instead of running inline"),
    orchestrator: BooksSyncOrchestrator = Depends(get_sync_orchestrator)
):
    """Delta sync of every module on demand."""
    if background:
        sync_books_delta_task.send()
        logger.info("✅ Zoho Books delta sync job queued")
        return SyncQueuedResponse(
            job="delta",
            message="Delta sync started in background. Use GET /admin/zoho/sync/status to check progress."
        )

    logger.info("Zoho Books delta sync requested")
    results = await orchestrator.run_delta()
    return _run_response(results)


@router.post("/sync/{module}", response_model=ModuleSyncResult)
@limiter.limit("30/hour")
async def sync_one_module(
    module: str,
    request: Request,
    mode: str = Query(MODE_DELTA, description="delta or full"),
    orchestrator: BooksSyncOrchestrator = Depends(get_sync_orchestrator)
):
    """
    Sync a single module inline.

    409 if the module is already running, 502 if Zoho or its token endpoint failed,
    500 with counts if some records failed to upsert.
    """
    sync_module = MODULES_BY_NAME.get(module)
    if sync_module is None:
        raise HTTPException(
            status_code=404,
            detail=f"Unknown module. Must be one of: {', '.join(MODULES_BY_NAME)}"
        )
    if mode not in (MODE_DELTA, MODE_FULL):
        raise HTTPException(status_code=400, detail=f"Invalid mode. Must be one of: {MODE_DELTA}, {MODE_FULL}")

    result = await orchestrator.sync_module(sync_module, mode)
    return ModuleSyncResult(**result)


@router.get("/sync/status", response_model=SyncStatusResponse)
async def sync_status(
    orchestrator: BooksSyncOrchestrator = Depends(get_sync_orchestrator)
):
    """Current cursor per module: running flag, last successful sync, last error."""
    cursors = await orchestrator.list_cursors()
    return SyncStatusResponse(
        cursors=[SyncCursorState(**c.to_dict()) for c in cursors]
    )
