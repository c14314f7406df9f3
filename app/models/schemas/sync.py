"""
Sync Schemas
Models for the admin sync endpoints
"""
from typing import Dict, List, Optional
from datetime import datetime
from pydantic import BaseModel


class ModuleSyncResult(BaseModel):
    """Outcome of one module's sync run."""
    module: str
    mode: str  # "delta", "full"
    status: str  # "success", "skipped", "error"
    fetched: int = 0
    upserted: int = 0
    failed: int = 0
    pages: Optional[int] = None
    window: Optional[Dict[str, str]] = None
    errors: List[str] = []
    error: Optional[str] = None


class SyncRunResponse(BaseModel):
    """
    Response for an inline sync run.
    status is "OK" when no module errored, "ERROR" otherwise.
    """
    status: str
    results: Dict[str, ModuleSyncResult]


class SyncQueuedResponse(BaseModel):
    status: str = "queued"
    job: str
    message: str


class SyncCursorState(BaseModel):
    source: str
    module: str
    last_sync_at: Optional[datetime] = None
    running: bool
    last_error: Optional[str] = None


class SyncStatusResponse(BaseModel):
    cursors: List[SyncCursorState]
