"""
Pydantic Schemas
All request/response models for API endpoints
"""

# Sync schemas
from .sync import (
    ModuleSyncResult,
    SyncRunResponse,
    SyncQueuedResponse,
    SyncCursorState,
    SyncStatusResponse
)

__all__ = [
    "ModuleSyncResult",
    "SyncRunResponse",
    "SyncQueuedResponse",
    "SyncCursorState",
    "SyncStatusResponse",
]
