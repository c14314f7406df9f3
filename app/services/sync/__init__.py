"""
Zoho Books Sync Engine
Credential refresh, paginated fetch, natural-key upsert and per-module locking
"""
from app.services.sync.errors import SyncError, AuthError, ApiError, AlreadyRunningError, WriteError, BatchWriteError
from app.services.sync.oauth import Credential, CredentialManager
from app.services.sync.cursor import SyncCursor, with_lock
from app.services.sync.modules import SyncModule, INVOICES, PURCHASE_ORDERS, DEFAULT_MODULES
from app.services.sync.persistence import SupabaseRecordStore, bulk_upsert_records

__all__ = [
    "SyncError",
    "AuthError",
    "ApiError",
    "AlreadyRunningError",
    "WriteError",
    "BatchWriteError",
    "Credential",
    "CredentialManager",
    "SyncCursor",
    "with_lock",
    "SyncModule",
    "INVOICES",
    "PURCHASE_ORDERS",
    "DEFAULT_MODULES",
    "SupabaseRecordStore",
    "bulk_upsert_records",
]
