"""
Sync error taxonomy
Every failure the sync engine raises derives from SyncError
"""
from typing import Any, List, Optional


class SyncError(Exception):
    """Base class for Zoho Books sync failures."""


class AuthError(SyncError):
    """OAuth token endpoint unreachable or rejected the refresh."""


class ApiError(SyncError):
    """
    Zoho Books API call failed.

    status is None for timeouts and connection errors.
    """

    def __init__(self, status: Optional[int], body: Any = None, message: Optional[str] = None):
        self.status = status
        self.body = body
        super().__init__(message or f"Zoho API error {status if status is not None else 'network'}: {str(body)[:200]}")

    @property
    def is_transient(self) -> bool:
        return self.status is None or self.status == 429 or self.status >= 500


class AlreadyRunningError(SyncError):
    """Another sync of the same module holds the cursor lock."""

    def __init__(self, module: str):
        self.module = module
        super().__init__(f"{module} sync already running")


class WriteError(SyncError):
    """A single record failed to upsert."""

    def __init__(self, key: Optional[str], reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Record {key}: {reason}")


class BatchWriteError(WriteError):
    """Some records in a batch failed to upsert; the rest were applied."""

    def __init__(self, module: str, applied: int, failed: int, errors: Optional[List[str]] = None):
        self.module = module
        self.applied = applied
        self.failed = failed
        self.errors = list(errors or [])
        self.key = None
        self.reason = f"{failed} of {applied + failed} {module} records failed to upsert"
        SyncError.__init__(self, self.reason)
