"""
Sync cursor / lock
One persisted row per module: the running flag is the only mutual exclusion
between sync runs, so it holds across processes sharing the same database.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, List, Optional, Protocol, TypeVar

from app.services.sync.errors import AlreadyRunningError

logger = logging.getLogger(__name__)

T = TypeVar("T")

CURSOR_SOURCE = "zoho-books"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SyncCursor:
    module: str
    last_sync_at: Optional[datetime] = None
    running: bool = False
    last_error: Optional[str] = None
    source: str = CURSOR_SOURCE

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "module": self.module,
            "last_sync_at": self.last_sync_at.isoformat() if self.last_sync_at else None,
            "running": self.running,
            "last_error": self.last_error
        }


class CursorStore(Protocol):
    async def get_or_create(self, module: str) -> SyncCursor: ...

    async def try_acquire(self, module: str) -> Optional[SyncCursor]:
        """Atomically set running=true and clear last_error if not already running.

        Returns the cursor as acquired, or None when another run holds it."""
        ...

    async def release(
        self,
        module: str,
        *,
        last_sync_at: Optional[datetime] = None,
        last_error: Optional[str] = None
    ) -> None:
        """Clear running, recording last_sync_at (success) or last_error (failure)."""
        ...

    async def list_cursors(self) -> List[SyncCursor]: ...


async def with_lock(
    store: CursorStore,
    module: str,
    fn: Callable[[SyncCursor], Awaitable[T]]
) -> T:
    """
    Run fn(cursor) while holding the module's cursor lock.

    Rejects immediately with AlreadyRunningError if the module is running.
    last_sync_at advances only when fn succeeds; a failure stores its message
    in last_error and is re-raised. running is cleared either way.
    """
    await store.get_or_create(module)

    cursor = await store.try_acquire(module)
    if cursor is None:
        logger.warning(f"⏭️  {module} sync already running, rejecting")
        raise AlreadyRunningError(module)

    logger.info(f"🔒 Acquired {module} sync lock (last sync: {cursor.last_sync_at or 'never'})")

    succeeded = False
    error: Optional[str] = None
    try:
        result = await fn(cursor)
        succeeded = True
        return result
    except Exception as e:
        error = _error_message(e)
        raise
    finally:
        await store.release(
            module,
            last_sync_at=_utcnow() if succeeded else None,
            last_error=error
        )
        logger.info(f"🔓 Released {module} sync lock ({'success' if succeeded else 'failed'})")


def _error_message(exc: Any) -> str:
    return str(exc) or type(exc).__name__
