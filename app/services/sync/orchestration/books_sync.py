"""
Zoho Books sync engine
Mirrors invoices and purchase orders into local storage

Per module:
1. Take the module's cursor lock (reject if already running)
2. Walk every page of the Zoho list endpoint (delta window or full dataset)
3. Upsert the whole batch by natural key
4. Record success (last_sync_at) or failure (last_error) and release the lock

Modules run one after another; one module failing does not stop the next.
"""
import logging
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Any, Dict, Iterable, List, Optional
from zoneinfo import ZoneInfo

from app.services.sync.cursor import CursorStore, SyncCursor, with_lock
from app.services.sync.errors import AlreadyRunningError, BatchWriteError, SyncError
from app.services.sync.modules import DEFAULT_MODULES, SyncModule
from app.services.sync.persistence import RecordStore, bulk_upsert_records
from app.services.sync.providers.zoho_books import MAX_PAGE_SIZE, ZohoBooksClient, fetch_all_pages

logger = logging.getLogger(__name__)

MODE_DELTA = "delta"
MODE_FULL = "full"

DATE_FORMAT = "%Y-%m-%d"


def compute_delta_window(
    last_sync_at: Optional[datetime],
    today: date,
    lookback_days: int = 90,
    overlap_days: int = 1,
    tz: tzinfo = timezone.utc
) -> Dict[str, str]:
    """
    Date filter for a delta run.

    Starts overlap_days before the last successful sync (upstream dates can
    lag availability), or lookback_days before today when the module has
    never synced. Ends today.
    """
    if last_sync_at is not None:
        if last_sync_at.tzinfo is None:
            last_sync_at = last_sync_at.replace(tzinfo=timezone.utc)
        start = last_sync_at.astimezone(tz).date() - timedelta(days=overlap_days)
    else:
        start = today - timedelta(days=lookback_days)

    return {
        "date_start": start.strftime(DATE_FORMAT),
        "date_end": today.strftime(DATE_FORMAT)
    }


class BooksSyncOrchestrator:
    """
    Runs delta and full-backfill syncs for the configured Zoho Books modules.

    Both modes take the same per-module cursor lock, so a backfill and a
    scheduled delta never run concurrently on one module.
    """

    def __init__(
        self,
        client: ZohoBooksClient,
        record_store: RecordStore,
        cursor_store: CursorStore,
        *,
        modules: Iterable[SyncModule] = DEFAULT_MODULES,
        lookback_days: int = 90,
        overlap_days: int = 1,
        per_page: int = MAX_PAGE_SIZE,
        page_retry_attempts: int = 1,
        full_refresh_nightly: bool = False,
        timezone_name: str = "UTC"
    ):
        self._client = client
        self._records = record_store
        self._cursors = cursor_store
        self._modules = tuple(modules)
        self._lookback_days = lookback_days
        self._overlap_days = overlap_days
        self._per_page = per_page
        self._page_retry_attempts = page_retry_attempts
        self._full_refresh_nightly = full_refresh_nightly
        self._tz = ZoneInfo(timezone_name)

    @property
    def modules(self):
        return self._modules

    def today(self) -> date:
        return datetime.now(self._tz).date()

    # ========================================================================
    # ENTRY POINTS
    # ========================================================================

    async def run_delta(self) -> Dict[str, Dict[str, Any]]:
        """Sync each module over its delta window."""
        return await self._run_all(MODE_DELTA)

    async def run_full_backfill(self) -> Dict[str, Dict[str, Any]]:
        """Sync each module over the entire remote dataset."""
        return await self._run_all(MODE_FULL)

    async def run_nightly(self) -> Dict[str, Dict[str, Any]]:
        """Scheduled run: delta, or full when full_refresh_nightly is set."""
        return await self._run_all(MODE_FULL if self._full_refresh_nightly else MODE_DELTA)

    async def list_cursors(self) -> List[SyncCursor]:
        return await self._cursors.list_cursors()

    # ========================================================================
    # INTERNALS
    # ========================================================================

    async def _run_all(self, mode: str) -> Dict[str, Dict[str, Any]]:
        logger.info(f"🚀 Starting Zoho Books {mode} sync ({', '.join(m.name for m in self._modules)})")

        results: Dict[str, Dict[str, Any]] = {}
        for module in self._modules:
            results[module.name] = await self._run_module_safely(module, mode)

        logger.info("=" * 80)
        logger.info(f"✅ Zoho Books {mode} sync complete")
        for name, result in results.items():
            logger.info(
                f"{name}: {result['status']} - fetched {result['fetched']}, "
                f"upserted {result['upserted']}, failed {result['failed']}"
            )
        logger.info("=" * 80)

        return results

    async def _run_module_safely(self, module: SyncModule, mode: str) -> Dict[str, Any]:
        try:
            return await self.sync_module(module, mode)
        except AlreadyRunningError as e:
            logger.info(f"⏭️  Skipping {module.name}: {e}")
            return _result(module, mode, status="skipped", error=str(e))
        except BatchWriteError as e:
            logger.error(f"❌ Zoho Books {mode} sync incomplete for {module.name}: {e}")
            return _result(
                module,
                mode,
                status="error",
                fetched=e.applied + e.failed,
                upserted=e.applied,
                failed=e.failed,
                errors=e.errors,
                error=str(e)
            )
        except SyncError as e:
            logger.error(f"❌ Zoho Books {mode} sync failed for {module.name}: {e}")
            return _result(module, mode, status="error", error=str(e))
        except Exception as e:
            logger.error(f"❌ Zoho Books {mode} sync crashed for {module.name}: {e}", exc_info=True)
            return _result(module, mode, status="error", error=str(e) or type(e).__name__)

    async def sync_module(self, module: SyncModule, mode: str) -> Dict[str, Any]:
        """
        Sync one module under its cursor lock.

        Raises:
            AlreadyRunningError: module is locked by another run
            AuthError / ApiError: fetch failed (cursor keeps last_sync_at)
            BatchWriteError: some records failed to upsert (cursor keeps last_sync_at)
        """
        async def run(cursor: SyncCursor) -> Dict[str, Any]:
            if mode == MODE_FULL:
                params: Dict[str, str] = {}
            else:
                params = compute_delta_window(
                    cursor.last_sync_at,
                    self.today(),
                    lookback_days=self._lookback_days,
                    overlap_days=self._overlap_days,
                    tz=self._tz
                )

            logger.info(f"📄 Fetching {module.name} from Zoho ({mode}, filters={params or 'none'})")

            walk = await fetch_all_pages(
                self._client,
                module.path,
                params,
                module.items_key,
                per_page=self._per_page,
                retry_attempts=self._page_retry_attempts
            )
            upsert = await bulk_upsert_records(self._records, module, walk.items)
            if upsert.failed:
                # last_sync_at must not advance past unwritten records
                raise BatchWriteError(module.name, upsert.applied, upsert.failed, upsert.errors)

            return _result(
                module,
                mode,
                status="success",
                fetched=len(walk.items),
                upserted=upsert.applied,
                failed=upsert.failed,
                pages=walk.pages,
                window=params or None,
                errors=upsert.errors
            )

        return await with_lock(self._cursors, module.name, run)


def _result(module: SyncModule, mode: str, status: str, **fields) -> Dict[str, Any]:
    result = {
        "module": module.name,
        "mode": mode,
        "status": status,
        "fetched": 0,
        "upserted": 0,
        "failed": 0
    }
    result.update(fields)
    return result
