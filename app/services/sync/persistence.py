"""
Record persistence helpers
Bulk "replace or insert by natural key" of Zoho records into Supabase
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Protocol, Sequence

from supabase import Client

from app.services.sync.errors import WriteError
from app.services.sync.modules import SyncModule

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RecordStore(Protocol):
    async def replace_one(self, table: str, key_field: str, key: str, row: Dict[str, Any]) -> None:
        """Replace the row whose key_field equals key, inserting it if absent."""
        ...


class SupabaseRecordStore:
    """
    Records live in one table per module:
        <natural_key> text primary key, data jsonb, fetched_at timestamptz
    The full Zoho payload goes into data so new upstream fields are kept.
    """

    def __init__(self, supabase: Client):
        self._supabase = supabase

    async def replace_one(self, table: str, key_field: str, key: str, row: Dict[str, Any]) -> None:
        self._supabase.table(table).upsert(row, on_conflict=key_field).execute()


def build_record_row(module: SyncModule, key: str, record: Dict[str, Any], fetched_at: datetime) -> Dict[str, Any]:
    return {
        module.natural_key: key,
        "data": record,
        "fetched_at": fetched_at.isoformat()
    }


@dataclass
class UpsertResult:
    applied: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)


# ============================================================================
# BULK UPSERT
# ============================================================================

async def bulk_upsert_records(
    store: RecordStore,
    module: SyncModule,
    records: Sequence[Dict[str, Any]]
) -> UpsertResult:
    """
    Upsert a batch of Zoho records by natural key.

    Writes are independent: a record that fails (missing key, storage
    rejection) is counted and logged, and the rest of the batch still applies.
    Re-applying the same batch leaves the same stored set.

    Args:
        store: Record store
        module: Module the records belong to
        records: Raw Zoho records

    Returns:
        UpsertResult with applied/failed counts
    """
    result = UpsertResult()
    if not records:
        return result

    fetched_at = _utcnow()

    for record in records:
        key = record.get(module.natural_key)
        try:
            if key is None or key == "":
                raise WriteError(None, f"missing {module.natural_key}")
            key = str(key)
            await store.replace_one(
                module.table,
                module.natural_key,
                key,
                build_record_row(module, key, record, fetched_at)
            )
            result.applied += 1
        except WriteError as e:
            logger.error(f"Failed to upsert {module.name} record: {e}")
            result.failed += 1
            result.errors.append(str(e))
        except Exception as e:
            error = WriteError(key, str(e))
            logger.error(f"Failed to upsert {module.name} record {key}: {e}")
            result.failed += 1
            result.errors.append(str(error))

    logger.info(f"💾 Upserted {result.applied}/{len(records)} {module.name} (failed: {result.failed})")
    return result
