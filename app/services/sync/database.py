"""
Database helper functions for the Zoho Books sync
Handles schema bootstrap and the per-module sync cursors
"""
import logging
from datetime import datetime
from typing import List, Optional

import psycopg
from psycopg.rows import dict_row

from app.services.sync.cursor import CURSOR_SOURCE, SyncCursor
from app.services.sync.modules import DEFAULT_MODULES

logger = logging.getLogger(__name__)

CURSOR_TABLE = "zoho_sync_cursors"

_CURSOR_COLUMNS = "source, module, last_sync_at, running, last_error"


# ============================================================================
# DATABASE CONNECTION
# ============================================================================

def get_db_connection(database_url: str):
    """Get synchronous database connection (schema bootstrap, CLI use)."""
    return psycopg.connect(database_url, autocommit=False)


# ============================================================================
# SCHEMA
# ============================================================================

def ensure_sync_schema(database_url: str):
    """Create cursor and record tables if missing."""
    conn = get_db_connection(database_url)
    try:
        with conn.cursor() as cur:
            cur.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {CURSOR_TABLE} (
                    source TEXT NOT NULL DEFAULT '{CURSOR_SOURCE}',
                    module TEXT PRIMARY KEY,
                    last_sync_at TIMESTAMPTZ,
                    running BOOLEAN NOT NULL DEFAULT FALSE,
                    last_error TEXT,
                    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
                    updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
                )
                """
            )
            for module in DEFAULT_MODULES:
                cur.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {module.table} (
                        {module.natural_key} TEXT PRIMARY KEY,
                        data JSONB NOT NULL,
                        fetched_at TIMESTAMPTZ NOT NULL
                    )
                    """
                )
        conn.commit()
        logger.info("✅ Sync schema ready")
    finally:
        conn.close()


# ============================================================================
# CURSOR STORE
# ============================================================================

def _row_to_cursor(row: dict) -> SyncCursor:
    return SyncCursor(
        module=row["module"],
        last_sync_at=row["last_sync_at"],
        running=bool(row["running"]),
        last_error=row["last_error"],
        source=row["source"] or CURSOR_SOURCE
    )


class PostgresCursorStore:
    """
    Sync cursors in PostgreSQL.

    try_acquire is a single conditional UPDATE, so two processes racing for
    the same module cannot both see running=false.
    """

    def __init__(self, database_url: str):
        self._database_url = database_url

    async def _connect(self) -> psycopg.AsyncConnection:
        return await psycopg.AsyncConnection.connect(
            self._database_url,
            autocommit=True,
            row_factory=dict_row
        )

    async def get_or_create(self, module: str) -> SyncCursor:
        async with await self._connect() as conn:
            await conn.execute(
                f"""
                INSERT INTO {CURSOR_TABLE} (source, module)
                VALUES (%s, %s)
                ON CONFLICT (module) DO NOTHING
                """,
                (CURSOR_SOURCE, module)
            )
            cur = await conn.execute(
                f"SELECT {_CURSOR_COLUMNS} FROM {CURSOR_TABLE} WHERE module = %s",
                (module,)
            )
            row = await cur.fetchone()
            return _row_to_cursor(row)

    async def try_acquire(self, module: str) -> Optional[SyncCursor]:
        async with await self._connect() as conn:
            cur = await conn.execute(
                f"""
                UPDATE {CURSOR_TABLE}
                SET running = TRUE,
                    last_error = NULL,
                    updated_at = now()
                WHERE module = %s AND running = FALSE
                RETURNING {_CURSOR_COLUMNS}
                """,
                (module,)
            )
            row = await cur.fetchone()
            return _row_to_cursor(row) if row else None

    async def release(
        self,
        module: str,
        *,
        last_sync_at: Optional[datetime] = None,
        last_error: Optional[str] = None
    ) -> None:
        async with await self._connect() as conn:
            await conn.execute(
                f"""
                UPDATE {CURSOR_TABLE}
                SET running = FALSE,
                    last_sync_at = COALESCE(%s, last_sync_at),
                    last_error = %s,
                    updated_at = now()
                WHERE module = %s
                """,
                (last_sync_at, last_error, module)
            )

    async def list_cursors(self) -> List[SyncCursor]:
        async with await self._connect() as conn:
            cur = await conn.execute(
                f"SELECT {_CURSOR_COLUMNS} FROM {CURSOR_TABLE} ORDER BY module"
            )
            rows = await cur.fetchall()
            return [_row_to_cursor(row) for row in rows]
