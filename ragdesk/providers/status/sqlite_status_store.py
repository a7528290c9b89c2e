"""SQLite-backed indexing status store.

One row per document in ``indexing_status``, upserted on every pipeline
stage.  ``created_at`` is kept from the first insert; every other column
is overwritten.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import aiosqlite
import structlog

from ragdesk.interfaces.status_store import IIndexingStatusStore
from ragdesk.models.indexing import IndexingState, IndexingStatus

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/ragdesk.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS indexing_status (
    document_id       TEXT    PRIMARY KEY,
    organization_id   TEXT    NOT NULL DEFAULT '',
    status            TEXT    NOT NULL,
    progress          INTEGER NOT NULL DEFAULT 0,
    total_chunks      INTEGER NOT NULL DEFAULT 0,
    processed_chunks  INTEGER NOT NULL DEFAULT 0,
    error_message     TEXT,
    created_at        TEXT    NOT NULL,
    updated_at        TEXT    NOT NULL
);
"""

_UPSERT_SQL = """\
INSERT INTO indexing_status
    (document_id, organization_id, status, progress, total_chunks,
     processed_chunks, error_message, created_at, updated_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(document_id)
DO UPDATE SET organization_id  = excluded.organization_id,
              status           = excluded.status,
              progress         = excluded.progress,
              total_chunks     = excluded.total_chunks,
              processed_chunks = excluded.processed_chunks,
              error_message    = excluded.error_message,
              updated_at       = excluded.updated_at;
"""

_SELECT_SQL = """\
SELECT document_id, organization_id, status, progress, total_chunks,
       processed_chunks, error_message, created_at, updated_at
FROM indexing_status
WHERE document_id = ?;
"""


class SQLiteIndexingStatusStore(IIndexingStatusStore):
    """SQLite persistence for per-document indexing status."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the indexing_status table if it doesn't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_TABLE_SQL)
            await db.commit()
        logger.info("status_db_initialized", path=str(self._db_path))

    async def upsert(self, status: IndexingStatus) -> None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(
                _UPSERT_SQL,
                (
                    status.document_id,
                    status.organization_id,
                    status.status.value,
                    status.progress,
                    status.total_chunks,
                    status.processed_chunks,
                    status.error_message,
                    status.created_at.isoformat(),
                    status.updated_at.isoformat(),
                ),
            )
            await db.commit()
        logger.debug(
            "indexing_status_upserted",
            document_id=status.document_id,
            status=status.status.value,
            progress=status.progress,
        )

    async def get(self, document_id: str) -> IndexingStatus | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(_SELECT_SQL, (document_id,))
            row = await cursor.fetchone()

        if row is None:
            return None
        return IndexingStatus(
            document_id=row["document_id"],
            organization_id=row["organization_id"],
            status=IndexingState(row["status"]),
            progress=row["progress"],
            total_chunks=row["total_chunks"],
            processed_chunks=row["processed_chunks"],
            error_message=row["error_message"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )
