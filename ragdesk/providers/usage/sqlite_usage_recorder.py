"""SQLite-backed usage recorder.

Appends one row per metered answer to ``usage_records``.  Aggregation,
invoicing and export belong to the billing collaborator; this adapter
only provides durable local storage and a per-organization total.
"""

from __future__ import annotations

from pathlib import Path

import aiosqlite
import structlog

from ragdesk.interfaces.usage_recorder import IUsageRecorder
from ragdesk.models.chat import UsageRecord
from ragdesk.utils.errors import UsageRecordingError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/ragdesk.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS usage_records (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id          TEXT    NOT NULL,
    organization_id  TEXT    NOT NULL,
    tokens_used      INTEGER NOT NULL,
    api_calls        INTEGER NOT NULL DEFAULT 1,
    cost             REAL    NOT NULL,
    date             TEXT    NOT NULL
);
"""

_CREATE_INDEX_SQL = (
    "CREATE INDEX IF NOT EXISTS idx_usage_org ON usage_records(organization_id);"
)

_INSERT_SQL = """\
INSERT INTO usage_records (user_id, organization_id, tokens_used, api_calls, cost, date)
VALUES (?, ?, ?, ?, ?, ?);
"""


class SQLiteUsageRecorder(IUsageRecorder):
    """Append-only usage metering table."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the usage_records table and index if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_TABLE_SQL)
            await db.execute(_CREATE_INDEX_SQL)
            await db.commit()
        logger.info("usage_db_initialized", path=str(self._db_path))

    async def record(self, usage: UsageRecord) -> None:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(
                    _INSERT_SQL,
                    (
                        usage.user_id,
                        usage.organization_id,
                        usage.tokens_used,
                        usage.api_calls,
                        usage.cost,
                        usage.date.isoformat(),
                    ),
                )
                await db.commit()
        except aiosqlite.Error as exc:
            raise UsageRecordingError(
                message=f"Failed to record usage: {exc}", provider_name="sqlite_usage"
            ) from exc

        logger.info(
            "usage_recorded",
            organization_id=usage.organization_id,
            tokens_used=usage.tokens_used,
            cost=usage.cost,
        )

    async def total_for_organization(self, organization_id: str) -> tuple[int, float]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                "SELECT COALESCE(SUM(tokens_used), 0), COALESCE(SUM(cost), 0.0) "
                "FROM usage_records WHERE organization_id = ?",
                (organization_id,),
            )
            row = await cursor.fetchone()
        return int(row[0]), float(row[1])
