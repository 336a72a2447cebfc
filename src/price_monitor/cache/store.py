"""SQLite-backed cache of historical series and refresh metadata.

Two logical collections:

- ``historical_data``: one row per point, keyed by ``"{period}_{timestamp}"``
  with secondary indexes on ``period`` and ``timestamp``.
- ``metadata``: key/value rows; only ``lastHistoricalUpdate`` is used.
- ``refresh_cycles``: start time of every historical refresh cycle, read
  back to enforce the daily budget across processes.

Each operation opens its own connection, so a purge-then-insert is only
visible to readers once committed.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Protocol, runtime_checkable

import aiosqlite
from pydantic import ValidationError

from price_monitor.core.exceptions import CacheError
from price_monitor.core.models import (
    SYNTHETIC_SOURCE,
    EpochMillis,
    Period,
    PricePoint,
)

logger = logging.getLogger(__name__)

LAST_UPDATE_KEY = "lastHistoricalUpdate"
_DAY_MS = 24 * 60 * 60 * 1000

_SCHEMA = [
    """CREATE TABLE IF NOT EXISTS historical_data (
        id TEXT PRIMARY KEY,
        period TEXT NOT NULL,
        timestamp INTEGER NOT NULL,
        price REAL NOT NULL,
        date TEXT NOT NULL,
        source TEXT NOT NULL DEFAULT 'unknown'
    )""",
    """CREATE TABLE IF NOT EXISTS metadata (
        key TEXT PRIMARY KEY,
        value INTEGER NOT NULL
    )""",
    """CREATE TABLE IF NOT EXISTS refresh_cycles (
        started_at INTEGER NOT NULL
    )""",
    "CREATE INDEX IF NOT EXISTS idx_historical_period ON historical_data (period)",
    "CREATE INDEX IF NOT EXISTS idx_historical_timestamp ON historical_data (timestamp)",
    "CREATE INDEX IF NOT EXISTS idx_refresh_cycles_started ON refresh_cycles (started_at)",
]


def record_id(period: Period, timestamp: EpochMillis) -> str:
    """Derive the stable row id for a point so rewrites replace, not duplicate."""
    return f"{period.value}_{timestamp}"


@runtime_checkable
class CacheStore(Protocol):
    """Protocol for the durable series cache."""

    async def get_series(self, period: Period) -> list[PricePoint]:
        """Return stored points for a period, ascending by timestamp."""
        ...

    async def put_series(self, period: Period, points: list[PricePoint]) -> int:
        """Replace all stored points for a period. Returns rows written."""
        ...

    async def get_last_update_time(self) -> EpochMillis | None: ...

    async def set_last_update_time(self, timestamp: EpochMillis) -> None: ...

    async def record_cycle(self, started_at: EpochMillis) -> None:
        """Remember that a historical refresh cycle started at ``started_at``."""
        ...

    async def count_cycles_since(self, since: EpochMillis) -> int:
        """Number of recorded cycles that started strictly after ``since``."""
        ...


class SqliteCacheStore:
    """SQLite implementation of CacheStore.

    Parameters
    ----------
    db_path : str
        Path to the SQLite database file.
        Created automatically (with parent directories) if it doesn't exist.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._initialized = False

    @property
    def path(self) -> str:
        return self._db_path

    async def initialize(self) -> None:
        """Create the collections if they are absent."""
        if self._initialized:
            return
        try:
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
            async with aiosqlite.connect(self._db_path) as db:
                for sql in _SCHEMA:
                    await db.execute(sql)
                await db.commit()
        except (aiosqlite.Error, OSError) as e:
            raise CacheError(
                f"Failed to initialize cache store: {e}",
                context={"operation": "initialize", "path": self._db_path},
            ) from e
        self._initialized = True

    @asynccontextmanager
    async def _transaction(
        self, operation: str, table: str
    ) -> AsyncIterator[aiosqlite.Connection]:
        """Connection scoped to one logical operation.

        Commits when the block exits normally; any error rolls back and is
        re-raised as CacheError.
        """
        await self.initialize()
        try:
            async with aiosqlite.connect(self._db_path) as db:
                try:
                    yield db
                    await db.commit()
                except BaseException:
                    await db.rollback()
                    raise
        except (aiosqlite.Error, OSError) as e:
            raise CacheError(
                f"Cache {operation} failed: {e}",
                context={"operation": operation, "table": table},
            ) from e

    # --- Historical series ---

    async def get_series(self, period: Period) -> list[PricePoint]:
        async with self._transaction("get_series", "historical_data") as db:
            cursor = await db.execute(
                """SELECT timestamp, price, date, source
                   FROM historical_data
                   WHERE period = ?
                   ORDER BY timestamp""",
                (period.value,),
            )
            rows = await cursor.fetchall()

        try:
            return [
                PricePoint(timestamp=row[0], price=row[1], date=row[2], source=row[3])
                for row in rows
            ]
        except (ValidationError, TypeError) as e:
            raise CacheError(
                f"Cache get_series failed: corrupt row: {e}",
                context={"operation": "get_series", "table": "historical_data",
                         "period": period.value},
            ) from e

    async def put_series(self, period: Period, points: Iterable[PricePoint]) -> int:
        """Replace every stored point for ``period`` with ``points``.

        The purge and the inserts share one transaction. Synthetic points are
        refused so generated data never masquerades as a real history.
        """
        points = list(points)
        if any(p.source == SYNTHETIC_SOURCE for p in points):
            raise CacheError(
                "Refusing to persist synthetic data",
                context={"operation": "put_series", "table": "historical_data",
                         "period": period.value},
            )

        rows = [
            (record_id(period, p.timestamp), period.value, p.timestamp, p.price, p.date, p.source)
            for p in points
        ]
        async with self._transaction("put_series", "historical_data") as db:
            await db.execute(
                "DELETE FROM historical_data WHERE period = ?", (period.value,)
            )
            await db.executemany(
                """INSERT OR REPLACE INTO historical_data
                   (id, period, timestamp, price, date, source)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                rows,
            )

        logger.info("Stored %d points for period %s", len(rows), period.value)
        return len(rows)

    async def count_by_period(self) -> dict[Period, int]:
        """Number of stored points per period (zero for empty periods)."""
        async with self._transaction("count_by_period", "historical_data") as db:
            cursor = await db.execute(
                "SELECT period, COUNT(*) FROM historical_data GROUP BY period"
            )
            rows = await cursor.fetchall()

        counts = {period: 0 for period in Period}
        for name, count in rows:
            try:
                counts[Period(name)] = count
            except ValueError:
                logger.warning("Ignoring rows for unknown period %r", name)
        return counts

    # --- Metadata ---

    async def get_last_update_time(self) -> EpochMillis | None:
        async with self._transaction("get_last_update_time", "metadata") as db:
            cursor = await db.execute(
                "SELECT value FROM metadata WHERE key = ?", (LAST_UPDATE_KEY,)
            )
            row = await cursor.fetchone()
        if row is None:
            return None
        try:
            return int(row[0])
        except (TypeError, ValueError) as e:
            raise CacheError(
                f"Cache get_last_update_time failed: bad value {row[0]!r}",
                context={"operation": "get_last_update_time", "table": "metadata"},
            ) from e

    async def set_last_update_time(self, timestamp: EpochMillis) -> None:
        async with self._transaction("set_last_update_time", "metadata") as db:
            await db.execute(
                "INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)",
                (LAST_UPDATE_KEY, timestamp),
            )

    # --- Refresh budget ledger ---

    async def record_cycle(self, started_at: EpochMillis) -> None:
        async with self._transaction("record_cycle", "refresh_cycles") as db:
            await db.execute(
                "INSERT INTO refresh_cycles (started_at) VALUES (?)", (started_at,)
            )
            # Entries older than two days can no longer count against a budget
            await db.execute(
                "DELETE FROM refresh_cycles WHERE started_at <= ?",
                (started_at - 2 * _DAY_MS,),
            )

    async def count_cycles_since(self, since: EpochMillis) -> int:
        async with self._transaction("count_cycles_since", "refresh_cycles") as db:
            cursor = await db.execute(
                "SELECT COUNT(*) FROM refresh_cycles WHERE started_at > ?", (since,)
            )
            row = await cursor.fetchone()
        return int(row[0]) if row is not None else 0

    # --- Maintenance ---

    async def clear(self) -> None:
        """Drop every cached point and the refresh timestamp.

        The refresh cycle ledger is kept so clearing cannot reset the budget.
        """
        async with self._transaction("clear", "historical_data") as db:
            await db.execute("DELETE FROM historical_data")
            await db.execute("DELETE FROM metadata")
        logger.info("Cleared cache at %s", self._db_path)

    async def health_check(self) -> bool:
        try:
            async with self._transaction("health_check", "metadata") as db:
                cursor = await db.execute("SELECT 1")
                row = await cursor.fetchone()
            return row is not None
        except CacheError:
            return False
