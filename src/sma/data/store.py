"""SQLite implementation of the SMA repository.

One row per (pair, day) with a column per window. Days are stored as ISO
``YYYY-MM-DD`` text, which sorts chronologically. All SQL is isolated
behind this class.
"""

import asyncio
import sqlite3
from datetime import date

from sma.data.database import SMADatabase
from sma.data.repository import SMARepository
from sma.exceptions import PersistError
from sma.logging import get_logger
from sma.models import Pair, SMAPoint, SMARecord, Window, day_to_timestamp

logger = get_logger(__name__)

_UPSERT_SQL = (
    "INSERT INTO sma_values (pair, day, sma20, sma50, sma200) "
    "VALUES (?, ?, ?, ?, ?) "
    "ON CONFLICT (pair, day) DO UPDATE SET "
    "sma20 = excluded.sma20, "
    "sma50 = excluded.sma50, "
    "sma200 = excluded.sma200"
)


class SQLiteSMAStore(SMARepository):
    """Async SQLite store for SMA records.

    Wraps SMADatabase with typed read/write methods. Storage errors are
    logged and re-raised as PersistError.

    Usage:
        async with SMADatabase("data/sma.db") as database:
            store = SQLiteSMAStore(database)
            written = await store.upsert_batch(records)
    """

    def __init__(self, database: SMADatabase) -> None:
        self._database = database
        # One connection is shared by the API and the worker; a read must
        # never run between a batch's executemany and its commit/rollback.
        self._lock = asyncio.Lock()

    # ──────────────────────────────────────────────
    # Write methods
    # ──────────────────────────────────────────────

    async def upsert_batch(self, records: list[SMARecord]) -> int:
        """Upsert all records inside one transaction.

        The batch is rolled back as a whole if any row fails.
        """
        if not records:
            return 0

        data = [
            (
                r.pair.value,
                r.day.isoformat(),
                r.value(Window.SMA20),
                r.value(Window.SMA50),
                r.value(Window.SMA200),
            )
            for r in records
        ]

        db = self._database.db
        async with self._lock:
            try:
                await db.executemany(_UPSERT_SQL, data)
                await db.commit()
            except sqlite3.Error as e:
                await db.rollback()
                logger.error("sma_batch_upsert_failed", records=len(records), error=str(e))
                raise PersistError(
                    f"batch upsert of {len(records)} records failed: {e}"
                ) from e

        logger.debug(
            "sma_batch_upserted",
            pair=records[0].pair.value,
            records=len(records),
            first_day=data[0][1],
            last_day=data[-1][1],
        )
        return len(records)

    # ──────────────────────────────────────────────
    # Read methods
    # ──────────────────────────────────────────────

    async def find_by_pair_and_range(
        self,
        pair: Pair,
        from_day: date,
        to_day: date,
        window: Window,
    ) -> list[SMAPoint]:
        column = window.column
        rows = await self._fetchall(
            f"SELECT day, {column} FROM sma_values "
            f"WHERE pair = ? AND day BETWEEN ? AND ? AND {column} IS NOT NULL "
            "ORDER BY day ASC",
            (pair.value, from_day.isoformat(), to_day.isoformat()),
        )
        return [
            SMAPoint(timestamp=day_to_timestamp(date.fromisoformat(row[0])), value=row[1])
            for row in rows
        ]

    async def distinct_days_with_data(
        self, pair: Pair, from_day: date, to_day: date
    ) -> set[date]:
        rows = await self._fetchall(
            "SELECT DISTINCT day FROM sma_values "
            "WHERE pair = ? AND day BETWEEN ? AND ?",
            (pair.value, from_day.isoformat(), to_day.isoformat()),
        )
        return {date.fromisoformat(row[0]) for row in rows}

    async def last_stored_day(self, pair: Pair) -> date | None:
        rows = await self._fetchall(
            "SELECT MAX(day) FROM sma_values WHERE pair = ?",
            (pair.value,),
        )
        if not rows or rows[0][0] is None:
            return None
        return date.fromisoformat(rows[0][0])

    async def _fetchall(self, query: str, params: tuple) -> list:
        try:
            async with self._lock:
                cursor = await self._database.db.execute(query, params)
                return list(await cursor.fetchall())
        except sqlite3.Error as e:
            logger.error("sma_query_failed", error=str(e))
            raise PersistError(f"query failed: {e}") from e
