"""SMA application service.

Single entry point for the three operations the rest of the system needs:

- ``get_sma_series``: validated time-range query for one window (HTTP API)
- ``calculate_and_save``: fetch candles, compute SMAs, persist in one batch
  (initial load; the worker drives the same three steps individually)
- ``check_completeness``: trailing-window gap detection (worker)
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date, timedelta
from typing import Any

from sma.data.repository import SMARepository
from sma.exceptions import InvalidTimestampError, OutOfRangeError
from sma.exchange.client import CandleSource
from sma.indicators.sma import compute_sma_records
from sma.logging import get_logger
from sma.models import (
    MAX_WINDOW,
    Candle,
    CompletenessReport,
    Pair,
    SMAPoint,
    SMARecord,
    Window,
    timestamp_to_day,
    utc_today,
)
from sma.monitoring.completeness import CompletenessChecker

logger = get_logger(__name__)


def _parse_timestamp(value: Any, name: str) -> date:
    """Parse a Unix timestamp (seconds) into its UTC calendar day."""
    if value is None or value == "":
        raise InvalidTimestampError(f"Parameter '{name}' is required")
    if isinstance(value, bool):
        raise InvalidTimestampError(f"Parameter '{name}' is not a valid timestamp")
    try:
        return timestamp_to_day(int(value))
    except (TypeError, ValueError, OverflowError, OSError):
        raise InvalidTimestampError(f"Parameter '{name}' is not a valid timestamp") from None


class SMAService:
    """Validates inputs and coordinates candle source, engine and storage.

    Args:
        repository: SMA storage.
        candle_source: Daily candle provider.
        lookback_days: Extra days fetched before ``from_day`` to seed SMA200.
        completeness_days: Length of the trailing completeness window.
        max_query_age_days: Oldest ``from`` accepted by the query path.
        today: Returns the current UTC day (injectable for tests).
    """

    def __init__(
        self,
        repository: SMARepository,
        candle_source: CandleSource,
        lookback_days: int = int(MAX_WINDOW),
        completeness_days: int = 365,
        max_query_age_days: int = 365,
        today: Callable[[], date] = utc_today,
    ) -> None:
        self._repository = repository
        self._candle_source = candle_source
        self._checker = CompletenessChecker(repository)
        self._lookback_days = lookback_days
        self._completeness_days = completeness_days
        self._max_query_age_days = max_query_age_days
        self._today = today

    @property
    def repository(self) -> SMARepository:
        return self._repository

    # ──────────────────────────────────────────────
    # Query path
    # ──────────────────────────────────────────────

    async def get_sma_series(
        self,
        pair: str,
        from_ts: Any,
        to_ts: Any = None,
        window: Any = None,
    ) -> list[SMAPoint]:
        """Return ``{timestamp, value}`` points for one pair and window.

        Args:
            pair: Pair name, e.g. "BRLBTC".
            from_ts: Start as Unix seconds (int or numeric string). Required.
            to_ts: End as Unix seconds. Defaults to yesterday.
            window: 20, 50 or 200.

        Raises:
            InvalidPairError, InvalidTimestampError, InvalidWindowError,
            OutOfRangeError: the request is rejected as a whole.
        """
        parsed_pair = Pair.parse(pair)
        from_day = _parse_timestamp(from_ts, "from")

        today = self._today()
        if to_ts is None or to_ts == "":
            to_day = today - timedelta(days=1)
        else:
            to_day = _parse_timestamp(to_ts, "to")

        parsed_window = Window.parse(window)

        oldest = today - timedelta(days=self._max_query_age_days)
        if from_day < oldest:
            raise OutOfRangeError(
                f"Parameter 'from' must not be older than {self._max_query_age_days} days"
            )
        if from_day > to_day:
            raise InvalidTimestampError("Parameter 'from' must not be after 'to'")

        return await self._repository.find_by_pair_and_range(
            parsed_pair, from_day, to_day, parsed_window
        )

    # ──────────────────────────────────────────────
    # Backfill unit
    # ──────────────────────────────────────────────

    async def fetch_candles(self, pair: Pair, from_day: date, to_day: date) -> list[Candle]:
        """Fetch ``[from_day - lookback_days, to_day]`` so SMA200 is seeded at ``from_day``."""
        fetch_from = from_day - timedelta(days=self._lookback_days)
        return await self._candle_source.fetch_daily_candles(pair, fetch_from, to_day)

    def compute(
        self, pair: Pair, candles: list[Candle], from_day: date, to_day: date
    ) -> list[SMARecord]:
        return compute_sma_records(pair, candles, from_day, to_day)

    async def persist(self, records: list[SMARecord]) -> int:
        return await self._repository.upsert_batch(records)

    async def calculate_and_save(self, pair: Pair, from_day: date, to_day: date) -> int:
        """Fetch candles with lookback, compute SMAs for ``[from_day, to_day]``, persist.

        Returns the number of records written.

        Raises:
            FetchError: the candle source failed.
            InsufficientHistoryError: fewer candles than the largest window.
            PersistError: the batch upsert failed and was rolled back.
        """
        candles = await self.fetch_candles(pair, from_day, to_day)
        records = self.compute(pair, candles, from_day, to_day)
        written = await self.persist(records)

        logger.info(
            "sma_range_saved",
            pair=pair.value,
            from_day=from_day.isoformat(),
            to_day=to_day.isoformat(),
            candles=len(candles),
            records=written,
        )
        return written

    # ──────────────────────────────────────────────
    # Completeness
    # ──────────────────────────────────────────────

    def completeness_range(self) -> tuple[date, date]:
        """Trailing window ending yesterday, matching the initial backfill start."""
        today = self._today()
        return today - timedelta(days=self._completeness_days), today - timedelta(days=1)

    async def check_completeness(self, pair: Pair) -> CompletenessReport:
        """Report the days missing from the trailing completeness window."""
        from_day, to_day = self.completeness_range()
        return await self._checker.check(pair, from_day, to_day)
