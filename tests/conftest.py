"""Shared test fixtures for the SMA service.

Provides in-memory variants of the three ports (candle source, SMA
repository, alert sink) so the service and the worker run without
network or database access.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from sma.config import AppSettings, BackfillSettings
from sma.data.repository import SMARepository
from sma.exceptions import FetchError, PersistError
from sma.exchange.client import CandleSource
from sma.models import Candle, Pair, SMAPoint, SMARecord, Window, day_to_timestamp
from sma.monitoring.alerts import AlertSink
from sma.service import SMAService

#: Fixed "today" used across tests.
TODAY = date(2025, 5, 15)
YESTERDAY = TODAY - timedelta(days=1)


def make_candles(
    pair: Pair,
    end_day: date,
    closes: list[float | int],
) -> list[Candle]:
    """Consecutive daily candles ending at ``end_day`` with the given closes."""
    start = end_day - timedelta(days=len(closes) - 1)
    return [
        Candle(
            pair=pair,
            day=start + timedelta(days=i),
            open=Decimal(str(close)),
            high=Decimal(str(close)),
            low=Decimal(str(close)),
            close=Decimal(str(close)),
            volume=Decimal("1"),
        )
        for i, close in enumerate(closes)
    ]


class InMemorySMARepository(SMARepository):
    """Dict-backed repository keyed by (pair, day)."""

    def __init__(self) -> None:
        self.rows: dict[tuple[Pair, date], SMARecord] = {}
        self.upsert_calls = 0
        self.fail_upserts = 0  # number of upcoming upserts that raise

    async def upsert_batch(self, records: list[SMARecord]) -> int:
        self.upsert_calls += 1
        if self.fail_upserts > 0:
            self.fail_upserts -= 1
            raise PersistError("simulated storage failure")
        for r in records:
            self.rows[(r.pair, r.day)] = r
        return len(records)

    async def find_by_pair_and_range(
        self, pair: Pair, from_day: date, to_day: date, window: Window
    ) -> list[SMAPoint]:
        return [
            SMAPoint(timestamp=day_to_timestamp(day), value=rec.values[window])
            for (p, day), rec in sorted(self.rows.items(), key=lambda kv: kv[0][1])
            if p == pair and from_day <= day <= to_day and window in rec.values
        ]

    async def distinct_days_with_data(
        self, pair: Pair, from_day: date, to_day: date
    ) -> set[date]:
        return {day for (p, day) in self.rows if p == pair and from_day <= day <= to_day}

    async def last_stored_day(self, pair: Pair) -> date | None:
        days = [day for (p, day) in self.rows if p == pair]
        return max(days) if days else None

    def seed(self, pair: Pair, days: list[date], value: float = 1.0) -> None:
        for day in days:
            self.rows[(pair, day)] = SMARecord(
                pair=pair, day=day, values={w: value for w in Window}
            )


class FakeCandleSource(CandleSource):
    """Serves a fixed candle list per pair, optionally failing first."""

    def __init__(self) -> None:
        self.candles: dict[Pair, list[Candle]] = {}
        self.calls: list[tuple[Pair, date, date]] = []
        self.always_fail: set[Pair] = set()
        self.fail_first: dict[Pair, int] = {}

    async def fetch_daily_candles(
        self, pair: Pair, from_day: date, to_day: date
    ) -> list[Candle]:
        self.calls.append((pair, from_day, to_day))
        if pair in self.always_fail:
            raise FetchError("connection refused")
        if self.fail_first.get(pair, 0) > 0:
            self.fail_first[pair] -= 1
            raise FetchError("temporary upstream error")
        return [c for c in self.candles.get(pair, []) if from_day <= c.day <= to_day]


class RecordingAlertSink(AlertSink):
    """Keeps every (alert_type, message) it receives."""

    def __init__(self) -> None:
        self.alerts: list[tuple[str, str]] = []

    async def send(self, alert_type: str, message: str) -> None:
        self.alerts.append((alert_type, message))

    def types(self) -> list[str]:
        return [t for t, _ in self.alerts]


@pytest.fixture
def mock_settings() -> AppSettings:
    """Return AppSettings with test defaults (test mode, short intervals)."""
    return AppSettings(
        log_level="DEBUG",
        backfill=BackfillSettings(test_mode=True, test_retry_interval=0.01),
    )


@pytest.fixture
def repository() -> InMemorySMARepository:
    return InMemorySMARepository()


@pytest.fixture
def candle_source() -> FakeCandleSource:
    return FakeCandleSource()


@pytest.fixture
def alert_sink() -> RecordingAlertSink:
    return RecordingAlertSink()


@pytest.fixture
def service(
    repository: InMemorySMARepository, candle_source: FakeCandleSource
) -> SMAService:
    """SMAService over in-memory ports with a fixed today."""
    return SMAService(
        repository=repository,
        candle_source=candle_source,
        today=lambda: TODAY,
    )


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def candle_factory():
    """Return make_candles for building consecutive daily candles."""
    return make_candles
