"""Shared data models for the SMA backfill service.

Candle prices use Decimal as delivered by the exchange. SMA values are
plain floats: they are derived statistics, computed with sum-then-divide
and never rounded by the service.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from decimal import Decimal
from enum import Enum, IntEnum

from sma.exceptions import InvalidPairError, InvalidWindowError


class Pair(str, Enum):
    """Supported trading pairs (quote currency first, as the API exposes them)."""

    BRLBTC = "BRLBTC"
    BRLETH = "BRLETH"

    @classmethod
    def parse(cls, value: str) -> "Pair":
        """Return the Pair for ``value`` or raise InvalidPairError."""
        try:
            return cls(value)
        except ValueError:
            valid = ", ".join(p.value for p in cls)
            raise InvalidPairError(f"Invalid pair {value!r}. Use one of: {valid}") from None


class Window(IntEnum):
    """The three fixed SMA lookback lengths, in days."""

    SMA20 = 20
    SMA50 = 50
    SMA200 = 200

    @classmethod
    def parse(cls, value: int | str) -> "Window":
        """Return the Window for ``value`` or raise InvalidWindowError.

        Only integers and decimal-digit strings are accepted; ``20.7`` or
        ``True`` are rejected rather than truncated.
        """
        valid = ", ".join(str(int(w)) for w in cls)
        if isinstance(value, bool) or not isinstance(value, (int, str)):
            raise InvalidWindowError(f"Invalid window {value!r}. Use one of: {valid}")
        try:
            return cls(int(value))
        except ValueError:
            raise InvalidWindowError(f"Invalid window {value!r}. Use one of: {valid}") from None

    @property
    def column(self) -> str:
        """Storage column holding this window's value."""
        return f"sma{int(self)}"


#: Largest window; the number of candles needed before the first emission.
MAX_WINDOW = max(Window)


class AlertType(str, Enum):
    """Alert categories emitted by the worker."""

    UPDATE_FAILURE = "update_failure"
    INCOMPLETE_DATA = "incomplete_data"
    RUN_ERROR = "run_error"


@dataclass(frozen=True)
class Candle:
    """A single daily OHLCV bar. Immutable once fetched."""

    pair: Pair
    day: date
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal


@dataclass
class SMARecord:
    """SMA values of every window for one pair and day."""

    pair: Pair
    day: date
    values: dict[Window, float] = field(default_factory=dict)

    def value(self, window: Window) -> float | None:
        return self.values.get(window)


@dataclass(frozen=True)
class SMAPoint:
    """One day of one window as exposed by the query surface."""

    timestamp: int  # Unix seconds at UTC midnight
    value: float


@dataclass
class CompletenessReport:
    """Missing calendar days for a pair over an inclusive range."""

    pair: Pair
    from_day: date
    to_day: date
    missing_days: list[date] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return not self.missing_days


def day_to_timestamp(day: date) -> int:
    """Unix seconds of ``day`` at UTC midnight."""
    return int(datetime.combine(day, time.min, tzinfo=timezone.utc).timestamp())


def timestamp_to_day(ts: float) -> date:
    """Calendar day (UTC) containing the Unix timestamp ``ts`` in seconds."""
    return datetime.fromtimestamp(ts, tz=timezone.utc).date()


def utc_today() -> date:
    return datetime.now(timezone.utc).date()
