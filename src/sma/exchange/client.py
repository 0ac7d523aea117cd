"""Abstract candle source interface.

The worker depends only on this contract, keeping the Mercado Bitcoin
details (symbol format, pagination, ccxt errors) isolated in the concrete
implementation.
"""

from abc import ABC, abstractmethod
from datetime import date

from sma.models import Candle, Pair


class CandleSource(ABC):
    """Abstract base class for daily candle providers."""

    async def connect(self) -> None:
        """Initialize the upstream connection. No-op by default."""

    async def close(self) -> None:
        """Release upstream resources. No-op by default."""

    @abstractmethod
    async def fetch_daily_candles(
        self, pair: Pair, from_day: date, to_day: date
    ) -> list[Candle]:
        """Fetch daily candles for ``pair`` covering ``[from_day, to_day]``.

        No ordering or uniqueness guarantee is made on the result.
        Raises FetchError on upstream or network failure.
        """
        ...
