"""Mercado Bitcoin candle source via ccxt async.

Wraps ccxt.async_support.mercado with a finite request timeout, forward
pagination over the ``1d`` timeframe, and conversion of raw OHLCV rows
into Decimal-valued Candle objects.
"""

import asyncio
from datetime import date
from decimal import Decimal, InvalidOperation

import ccxt.async_support as ccxt_async

from sma.config import ExchangeSettings
from sma.exceptions import FetchError
from sma.exchange.client import CandleSource
from sma.logging import get_logger
from sma.models import Candle, Pair, day_to_timestamp, timestamp_to_day

logger = get_logger(__name__)

_DAY_MS = 86_400 * 1000


def to_exchange_symbol(pair: Pair) -> str:
    """Translate a service pair into the ccxt unified symbol.

    Pairs are quote-first (BRLBTC); ccxt expects base/quote (BTC/BRL).
    """
    return f"{pair.value[3:]}/{pair.value[:3]}"


class MercadoBitcoinClient(CandleSource):
    """Concrete Mercado Bitcoin candle source using ccxt async."""

    def __init__(self, settings: ExchangeSettings) -> None:
        self._settings = settings
        self._exchange = ccxt_async.mercado(
            {
                "enableRateLimit": True,
                "timeout": settings.timeout_ms,
            }
        )

    @property
    def exchange(self) -> ccxt_async.mercado:
        """Access the underlying ccxt exchange instance."""
        return self._exchange

    async def connect(self) -> None:
        """Load markets so symbol translation errors surface at startup."""
        logger.info("connecting_to_mercado_bitcoin")
        try:
            markets = await self._exchange.load_markets()
        except ccxt_async.BaseError as e:
            raise FetchError(f"could not load Mercado Bitcoin markets: {e}") from e
        logger.info("mercado_bitcoin_connected", market_count=len(markets))

    async def close(self) -> None:
        """Clean up ccxt async resources. Must be called to avoid session leaks."""
        await self._exchange.close()
        logger.info("mercado_bitcoin_connection_closed")

    async def fetch_daily_candles(
        self, pair: Pair, from_day: date, to_day: date
    ) -> list[Candle]:
        """Walk FORWARD from from_day to to_day fetching daily candles.

        Each page starts one day after the newest candle of the previous
        page. Stops on an empty page or when a page makes no progress.
        """
        symbol = to_exchange_symbol(pair)
        until_ms = day_to_timestamp(to_day) * 1000
        since_ms = day_to_timestamp(from_day) * 1000
        rows: list[list] = []

        while since_ms <= until_ms:
            try:
                batch = await self._exchange.fetch_ohlcv(
                    symbol,
                    timeframe="1d",
                    since=since_ms,
                    limit=self._settings.page_limit,
                )
            except ccxt_async.BaseError as e:
                logger.warning("candle_fetch_failed", pair=pair.value, error=str(e))
                raise FetchError(f"{pair.value}: candle request failed: {e}") from e

            if not batch:
                break

            rows.extend(batch)
            newest_ms = max(row[0] for row in batch)
            if newest_ms < since_ms:
                break  # No progress guard

            since_ms = newest_ms + _DAY_MS
            await asyncio.sleep(self._settings.fetch_batch_delay)

        candles = [
            c
            for c in (self._to_candle(pair, row) for row in rows)
            if from_day <= c.day <= to_day
        ]
        logger.info(
            "candles_fetched",
            pair=pair.value,
            symbol=symbol,
            count=len(candles),
            from_day=from_day.isoformat(),
            to_day=to_day.isoformat(),
        )
        return candles

    @staticmethod
    def _to_candle(pair: Pair, row: list) -> Candle:
        """Convert a ccxt row [timestamp_ms, open, high, low, close, volume]."""
        try:
            return Candle(
                pair=pair,
                day=timestamp_to_day(row[0] / 1000),
                open=Decimal(str(row[1])),
                high=Decimal(str(row[2])),
                low=Decimal(str(row[3])),
                close=Decimal(str(row[4])),
                volume=Decimal(str(row[5])),
            )
        except (IndexError, TypeError, InvalidOperation) as e:
            raise FetchError(f"{pair.value}: malformed candle {row!r}") from e
