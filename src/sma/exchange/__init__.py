"""Candle source layer -- Mercado Bitcoin integration via ccxt."""

from sma.exchange.client import CandleSource
from sma.exchange.mercado_client import MercadoBitcoinClient, to_exchange_symbol

__all__ = ["CandleSource", "MercadoBitcoinClient", "to_exchange_symbol"]
