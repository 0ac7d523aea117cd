"""Indicator computations over daily candles."""

from sma.indicators.sma import compute_sma_records, prepare_candles, simple_moving_average

__all__ = [
    "compute_sma_records",
    "prepare_candles",
    "simple_moving_average",
]
