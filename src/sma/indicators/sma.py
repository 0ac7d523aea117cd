"""Simple moving average computation over daily candles.

Windows are positional: the SMA of window *w* at candle *i* is the mean
of the close prices of candles ``i-w+1 .. i`` as returned by the source.
Calendar gaps in the candle sequence are not interpolated.

Upstream responses are not trusted to be ordered or unique, so candles
are sorted by day and de-duplicated (last occurrence in arrival order
wins) before any window is computed.
"""

from datetime import date

from sma.exceptions import InsufficientHistoryError
from sma.models import MAX_WINDOW, Candle, Pair, SMARecord, Window


def prepare_candles(candles: list[Candle]) -> list[Candle]:
    """Return candles sorted ascending by day with one candle per day.

    When the same day appears more than once, the occurrence that arrived
    last replaces the earlier ones.
    """
    by_day: dict[date, Candle] = {}
    for candle in candles:
        by_day[candle.day] = candle
    return [by_day[day] for day in sorted(by_day)]


def simple_moving_average(closes: list[float], end: int, window: int) -> float:
    """Arithmetic mean of ``closes[end-window+1 .. end]``.

    Recomputed from scratch for every call; no running accumulator.
    """
    start = end - window + 1
    if start < 0:
        raise InsufficientHistoryError(
            f"window {window} needs {window} candles, only {end + 1} available"
        )
    return sum(closes[start : end + 1]) / window


def compute_sma_records(
    pair: Pair,
    candles: list[Candle],
    from_day: date,
    to_day: date | None = None,
) -> list[SMARecord]:
    """Compute SMA20/50/200 for every eligible day in ``[from_day, to_day]``.

    A candle is eligible when at least MAX_WINDOW candles (itself included)
    precede it in the prepared sequence. Candles before ``from_day`` only
    serve as lookback and never produce a record.

    Args:
        pair: Pair the candles belong to.
        candles: Daily candles in any order, possibly with duplicate days.
        from_day: First day to emit.
        to_day: Last day to emit (inclusive). None means no upper bound.

    Returns:
        One SMARecord per eligible day, ascending by day. Empty when
        ``candles`` is empty.

    Raises:
        InsufficientHistoryError: fewer than MAX_WINDOW candles were given.
    """
    if not candles:
        return []

    ordered = prepare_candles(candles)
    if len(ordered) < MAX_WINDOW:
        raise InsufficientHistoryError(
            f"{pair.value}: {len(ordered)} candles available, {int(MAX_WINDOW)} required"
        )

    closes = [float(c.close) for c in ordered]
    records: list[SMARecord] = []

    for i in range(MAX_WINDOW - 1, len(ordered)):
        day = ordered[i].day
        if day < from_day:
            continue
        if to_day is not None and day > to_day:
            break
        records.append(
            SMARecord(
                pair=pair,
                day=day,
                values={w: simple_moving_average(closes, i, w) for w in Window},
            )
        )

    return records
