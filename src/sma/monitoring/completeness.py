"""Calendar completeness check for stored SMA data.

A day counts as present when the pair has any stored record for it,
regardless of which windows are filled in.
"""

from collections.abc import Iterable, Iterator
from datetime import date, timedelta

from sma.data.repository import SMARepository
from sma.logging import get_logger
from sma.models import CompletenessReport, Pair

logger = get_logger(__name__)


def calendar_days(from_day: date, to_day: date) -> Iterator[date]:
    """Yield every calendar day from ``from_day`` to ``to_day`` inclusive."""
    current = from_day
    while current <= to_day:
        yield current
        current += timedelta(days=1)


def find_missing_days(
    from_day: date, to_day: date, present_days: Iterable[date]
) -> list[date]:
    """Return the days of ``[from_day, to_day]`` absent from ``present_days``, ascending."""
    present = set(present_days)
    return [day for day in calendar_days(from_day, to_day) if day not in present]


class CompletenessChecker:
    """Detects missing days by comparing the calendar with stored days.

    Args:
        repository: Storage queried for the distinct days holding data.
    """

    def __init__(self, repository: SMARepository) -> None:
        self._repository = repository

    async def check(self, pair: Pair, from_day: date, to_day: date) -> CompletenessReport:
        """Build a CompletenessReport for ``pair`` over ``[from_day, to_day]``.

        Raises PersistError if the storage query fails.
        """
        if from_day > to_day:
            return CompletenessReport(pair=pair, from_day=from_day, to_day=to_day)

        present = await self._repository.distinct_days_with_data(pair, from_day, to_day)
        missing = find_missing_days(from_day, to_day, present)

        logger.debug(
            "completeness_checked",
            pair=pair.value,
            from_day=from_day.isoformat(),
            to_day=to_day.isoformat(),
            missing=len(missing),
        )
        return CompletenessReport(
            pair=pair, from_day=from_day, to_day=to_day, missing_days=missing
        )
