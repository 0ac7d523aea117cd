"""Abstract SMA repository interface.

Defines the persistence contract consumed by the service and the worker.
The SQLite implementation lives in ``sma.data.store``; tests substitute an
in-memory variant.
"""

from abc import ABC, abstractmethod
from datetime import date

from sma.models import Pair, SMAPoint, SMARecord, Window


class SMARepository(ABC):
    """Abstract base class for SMA record storage."""

    @abstractmethod
    async def upsert_batch(self, records: list[SMARecord]) -> int:
        """Insert or overwrite records keyed by (pair, day), all-or-nothing.

        Returns the number of records written. Raises PersistError on
        failure, in which case nothing from the batch is kept.
        """
        ...

    @abstractmethod
    async def find_by_pair_and_range(
        self,
        pair: Pair,
        from_day: date,
        to_day: date,
        window: Window,
    ) -> list[SMAPoint]:
        """Return the window's series for days in ``[from_day, to_day]``, ascending."""
        ...

    @abstractmethod
    async def distinct_days_with_data(
        self, pair: Pair, from_day: date, to_day: date
    ) -> set[date]:
        """Return the calendar days in ``[from_day, to_day]`` holding any record."""
        ...

    @abstractmethod
    async def last_stored_day(self, pair: Pair) -> date | None:
        """Return the most recent day with a record, or None when empty."""
        ...
