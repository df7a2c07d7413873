"""
Time source for decision and review timestamps.

Services take a ``Clock`` in their constructor and stamp ``created_at``,
``decided_at`` and ``completed_at`` from it.  The workflow engine never
reads a clock; it only receives the timestamps.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

REVIEW_EPOCH = datetime(2025, 5, 1, 9, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """Source of timezone-aware UTC timestamps."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """Clock that only moves when told to.

    ``now()`` keeps returning the same instant until ``advance()`` or
    ``set_time()`` is called, so tests can assert exact timestamps.
    """

    def __init__(self, start: datetime | None = None):
        self._current = start or REVIEW_EPOCH

    def now(self) -> datetime:
        return self._current

    def set_time(self, moment: datetime) -> None:
        self._current = moment

    def advance(self, seconds: float = 1) -> datetime:
        """Move forward by ``seconds`` and return the new time."""
        self._current += timedelta(seconds=seconds)
        return self._current
