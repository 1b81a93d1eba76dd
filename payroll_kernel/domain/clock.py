"""
Clock -- injectable source of audit timestamps.

Responsibility:
    Supplies the ``created_at`` / ``approved_at`` / ``paid_at`` /
    ``voided_at`` timestamps and audit-entry times of payroll runs.
    Calculation never reads a clock: a run's as-of date is an explicit
    input, so ledgers and fingerprints do not depend on when they were
    computed.

Architecture position:
    Kernel > Domain.  ``SystemClock`` is the only place that reads the wall
    clock; services receive a Clock through their constructor.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

DEFAULT_TEST_TIME = datetime(2025, 1, 31, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """Returns timezone-aware UTC datetimes."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Fixed clock for tests and replays.

    ``now()`` keeps returning the same instant until ``advance()`` or
    ``set_time()`` moves it.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._current = self._aware(fixed_time or DEFAULT_TEST_TIME)

    @staticmethod
    def _aware(value: datetime) -> datetime:
        if value.tzinfo is None:
            raise ValueError(f"Clock time must be timezone-aware, got {value!r}")
        return value.astimezone(timezone.utc)

    def now(self) -> datetime:
        return self._current

    def set_time(self, value: datetime) -> None:
        self._current = self._aware(value)

    def advance(self, seconds: int = 1) -> datetime:
        """Move forward and return the new time."""
        if seconds < 0:
            raise ValueError("A deterministic clock never moves backwards")
        self._current += timedelta(seconds=seconds)
        return self._current
