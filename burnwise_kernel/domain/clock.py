"""
Clock -- Deterministic time abstraction.

Responsibility:
    Provides an injectable clock so that services never call
    ``datetime.now()`` or ``date.today()`` directly.  Overdue detection and
    the dashboard's "upcoming" window are the only consumers of "today".

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O (except SystemClock,
    which is the one sanctioned I/O boundary for time).
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone


class Clock(ABC):
    """
    Abstract clock interface.

    Guarantees:
        - ``now()`` returns a timezone-aware ``datetime``.
        - ``today()`` returns the calendar date of ``now()``.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Get the current time."""
        ...

    def today(self) -> date:
        """Get the current calendar date."""
        return self.now().date()


class SystemClock(Clock):
    """Production clock that returns actual system time (UTC)."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    Guarantees:
        - ``now()`` returns the same value on repeated calls until
          ``advance()`` or ``set_time()`` is called.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._fixed_time = fixed_time or datetime(
            2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc
        )
        self._advance = timedelta()

    @classmethod
    def on(cls, day: date) -> "DeterministicClock":
        """Clock pinned to noon UTC on ``day``."""
        return cls(datetime(day.year, day.month, day.day, 12, 0, 0, tzinfo=timezone.utc))

    def now(self) -> datetime:
        return self._fixed_time + self._advance

    def set_time(self, time: datetime) -> None:
        """Set the clock to a specific time."""
        self._fixed_time = time
        self._advance = timedelta()

    def advance(self, days: int = 0, seconds: int = 0) -> None:
        """Advance the clock."""
        self._advance += timedelta(days=days, seconds=seconds)
