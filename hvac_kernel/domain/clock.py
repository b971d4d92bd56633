"""
Clock -- Deterministic time abstraction.

Responsibility:
    Injectable clock so that services never call ``datetime.now()`` or
    ``date.today()`` directly.  Engines go one step further and take
    ``today`` as an explicit argument; the clock is how services obtain it.

Architecture position:
    Kernel > Domain -- pure, zero I/O (except SystemClock, the one
    sanctioned boundary for time).

Failure modes:
    - SystemClock raises ZoneInfoNotFoundError for an unknown timezone name.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo


class Clock(ABC):
    """
    Abstract clock interface.

    Contract:
        Services receive a Clock via constructor injection.

    Guarantees:
        - ``now()`` returns a timezone-aware ``datetime`` in the business
          timezone.
        - ``today()`` is the calendar day of ``now()`` in that timezone, so
          "today" flips at local midnight, not UTC midnight.
    """

    @abstractmethod
    def now(self) -> datetime:
        ...

    def now_utc(self) -> datetime:
        return self.now().astimezone(timezone.utc)

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    """Production clock reading the system time in a business timezone."""

    def __init__(self, tz: tzinfo | str = timezone.utc):
        self._tz = ZoneInfo(tz) if isinstance(tz, str) else tz

    @property
    def tz(self) -> tzinfo:
        return self._tz

    def now(self) -> datetime:
        return datetime.now(self._tz)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    Guarantees:
        ``now()`` returns the same value until ``set_time()``,
        ``set_today()`` or ``advance()`` is called.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._fixed_time = fixed_time or datetime(
            2026, 1, 15, 9, 0, 0, tzinfo=timezone.utc
        )

    def now(self) -> datetime:
        return self._fixed_time

    def set_time(self, time: datetime) -> None:
        self._fixed_time = time

    def set_today(self, day: date) -> None:
        """Move to ``day`` keeping the current time of day and timezone."""
        self._fixed_time = self._fixed_time.replace(
            year=day.year, month=day.month, day=day.day
        )

    def advance(self, days: int = 0, seconds: int = 0) -> None:
        self._fixed_time = self._fixed_time + timedelta(days=days, seconds=seconds)
