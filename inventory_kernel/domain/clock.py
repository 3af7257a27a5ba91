"""
Clock -- where ledger and order timestamps come from.

Services take a Clock in their constructor and never read the wall clock
themselves.  Ledger history is ordered by ``created_at``, so both clocks
here hand out timestamps that never go backwards from one reading to the
next:

    SystemClock         wall-clock UTC, held at the last reading if the
                        system clock steps back (NTP correction, VM resume)
    DeterministicClock  fixed time for tests; moves only when told to, or by
                        ``step_seconds`` on every reading when that is set
"""

import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

DEFAULT_TEST_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """Source of timezone-aware UTC timestamps."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):

    def __init__(self):
        self._lock = threading.Lock()
        self._last: datetime | None = None

    def now(self) -> datetime:
        current = datetime.now(timezone.utc)
        with self._lock:
            if self._last is not None and current < self._last:
                return self._last
            self._last = current
            return current


class DeterministicClock(Clock):
    """
    Test clock.

    With the default ``step_seconds=0`` repeated ``now()`` calls return the
    same value, so a test can compare a stored timestamp against
    ``clock.now()``.  A positive step makes every reading one step later
    than the previous one, which gives each ledger entry appended in one
    call its own ``created_at``.
    """

    def __init__(self, fixed_time: datetime | None = None, step_seconds: int = 0):
        self._current = fixed_time or DEFAULT_TEST_TIME
        self.step_seconds = step_seconds

    def now(self) -> datetime:
        value = self._current
        if self.step_seconds:
            self._current += timedelta(seconds=self.step_seconds)
        return value

    def set_time(self, time: datetime) -> None:
        self._current = time

    def advance(self, seconds: int = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def tick(self) -> datetime:
        """Advance one second and return the new time."""
        self.advance(1)
        return self._current
