"""
Injectable time source.

Services take a ``Clock`` in their constructor and never read the system
time themselves.  The certification date, and therefore the month bucket a
certification is counted in, is ``clock.today()`` at the moment the
transition commits.

``SystemClock`` is the only implementation that touches the real clock.
The other two exist so tests can pin or script time.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone


class Clock(ABC):
    """Source of timezone-aware timestamps; ``today()`` is the UTC date."""

    @abstractmethod
    def now(self) -> datetime:
        ...

    def now_utc(self) -> datetime:
        return self.now().astimezone(timezone.utc)

    def today(self) -> date:
        return self.now_utc().date()


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Frozen clock for tests.

    Time only moves when the test moves it: ``advance`` shifts by a number
    of seconds, ``tick`` shifts by one second and returns the new value,
    ``set_date`` jumps to noon UTC of a calendar day.
    """

    DEFAULT_START = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __init__(self, start: datetime | None = None):
        self._current = start or self.DEFAULT_START

    def now(self) -> datetime:
        return self._current

    def set_date(self, day: date) -> None:
        self._current = datetime(day.year, day.month, day.day, 12, tzinfo=timezone.utc)

    def advance(self, seconds: int = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def tick(self) -> datetime:
        self.advance(1)
        return self._current


class SequentialClock(Clock):
    """Replays a scripted list of timestamps, then sticks on the last one.

    Used to simulate a wall clock that jumps backwards between two reads.
    """

    def __init__(self, times: list[datetime]):
        if not times:
            raise ValueError("SequentialClock needs at least one timestamp")
        self._times = list(times)
        self._position = 0

    def now(self) -> datetime:
        value = self._times[min(self._position, len(self._times) - 1)]
        self._position += 1
        return value
