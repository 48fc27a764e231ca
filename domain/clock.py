"""Clock abstraction used for every timestamp the core produces."""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, date, time
from typing import Optional


def local_now() -> datetime:
    """Current local time, timezone-aware, truncated to whole seconds."""
    return datetime.now().astimezone().replace(microsecond=0)


def end_of_day(day: date) -> datetime:
    """23:59:59 local time on the given civil day."""
    return datetime.combine(day, time(23, 59, 59)).astimezone()


def start_of_day(day: date) -> datetime:
    """Local midnight at the start of the given civil day."""
    return datetime.combine(day, time.min).astimezone()


class Clock(ABC):
    """Source of the current instant."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current local time as an aware datetime."""
        pass

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    """Wall clock."""

    def now(self) -> datetime:
        return local_now()


class FixedClock(Clock):
    """A clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        start = start or local_now()
        if start.tzinfo is None:
            start = start.astimezone()
        self._now = start.replace(microsecond=0)

    def now(self) -> datetime:
        return self._now

    def set(self, moment: datetime) -> None:
        if moment.tzinfo is None:
            moment = moment.astimezone()
        self._now = moment.replace(microsecond=0)

    def advance(self, **kwargs) -> datetime:
        """Move forward by a timedelta built from kwargs (hours=25, days=1, ...)."""
        self._now = self._now + timedelta(**kwargs)
        return self._now
