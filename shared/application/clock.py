"""
Clock abstraction

Application services never call datetime.now() directly; they receive a
Clock so tests can pin the current time.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta

from shared.domain.base import utcnow


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Current timezone-aware time"""


class SystemClock(Clock):
    def now(self) -> datetime:
        return utcnow()


class FixedClock(Clock):
    """Clock frozen at a given instant, movable by tests"""

    def __init__(self, moment: datetime):
        if moment.tzinfo is None:
            raise ValueError("FixedClock requires a timezone-aware datetime")
        self._moment = moment

    def now(self) -> datetime:
        return self._moment

    def advance(self, delta: timedelta) -> None:
        self._moment = self._moment + delta

    def set(self, moment: datetime) -> None:
        self._moment = moment
