"""
Clock abstraction.

The sweep and the risk engine ask a Clock for "now" so tests can pin time
instead of waiting on it. All values are naive UTC.
"""

from datetime import datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock time in naive UTC."""

    def now(self) -> datetime:
        return datetime.utcnow()


class FixedClock:
    """A clock that only moves when told to."""

    def __init__(self, at: datetime):
        self._at = at

    def now(self) -> datetime:
        return self._at

    def set(self, at: datetime) -> None:
        self._at = at

    def advance(self, **kwargs) -> None:
        self._at = self._at + timedelta(**kwargs)
