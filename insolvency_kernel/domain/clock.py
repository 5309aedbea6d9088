"""
Clock -- the ledger's only source of "now".

Responsibility:
    Stamps recorded_at on transactions, declared_at on distributions and
    created_at on activity entries.  Services take a Clock at construction
    and never read the system time themselves, so a test can pin every
    timestamp a case produces.

Architecture position:
    Kernel > Domain.  SystemClock is the single place wall-clock time enters
    the kernel.

Invariants enforced:
    - now() is always timezone-aware UTC.  Naive inputs are taken as UTC.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

DEFAULT_TEST_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def to_utc(moment: datetime) -> datetime:
    """Attach UTC to a naive datetime; convert an aware one to UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Current instant, UTC."""


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock that only moves when told to.

    Repeated now() calls return the same instant, so records stamped
    within one test step share a timestamp and are ordered by seq alone.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._current = to_utc(fixed_time or DEFAULT_TEST_TIME)

    def now(self) -> datetime:
        return self._current

    def set_time(self, moment: datetime) -> None:
        self._current = to_utc(moment)

    def advance(self, seconds: float = 1, **delta: float) -> datetime:
        """Move forward by ``seconds`` plus any timedelta keywords (days=, hours=)."""
        step = timedelta(seconds=seconds, **delta)
        if step < timedelta(0):
            raise ValueError("DeterministicClock cannot move backwards")
        self._current += step
        return self._current

    def tick(self) -> datetime:
        return self.advance(1)
