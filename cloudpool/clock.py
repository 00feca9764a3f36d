"""Time sources.

Anything that needs "now" takes a Clock instead of reading the wall clock,
so that tests can pin time with a FrozenClock.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Protocol, runtime_checkable

__all__ = ["Clock", "SystemClock", "FrozenClock", "utc"]


def utc(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, assuming UTC when no offset is given."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed


@runtime_checkable
class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(UTC)


@dataclass
class FrozenClock:
    """A clock that only moves when told to."""

    current: datetime
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False, compare=False)

    def now(self) -> datetime:
        with self._lock:
            return self.current

    def set(self, value: datetime) -> None:
        with self._lock:
            self.current = value

    def advance(self, delta: timedelta | float) -> datetime:
        if not isinstance(delta, timedelta):
            delta = timedelta(seconds=delta)
        with self._lock:
            self.current = self.current + delta
            return self.current
