# marketplace/clock.py
"""Time sources.

All timestamps in the store are naive UTC. Components take a clock instead of
calling ``datetime.utcnow`` so that tests (and the sweep) can pin ``now``.
"""
from datetime import datetime, timedelta, timezone
from threading import Lock


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SystemClock:
    def now(self) -> datetime:
        return utcnow()


class FrozenClock:
    """A clock that only moves when told to."""

    def __init__(self, start: datetime = None):
        self._now = start or utcnow()
        self._lock = Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def set(self, value: datetime) -> None:
        with self._lock:
            self._now = value

    def advance(self, delta: timedelta = None, **kwargs) -> datetime:
        step = delta if delta is not None else timedelta(**kwargs)
        with self._lock:
            self._now = self._now + step
            return self._now
