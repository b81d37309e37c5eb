"""Clock implementations: system time and a controllable clock for tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone


def ensure_utc(value: datetime) -> datetime:
    """Return *value* as an aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SystemClock:
    """Reads the wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FrozenClock:
    """
    A clock that only moves when told to.

    Usage::

        clock = FrozenClock(datetime(2024, 1, 1, tzinfo=timezone.utc))
        clock.advance(timedelta(hours=2))
    """

    def __init__(self, start: datetime | None = None) -> None:
        self._now = ensure_utc(start) if start else datetime.now(timezone.utc)

    def now(self) -> datetime:
        return self._now

    def set(self, value: datetime) -> None:
        self._now = ensure_utc(value)

    def advance(self, delta: timedelta) -> datetime:
        """Move the clock forward by *delta* and return the new instant."""
        self._now = self._now + delta
        return self._now
