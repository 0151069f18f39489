"""Clock implementations injected into the scheduler and deck controller."""

from datetime import datetime, timedelta, timezone


def ensure_utc(ts: datetime) -> datetime:
    """Ensures the given datetime is UTC. Assumes UTC if naive."""
    if ts.tzinfo is None or ts.tzinfo.utcoffset(ts) is None:
        return ts.replace(tzinfo=timezone.utc)
    if ts.tzinfo != timezone.utc:
        return ts.astimezone(timezone.utc)
    return ts


class SystemClock:
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """
    A clock frozen at a given instant until explicitly moved.

    Used in tests and for replaying study sessions deterministically.
    """

    def __init__(self, current: datetime):
        self._current = ensure_utc(current)

    def now(self) -> datetime:
        return self._current

    def advance(self, delta: timedelta) -> datetime:
        """Move the clock forward by `delta` and return the new time."""
        self._current = self._current + delta
        return self._current
