"""Time sources used by the authentication and token services."""

from datetime import UTC, datetime, timedelta


class Clock:
    """Wall clock returning timezone-aware UTC datetimes."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class ManualClock(Clock):
    """Clock that only moves when told to.

    Used to drive lockout and token expiry deterministically.
    """

    def __init__(self, start: datetime | None = None):
        self._now = start or datetime.now(UTC)

    def now(self) -> datetime:
        return self._now

    def advance(self, delta: timedelta) -> datetime:
        self._now = self._now + delta
        return self._now

    def set(self, value: datetime) -> None:
        if value.tzinfo is None:
            raise ValueError("ManualClock requires a timezone-aware datetime")
        self._now = value


system_clock = Clock()
