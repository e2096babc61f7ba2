"""
clock.py — Time source for day and week boundaries.

Engines ask the clock for `now()` once per operation and derive "today" and
"this week" from that single instant, so a test can pin every boundary with
FixedClock.
"""

import os
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo

KEEPER_TIMEZONE: str = os.getenv("KEEPER_TIMEZONE", "UTC")


class SystemClock:
    """Wall clock. `tz` decides where local midnight falls."""

    def __init__(self, tz: tzinfo | None = None) -> None:
        self.tz = tz or ZoneInfo(KEEPER_TIMEZONE)

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def local_date(self, instant: datetime) -> date:
        return instant.astimezone(self.tz).date()

    def local_midnight(self, day: date) -> int:
        """Epoch seconds of 00:00 local time on `day`."""
        return int(datetime.combine(day, time(0, 0), tzinfo=self.tz).timestamp())


class FixedClock(SystemClock):
    """Clock frozen at one instant (tests, replays)."""

    def __init__(self, instant: datetime, tz: tzinfo | None = None) -> None:
        super().__init__(tz or timezone.utc)
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        self._instant = instant

    def now(self) -> datetime:
        return self._instant


# ---------------------------------------------------------------------------
# Calendar helpers
# ---------------------------------------------------------------------------

def date_key(day: date) -> str:
    return day.strftime("%Y-%m-%d")


def parse_date_key(key: str) -> date:
    return datetime.strptime(key, "%Y-%m-%d").date()


def week_start(day: date) -> date:
    """Most recent Sunday on or before `day`."""
    days_since_sunday = (day.weekday() + 1) % 7
    return day - timedelta(days=days_since_sunday)


def days_remaining_in_week(day: date) -> int:
    """Whole calendar days left after `day` until the week ends on Saturday."""
    days_since_sunday = (day.weekday() + 1) % 7
    return max(6 - days_since_sunday, 0)


def utc_day_start(instant: datetime) -> int:
    """Epoch seconds of UTC midnight for the day containing `instant`."""
    ts = int(instant.timestamp())
    return (ts // 86400) * 86400
