"""
Time source and datetime helpers
"""

from datetime import datetime, timezone
from typing import Optional


class Clock:
    """Supplies the current instant. Swapped for a fixed clock in tests."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock(Clock):
    """Clock frozen at a given instant; call `advance` to move it."""

    def __init__(self, instant: datetime):
        self.instant = as_utc(instant)

    def now(self) -> datetime:
        return self.instant

    def advance(self, delta) -> datetime:
        self.instant = self.instant + delta
        return self.instant


system_clock = Clock()


def get_clock() -> Clock:
    return system_clock


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops the offset on read)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def add_years(value: datetime, years: int) -> datetime:
    # 29 Feb rolls over to 1 Mar
    try:
        return value.replace(year=value.year + years)
    except ValueError:
        return value.replace(year=value.year + years, month=3, day=1)
