"""Half-open time intervals and the overlap test."""

from datetime import date, datetime, time, timedelta
from typing import NamedTuple


class TimeInterval(NamedTuple):
    """Occupied time range ``[start, end)``."""

    start: datetime
    end: datetime

    @classmethod
    def from_duration(cls, start: datetime, duration_minutes: int) -> "TimeInterval":
        """Build an interval from a start and a length in minutes."""
        if duration_minutes <= 0:
            raise ValueError("Interval duration must be positive")
        return cls(start, start + timedelta(minutes=duration_minutes))

    @classmethod
    def for_day(cls, day: date, opens_at: time = time.min, closes_at: time | None = None) -> "TimeInterval":
        """Interval covering ``day`` between two wall-clock times (whole day by default)."""
        start = datetime.combine(day, opens_at)
        if closes_at is None:
            end = datetime.combine(day + timedelta(days=1), time.min)
        else:
            end = datetime.combine(day, closes_at)
        return cls(start, end)

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


def overlaps(a: TimeInterval, b: TimeInterval) -> bool:
    """
    Check whether two half-open intervals share at least one instant.

    Intervals that only touch (``a.end == b.start``) do not overlap.
    """
    return a.start < b.end and b.start < a.end
