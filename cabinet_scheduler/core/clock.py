"""Clinic wall-clock helpers.

Appointment timestamps are stored as naive datetimes in the clinic timezone.
"""

from collections.abc import Callable
from datetime import datetime
from zoneinfo import ZoneInfo

from cabinet_scheduler.config import settings

Clock = Callable[[], datetime]


def clinic_now() -> datetime:
    """Current clinic-local time without tzinfo."""
    return datetime.now(ZoneInfo(settings.clinic_timezone)).replace(tzinfo=None)


def to_clinic_time(value: datetime) -> datetime:
    """Convert an aware datetime to naive clinic time; naive values pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone(ZoneInfo(settings.clinic_timezone)).replace(tzinfo=None)
