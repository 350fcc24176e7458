"""
Slot Generation

Splits a doctor's working window for one day into fixed-length slots and
marks each slot booked or free, considering:
- Working hours for the weekday
- Existing non-cancelled appointments
- Unavailability records (vacation, training, ...)
"""

from collections.abc import Iterable, Iterator
from datetime import date, datetime, timedelta

from cabinet_scheduler.scheduling.interval import TimeInterval, overlaps
from cabinet_scheduler.schemas.availability import TimeSlot, WorkingHours


def working_window(day: date, working_hours: WorkingHours) -> TimeInterval | None:
    """Opening interval of ``day`` or None when the doctor does not work that weekday."""
    hours = working_hours.for_day(day)
    if hours is None:
        return None
    return TimeInterval.for_day(day, hours.opens_at, hours.closes_at)


def iter_slots(
    day: date,
    slot_minutes: int,
    working_hours: WorkingHours,
    busy: Iterable[TimeInterval] = (),
    now: datetime | None = None,
) -> Iterator[TimeSlot]:
    """
    Generate the day's slots in chronological order.

    A trailing slot that would run past closing time is dropped. A slot is
    unavailable when it overlaps a busy interval or does not start after ``now``.
    """
    if slot_minutes <= 0:
        raise ValueError("Slot duration must be positive")

    window = working_window(day, working_hours)
    if window is None:
        return

    busy_intervals = list(busy)
    step = timedelta(minutes=slot_minutes)
    current = window.start

    while current + step <= window.end:
        slot = TimeInterval(current, current + step)
        available = not any(overlaps(slot, interval) for interval in busy_intervals)
        if now is not None and slot.start <= now:
            available = False

        yield TimeSlot(start=slot.start, end=slot.end, available=available)
        current = slot.end


def available_slots(
    day: date,
    slot_minutes: int,
    working_hours: WorkingHours,
    busy: Iterable[TimeInterval] = (),
    now: datetime | None = None,
) -> list[TimeSlot]:
    """Materialize :func:`iter_slots` for one day."""
    return list(iter_slots(day, slot_minutes, working_hours, busy, now))
