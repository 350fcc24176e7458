"""Read-side values computed from stored appointment fields."""

from datetime import datetime, timedelta

from cabinet_scheduler.scheduling import status as lifecycle
from cabinet_scheduler.scheduling.status import AppointmentStatus


def end_of(start_at: datetime, duration_minutes: int) -> datetime:
    return start_at + timedelta(minutes=duration_minutes)


def is_upcoming(start_at: datetime, now: datetime) -> bool:
    return start_at > now


def is_today(start_at: datetime, now: datetime) -> bool:
    return start_at.date() == now.date()


def is_modifiable(status: AppointmentStatus, start_at: datetime, now: datetime) -> bool:
    """Status allows edits and the appointment has not started yet."""
    return lifecycle.is_modifiable(status) and is_upcoming(start_at, now)


def is_cancellable(status: AppointmentStatus, start_at: datetime, now: datetime) -> bool:
    """Status allows cancellation and the appointment has not started yet."""
    return lifecycle.is_cancellable(status) and is_upcoming(start_at, now)


def is_overdue(status: AppointmentStatus, start_at: datetime, now: datetime) -> bool:
    """Start time has passed but nobody moved the appointment forward."""
    return (
        start_at < now
        and not lifecycle.is_final(status)
        and AppointmentStatus(status) != AppointmentStatus.IN_PROGRESS
    )


def format_duration(duration_minutes: int | None) -> str:
    """
    Human readable duration.

    Examples: ``45 minutes``, ``1 hour``, ``2 hours``, ``1h30``.
    """
    if duration_minutes is None:
        return "Not specified"
    if duration_minutes < 60:
        return f"{duration_minutes} minutes"

    hours, minutes = divmod(duration_minutes, 60)
    if minutes == 0:
        return f"{hours} hour" + ("s" if hours > 1 else "")
    return f"{hours}h{minutes:02d}"
