"""
Appointment status machine.

The status type only names the states; the legal moves between them live in
``ALLOWED_TRANSITIONS``. Every status change in the service goes through
``ensure_transition``.
"""

from enum import Enum

from cabinet_scheduler.core.exceptions import InvalidTransitionException


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    RESCHEDULED = "rescheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"
    POSTPONED = "postponed"


ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset(
        {
            AppointmentStatus.CONFIRMED,
            AppointmentStatus.CANCELLED,
            AppointmentStatus.RESCHEDULED,
        }
    ),
    AppointmentStatus.CONFIRMED: frozenset(
        {
            AppointmentStatus.IN_PROGRESS,
            AppointmentStatus.CANCELLED,
            AppointmentStatus.RESCHEDULED,
            AppointmentStatus.NO_SHOW,
        }
    ),
    AppointmentStatus.RESCHEDULED: frozenset(
        {
            AppointmentStatus.CONFIRMED,
            AppointmentStatus.CANCELLED,
        }
    ),
    AppointmentStatus.IN_PROGRESS: frozenset(
        {
            AppointmentStatus.COMPLETED,
            AppointmentStatus.POSTPONED,
        }
    ),
    AppointmentStatus.POSTPONED: frozenset(
        {
            AppointmentStatus.CONFIRMED,
            AppointmentStatus.CANCELLED,
        }
    ),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.NO_SHOW: frozenset(),
}

INITIAL_STATUSES = frozenset({AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED})

FINAL_STATUSES = frozenset(
    {
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    }
)

MODIFIABLE_STATUSES = frozenset(
    {
        AppointmentStatus.PENDING,
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.RESCHEDULED,
    }
)


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    """Check whether the lifecycle allows moving from ``current`` to ``target``."""
    return target in ALLOWED_TRANSITIONS[AppointmentStatus(current)]


def possible_transitions(status: AppointmentStatus) -> list[AppointmentStatus]:
    """Statuses reachable in one step, in declaration order."""
    allowed = ALLOWED_TRANSITIONS[AppointmentStatus(status)]
    return [candidate for candidate in AppointmentStatus if candidate in allowed]


def is_modifiable(status: AppointmentStatus) -> bool:
    """Check whether time, reason or notes may still change."""
    return AppointmentStatus(status) in MODIFIABLE_STATUSES


def is_cancellable(status: AppointmentStatus) -> bool:
    """Check whether the appointment may still be cancelled."""
    return AppointmentStatus(status) in MODIFIABLE_STATUSES


def is_final(status: AppointmentStatus) -> bool:
    """Check whether the lifecycle is over."""
    return AppointmentStatus(status) in FINAL_STATUSES


def ensure_transition(current: AppointmentStatus, target: AppointmentStatus) -> AppointmentStatus:
    """
    Validate a status change.

    Args:
        current: Status the appointment is in
        target: Requested status

    Returns:
        The target status

    Raises:
        InvalidTransitionException: If the lifecycle has no such edge
    """
    current = AppointmentStatus(current)
    target = AppointmentStatus(target)
    if not can_transition(current, target):
        raise InvalidTransitionException(current, target)
    return target
