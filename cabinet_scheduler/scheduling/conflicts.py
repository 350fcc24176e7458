"""
Conflict Detection

Detects overlaps between a candidate booking and the existing appointments
of one actor (a doctor or a patient). Cancelled appointments never conflict.
A booking must pass the doctor-side and the patient-side check independently.
"""

from collections.abc import Iterable
from datetime import datetime, timedelta
from enum import Enum
from typing import Protocol

from cabinet_scheduler.scheduling.interval import TimeInterval, overlaps
from cabinet_scheduler.scheduling.status import AppointmentStatus
from cabinet_scheduler.schemas.appointments import MAX_DURATION_MINUTES, Appointment

# An appointment starting this long before the candidate can still reach into it.
LOOKBACK = timedelta(minutes=MAX_DURATION_MINUTES)


class ActorKind(str, Enum):
    """Scope of a conflict check."""

    DOCTOR = "doctor"
    PATIENT = "patient"


class ActiveAppointmentSource(Protocol):
    """Queries the detector needs from storage."""

    async def find_active_by_doctor(
        self, doctor_id: int, since: datetime, until: datetime
    ) -> list[Appointment]: ...

    async def find_active_by_patient(
        self, patient_id: int, since: datetime, until: datetime
    ) -> list[Appointment]: ...


def find_conflicts(
    appointments: Iterable[Appointment],
    candidate: TimeInterval,
    exclude_id: int | None = None,
) -> list[Appointment]:
    """
    Filter appointments colliding with a candidate interval.

    Args:
        appointments: Appointments of a single actor
        candidate: Interval being booked
        exclude_id: Appointment being moved, ignored to avoid self-conflict

    Returns:
        Colliding appointments in input order
    """
    return [
        appointment
        for appointment in appointments
        if appointment.status != AppointmentStatus.CANCELLED
        and appointment.id != exclude_id
        and overlaps(appointment.interval, candidate)
    ]


class ConflictDetector:
    """Per-actor conflict queries over the appointment store."""

    def __init__(self, source: ActiveAppointmentSource):
        """Initialize detector with an appointment source."""
        self.source = source

    async def _active_for(
        self, actor_kind: ActorKind, actor_id: int, candidate: TimeInterval
    ) -> list[Appointment]:
        since = candidate.start - LOOKBACK
        if actor_kind == ActorKind.DOCTOR:
            return await self.source.find_active_by_doctor(actor_id, since, candidate.end)
        return await self.source.find_active_by_patient(actor_id, since, candidate.end)

    async def has_conflict(
        self,
        actor_kind: ActorKind,
        actor_id: int,
        candidate: TimeInterval,
        exclude_id: int | None = None,
    ) -> bool:
        """Check whether the actor already holds part of the candidate interval."""
        for appointment in await self._active_for(actor_kind, actor_id, candidate):
            if find_conflicts([appointment], candidate, exclude_id):
                return True
        return False

    async def conflicts_for(
        self,
        actor_kind: ActorKind,
        actor_id: int,
        candidate: TimeInterval,
        exclude_id: int | None = None,
    ) -> list[Appointment]:
        """List the actor's appointments colliding with the candidate."""
        appointments = await self._active_for(actor_kind, actor_id, candidate)
        return find_conflicts(appointments, candidate, exclude_id)

    async def booking_conflicts(
        self,
        doctor_id: int,
        patient_id: int,
        candidate: TimeInterval,
        exclude_id: int | None = None,
    ) -> tuple[list[Appointment], list[Appointment]]:
        """
        Run the doctor-side and the patient-side check.

        Returns:
            Tuple of (doctor conflicts, patient conflicts)
        """
        doctor_conflicts = await self.conflicts_for(
            ActorKind.DOCTOR, doctor_id, candidate, exclude_id
        )
        patient_conflicts = await self.conflicts_for(
            ActorKind.PATIENT, patient_id, candidate, exclude_id
        )
        return doctor_conflicts, patient_conflicts


def merge_conflicts(*groups: list[Appointment]) -> list[Appointment]:
    """Union of conflict lists without duplicates, ordered by start time."""
    seen: dict[int, Appointment] = {}
    for group in groups:
        for appointment in group:
            seen.setdefault(appointment.id, appointment)
    return sorted(seen.values(), key=lambda appointment: (appointment.start_at, appointment.id))
