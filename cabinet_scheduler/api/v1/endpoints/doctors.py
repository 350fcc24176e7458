"""Doctor agenda endpoints: slots, alternatives, hours, unavailability and dashboard."""

from datetime import date

from fastapi import APIRouter, Query, status

from cabinet_scheduler.core.exceptions import ForbiddenException
from cabinet_scheduler.dependencies import Appointments, CurrentCaller, Schedules
from cabinet_scheduler.schemas.appointments import (
    MAX_DURATION_MINUTES,
    MIN_DURATION_MINUTES,
    AppointmentResponse,
    AppointmentStats,
    DoctorDashboard,
)
from cabinet_scheduler.schemas.auth import Caller, Role
from cabinet_scheduler.schemas.availability import (
    AvailableSlotsResponse,
    TimeSlot,
    UnavailabilityCreate,
    UnavailabilityResponse,
    WorkingHours,
    WorkingHoursResponse,
)

router = APIRouter()


def _ensure_agenda_owner(doctor_id: int, caller: Caller) -> None:
    if caller.is_staff:
        return
    if caller.role == Role.DOCTOR and caller.user_id == doctor_id:
        return
    raise ForbiddenException("Only staff or the doctor can change this agenda")


@router.get(
    "/{doctor_id}/available-slots",
    response_model=AvailableSlotsResponse,
    status_code=status.HTTP_200_OK,
    tags=["Doctors"],
    summary="Get a doctor's slots for one day",
)
async def get_available_slots(
    doctor_id: int,
    caller: CurrentCaller,
    service: Appointments,
    day: date = Query(..., alias="date"),
    duration: int | None = Query(None, ge=MIN_DURATION_MINUTES, le=MAX_DURATION_MINUTES),
) -> AvailableSlotsResponse:
    """
    Get the doctor's slots for a day.

    Slots overlapping a booking or blocked period, and slots that already
    started, are returned with ``available = false``.
    """
    duration_minutes = duration or service.settings.default_slot_minutes
    slots = await service.available_slots(doctor_id, day, duration_minutes)
    return AvailableSlotsResponse(
        doctor_id=doctor_id,
        date=day,
        duration_minutes=duration_minutes,
        total_slots=len(slots),
        available_count=sum(1 for slot in slots if slot.available),
        slots=slots,
    )


@router.get(
    "/{doctor_id}/alternatives",
    response_model=list[TimeSlot],
    status_code=status.HTTP_200_OK,
    tags=["Doctors"],
    summary="Suggest free slots",
)
async def get_alternatives(
    doctor_id: int,
    caller: CurrentCaller,
    service: Appointments,
    day: date = Query(..., alias="date"),
    duration: int = Query(30, ge=MIN_DURATION_MINUTES, le=MAX_DURATION_MINUTES),
    limit: int | None = Query(None, ge=1, le=50),
) -> list[TimeSlot]:
    """Next free slots of the doctor on or after the given date."""
    return await service.suggest_alternatives(doctor_id, day, duration, limit)


@router.get(
    "/{doctor_id}/working-hours",
    response_model=WorkingHoursResponse,
    status_code=status.HTTP_200_OK,
    tags=["Doctors"],
    summary="Get a doctor's working hours",
)
async def get_working_hours(
    doctor_id: int,
    caller: CurrentCaller,
    schedules: Schedules,
) -> WorkingHoursResponse:
    """Weekly hours of the doctor, or the clinic default when none are set."""
    return await schedules.get_working_hours(doctor_id)


@router.put(
    "/{doctor_id}/working-hours",
    response_model=WorkingHoursResponse,
    status_code=status.HTTP_200_OK,
    tags=["Doctors"],
    summary="Replace a doctor's working hours",
)
async def set_working_hours(
    doctor_id: int,
    data: WorkingHours,
    caller: CurrentCaller,
    schedules: Schedules,
) -> WorkingHoursResponse:
    """
    Replace the doctor's weekly hours.

    An empty ``days`` list reverts the doctor to the clinic default.
    """
    _ensure_agenda_owner(doctor_id, caller)
    return await schedules.set_working_hours(doctor_id, data)


@router.post(
    "/{doctor_id}/unavailability",
    response_model=UnavailabilityResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Doctors"],
    summary="Block a period of the doctor's time",
)
async def add_unavailability(
    doctor_id: int,
    data: UnavailabilityCreate,
    caller: CurrentCaller,
    schedules: Schedules,
) -> UnavailabilityResponse:
    """Record a vacation, training or other absence."""
    _ensure_agenda_owner(doctor_id, caller)
    return await schedules.add_unavailability(doctor_id, data)


@router.get(
    "/{doctor_id}/today",
    response_model=list[AppointmentResponse],
    status_code=status.HTTP_200_OK,
    tags=["Doctors"],
    summary="Get today's appointments",
)
async def get_today(
    doctor_id: int,
    caller: CurrentCaller,
    service: Appointments,
) -> list[AppointmentResponse]:
    """Non-cancelled appointments of the doctor starting today."""
    return await service.today_for_doctor(doctor_id, caller)


@router.get(
    "/{doctor_id}/next",
    response_model=AppointmentResponse | None,
    status_code=status.HTTP_200_OK,
    tags=["Doctors"],
    summary="Get the doctor's next appointment",
)
async def get_next_appointment(
    doctor_id: int,
    caller: CurrentCaller,
    service: Appointments,
) -> AppointmentResponse | None:
    """Next open appointment of the doctor, or null."""
    return await service.next_for_doctor(doctor_id, caller)


@router.get(
    "/{doctor_id}/stats",
    response_model=AppointmentStats,
    status_code=status.HTTP_200_OK,
    tags=["Doctors"],
    summary="Get the doctor's appointment statistics",
)
async def get_doctor_stats(
    doctor_id: int,
    caller: CurrentCaller,
    service: Appointments,
) -> AppointmentStats:
    """Counts per status, today, this month and the busiest hours of one doctor."""
    return await service.stats(doctor_id, caller)


@router.get(
    "/{doctor_id}/dashboard",
    response_model=DoctorDashboard,
    status_code=status.HTTP_200_OK,
    tags=["Doctors"],
    summary="Get the doctor's dashboard",
)
async def get_dashboard(
    doctor_id: int,
    caller: CurrentCaller,
    service: Appointments,
) -> DoctorDashboard:
    """
    Get the doctor's dashboard.

    Includes statistics, today's and this week's appointments, the next
    appointment, overdue appointments and tomorrow's free slot count.
    """
    return await service.doctor_dashboard(doctor_id, caller)
