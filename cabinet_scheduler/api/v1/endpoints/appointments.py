"""Appointment endpoints."""

from datetime import datetime

from fastapi import APIRouter, Query, status

from cabinet_scheduler.dependencies import Appointments, CurrentCaller
from cabinet_scheduler.scheduling.status import AppointmentStatus
from cabinet_scheduler.schemas.appointments import (
    AppointmentCancel,
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStats,
    AppointmentStatusUpdate,
    AppointmentUpdate,
    ConflictCheckRequest,
    ConflictCheckResponse,
)

router = APIRouter()


@router.post(
    "/",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Appointments"],
    summary="Book new appointment",
)
async def create_appointment(
    data: AppointmentCreate,
    caller: CurrentCaller,
    service: Appointments,
) -> AppointmentResponse:
    """
    Book a new appointment.

    Patients book for themselves; staff and doctors name the patient.

    Raises:
        HTTPException: 409 with conflicting appointments and alternatives
            when the doctor or the patient is already booked
    """
    return await service.create(data, caller)


@router.get(
    "/",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="List appointments",
)
async def list_appointments(
    caller: CurrentCaller,
    service: Appointments,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    doctor_id: int | None = Query(None),
    patient_id: int | None = Query(None),
    from_date: datetime | None = Query(None),
    to_date: datetime | None = Query(None),
    search: str | None = Query(None, min_length=1, max_length=100),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> AppointmentListResponse:
    """
    List appointments visible to the caller with filtering.

    Args:
        caller: Authenticated caller
        service: Appointment service
        status_filter: Filter by status
        doctor_id: Filter by doctor ID
        patient_id: Filter by patient ID
        from_date: Appointments starting at or after
        to_date: Appointments starting at or before
        search: Case-insensitive text to find in the reason
        page: Page number
        page_size: Items per page

    Returns:
        Paginated list of appointments
    """
    filters = AppointmentFilters(
        status=status_filter,
        doctor_id=doctor_id,
        patient_id=patient_id,
        from_date=from_date,
        to_date=to_date,
        search=search,
        page=page,
        page_size=page_size,
    )
    return await service.list_appointments(filters, caller)


@router.post(
    "/check-conflicts",
    response_model=ConflictCheckResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Check a prospective booking",
)
async def check_conflicts(
    data: ConflictCheckRequest,
    caller: CurrentCaller,
    service: Appointments,
) -> ConflictCheckResponse:
    """Report doctor and patient conflicts for a range without booking it."""
    return await service.check_conflicts(data, caller)


@router.get(
    "/stats",
    response_model=AppointmentStats,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Practice-wide appointment statistics",
)
async def get_appointment_stats(
    caller: CurrentCaller,
    service: Appointments,
) -> AppointmentStats:
    """Counts per status, today, this month and the busiest hours (staff only)."""
    return await service.stats(caller=caller)


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: int,
    caller: CurrentCaller,
    service: Appointments,
) -> AppointmentResponse:
    """
    Get a specific appointment by ID.

    Raises:
        HTTPException: If appointment not found or access denied
    """
    return await service.get(appointment_id, caller)


@router.put(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Update appointment",
)
async def update_appointment(
    appointment_id: int,
    data: AppointmentUpdate,
    caller: CurrentCaller,
    service: Appointments,
) -> AppointmentResponse:
    """
    Update an existing appointment.

    A new ``start_at`` or ``duration_minutes`` reschedules it.

    Raises:
        HTTPException: If appointment not found, not modifiable or the
            new time conflicts
    """
    return await service.update(appointment_id, data, caller)


@router.patch(
    "/{appointment_id}/status",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Update appointment status",
)
async def update_appointment_status(
    appointment_id: int,
    data: AppointmentStatusUpdate,
    caller: CurrentCaller,
    service: Appointments,
) -> AppointmentResponse:
    """
    Move an appointment along its lifecycle (confirm, start, complete...).

    Raises:
        HTTPException: 409 if the lifecycle does not allow the change
    """
    return await service.transition_status(appointment_id, data.status, caller, data.notes)


@router.post(
    "/{appointment_id}/cancel",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Cancel appointment",
)
async def cancel_appointment(
    appointment_id: int,
    caller: CurrentCaller,
    service: Appointments,
    data: AppointmentCancel | None = None,
) -> AppointmentResponse:
    """Cancel an appointment with an optional reason."""
    reason = data.reason if data else None
    return await service.cancel(appointment_id, reason, caller)


@router.delete(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Cancel appointment",
)
async def delete_appointment(
    appointment_id: int,
    caller: CurrentCaller,
    service: Appointments,
) -> AppointmentResponse:
    """
    Cancel an appointment.

    Appointments are never removed here; the record is kept as cancelled.
    """
    return await service.cancel(appointment_id, None, caller)
