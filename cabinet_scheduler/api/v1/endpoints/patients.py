"""Patient agenda endpoints."""

from fastapi import APIRouter, Query, status

from cabinet_scheduler.dependencies import Appointments, CurrentCaller
from cabinet_scheduler.schemas.appointments import AppointmentResponse

router = APIRouter()


@router.get(
    "/{patient_id}/upcoming",
    response_model=list[AppointmentResponse],
    status_code=status.HTTP_200_OK,
    tags=["Patients"],
    summary="Get the patient's upcoming appointments",
)
async def get_upcoming(
    patient_id: int,
    caller: CurrentCaller,
    service: Appointments,
    limit: int | None = Query(None, ge=1, le=100),
) -> list[AppointmentResponse]:
    """Open appointments of the patient that have not started yet, soonest first."""
    return await service.upcoming_for_patient(patient_id, caller, limit)


@router.get(
    "/{patient_id}/next",
    response_model=AppointmentResponse | None,
    status_code=status.HTTP_200_OK,
    tags=["Patients"],
    summary="Get the patient's next appointment",
)
async def get_next_appointment(
    patient_id: int,
    caller: CurrentCaller,
    service: Appointments,
) -> AppointmentResponse | None:
    """Next open appointment of the patient, or null."""
    return await service.next_for_patient(patient_id, caller)
