"""Appointment schemas for request/response validation."""

from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator

from cabinet_scheduler.core.clock import to_clinic_time
from cabinet_scheduler.scheduling import derived
from cabinet_scheduler.scheduling.interval import TimeInterval
from cabinet_scheduler.scheduling.status import AppointmentStatus, possible_transitions
from cabinet_scheduler.schemas.availability import TimeSlot

MIN_DURATION_MINUTES = 15
MAX_DURATION_MINUTES = 480
DEFAULT_DURATION_MINUTES = 30


class AppointmentBase(BaseModel):
    """Stored appointment fields."""

    id: int
    patient_id: int
    doctor_id: int
    start_at: datetime
    duration_minutes: int
    status: AppointmentStatus
    reason: str | None = None
    notes: str | None = None
    cancellation_reason: str | None = None
    cancelled_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class Appointment(AppointmentBase):
    """Appointment as read from storage."""

    @property
    def end_at(self) -> datetime:
        return derived.end_of(self.start_at, self.duration_minutes)

    @property
    def interval(self) -> TimeInterval:
        return TimeInterval(self.start_at, self.end_at)


class ConflictingAppointment(BaseModel):
    """Booked range of an appointment the caller is not a party to."""

    id: int
    doctor_id: int
    start_at: datetime
    end_at: datetime

    @classmethod
    def from_appointment(cls, appointment: Appointment) -> "ConflictingAppointment":
        return cls(
            id=appointment.id,
            doctor_id=appointment.doctor_id,
            start_at=appointment.start_at,
            end_at=appointment.end_at,
        )


class AppointmentCreate(BaseModel):
    """Schema for booking a new appointment."""

    doctor_id: int = Field(..., gt=0)
    patient_id: int | None = Field(
        None,
        gt=0,
        description="Defaults to the authenticated patient",
    )
    start_at: datetime
    duration_minutes: int = Field(
        default=DEFAULT_DURATION_MINUTES,
        ge=MIN_DURATION_MINUTES,
        le=MAX_DURATION_MINUTES,
    )
    reason: str | None = Field(None, max_length=500)
    notes: str | None = Field(None, max_length=1000)

    @field_validator("start_at")
    @classmethod
    def normalize_start(cls, v: datetime) -> datetime:
        """Store start times in clinic wall-clock time."""
        return to_clinic_time(v)


class AppointmentUpdate(BaseModel):
    """Schema for updating an existing appointment."""

    start_at: datetime | None = None
    duration_minutes: int | None = Field(
        None,
        ge=MIN_DURATION_MINUTES,
        le=MAX_DURATION_MINUTES,
    )
    reason: str | None = Field(None, max_length=500)
    notes: str | None = Field(None, max_length=1000)

    @field_validator("start_at")
    @classmethod
    def normalize_start(cls, v: datetime | None) -> datetime | None:
        """Store start times in clinic wall-clock time."""
        return to_clinic_time(v) if v else v


class AppointmentStatusUpdate(BaseModel):
    """Schema for updating appointment status."""

    status: AppointmentStatus
    notes: str | None = Field(None, max_length=1000)


class AppointmentCancel(BaseModel):
    """Schema for cancelling an appointment."""

    reason: str | None = Field(None, max_length=500)


class AppointmentResponse(AppointmentBase):
    """Appointment with read-side fields computed at serialization time."""

    end_at: datetime
    is_upcoming: bool
    is_today: bool
    is_modifiable: bool
    is_cancellable: bool
    is_overdue: bool
    duration_label: str
    possible_transitions: list[AppointmentStatus]

    @classmethod
    def from_appointment(cls, appointment: Appointment, now: datetime) -> "AppointmentResponse":
        """Compute derived fields against ``now``."""
        start_at = appointment.start_at
        status = appointment.status
        return cls(
            **appointment.model_dump(),
            end_at=appointment.end_at,
            is_upcoming=derived.is_upcoming(start_at, now),
            is_today=derived.is_today(start_at, now),
            is_modifiable=derived.is_modifiable(status, start_at, now),
            is_cancellable=derived.is_cancellable(status, start_at, now),
            is_overdue=derived.is_overdue(status, start_at, now),
            duration_label=derived.format_duration(appointment.duration_minutes),
            possible_transitions=possible_transitions(status),
        )


class AppointmentListResponse(BaseModel):
    """Schema for paginated appointment list response."""

    total: int
    page: int
    page_size: int
    items: list[AppointmentResponse]


class AppointmentFilters(BaseModel):
    """Schema for appointment filtering."""

    status: AppointmentStatus | None = None
    doctor_id: int | None = None
    patient_id: int | None = None
    from_date: datetime | None = None
    to_date: datetime | None = None
    search: str | None = Field(None, min_length=1, max_length=100)
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)


class ConflictCheckRequest(BaseModel):
    """Schema for a dry-run conflict check."""

    doctor_id: int = Field(..., gt=0)
    patient_id: int = Field(..., gt=0)
    start_at: datetime
    duration_minutes: int = Field(
        default=DEFAULT_DURATION_MINUTES,
        ge=MIN_DURATION_MINUTES,
        le=MAX_DURATION_MINUTES,
    )
    exclude_appointment_id: int | None = None

    @field_validator("start_at")
    @classmethod
    def normalize_start(cls, v: datetime) -> datetime:
        """Store start times in clinic wall-clock time."""
        return to_clinic_time(v)


class ConflictCheckResponse(BaseModel):
    """Result of a dry-run conflict check."""

    has_conflicts: bool
    doctor_conflict: bool
    patient_conflict: bool
    conflicting_appointments: list[Appointment | ConflictingAppointment]
    suggested_alternatives: list[TimeSlot]


class PopularHour(BaseModel):
    """Number of bookings starting in one hour of the day."""

    hour: int
    count: int


class AppointmentStats(BaseModel):
    """Appointment counts for the whole practice or one doctor."""

    doctor_id: int | None = None
    total: int
    by_status: dict[str, int]
    today: int
    this_month: int
    popular_hours: list[PopularHour]


class DoctorDashboard(BaseModel):
    """A doctor's day at a glance."""

    doctor_id: int
    date: date
    stats: AppointmentStats
    today: list[AppointmentResponse]
    week: list[AppointmentResponse]
    next_appointment: AppointmentResponse | None
    overdue: list[AppointmentResponse]
    active_count: int
    tomorrow_available_slots: int
