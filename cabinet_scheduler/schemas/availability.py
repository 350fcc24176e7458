"""Availability schemas: slots, working hours and unavailability."""

from datetime import date, datetime, time

from pydantic import BaseModel, Field, field_validator, model_validator

from cabinet_scheduler.core.clock import to_clinic_time


class TimeSlot(BaseModel):
    """A fixed-length slot of a doctor's working day."""

    start: datetime
    end: datetime
    available: bool


class AvailableSlotsResponse(BaseModel):
    """Schema for a doctor's slots on one day."""

    doctor_id: int
    date: date
    duration_minutes: int
    total_slots: int
    available_count: int
    slots: list[TimeSlot]


class DayHours(BaseModel):
    """Opening window for one weekday (0 = Monday)."""

    weekday: int = Field(..., ge=0, le=6)
    opens_at: time
    closes_at: time

    @model_validator(mode="after")
    def validate_window(self) -> "DayHours":
        """Validate closing time is after opening time."""
        if self.closes_at <= self.opens_at:
            raise ValueError("Closing time must be after opening time")
        return self


class WorkingHours(BaseModel):
    """Weekly working hours; weekdays without an entry are closed."""

    days: list[DayHours] = Field(default_factory=list)

    @field_validator("days")
    @classmethod
    def validate_unique_weekdays(cls, v: list[DayHours]) -> list[DayHours]:
        """Allow at most one window per weekday."""
        weekdays = [day.weekday for day in v]
        if len(weekdays) != len(set(weekdays)):
            raise ValueError("Each weekday may appear only once")
        return sorted(v, key=lambda day: day.weekday)

    def for_day(self, day: date) -> DayHours | None:
        """Get the window that applies to ``day``, if any."""
        for hours in self.days:
            if hours.weekday == day.weekday():
                return hours
        return None

    @classmethod
    def uniform(cls, weekdays: frozenset[int] | set[int], opens_at: time, closes_at: time) -> "WorkingHours":
        """Same window on every listed weekday."""
        return cls(
            days=[
                DayHours(weekday=weekday, opens_at=opens_at, closes_at=closes_at)
                for weekday in sorted(weekdays)
            ]
        )


class WorkingHoursResponse(WorkingHours):
    """Schema for a doctor's working hours."""

    doctor_id: int
    is_default: bool


class UnavailabilityCreate(BaseModel):
    """Schema for blocking a doctor's time (vacation, training, ...)."""

    start_at: datetime
    end_at: datetime
    reason: str | None = Field(None, max_length=500)

    @field_validator("start_at", "end_at")
    @classmethod
    def normalize_times(cls, v: datetime) -> datetime:
        """Store times in clinic wall-clock time."""
        return to_clinic_time(v)

    @model_validator(mode="after")
    def validate_range(self) -> "UnavailabilityCreate":
        """Validate end time is after start time."""
        if self.end_at <= self.start_at:
            raise ValueError("End time must be after start time")
        return self


class UnavailabilityResponse(BaseModel):
    """Schema for a stored unavailability record."""

    id: int
    doctor_id: int
    start_at: datetime
    end_at: datetime
    reason: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}
