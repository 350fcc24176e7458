"""Appointment lifecycle service."""

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import date, datetime, time, timedelta
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from cabinet_scheduler.config import Settings, settings
from cabinet_scheduler.core.clock import Clock, clinic_now, to_clinic_time
from cabinet_scheduler.core.exceptions import (
    ConflictException,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
    ValidationException,
)
from cabinet_scheduler.core.locks import ActorLockRegistry, actor_locks
from cabinet_scheduler.core.redis_client import CacheManager
from cabinet_scheduler.scheduling import status as lifecycle
from cabinet_scheduler.scheduling.conflicts import ActorKind, ConflictDetector, merge_conflicts
from cabinet_scheduler.scheduling.interval import TimeInterval
from cabinet_scheduler.scheduling.status import AppointmentStatus, ensure_transition
from cabinet_scheduler.schemas.appointments import (
    MAX_DURATION_MINUTES,
    MIN_DURATION_MINUTES,
    Appointment,
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStats,
    AppointmentUpdate,
    ConflictCheckRequest,
    ConflictCheckResponse,
    ConflictingAppointment,
    DoctorDashboard,
    PopularHour,
)
from cabinet_scheduler.schemas.auth import Caller, Role
from cabinet_scheduler.schemas.availability import TimeSlot
from cabinet_scheduler.services.appointment_store import AppointmentStore
from cabinet_scheduler.services.notification_service import NotificationService
from cabinet_scheduler.services.schedule_service import ScheduleService

logger = structlog.get_logger(__name__)


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Midnight to midnight of ``day``."""
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


class AppointmentService:
    """
    Service for booking, moving, cancelling and transitioning appointments.

    Every write that can create an overlap runs as one unit of work: lock the
    doctor and the patient, check conflicts, write, commit.
    """

    def __init__(
        self,
        db: AsyncSession,
        cache_manager: CacheManager | None = None,
        notifier: NotificationService | None = None,
        clock: Clock = clinic_now,
        locks: ActorLockRegistry = actor_locks,
        app_settings: Settings | None = None,
    ):
        """Initialize service with database session and collaborators."""
        self.db = db
        self.settings = app_settings or settings
        self.store = AppointmentStore(db)
        self.detector = ConflictDetector(self.store)
        self.schedule = ScheduleService(db, cache_manager, self.settings)
        self.notifier = notifier or NotificationService()
        self.clock = clock
        self.locks = locks

    # Validation

    @staticmethod
    def _validate_duration(duration_minutes: int) -> None:
        if not MIN_DURATION_MINUTES <= duration_minutes <= MAX_DURATION_MINUTES:
            raise ValidationException(
                f"Duration must be between {MIN_DURATION_MINUTES} and "
                f"{MAX_DURATION_MINUTES} minutes",
                field="duration_minutes",
            )

    def _validate_business_hours(self, start_at: datetime) -> None:
        if start_at.weekday() not in self.settings.business_days:
            raise ValidationException(
                "Appointments can only be booked on business days",
                field="start_at",
            )

        opens_at = datetime.combine(start_at.date(), self.settings.business_opens_at)
        closes_at = datetime.combine(start_at.date(), self.settings.business_closes_at)
        if not opens_at <= start_at < closes_at:
            raise ValidationException(
                f"Appointments must start between {self.settings.business_opens_at:%H:%M} "
                f"and {self.settings.business_closes_at:%H:%M}",
                field="start_at",
            )

    # Access

    @staticmethod
    def _is_party(appointment: Appointment, caller: Caller | None) -> bool:
        if caller is None or caller.is_staff:
            return True
        if caller.role == Role.DOCTOR and caller.user_id == appointment.doctor_id:
            return True
        return caller.role == Role.PATIENT and caller.user_id == appointment.patient_id

    def _ensure_access(self, appointment: Appointment, caller: Caller | None) -> None:
        if not self._is_party(appointment, caller):
            raise ForbiddenException("Access denied to this appointment")

    def _visible_conflicts(
        self, conflicts: list[Appointment], caller: Caller | None
    ) -> list[Appointment | ConflictingAppointment]:
        """Other people's appointments are shown as a bare time range."""
        return [
            appointment
            if self._is_party(appointment, caller)
            else ConflictingAppointment.from_appointment(appointment)
            for appointment in conflicts
        ]

    @staticmethod
    def _ensure_actor(caller: Caller | None, role: Role, actor_id: int) -> None:
        """Only staff or the doctor/patient themselves may read their agenda."""
        if caller is None or caller.is_staff:
            return
        if caller.role == role and caller.user_id == actor_id:
            return
        raise ForbiddenException(f"Access denied to this {role.value}'s appointments")

    @staticmethod
    def _resolve_patient(data: AppointmentCreate, caller: Caller | None) -> int:
        if caller is not None and caller.role == Role.PATIENT:
            if data.patient_id is not None and data.patient_id != caller.user_id:
                raise ForbiddenException("Patients can only book appointments for themselves")
            return caller.user_id

        if caller is not None and caller.role == Role.DOCTOR and data.doctor_id != caller.user_id:
            raise ForbiddenException("Doctors can only book appointments in their own agenda")

        if data.patient_id is None:
            raise ValidationException("Patient is required", field="patient_id")
        return data.patient_id

    async def _get(self, appointment_id: int) -> Appointment:
        appointment = await self.store.get(appointment_id)
        if appointment is None:
            raise NotFoundException("Appointment not found")
        return appointment

    async def _get_for(self, appointment_id: int, caller: Caller | None) -> Appointment:
        appointment = await self._get(appointment_id)
        self._ensure_access(appointment, caller)
        return appointment

    def _response(self, appointment: Appointment) -> AppointmentResponse:
        return AppointmentResponse.from_appointment(appointment, self.clock())

    # Units of work

    @asynccontextmanager
    async def _booking_lock(
        self,
        doctor_id: int,
        patient_id: int,
        candidate: TimeInterval,
        exclude_id: int | None = None,
        caller: Caller | None = None,
    ) -> AsyncIterator[None]:
        """Serialize check-and-write for one doctor and one patient, commit on success."""
        keys = [(ActorKind.DOCTOR.value, doctor_id), (ActorKind.PATIENT.value, patient_id)]
        async with self.locks.hold(keys):
            try:
                await self.store.lock_actors(keys)
                yield
                await self.store.commit()
            except ConflictException as e:
                await self.store.rollback()
                if e.conflicting_appointments:
                    raise
                # Rejected by the database: look up the winning booking after rollback
                error = await self._conflict_error(
                    doctor_id, patient_id, candidate, exclude_id, caller
                )
                if error is None:
                    raise
                raise error from e
            except Exception:
                await self.store.rollback()
                raise

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[None]:
        try:
            yield
            await self.store.commit()
        except Exception:
            await self.store.rollback()
            raise

    async def _ensure_no_conflicts(
        self,
        doctor_id: int,
        patient_id: int,
        candidate: TimeInterval,
        exclude_id: int | None = None,
        caller: Caller | None = None,
    ) -> None:
        error = await self._conflict_error(doctor_id, patient_id, candidate, exclude_id, caller)
        if error is not None:
            raise error

    async def _conflict_error(
        self,
        doctor_id: int,
        patient_id: int,
        candidate: TimeInterval,
        exclude_id: int | None = None,
        caller: Caller | None = None,
    ) -> ConflictException | None:
        doctor_conflicts, patient_conflicts = await self.detector.booking_conflicts(
            doctor_id, patient_id, candidate, exclude_id
        )
        if not doctor_conflicts and not patient_conflicts:
            return None

        logger.warning(
            "appointment_conflict_detected",
            doctor_id=doctor_id,
            patient_id=patient_id,
            start_at=candidate.start.isoformat(),
            doctor_conflict=bool(doctor_conflicts),
            patient_conflict=bool(patient_conflicts),
        )
        duration_minutes = int(candidate.duration.total_seconds() // 60)
        alternatives = await self.suggest_alternatives(
            doctor_id, candidate.start.date(), duration_minutes
        )
        if doctor_conflicts:
            message = "Doctor already has an appointment in this time range"
        else:
            message = "Patient already has an appointment in this time range"
        return ConflictException(
            message,
            conflicting_appointments=self._visible_conflicts(
                merge_conflicts(doctor_conflicts, patient_conflicts), caller
            ),
            suggested_alternatives=alternatives,
        )

    async def _notify(self, send: Callable[..., Awaitable[None]], *args: Any) -> None:
        # Delivery problems never fail the request
        try:
            await send(*args)
        except Exception as e:
            logger.warning("failed_to_send_appointment_notification", error=str(e))

    # Operations

    async def create(
        self,
        data: AppointmentCreate,
        caller: Caller | None = None,
    ) -> AppointmentResponse:
        """
        Book a new appointment.

        Args:
            data: Appointment creation data
            caller: Authenticated caller, None for internal use

        Returns:
            Created appointment

        Raises:
            ValidationException: Bad duration, past start or outside business hours
            ConflictException: Doctor or patient already booked in the range
        """
        patient_id = self._resolve_patient(data, caller)
        start_at = to_clinic_time(data.start_at)
        now = self.clock()

        self._validate_duration(data.duration_minutes)
        if start_at <= now:
            raise ValidationException("Appointment start must be in the future", field="start_at")
        self._validate_business_hours(start_at)

        candidate = TimeInterval.from_duration(start_at, data.duration_minutes)
        logger.info(
            "appointment_create_requested",
            doctor_id=data.doctor_id,
            patient_id=patient_id,
            start_at=start_at.isoformat(),
            duration_minutes=data.duration_minutes,
        )

        async with self._booking_lock(data.doctor_id, patient_id, candidate, caller=caller):
            await self._ensure_no_conflicts(data.doctor_id, patient_id, candidate, caller=caller)
            appointment = await self.store.insert(
                {
                    "patient_id": patient_id,
                    "doctor_id": data.doctor_id,
                    "start_at": start_at,
                    "duration_minutes": data.duration_minutes,
                    "status": AppointmentStatus(self.settings.initial_status).value,
                    "reason": data.reason,
                    "notes": data.notes,
                    "created_at": now,
                    "updated_at": now,
                }
            )

        logger.info(
            "appointment_created",
            appointment_id=appointment.id,
            status=appointment.status.value,
        )
        await self._notify(self.notifier.appointment_created, appointment)
        return self._response(appointment)

    async def get(self, appointment_id: int, caller: Caller | None = None) -> AppointmentResponse:
        """
        Get appointment by ID.

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If caller doesn't have access
        """
        return self._response(await self._get_for(appointment_id, caller))

    async def list_appointments(
        self,
        filters: AppointmentFilters,
        caller: Caller | None = None,
    ) -> AppointmentListResponse:
        """List appointments visible to the caller."""
        if caller is not None and caller.role == Role.PATIENT:
            filters = filters.model_copy(update={"patient_id": caller.user_id})
        elif caller is not None and caller.role == Role.DOCTOR:
            filters = filters.model_copy(update={"doctor_id": caller.user_id})

        total, items = await self.store.find_page(filters)
        return AppointmentListResponse(
            total=total,
            page=filters.page,
            page_size=filters.page_size,
            items=[self._response(item) for item in items],
        )

    async def reschedule(
        self,
        appointment_id: int,
        new_start: datetime,
        new_duration: int | None = None,
        caller: Caller | None = None,
    ) -> AppointmentResponse:
        """
        Move an appointment to a new time.

        The appointment itself is excluded from its own conflict check. With
        ``reschedule_requires_confirmation`` the status becomes ``rescheduled``,
        otherwise it is kept.

        Raises:
            InvalidTransitionException: If the status no longer allows changes
            ConflictException: If the new range collides
            ValidationException: Bad duration or outside business hours
        """
        current = await self._get_for(appointment_id, caller)
        return await self._move(current, new_start, new_duration, {}, caller)

    async def update(
        self,
        appointment_id: int,
        data: AppointmentUpdate,
        caller: Caller | None = None,
    ) -> AppointmentResponse:
        """Update time and/or reason and notes of an appointment."""
        changes = data.model_dump(exclude_unset=True)
        details = {field: changes[field] for field in ("reason", "notes") if field in changes}

        current = await self._get_for(appointment_id, caller)
        # An explicit null clears reason or notes but never the time
        new_start = changes.get("start_at")
        new_duration = changes.get("duration_minutes")
        if new_start is not None or new_duration is not None:
            return await self._move(
                current,
                new_start or current.start_at,
                new_duration,
                details,
                caller,
            )

        if not details:
            return self._response(current)
        if not lifecycle.is_modifiable(current.status):
            raise InvalidTransitionException(current.status, AppointmentStatus.RESCHEDULED)

        async with self._transaction():
            updated = await self.store.update(
                appointment_id,
                {**details, "updated_at": self.clock()},
                expected_status=current.status,
            )
            if updated is None:
                latest = await self._get(appointment_id)
                raise InvalidTransitionException(latest.status, AppointmentStatus.RESCHEDULED)

        logger.info("appointment_updated", appointment_id=appointment_id, fields=sorted(details))
        return self._response(updated)

    def _status_after_move(self, current: AppointmentStatus) -> AppointmentStatus:
        if not self.settings.reschedule_requires_confirmation:
            return current
        if current == AppointmentStatus.RESCHEDULED:
            return current
        return ensure_transition(current, AppointmentStatus.RESCHEDULED)

    async def _move(
        self,
        current: Appointment,
        new_start: datetime,
        new_duration: int | None,
        details: dict[str, Any],
        caller: Caller | None = None,
    ) -> AppointmentResponse:
        appointment_id = current.id
        new_start = to_clinic_time(new_start)
        duration = new_duration if new_duration is not None else current.duration_minutes

        self._validate_duration(duration)
        self._validate_business_hours(new_start)
        candidate = TimeInterval.from_duration(new_start, duration)

        async with self._booking_lock(
            current.doctor_id, current.patient_id, candidate, appointment_id, caller
        ):
            # Re-read under the lock so the status check sees concurrent changes
            current = await self._get(appointment_id)
            if not lifecycle.is_modifiable(current.status):
                raise InvalidTransitionException(current.status, AppointmentStatus.RESCHEDULED)

            await self._ensure_no_conflicts(
                current.doctor_id,
                current.patient_id,
                candidate,
                exclude_id=appointment_id,
                caller=caller,
            )
            values = {
                **details,
                "start_at": new_start,
                "duration_minutes": duration,
                "status": self._status_after_move(current.status).value,
                "updated_at": self.clock(),
            }
            appointment = await self.store.update(
                appointment_id, values, expected_status=current.status
            )
            if appointment is None:
                latest = await self._get(appointment_id)
                raise InvalidTransitionException(latest.status, AppointmentStatus.RESCHEDULED)

        logger.info(
            "appointment_rescheduled",
            appointment_id=appointment_id,
            previous_start_at=current.start_at.isoformat(),
            start_at=new_start.isoformat(),
            duration_minutes=duration,
            status=appointment.status.value,
        )
        if (current.start_at, current.duration_minutes) != (new_start, duration):
            await self._notify(self.notifier.appointment_rescheduled, appointment, current.start_at)
        return self._response(appointment)

    async def cancel(
        self,
        appointment_id: int,
        reason: str | None = None,
        caller: Caller | None = None,
    ) -> AppointmentResponse:
        """
        Cancel an appointment, keeping its time for the record.

        Raises:
            InvalidTransitionException: If the status is not cancellable,
                including an appointment that is already cancelled
        """
        current = await self._get_for(appointment_id, caller)
        if not lifecycle.is_cancellable(current.status):
            raise InvalidTransitionException(current.status, AppointmentStatus.CANCELLED)

        now = self.clock()
        async with self._transaction():
            appointment = await self.store.update(
                appointment_id,
                {
                    "status": AppointmentStatus.CANCELLED.value,
                    "cancelled_at": now,
                    "cancellation_reason": reason,
                    "updated_at": now,
                },
                expected_status=current.status,
            )
            if appointment is None:
                latest = await self._get(appointment_id)
                raise InvalidTransitionException(latest.status, AppointmentStatus.CANCELLED)

        logger.info("appointment_cancelled", appointment_id=appointment_id, reason=reason)
        await self._notify(self.notifier.appointment_status_changed, appointment, current.status)
        return self._response(appointment)

    async def transition_status(
        self,
        appointment_id: int,
        target: AppointmentStatus,
        caller: Caller | None = None,
        notes: str | None = None,
    ) -> AppointmentResponse:
        """
        Move an appointment along the lifecycle.

        Raises:
            InvalidTransitionException: If the lifecycle has no such edge
        """
        current = await self._get_for(appointment_id, caller)
        target = ensure_transition(current.status, target)

        now = self.clock()
        values: dict[str, Any] = {"status": target.value, "updated_at": now}
        if notes:
            values["notes"] = notes
        if target == AppointmentStatus.CANCELLED:
            values["cancelled_at"] = now

        async with self._transaction():
            appointment = await self.store.update(
                appointment_id, values, expected_status=current.status
            )
            if appointment is None:
                latest = await self._get(appointment_id)
                raise InvalidTransitionException(latest.status, target)

        logger.info(
            "appointment_status_changed",
            appointment_id=appointment_id,
            old_status=current.status.value,
            new_status=target.value,
        )
        await self._notify(self.notifier.appointment_status_changed, appointment, current.status)
        return self._response(appointment)

    async def check_conflicts(
        self,
        data: ConflictCheckRequest,
        caller: Caller | None = None,
    ) -> ConflictCheckResponse:
        """
        Report conflicts for a prospective booking without writing anything.

        Patients may only check their own bookings, and appointments the
        caller is not a party to come back as bare time ranges.
        """
        if caller is not None and caller.role == Role.PATIENT and data.patient_id != caller.user_id:
            raise ForbiddenException("Patients can only check their own bookings")
        self._validate_duration(data.duration_minutes)
        candidate = TimeInterval.from_duration(to_clinic_time(data.start_at), data.duration_minutes)
        doctor_conflicts, patient_conflicts = await self.detector.booking_conflicts(
            data.doctor_id, data.patient_id, candidate, data.exclude_appointment_id
        )
        has_conflicts = bool(doctor_conflicts or patient_conflicts)
        alternatives = (
            await self.suggest_alternatives(
                data.doctor_id, candidate.start.date(), data.duration_minutes
            )
            if has_conflicts
            else []
        )
        return ConflictCheckResponse(
            has_conflicts=has_conflicts,
            doctor_conflict=bool(doctor_conflicts),
            patient_conflict=bool(patient_conflicts),
            conflicting_appointments=self._visible_conflicts(
                merge_conflicts(doctor_conflicts, patient_conflicts), caller
            ),
            suggested_alternatives=alternatives,
        )

    async def available_slots(
        self, doctor_id: int, day: date, duration_minutes: int | None = None
    ) -> list[TimeSlot]:
        """A doctor's slots for one day, past slots marked unavailable."""
        slot_minutes = duration_minutes or self.settings.default_slot_minutes
        self._validate_duration(slot_minutes)
        return await self.schedule.available_slots(doctor_id, day, slot_minutes, self.clock())

    async def suggest_alternatives(
        self,
        doctor_id: int,
        day: date,
        duration_minutes: int,
        limit: int | None = None,
    ) -> list[TimeSlot]:
        """Next free slots of the doctor on or after ``day``."""
        return await self.schedule.next_available_slots(
            doctor_id,
            day,
            duration_minutes,
            limit or self.settings.alternatives_limit,
            self.clock(),
        )

    # Agenda lookups

    async def upcoming_for_patient(
        self,
        patient_id: int,
        caller: Caller | None = None,
        limit: int | None = None,
    ) -> list[AppointmentResponse]:
        """Open appointments of a patient that have not started yet, soonest first."""
        self._ensure_actor(caller, Role.PATIENT, patient_id)
        items = await self.store.find_upcoming_by_patient(patient_id, self.clock(), limit)
        return [self._response(item) for item in items]

    async def next_for_patient(
        self, patient_id: int, caller: Caller | None = None
    ) -> AppointmentResponse | None:
        """The patient's next open appointment, if any."""
        items = await self.upcoming_for_patient(patient_id, caller, limit=1)
        return items[0] if items else None

    async def next_for_doctor(
        self, doctor_id: int, caller: Caller | None = None
    ) -> AppointmentResponse | None:
        """The doctor's next open appointment, if any."""
        self._ensure_actor(caller, Role.DOCTOR, doctor_id)
        items = await self.store.find_upcoming_by_doctor(doctor_id, self.clock(), limit=1)
        return self._response(items[0]) if items else None

    async def today_for_doctor(
        self, doctor_id: int, caller: Caller | None = None
    ) -> list[AppointmentResponse]:
        """Non-cancelled appointments of the doctor starting today."""
        self._ensure_actor(caller, Role.DOCTOR, doctor_id)
        since, until = day_bounds(self.clock().date())
        items = await self.store.find_active_by_doctor(doctor_id, since, until)
        return [self._response(item) for item in items]

    # Statistics

    async def stats(
        self, doctor_id: int | None = None, caller: Caller | None = None
    ) -> AppointmentStats:
        """
        Appointment counts for the practice, or for one doctor.

        Args:
            doctor_id: Restrict the counts to this doctor
            caller: Authenticated caller; practice-wide numbers are staff only

        Returns:
            Totals per status, today's and this month's bookings and the
            busiest starting hours
        """
        if doctor_id is None:
            if caller is not None and not caller.is_staff:
                raise ForbiddenException("Only staff can see practice statistics")
        else:
            self._ensure_actor(caller, Role.DOCTOR, doctor_id)

        today = self.clock().date()
        today_start, tomorrow_start = day_bounds(today)
        month_start = datetime.combine(today.replace(day=1), time.min)
        next_month = (month_start + timedelta(days=32)).replace(day=1)

        counts = await self.store.count_by_status(doctor_id)
        today_count = await self.store.count_between(today_start, tomorrow_start, doctor_id)
        month_count = await self.store.count_between(month_start, next_month, doctor_id)
        hours = await self.store.popular_hours(doctor_id, self.settings.popular_hours_limit)

        return AppointmentStats(
            doctor_id=doctor_id,
            total=sum(counts.values()),
            by_status={status.value: counts.get(status, 0) for status in AppointmentStatus},
            today=today_count,
            this_month=month_count,
            popular_hours=[PopularHour(hour=hour, count=count) for hour, count in hours],
        )

    async def doctor_dashboard(
        self, doctor_id: int, caller: Caller | None = None
    ) -> DoctorDashboard:
        """Today, this week, what is overdue and how much room is left tomorrow."""
        self._ensure_actor(caller, Role.DOCTOR, doctor_id)
        now = self.clock()
        today = now.date()
        week_start = datetime.combine(today - timedelta(days=today.weekday()), time.min)

        stats = await self.stats(doctor_id)
        today_items = await self.store.find_active_by_doctor(doctor_id, *day_bounds(today))
        week_items = await self.store.find_active_by_doctor(
            doctor_id, week_start, week_start + timedelta(days=7)
        )
        upcoming = await self.store.find_upcoming_by_doctor(doctor_id, now, limit=1)
        overdue = await self.store.find_overdue_by_doctor(doctor_id, now)
        tomorrow_slots = await self.schedule.available_slots(
            doctor_id,
            today + timedelta(days=1),
            self.settings.default_slot_minutes,
            now,
        )

        return DoctorDashboard(
            doctor_id=doctor_id,
            date=today,
            stats=stats,
            today=[self._response(item) for item in today_items],
            week=[self._response(item) for item in week_items],
            next_appointment=self._response(upcoming[0]) if upcoming else None,
            overdue=[self._response(item) for item in overdue],
            active_count=sum(
                count
                for status, count in stats.by_status.items()
                if not lifecycle.is_final(AppointmentStatus(status))
            ),
            tomorrow_available_slots=sum(1 for slot in tomorrow_slots if slot.available),
        )

    async def cleanup(self, status: AppointmentStatus, older_than_days: int) -> int:
        """
        Physically delete old cancelled or completed appointments.

        Returns:
            Number of deleted appointments
        """
        status = AppointmentStatus(status)
        if status not in (AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED):
            raise ValidationException(
                "Only cancelled or completed appointments can be purged",
                field="status",
            )
        if older_than_days < 1:
            raise ValidationException("Retention must be at least one day", field="older_than_days")

        before = self.clock() - timedelta(days=older_than_days)
        async with self._transaction():
            deleted = await self.store.delete_older_than(status, before)

        logger.info(
            "appointments_purged",
            status=status.value,
            before=before.isoformat(),
            deleted=deleted,
        )
        return deleted
