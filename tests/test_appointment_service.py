"""Tests for the appointment lifecycle service."""

import asyncio
from datetime import date, time, timedelta
from unittest.mock import AsyncMock

import pytest
from conftest import (
    DOCTOR_ID,
    FIXED_NOW,
    OTHER_PATIENT_ID,
    PATIENT_ID,
    SCENARIO_DAY,
    at,
)

from cabinet_scheduler.config import settings
from cabinet_scheduler.core.exceptions import (
    ConflictException,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
    ValidationException,
)
from cabinet_scheduler.scheduling.status import AppointmentStatus
from cabinet_scheduler.schemas.appointments import (
    AppointmentCreate,
    AppointmentFilters,
    AppointmentUpdate,
    ConflictCheckRequest,
    ConflictingAppointment,
    PopularHour,
)
from cabinet_scheduler.schemas.auth import Caller, Role
from cabinet_scheduler.schemas.availability import (
    DayHours,
    UnavailabilityCreate,
    WorkingHours,
)
from cabinet_scheduler.services.notification_service import NotificationService
from cabinet_scheduler.services.schedule_service import ScheduleService


def booking(start_at, patient_id=PATIENT_ID, doctor_id=DOCTOR_ID, duration_minutes=30):
    return AppointmentCreate(
        doctor_id=doctor_id,
        patient_id=patient_id,
        start_at=start_at,
        duration_minutes=duration_minutes,
    )


class FailingNotifier(NotificationService):
    async def dispatch(self, user_id, title, body, data=None):
        raise RuntimeError("delivery channel down")


# Booking


@pytest.mark.asyncio
async def test_booking_then_overlapping_booking_conflicts(service):
    """Book 10:00-10:30, then 10:15 for the same doctor collides."""
    first = await service.create(booking(at(10, 0)))
    assert first.status == AppointmentStatus.CONFIRMED
    assert first.end_at == at(10, 30)

    with pytest.raises(ConflictException) as exc_info:
        await service.create(booking(at(10, 15), patient_id=OTHER_PATIENT_ID))

    error = exc_info.value
    assert error.status_code == 409
    assert [appointment.id for appointment in error.conflicting_appointments] == [first.id]
    assert error.suggested_alternatives
    assert all(slot.available for slot in error.suggested_alternatives)
    assert error.suggested_alternatives[0].start == at(8, 0)


@pytest.mark.asyncio
async def test_back_to_back_bookings_do_not_conflict(service):
    await service.create(booking(at(10, 0)))

    second = await service.create(booking(at(10, 30), patient_id=OTHER_PATIENT_ID))

    assert second.start_at == at(10, 30)


@pytest.mark.asyncio
async def test_patient_cannot_be_double_booked_with_another_doctor(service):
    await service.create(booking(at(10, 0)))

    with pytest.raises(ConflictException) as exc_info:
        await service.create(booking(at(10, 15), doctor_id=999))

    assert "Patient" in exc_info.value.message


@pytest.mark.asyncio
async def test_cancelled_appointment_frees_its_time(service):
    first = await service.create(booking(at(10, 0)))
    await service.cancel(first.id, "patient request")

    again = await service.create(booking(at(10, 0), patient_id=OTHER_PATIENT_ID))

    assert again.status == AppointmentStatus.CONFIRMED


@pytest.mark.asyncio
async def test_concurrent_double_booking_only_one_succeeds(session_factory, make_service):
    async with session_factory() as first_session, session_factory() as second_session:
        first = make_service(first_session)
        second = make_service(second_session)

        results = await asyncio.gather(
            first.create(booking(at(11, 0), patient_id=PATIENT_ID)),
            second.create(booking(at(11, 0), patient_id=OTHER_PATIENT_ID)),
            return_exceptions=True,
        )

    succeeded = [result for result in results if not isinstance(result, Exception)]
    failed = [result for result in results if isinstance(result, Exception)]
    assert len(succeeded) == 1
    assert len(failed) == 1
    assert isinstance(failed[0], ConflictException)

    async with session_factory() as session:
        listed = await make_service(session).list_appointments(
            AppointmentFilters(doctor_id=DOCTOR_ID)
        )
    assert listed.total == 1


@pytest.mark.asyncio
async def test_booking_rejected_by_database_reports_the_winner(service, monkeypatch):
    winner = await service.create(booking(at(11, 0)))
    real_booking_conflicts = service.detector.booking_conflicts
    checks = []

    async def stale_then_real(*args, **kwargs):
        # The first check runs before the competing row is visible
        checks.append(args)
        if len(checks) == 1:
            return [], []
        return await real_booking_conflicts(*args, **kwargs)

    monkeypatch.setattr(service.detector, "booking_conflicts", stale_then_real)
    monkeypatch.setattr(
        service.store,
        "insert",
        AsyncMock(side_effect=ConflictException("Time range is already booked")),
    )

    with pytest.raises(ConflictException) as exc_info:
        await service.create(booking(at(11, 15), patient_id=OTHER_PATIENT_ID))

    assert len(checks) == 2
    assert exc_info.value.message == "Doctor already has an appointment in this time range"
    assert [item.id for item in exc_info.value.conflicting_appointments] == [winner.id]
    assert exc_info.value.suggested_alternatives


@pytest.mark.asyncio
async def test_conflicts_hide_other_patients_details(service):
    booked = await service.create(
        AppointmentCreate(
            doctor_id=DOCTOR_ID,
            patient_id=PATIENT_ID,
            start_at=at(10, 0),
            reason="Dermatology follow-up",
            notes="Allergic to latex",
        )
    )
    other_patient = Caller(user_id=OTHER_PATIENT_ID, role=Role.PATIENT)

    with pytest.raises(ConflictException) as exc_info:
        await service.create(
            AppointmentCreate(doctor_id=DOCTOR_ID, start_at=at(10, 15)), other_patient
        )

    assert exc_info.value.details()["conflicting_appointments"] == [
        {
            "id": booked.id,
            "doctor_id": DOCTOR_ID,
            "start_at": "2024-12-25T10:00:00",
            "end_at": "2024-12-25T10:30:00",
        }
    ]

    request = ConflictCheckRequest(
        doctor_id=DOCTOR_ID, patient_id=OTHER_PATIENT_ID, start_at=at(10, 15)
    )
    redacted = await service.check_conflicts(request, other_patient)
    assert isinstance(redacted.conflicting_appointments[0], ConflictingAppointment)
    assert "reason" not in redacted.model_dump()["conflicting_appointments"][0]

    doctor = Caller(user_id=DOCTOR_ID, role=Role.DOCTOR)
    full = await service.check_conflicts(request, doctor)
    assert full.conflicting_appointments[0].notes == "Allergic to latex"

    with pytest.raises(ForbiddenException):
        await service.check_conflicts(
            ConflictCheckRequest(doctor_id=DOCTOR_ID, patient_id=PATIENT_ID, start_at=at(10, 15)),
            other_patient,
        )


@pytest.mark.asyncio
async def test_initial_status_follows_configuration(db_session, make_service):
    pending_first = settings.model_copy(update={"initial_status": "pending"})
    service = make_service(db_session, app_settings=pending_first)

    appointment = await service.create(booking(at(9, 0)))

    assert appointment.status == AppointmentStatus.PENDING
    assert AppointmentStatus.CONFIRMED in appointment.possible_transitions


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "start_at,duration,field",
    [
        (FIXED_NOW - timedelta(hours=1), 30, "start_at"),
        (at(9, 0, day=date(2024, 12, 22)), 30, "start_at"),  # Sunday
        (at(7, 30), 30, "start_at"),
        (at(18, 0), 15, "start_at"),
    ],
)
async def test_booking_outside_rules_is_rejected(service, start_at, duration, field):
    with pytest.raises(ValidationException) as exc_info:
        await service.create(booking(start_at, duration_minutes=duration))

    assert exc_info.value.field == field
    assert exc_info.value.status_code == 422


@pytest.mark.asyncio
async def test_last_booking_of_the_day_may_run_past_closing(service):
    appointment = await service.create(booking(at(17, 45), duration_minutes=30))

    assert appointment.start_at == at(17, 45)
    assert appointment.end_at == at(18, 15)


@pytest.mark.asyncio
async def test_failed_notification_does_not_fail_booking(db_session, make_service):
    service = make_service(db_session, notifier=FailingNotifier())

    appointment = await service.create(booking(at(9, 0)))

    assert appointment.id is not None


# Rescheduling


@pytest.mark.asyncio
async def test_reschedule_excludes_the_appointment_itself(service):
    """Moving 10:00 to 14:00 never collides with its own old slot."""
    appointment = await service.create(booking(at(10, 0)))

    moved = await service.reschedule(appointment.id, at(14, 0))

    assert moved.start_at == at(14, 0)
    assert moved.status == AppointmentStatus.RESCHEDULED

    nudged = await service.reschedule(appointment.id, at(14, 15))
    assert nudged.start_at == at(14, 15)
    assert nudged.status == AppointmentStatus.RESCHEDULED


@pytest.mark.asyncio
async def test_reschedule_onto_another_booking_conflicts(service):
    await service.create(booking(at(14, 0), patient_id=OTHER_PATIENT_ID))
    appointment = await service.create(booking(at(10, 0)))

    with pytest.raises(ConflictException):
        await service.reschedule(appointment.id, at(14, 0))

    unchanged = await service.get(appointment.id)
    assert unchanged.start_at == at(10, 0)
    assert unchanged.status == AppointmentStatus.CONFIRMED


@pytest.mark.asyncio
async def test_reschedule_keeps_status_without_confirmation_policy(db_session, make_service):
    policy = settings.model_copy(update={"reschedule_requires_confirmation": False})
    service = make_service(db_session, app_settings=policy)
    appointment = await service.create(booking(at(10, 0)))

    moved = await service.reschedule(appointment.id, at(15, 0), new_duration=60)

    assert moved.status == AppointmentStatus.CONFIRMED
    assert moved.duration_minutes == 60
    assert moved.end_at == at(16, 0)


@pytest.mark.asyncio
async def test_cancelled_appointment_cannot_be_rescheduled(service):
    appointment = await service.create(booking(at(10, 0)))
    await service.cancel(appointment.id)

    with pytest.raises(InvalidTransitionException) as exc_info:
        await service.reschedule(appointment.id, at(12, 0))

    assert exc_info.value.current_status == AppointmentStatus.CANCELLED


@pytest.mark.asyncio
async def test_update_text_fields_and_time(service):
    appointment = await service.create(booking(at(10, 0)))

    updated = await service.update(appointment.id, AppointmentUpdate(notes="Bring X-rays"))
    assert updated.notes == "Bring X-rays"
    assert updated.start_at == at(10, 0)

    moved = await service.update(
        appointment.id, AppointmentUpdate(start_at=at(11, 0), reason="Follow-up")
    )
    assert moved.start_at == at(11, 0)
    assert moved.reason == "Follow-up"
    assert moved.notes == "Bring X-rays"


@pytest.mark.asyncio
async def test_update_clears_text_fields_with_null(service):
    appointment = await service.create(booking(at(10, 0)))
    await service.update(appointment.id, AppointmentUpdate(reason="Checkup", notes="Fasting"))

    cleared = await service.update(appointment.id, AppointmentUpdate(notes=None))

    assert cleared.notes is None
    assert cleared.reason == "Checkup"
    assert cleared.start_at == at(10, 0)

    same_time = await service.update(
        appointment.id, AppointmentUpdate(start_at=None, reason=None)
    )
    assert same_time.reason is None
    assert same_time.start_at == at(10, 0)
    assert same_time.status == AppointmentStatus.CONFIRMED


# Cancellation and status


@pytest.mark.asyncio
async def test_cancel_twice_fails(service):
    appointment = await service.create(booking(at(10, 0)))

    cancelled = await service.cancel(appointment.id, "schedule clash")
    assert cancelled.status == AppointmentStatus.CANCELLED
    assert cancelled.cancelled_at == FIXED_NOW
    assert cancelled.cancellation_reason == "schedule clash"
    assert cancelled.start_at == at(10, 0)

    with pytest.raises(InvalidTransitionException) as exc_info:
        await service.cancel(appointment.id)

    assert exc_info.value.details() == {
        "current_status": "cancelled",
        "attempted_status": "cancelled",
    }


@pytest.mark.asyncio
async def test_status_lifecycle(service):
    appointment = await service.create(booking(at(10, 0)))

    started = await service.transition_status(appointment.id, AppointmentStatus.IN_PROGRESS)
    assert started.status == AppointmentStatus.IN_PROGRESS

    completed = await service.transition_status(
        appointment.id, AppointmentStatus.COMPLETED, notes="All good"
    )
    assert completed.status == AppointmentStatus.COMPLETED
    assert completed.notes == "All good"
    assert completed.possible_transitions == []

    with pytest.raises(InvalidTransitionException):
        await service.transition_status(appointment.id, AppointmentStatus.CANCELLED)


@pytest.mark.asyncio
async def test_transition_to_cancelled_stamps_time(service):
    appointment = await service.create(booking(at(10, 0)))

    cancelled = await service.transition_status(appointment.id, AppointmentStatus.CANCELLED)

    assert cancelled.cancelled_at == FIXED_NOW


@pytest.mark.asyncio
async def test_unknown_appointment(service):
    with pytest.raises(NotFoundException):
        await service.get(9999)

    with pytest.raises(NotFoundException):
        await service.cancel(9999)


# Access


@pytest.mark.asyncio
async def test_patient_books_only_for_themselves(service):
    patient = Caller(user_id=PATIENT_ID, role=Role.PATIENT)

    own = await service.create(
        AppointmentCreate(doctor_id=DOCTOR_ID, start_at=at(10, 0)), patient
    )
    assert own.patient_id == PATIENT_ID

    with pytest.raises(ForbiddenException):
        await service.create(booking(at(11, 0), patient_id=OTHER_PATIENT_ID), patient)


@pytest.mark.asyncio
async def test_staff_must_name_the_patient(service):
    assistant = Caller(user_id=1, role=Role.ASSISTANT)

    with pytest.raises(ValidationException) as exc_info:
        await service.create(AppointmentCreate(doctor_id=DOCTOR_ID, start_at=at(10, 0)), assistant)

    assert exc_info.value.field == "patient_id"


@pytest.mark.asyncio
async def test_callers_only_see_their_appointments(service):
    mine = await service.create(booking(at(10, 0)))
    theirs = await service.create(booking(at(11, 0), patient_id=OTHER_PATIENT_ID))

    patient = Caller(user_id=PATIENT_ID, role=Role.PATIENT)
    doctor = Caller(user_id=DOCTOR_ID, role=Role.DOCTOR)
    other_doctor = Caller(user_id=999, role=Role.DOCTOR)

    assert (await service.get(mine.id, patient)).id == mine.id
    with pytest.raises(ForbiddenException):
        await service.get(theirs.id, patient)
    with pytest.raises(ForbiddenException):
        await service.cancel(mine.id, caller=other_doctor)

    listed = await service.list_appointments(AppointmentFilters(), patient)
    assert [item.id for item in listed.items] == [mine.id]

    for_doctor = await service.list_appointments(AppointmentFilters(), doctor)
    assert for_doctor.total == 2
    assert [item.id for item in for_doctor.items] == [theirs.id, mine.id]


# Availability


@pytest.mark.asyncio
async def test_available_slots_with_one_booking(service):
    """08:00-18:00 with a 10:00-10:30 booking leaves 19 of 20 slots free."""
    await service.create(booking(at(10, 0)))

    slots = await service.available_slots(DOCTOR_ID, SCENARIO_DAY, 30)

    assert len(slots) == 20
    assert sum(slot.available for slot in slots) == 19
    assert [slot.start for slot in slots if not slot.available] == [at(10, 0)]


@pytest.mark.asyncio
async def test_check_conflicts_is_read_only(service):
    booked = await service.create(booking(at(10, 0)))

    report = await service.check_conflicts(
        ConflictCheckRequest(
            doctor_id=DOCTOR_ID,
            patient_id=OTHER_PATIENT_ID,
            start_at=at(10, 15),
            duration_minutes=30,
        )
    )
    assert report.has_conflicts
    assert report.doctor_conflict
    assert not report.patient_conflict
    assert [appointment.id for appointment in report.conflicting_appointments] == [booked.id]
    assert report.suggested_alternatives

    moving = await service.check_conflicts(
        ConflictCheckRequest(
            doctor_id=DOCTOR_ID,
            patient_id=PATIENT_ID,
            start_at=at(10, 15),
            exclude_appointment_id=booked.id,
        )
    )
    assert not moving.has_conflicts
    assert moving.suggested_alternatives == []

    listed = await service.list_appointments(AppointmentFilters())
    assert listed.total == 1


@pytest.mark.asyncio
async def test_suggest_alternatives_skips_busy_and_closed_time(service, db_session):
    schedule = ScheduleService(db_session)
    await schedule.set_working_hours(
        DOCTOR_ID,
        WorkingHours(days=[DayHours(weekday=2, opens_at=time(9, 0), closes_at=time(10, 0))]),
    )
    await service.create(booking(at(9, 0)))

    alternatives = await service.suggest_alternatives(DOCTOR_ID, SCENARIO_DAY, 30, limit=2)

    assert [slot.start for slot in alternatives] == [
        at(9, 30),
        at(9, 0, day=SCENARIO_DAY + timedelta(days=7)),
    ]


@pytest.mark.asyncio
async def test_unavailability_blocks_slots(service, db_session):
    schedule = ScheduleService(db_session)
    await schedule.add_unavailability(
        DOCTOR_ID,
        UnavailabilityCreate(start_at=at(12, 0), end_at=at(14, 0), reason="Training"),
    )

    slots = await service.available_slots(DOCTOR_ID, SCENARIO_DAY, 30)

    blocked = [slot.start for slot in slots if not slot.available]
    assert blocked == [at(12, 0), at(12, 30), at(13, 0), at(13, 30)]


@pytest.mark.asyncio
async def test_working_hours_default_and_reset(db_session):
    schedule = ScheduleService(db_session)

    default = await schedule.get_working_hours(DOCTOR_ID)
    assert default.is_default
    assert [day.weekday for day in default.days] == sorted(settings.business_days)

    custom = await schedule.set_working_hours(
        DOCTOR_ID,
        WorkingHours(days=[DayHours(weekday=0, opens_at=time(9, 0), closes_at=time(13, 0))]),
    )
    assert not custom.is_default
    assert len(custom.days) == 1

    reset = await schedule.set_working_hours(DOCTOR_ID, WorkingHours(days=[]))
    assert reset.is_default


# Agenda lookups and statistics


@pytest.mark.asyncio
async def test_upcoming_and_next_for_patient(service):
    later = await service.create(booking(at(11, 0)))
    sooner = await service.create(booking(at(9, 0)))
    cancelled = await service.create(booking(at(14, 0)))
    await service.cancel(cancelled.id)
    await service.create(booking(at(10, 0), patient_id=OTHER_PATIENT_ID))

    patient = Caller(user_id=PATIENT_ID, role=Role.PATIENT)
    upcoming = await service.upcoming_for_patient(PATIENT_ID, patient)

    assert [item.id for item in upcoming] == [sooner.id, later.id]
    assert (await service.next_for_patient(PATIENT_ID, patient)).id == sooner.id
    assert await service.next_for_patient(555) is None

    with pytest.raises(ForbiddenException):
        await service.upcoming_for_patient(OTHER_PATIENT_ID, patient)


@pytest.mark.asyncio
async def test_today_and_next_for_doctor(service):
    today = FIXED_NOW.date()
    first = await service.create(booking(at(9, 0, day=today)))
    second = await service.create(booking(at(15, 0, day=today), patient_id=OTHER_PATIENT_ID))
    await service.create(booking(at(10, 0)))

    doctor = Caller(user_id=DOCTOR_ID, role=Role.DOCTOR)
    todays = await service.today_for_doctor(DOCTOR_ID, doctor)

    assert [item.id for item in todays] == [first.id, second.id]
    assert (await service.next_for_doctor(DOCTOR_ID, doctor)).id == first.id

    with pytest.raises(ForbiddenException):
        await service.today_for_doctor(DOCTOR_ID, Caller(user_id=999, role=Role.DOCTOR))


@pytest.mark.asyncio
async def test_stats_count_statuses_and_busy_hours(service):
    await service.create(booking(at(9, 0, day=FIXED_NOW.date())))
    await service.create(booking(at(10, 0)))
    await service.create(booking(at(10, 30), patient_id=OTHER_PATIENT_ID))
    cancelled = await service.create(booking(at(15, 0)))
    await service.cancel(cancelled.id)
    await service.create(booking(at(10, 0), doctor_id=999, patient_id=555))

    stats = await service.stats()

    assert stats.total == 5
    assert stats.by_status["confirmed"] == 4
    assert stats.by_status["cancelled"] == 1
    assert stats.by_status["no_show"] == 0
    assert stats.today == 1
    assert stats.this_month == 5
    assert stats.popular_hours[0] == PopularHour(hour=10, count=3)

    doctor = Caller(user_id=DOCTOR_ID, role=Role.DOCTOR)
    doctor_stats = await service.stats(DOCTOR_ID, doctor)
    assert doctor_stats.doctor_id == DOCTOR_ID
    assert doctor_stats.total == 4
    assert doctor_stats.popular_hours[0] == PopularHour(hour=10, count=2)

    with pytest.raises(ForbiddenException):
        await service.stats(caller=doctor)


@pytest.mark.asyncio
async def test_doctor_dashboard(db_session, make_service, service):
    today = FIXED_NOW.date()
    missed = await service.create(booking(at(9, 0, day=today)))
    later = await service.create(booking(at(11, 0, day=today), patient_id=OTHER_PATIENT_ID))
    await service.create(booking(at(10, 0)))

    at_ten = make_service(db_session, clock=lambda: FIXED_NOW + timedelta(hours=2))
    dashboard = await at_ten.doctor_dashboard(
        DOCTOR_ID, Caller(user_id=DOCTOR_ID, role=Role.DOCTOR)
    )

    assert dashboard.date == today
    assert [item.id for item in dashboard.today] == [missed.id, later.id]
    assert [item.id for item in dashboard.week] == [missed.id, later.id]
    assert dashboard.next_appointment.id == later.id
    assert [item.id for item in dashboard.overdue] == [missed.id]
    assert dashboard.overdue[0].is_overdue
    assert dashboard.active_count == 3
    assert dashboard.stats.total == 3
    # Saturday, clinic hours 08:00-18:00 in 30 minute slots
    assert dashboard.tomorrow_available_slots == 20


@pytest.mark.asyncio
async def test_list_searches_reason(service):
    reasons = {9: "Annual Checkup", 10: "50% discount follow-up", 11: "500 mg refill"}
    for hour, reason in reasons.items():
        await service.create(
            AppointmentCreate(
                doctor_id=DOCTOR_ID,
                patient_id=PATIENT_ID,
                start_at=at(hour, 0),
                reason=reason,
            )
        )

    checkups = await service.list_appointments(AppointmentFilters(search="checkup"))
    assert [item.reason for item in checkups.items] == ["Annual Checkup"]

    literal = await service.list_appointments(AppointmentFilters(search="50%"))
    assert [item.reason for item in literal.items] == ["50% discount follow-up"]


# Maintenance


@pytest.mark.asyncio
async def test_cleanup_purges_old_cancelled_appointments(db_session, make_service, service):
    cancelled = await service.create(booking(at(10, 0)))
    await service.cancel(cancelled.id)
    kept = await service.create(booking(at(11, 0)))

    next_year = make_service(db_session, clock=lambda: FIXED_NOW + timedelta(days=400))
    deleted = await next_year.cleanup(AppointmentStatus.CANCELLED, 365)

    assert deleted == 1
    with pytest.raises(NotFoundException):
        await service.get(cancelled.id)
    assert (await service.get(kept.id)).id == kept.id


@pytest.mark.asyncio
async def test_cleanup_refuses_open_statuses(service):
    with pytest.raises(ValidationException):
        await service.cleanup(AppointmentStatus.CONFIRMED, 365)

    with pytest.raises(ValidationException):
        await service.cleanup(AppointmentStatus.CANCELLED, 0)
