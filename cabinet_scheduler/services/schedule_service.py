"""Doctor schedule service: working hours, unavailability and free slots."""

from datetime import date, datetime, timedelta

import structlog
from sqlalchemy import and_, delete, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from cabinet_scheduler.config import Settings, settings
from cabinet_scheduler.core.redis_client import CacheManager
from cabinet_scheduler.models.doctor_schedules import doctor_unavailability, doctor_working_hours
from cabinet_scheduler.scheduling.availability import available_slots
from cabinet_scheduler.scheduling.conflicts import LOOKBACK
from cabinet_scheduler.scheduling.interval import TimeInterval
from cabinet_scheduler.schemas.availability import (
    DayHours,
    TimeSlot,
    UnavailabilityCreate,
    UnavailabilityResponse,
    WorkingHours,
    WorkingHoursResponse,
)
from cabinet_scheduler.services.appointment_store import AppointmentStore

logger = structlog.get_logger(__name__)


class ScheduleService:
    """Service for a doctor's weekly hours and blocked periods."""

    def __init__(
        self,
        db: AsyncSession,
        cache_manager: CacheManager | None = None,
        app_settings: Settings | None = None,
    ):
        """Initialize service with database session and optional cache manager."""
        self.db = db
        self.cache = cache_manager
        self.settings = app_settings or settings
        self.store = AppointmentStore(db)

    @staticmethod
    def _get_working_hours_cache_key(doctor_id: int) -> str:
        """Generate cache key for a doctor's working hours."""
        return f"doctor:{doctor_id}:working_hours"

    def default_working_hours(self) -> WorkingHours:
        """Clinic business hours, used for doctors without their own hours."""
        return WorkingHours.uniform(
            self.settings.business_days,
            self.settings.business_opens_at,
            self.settings.business_closes_at,
        )

    async def get_working_hours(self, doctor_id: int) -> WorkingHoursResponse:
        """Get a doctor's working hours with caching."""
        if self.cache:
            cached = self.cache.get_json(self._get_working_hours_cache_key(doctor_id))
            if cached:
                return WorkingHoursResponse.model_validate(cached)

        query = (
            select(doctor_working_hours)
            .where(doctor_working_hours.c.doctor_id == doctor_id)
            .order_by(doctor_working_hours.c.weekday)
        )
        result = await self.db.execute(query)
        rows = result.mappings().all()

        if rows:
            hours = WorkingHoursResponse(
                doctor_id=doctor_id,
                is_default=False,
                days=[
                    DayHours(
                        weekday=row["weekday"],
                        opens_at=row["opens_at"],
                        closes_at=row["closes_at"],
                    )
                    for row in rows
                ],
            )
        else:
            hours = WorkingHoursResponse(
                doctor_id=doctor_id,
                is_default=True,
                days=self.default_working_hours().days,
            )

        if self.cache:
            self.cache.set_json(
                self._get_working_hours_cache_key(doctor_id),
                hours.model_dump(mode="json"),
                ttl=self.settings.working_hours_cache_ttl,
            )

        return hours

    async def set_working_hours(self, doctor_id: int, hours: WorkingHours) -> WorkingHoursResponse:
        """
        Replace a doctor's working hours.

        An empty list of days reverts the doctor to the clinic default.
        """
        await self.db.execute(
            delete(doctor_working_hours).where(doctor_working_hours.c.doctor_id == doctor_id)
        )
        if hours.days:
            await self.db.execute(
                insert(doctor_working_hours),
                [
                    {
                        "doctor_id": doctor_id,
                        "weekday": day.weekday,
                        "opens_at": day.opens_at,
                        "closes_at": day.closes_at,
                    }
                    for day in hours.days
                ],
            )
        await self.db.commit()

        if self.cache:
            self.cache.delete(self._get_working_hours_cache_key(doctor_id))

        logger.info("working_hours_updated", doctor_id=doctor_id, days=len(hours.days))
        return await self.get_working_hours(doctor_id)

    async def add_unavailability(
        self, doctor_id: int, data: UnavailabilityCreate
    ) -> UnavailabilityResponse:
        """Block a period of a doctor's time."""
        stmt = (
            insert(doctor_unavailability)
            .values(
                doctor_id=doctor_id,
                start_at=data.start_at,
                end_at=data.end_at,
                reason=data.reason,
            )
            .returning(doctor_unavailability)
        )
        result = await self.db.execute(stmt)
        row = result.fetchone()
        await self.db.commit()

        logger.info(
            "doctor_unavailability_added",
            doctor_id=doctor_id,
            start_at=data.start_at.isoformat(),
            end_at=data.end_at.isoformat(),
        )
        return UnavailabilityResponse.model_validate(dict(row._mapping))

    async def unavailability_between(
        self, doctor_id: int, since: datetime, until: datetime
    ) -> list[TimeInterval]:
        """Blocked periods intersecting ``[since, until)``."""
        query = select(doctor_unavailability.c.start_at, doctor_unavailability.c.end_at).where(
            and_(
                doctor_unavailability.c.doctor_id == doctor_id,
                doctor_unavailability.c.start_at < until,
                doctor_unavailability.c.end_at > since,
            )
        )
        result = await self.db.execute(query)
        return [TimeInterval(row.start_at, row.end_at) for row in result.fetchall()]

    async def busy_intervals(self, doctor_id: int, day: date) -> list[TimeInterval]:
        """Booked appointments and blocked periods touching ``day``."""
        whole_day = TimeInterval.for_day(day)
        booked = await self.store.find_active_by_doctor(
            doctor_id, whole_day.start - LOOKBACK, whole_day.end
        )
        blocked = await self.unavailability_between(doctor_id, whole_day.start, whole_day.end)
        return [appointment.interval for appointment in booked] + blocked

    async def available_slots(
        self,
        doctor_id: int,
        day: date,
        slot_minutes: int,
        now: datetime | None = None,
    ) -> list[TimeSlot]:
        """
        Get a doctor's slots for one day.

        Args:
            doctor_id: Doctor ID
            day: Calendar day
            slot_minutes: Length of each slot
            now: Slots starting at or before this instant are unavailable

        Returns:
            Chronological slots, each marked available or not
        """
        hours = await self.get_working_hours(doctor_id)
        busy = await self.busy_intervals(doctor_id, day)
        return available_slots(day, slot_minutes, hours, busy, now)

    async def next_available_slots(
        self,
        doctor_id: int,
        day: date,
        slot_minutes: int,
        limit: int,
        now: datetime | None = None,
    ) -> list[TimeSlot]:
        """First ``limit`` free slots on or after ``day``."""
        found: list[TimeSlot] = []
        for offset in range(self.settings.alternatives_search_days):
            current = day + timedelta(days=offset)
            slots = await self.available_slots(doctor_id, current, slot_minutes, now)
            found.extend(slot for slot in slots if slot.available)
            if len(found) >= limit:
                break
        return found[:limit]
