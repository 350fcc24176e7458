"""Appointment storage on SQLAlchemy Core."""

from collections.abc import Iterable
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy import and_, delete, extract, func, select, text, true, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cabinet_scheduler.core.exceptions import ConflictException, StorageException
from cabinet_scheduler.core.locks import ActorKey
from cabinet_scheduler.models.appointments import appointments
from cabinet_scheduler.scheduling.status import (
    FINAL_STATUSES,
    MODIFIABLE_STATUSES,
    AppointmentStatus,
)
from cabinet_scheduler.schemas.appointments import Appointment, AppointmentFilters

logger = structlog.get_logger(__name__)

# Names of the PostgreSQL exclusion constraints (see alembic/versions/003)
OVERLAP_CONSTRAINTS = (
    "appointments_doctor_no_overlap",
    "appointments_patient_no_overlap",
)

# Open appointments whose start has passed without anyone moving them on
OVERDUE_STATUSES = frozenset(
    status
    for status in AppointmentStatus
    if status not in FINAL_STATUSES and status != AppointmentStatus.IN_PROGRESS
)


class AppointmentStore:
    """Queries and writes the scheduling engine needs from the database."""

    def __init__(self, db: AsyncSession):
        """Initialize store with database session."""
        self.db = db

    @property
    def is_postgresql(self) -> bool:
        return self.db.get_bind().dialect.name == "postgresql"

    async def get(self, appointment_id: int) -> Appointment | None:
        """Get appointment by ID."""
        stmt = select(appointments).where(appointments.c.id == appointment_id)
        result = await self.db.execute(stmt)
        row = result.fetchone()
        return Appointment.model_validate(dict(row._mapping)) if row else None

    async def _find_active(
        self,
        actor_column: Any,
        actor_id: int,
        since: datetime,
        until: datetime,
    ) -> list[Appointment]:
        stmt = (
            select(appointments)
            .where(
                and_(
                    actor_column == actor_id,
                    appointments.c.status != AppointmentStatus.CANCELLED.value,
                    appointments.c.start_at >= since,
                    appointments.c.start_at < until,
                )
            )
            .order_by(appointments.c.start_at, appointments.c.id)
        )
        result = await self.db.execute(stmt)
        return [Appointment.model_validate(dict(row._mapping)) for row in result.fetchall()]

    async def find_active_by_doctor(
        self, doctor_id: int, since: datetime, until: datetime
    ) -> list[Appointment]:
        """Non-cancelled appointments of a doctor starting in ``[since, until)``."""
        return await self._find_active(appointments.c.doctor_id, doctor_id, since, until)

    async def find_active_by_patient(
        self, patient_id: int, since: datetime, until: datetime
    ) -> list[Appointment]:
        """Non-cancelled appointments of a patient starting in ``[since, until)``."""
        return await self._find_active(appointments.c.patient_id, patient_id, since, until)

    async def find_page(self, filters: AppointmentFilters) -> tuple[int, list[Appointment]]:
        """
        List appointments with filtering and pagination.

        Returns:
            Tuple of (total matching, page items)
        """
        conditions = []

        if filters.status:
            conditions.append(appointments.c.status == filters.status.value)

        if filters.doctor_id:
            conditions.append(appointments.c.doctor_id == filters.doctor_id)

        if filters.patient_id:
            conditions.append(appointments.c.patient_id == filters.patient_id)

        if filters.from_date:
            conditions.append(appointments.c.start_at >= filters.from_date)

        if filters.to_date:
            conditions.append(appointments.c.start_at <= filters.to_date)

        if filters.search:
            conditions.append(appointments.c.reason.icontains(filters.search, autoescape=True))

        count_stmt = select(func.count()).select_from(appointments).where(and_(true(), *conditions))
        total_result = await self.db.execute(count_stmt)
        total = total_result.scalar() or 0

        offset = (filters.page - 1) * filters.page_size

        stmt = (
            select(appointments)
            .where(and_(true(), *conditions))
            .order_by(appointments.c.start_at.desc(), appointments.c.id.desc())
            .limit(filters.page_size)
            .offset(offset)
        )

        result = await self.db.execute(stmt)
        items = [Appointment.model_validate(dict(row._mapping)) for row in result.fetchall()]
        return total, items

    async def _find(self, *conditions: Any, limit: int | None = None) -> list[Appointment]:
        stmt = (
            select(appointments)
            .where(and_(*conditions))
            .order_by(appointments.c.start_at, appointments.c.id)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.db.execute(stmt)
        return [Appointment.model_validate(dict(row._mapping)) for row in result.fetchall()]

    async def find_upcoming_by_patient(
        self, patient_id: int, after: datetime, limit: int | None = None
    ) -> list[Appointment]:
        """Open appointments of a patient starting after ``after``, soonest first."""
        return await self._find(
            appointments.c.patient_id == patient_id,
            appointments.c.status.in_([status.value for status in MODIFIABLE_STATUSES]),
            appointments.c.start_at > after,
            limit=limit,
        )

    async def find_upcoming_by_doctor(
        self, doctor_id: int, after: datetime, limit: int | None = None
    ) -> list[Appointment]:
        """Open appointments of a doctor starting after ``after``, soonest first."""
        return await self._find(
            appointments.c.doctor_id == doctor_id,
            appointments.c.status.in_([status.value for status in MODIFIABLE_STATUSES]),
            appointments.c.start_at > after,
            limit=limit,
        )

    async def find_overdue_by_doctor(self, doctor_id: int, before: datetime) -> list[Appointment]:
        """Appointments of a doctor that should have started before ``before`` but never did."""
        return await self._find(
            appointments.c.doctor_id == doctor_id,
            appointments.c.status.in_([status.value for status in OVERDUE_STATUSES]),
            appointments.c.start_at < before,
        )

    async def count_by_status(self, doctor_id: int | None = None) -> dict[AppointmentStatus, int]:
        """Number of appointments per status, optionally for one doctor."""
        stmt = select(appointments.c.status, func.count()).group_by(appointments.c.status)
        if doctor_id is not None:
            stmt = stmt.where(appointments.c.doctor_id == doctor_id)
        result = await self.db.execute(stmt)
        return {AppointmentStatus(status): count for status, count in result.all()}

    async def count_between(
        self, since: datetime, until: datetime, doctor_id: int | None = None
    ) -> int:
        """Number of appointments starting in ``[since, until)``."""
        conditions = [appointments.c.start_at >= since, appointments.c.start_at < until]
        if doctor_id is not None:
            conditions.append(appointments.c.doctor_id == doctor_id)
        stmt = select(func.count()).select_from(appointments).where(and_(*conditions))
        result = await self.db.execute(stmt)
        return result.scalar() or 0

    async def popular_hours(
        self, doctor_id: int | None = None, limit: int = 5
    ) -> list[tuple[int, int]]:
        """
        Hours of the day most bookings start in.

        Returns:
            (hour, count) pairs, busiest first
        """
        hour = extract("hour", appointments.c.start_at)
        conditions = [appointments.c.status != AppointmentStatus.CANCELLED.value]
        if doctor_id is not None:
            conditions.append(appointments.c.doctor_id == doctor_id)

        stmt = (
            select(hour.label("hour"), func.count().label("count"))
            .where(and_(*conditions))
            .group_by(hour)
            .order_by(func.count().desc(), hour)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return [(int(row.hour), row.count) for row in result.fetchall()]

    async def insert(self, values: dict[str, Any]) -> Appointment:
        """Insert an appointment and return the stored row."""
        stmt = appointments.insert().values(**values).returning(appointments)
        result = await self._write(stmt)
        return Appointment.model_validate(dict(result.fetchone()._mapping))

    async def update(
        self,
        appointment_id: int,
        values: dict[str, Any],
        expected_status: AppointmentStatus | None = None,
    ) -> Appointment | None:
        """
        Update an appointment.

        Args:
            appointment_id: Appointment ID
            values: Column values to set
            expected_status: Only update while the row still has this status

        Returns:
            Updated appointment, or None when no row matched
        """
        conditions = [appointments.c.id == appointment_id]
        if expected_status is not None:
            conditions.append(appointments.c.status == AppointmentStatus(expected_status).value)

        stmt = update(appointments).where(and_(*conditions)).values(**values).returning(appointments)
        result = await self._write(stmt)
        row = result.fetchone()
        return Appointment.model_validate(dict(row._mapping)) if row else None

    async def delete_older_than(self, status: AppointmentStatus, before: datetime) -> int:
        """Physically delete appointments in ``status`` that started before ``before``."""
        stmt = delete(appointments).where(
            and_(
                appointments.c.status == AppointmentStatus(status).value,
                appointments.c.start_at < before,
            )
        )
        result = await self._write(stmt)
        return result.rowcount or 0

    async def lock_actors(self, keys: Iterable[ActorKey]) -> None:
        """
        Take transaction-scoped advisory locks on the actors (PostgreSQL only).

        Released automatically on commit or rollback.
        """
        if not self.is_postgresql:
            return
        for kind, actor_id in sorted(set(keys)):
            await self.db.execute(
                text("SELECT pg_advisory_xact_lock(hashtext(:key))"),
                {"key": f"{kind}:{actor_id}"},
            )

    async def commit(self) -> None:
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise self._translate(e) from e
        except SQLAlchemyError as e:
            logger.error("appointment_commit_failed", error=str(e))
            await self.db.rollback()
            raise StorageException("Could not save appointment") from e

    async def rollback(self) -> None:
        await self.db.rollback()

    async def _write(self, stmt: Any) -> Any:
        try:
            return await self.db.execute(stmt)
        except IntegrityError as e:
            raise self._translate(e) from e
        except SQLAlchemyError as e:
            logger.error("appointment_write_failed", error=str(e))
            raise StorageException("Could not save appointment") from e

    @staticmethod
    def _translate(error: IntegrityError) -> Exception:
        message = str(error.orig)
        if any(name in message for name in OVERLAP_CONSTRAINTS):
            logger.warning("appointment_overlap_rejected_by_database", error=message)
            return ConflictException("Time range is already booked")
        logger.error("appointment_integrity_error", error=message)
        return StorageException("Appointment violates a storage constraint")
