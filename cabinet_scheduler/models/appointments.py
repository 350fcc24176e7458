"""Appointments table model using SQLAlchemy Core."""

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
    func,
)

from cabinet_scheduler.scheduling.status import AppointmentStatus

# Metadata for all tables
metadata = MetaData()

# SQLite only autoincrements INTEGER primary keys
Identifier = BigInteger().with_variant(Integer, "sqlite")

_statuses = ", ".join(f"'{status.value}'" for status in AppointmentStatus)

# Appointments table
appointments = Table(
    "appointments",
    metadata,
    Column("id", Identifier, primary_key=True, autoincrement=True),
    # Actors (owned by external services)
    Column("patient_id", BigInteger, nullable=False),
    Column("doctor_id", BigInteger, nullable=False),
    # Clinic wall-clock time, no timezone
    Column("start_at", DateTime(timezone=False), nullable=False),
    Column("duration_minutes", Integer, nullable=False, server_default="30"),
    # Status management
    Column(
        "status",
        Text,
        nullable=False,
        server_default=AppointmentStatus.CONFIRMED.value,
    ),
    Column("reason", Text, nullable=True),
    Column("notes", Text, nullable=True),
    Column("cancellation_reason", Text, nullable=True),
    # Audit fields
    Column("created_at", DateTime(timezone=False), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=False), nullable=False, server_default=func.now()),
    Column("cancelled_at", DateTime(timezone=False), nullable=True),
    # Constraints
    CheckConstraint(
        f"status IN ({_statuses})",
        name="appointments_status_check",
    ),
    CheckConstraint(
        "duration_minutes BETWEEN 15 AND 480",
        name="appointments_duration_check",
    ),
    Index("ix_appointments_doctor_start", "doctor_id", "start_at"),
    Index("ix_appointments_patient_start", "patient_id", "start_at"),
    Index("ix_appointments_status", "status"),
)
