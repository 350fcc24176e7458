"""Doctor working hours and unavailability tables using SQLAlchemy Core."""

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    DateTime,
    MetaData,
    SmallInteger,
    Table,
    Text,
    Time,
    UniqueConstraint,
    func,
)

from cabinet_scheduler.models.appointments import Identifier

metadata = MetaData()

# One opening window per doctor and weekday (0 = Monday)
doctor_working_hours = Table(
    "doctor_working_hours",
    metadata,
    Column("id", Identifier, primary_key=True, autoincrement=True),
    Column("doctor_id", BigInteger, nullable=False, index=True),
    Column("weekday", SmallInteger, nullable=False),
    Column("opens_at", Time, nullable=False),
    Column("closes_at", Time, nullable=False),
    UniqueConstraint("doctor_id", "weekday", name="uq_doctor_working_hours_weekday"),
    CheckConstraint("weekday BETWEEN 0 AND 6", name="doctor_working_hours_weekday_check"),
    CheckConstraint("closes_at > opens_at", name="doctor_working_hours_window_check"),
)

# Blocked periods: vacation, training, ...
doctor_unavailability = Table(
    "doctor_unavailability",
    metadata,
    Column("id", Identifier, primary_key=True, autoincrement=True),
    Column("doctor_id", BigInteger, nullable=False, index=True),
    Column("start_at", DateTime(timezone=False), nullable=False),
    Column("end_at", DateTime(timezone=False), nullable=False),
    Column("reason", Text, nullable=True),
    Column("created_at", DateTime(timezone=False), nullable=False, server_default=func.now()),
    CheckConstraint("end_at > start_at", name="doctor_unavailability_range_check"),
)
