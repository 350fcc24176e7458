"""Database models."""

from sqlalchemy import MetaData

from cabinet_scheduler.models.appointments import appointments
from cabinet_scheduler.models.appointments import metadata as appointments_metadata
from cabinet_scheduler.models.doctor_schedules import doctor_unavailability, doctor_working_hours
from cabinet_scheduler.models.doctor_schedules import metadata as schedules_metadata

# Combined metadata for create_all / drop_all
metadata = MetaData()
for _source in (appointments_metadata, schedules_metadata):
    for _table in _source.tables.values():
        _table.to_metadata(metadata)

__all__ = [
    "appointments",
    "doctor_unavailability",
    "doctor_working_hours",
    "metadata",
]
