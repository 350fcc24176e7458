"""Appointment notifications (fire-and-forget)."""

from datetime import datetime

import structlog

from cabinet_scheduler.scheduling.status import AppointmentStatus
from cabinet_scheduler.schemas.appointments import Appointment

logger = structlog.get_logger(__name__)

STATUS_MESSAGES: dict[AppointmentStatus, str] = {
    AppointmentStatus.PENDING: "Your appointment is awaiting confirmation",
    AppointmentStatus.CONFIRMED: "Your appointment is confirmed",
    AppointmentStatus.RESCHEDULED: "Your appointment has been rescheduled",
    AppointmentStatus.IN_PROGRESS: "Your consultation is in progress",
    AppointmentStatus.COMPLETED: "Your consultation is complete",
    AppointmentStatus.CANCELLED: "Your appointment has been cancelled",
    AppointmentStatus.NO_SHOW: "You were marked absent for this appointment",
    AppointmentStatus.POSTPONED: "Your appointment has been postponed",
}


class NotificationService:
    """
    Builds appointment notifications and hands them to the delivery channel.

    Delivery itself belongs to an external service; subclasses override
    :meth:`dispatch` to reach it. The default implementation only logs.
    """

    async def dispatch(
        self,
        user_id: int,
        title: str,
        body: str,
        data: dict[str, str] | None = None,
    ) -> None:
        """Send one notification to one user."""
        logger.info(
            "notification_dispatched",
            user_id=user_id,
            title=title,
            body=body,
            data=data or {},
        )

    async def appointment_created(self, appointment: Appointment) -> None:
        """Notify both parties of a new booking."""
        data = _payload(appointment, "appointment_created")
        when = _format_time(appointment.start_at)
        await self.dispatch(
            appointment.patient_id,
            "Appointment booked",
            f"{STATUS_MESSAGES[appointment.status]} for {when}",
            data,
        )
        await self.dispatch(
            appointment.doctor_id,
            "New appointment",
            f"New appointment booked for {when}",
            data,
        )

    async def appointment_rescheduled(self, appointment: Appointment, previous_start: datetime) -> None:
        """Notify both parties that the appointment moved."""
        data = _payload(appointment, "appointment_rescheduled")
        data["previous_start_at"] = previous_start.isoformat()
        body = (
            f"Moved from {_format_time(previous_start)} "
            f"to {_format_time(appointment.start_at)}"
        )
        await self.dispatch(appointment.patient_id, "Appointment rescheduled", body, data)
        await self.dispatch(appointment.doctor_id, "Appointment rescheduled", body, data)

    async def appointment_status_changed(
        self, appointment: Appointment, old_status: AppointmentStatus
    ) -> None:
        """Notify the patient of a status change."""
        data = _payload(appointment, "appointment_status_changed")
        data["old_status"] = AppointmentStatus(old_status).value
        await self.dispatch(
            appointment.patient_id,
            "Appointment update",
            STATUS_MESSAGES[appointment.status],
            data,
        )


def _payload(appointment: Appointment, event: str) -> dict[str, str]:
    return {
        "type": event,
        "appointment_id": str(appointment.id),
        "status": appointment.status.value,
        "start_at": appointment.start_at.isoformat(),
    }


def _format_time(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M")
