"""Custom application exceptions."""

from typing import Any


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)

    def details(self) -> dict[str, Any]:
        """Extra fields rendered next to the error message."""
        return {}


class NotFoundException(AppException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class ForbiddenException(AppException):
    """Forbidden access exception."""

    def __init__(self, message: str = "Forbidden"):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403)


class ValidationException(AppException):
    """Business rule validation failure on a single field."""

    def __init__(self, message: str = "Validation error", field: str | None = None):
        """Initialize with 422 status code and the offending field."""
        self.field = field
        super().__init__(message, status_code=422)

    def details(self) -> dict[str, Any]:
        return {"field": self.field}


class ConflictException(AppException):
    """Booking overlaps an existing appointment of the doctor or the patient."""

    def __init__(
        self,
        message: str = "Conflict",
        conflicting_appointments: list[Any] | None = None,
        suggested_alternatives: list[Any] | None = None,
    ):
        """Initialize with 409 status code and the colliding appointments."""
        self.conflicting_appointments = conflicting_appointments or []
        self.suggested_alternatives = suggested_alternatives or []
        super().__init__(message, status_code=409)

    def details(self) -> dict[str, Any]:
        return {
            "conflicting_appointments": [
                _dump(appointment) for appointment in self.conflicting_appointments
            ],
            "suggested_alternatives": [_dump(slot) for slot in self.suggested_alternatives],
        }


class InvalidTransitionException(AppException):
    """Status change not allowed by the appointment lifecycle."""

    def __init__(self, current_status: Any, attempted_status: Any):
        """Initialize with 409 status code and both statuses."""
        self.current_status = current_status
        self.attempted_status = attempted_status
        super().__init__(
            f"Cannot change appointment status from '{_value(current_status)}' "
            f"to '{_value(attempted_status)}'",
            status_code=409,
        )

    def details(self) -> dict[str, Any]:
        return {
            "current_status": _value(self.current_status),
            "attempted_status": _value(self.attempted_status),
        }


class StorageException(AppException):
    """Infrastructure failure while reading or writing appointments."""

    def __init__(self, message: str = "Storage unavailable"):
        """Initialize with 503 status code."""
        super().__init__(message, status_code=503)


def _value(status: Any) -> Any:
    return getattr(status, "value", status)


def _dump(item: Any) -> Any:
    if hasattr(item, "model_dump"):
        return item.model_dump(mode="json")
    return item
