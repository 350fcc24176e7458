"""Authenticated caller schemas."""

from enum import Enum

from pydantic import BaseModel, Field


class Role(str, Enum):
    """Caller role issued by the identity service."""

    PATIENT = "patient"
    DOCTOR = "doctor"
    ASSISTANT = "assistant"
    ADMIN = "admin"


class Caller(BaseModel):
    """Verified identity of the user making a request."""

    user_id: int = Field(..., gt=0)
    role: Role

    @property
    def is_staff(self) -> bool:
        """Admins and assistants act on every appointment."""
        return self.role in (Role.ADMIN, Role.ASSISTANT)
