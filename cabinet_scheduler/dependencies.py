"""FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from cabinet_scheduler.core.clock import Clock, clinic_now
from cabinet_scheduler.core.redis_client import CacheManager, get_redis_client
from cabinet_scheduler.core.security import decode_access_token
from cabinet_scheduler.database import get_db
from cabinet_scheduler.schemas.auth import Caller
from cabinet_scheduler.services.appointment_service import AppointmentService
from cabinet_scheduler.services.schedule_service import ScheduleService

# Security
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_caller(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> Caller:
    """
    Extract and validate the caller identity from the JWT token.

    The token carries the user ID in ``sub`` and the caller role in ``role``.

    Args:
        credentials: Bearer token credentials

    Returns:
        Verified caller

    Raises:
        HTTPException: If token is missing, invalid or expired
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise _unauthorized()

    try:
        return Caller(user_id=int(payload.get("sub")), role=payload.get("role"))
    except (TypeError, ValueError, ValidationError):
        raise _unauthorized("Invalid caller identity")


def get_clock() -> Clock:
    """Clock used to stamp and judge appointments."""
    return clinic_now


def get_cache_manager() -> CacheManager:
    """Cache manager backed by the shared Redis client."""
    return CacheManager(get_redis_client())


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CurrentCaller = Annotated[Caller, Depends(get_current_caller)]
ClinicClock = Annotated[Clock, Depends(get_clock)]
Cache = Annotated[CacheManager, Depends(get_cache_manager)]


async def get_appointment_service(
    db: DatabaseSession,
    cache: Cache,
    clock: ClinicClock,
) -> AppointmentService:
    """Appointment service bound to the request session."""
    return AppointmentService(db, cache_manager=cache, clock=clock)


async def get_schedule_service(db: DatabaseSession, cache: Cache) -> ScheduleService:
    """Schedule service bound to the request session."""
    return ScheduleService(db, cache_manager=cache)


Appointments = Annotated[AppointmentService, Depends(get_appointment_service)]
Schedules = Annotated[ScheduleService, Depends(get_schedule_service)]
