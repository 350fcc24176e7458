"""Script to purge old cancelled or completed appointments."""

import argparse
import asyncio
import sys

from cabinet_scheduler.config import settings
from cabinet_scheduler.core.exceptions import AppException
from cabinet_scheduler.database import AsyncSessionLocal, engine
from cabinet_scheduler.middleware.logging import configure_logging
from cabinet_scheduler.scheduling.status import AppointmentStatus
from cabinet_scheduler.services.appointment_service import AppointmentService


async def cleanup(statuses: list[AppointmentStatus], older_than_days: int) -> int:
    """Delete appointments in the given statuses older than the retention period."""
    total = 0
    async with AsyncSessionLocal() as session:
        service = AppointmentService(session)
        for status in statuses:
            deleted = await service.cleanup(status, older_than_days)
            print(f"✓ Deleted {deleted} {status.value} appointment(s)")
            total += deleted

    await engine.dispose()
    return total


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--status",
        action="append",
        choices=[AppointmentStatus.CANCELLED.value, AppointmentStatus.COMPLETED.value],
        help="Status to purge (repeatable, default: cancelled)",
    )
    parser.add_argument(
        "--older-than-days",
        type=int,
        default=settings.retention_days,
        help=f"Retention period in days (default: {settings.retention_days})",
    )
    args = parser.parse_args()

    configure_logging()
    statuses = [AppointmentStatus(value) for value in args.status or ["cancelled"]]

    try:
        total = asyncio.run(cleanup(statuses, args.older_than_days))
    except AppException as e:
        print(f"✗ Cleanup failed: {e.message}", file=sys.stderr)
        sys.exit(1)

    print(f"✓ Cleanup complete, {total} appointment(s) removed")


if __name__ == "__main__":
    main()
