"""Script to initialize the database."""

import asyncio

from cabinet_scheduler.database import engine
from cabinet_scheduler.models import metadata


async def init_db() -> None:
    """
    Initialize the database by creating all tables.

    Use for local development only; PostgreSQL deployments run the Alembic
    migrations, which also install the overlap exclusion constraints.
    """
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    await engine.dispose()
    print("✓ Database initialized successfully!")


if __name__ == "__main__":
    asyncio.run(init_db())
