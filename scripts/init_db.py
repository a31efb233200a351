"""Script to initialize a development database without Alembic."""

import asyncio

from sqlalchemy import text

from physiobook.database import engine
from physiobook.models.appointments import metadata as appointments_metadata
from physiobook.models.notifications import metadata as notifications_metadata
from physiobook.models.profiles import metadata as profiles_metadata


async def init_db() -> None:
    """Initialize the database by creating all tables."""
    async with engine.begin() as conn:
        if conn.dialect.name == "postgresql":
            await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "pgcrypto"'))

        for metadata in (profiles_metadata, appointments_metadata, notifications_metadata):
            await conn.run_sync(metadata.create_all)

    await engine.dispose()
    print("✓ Database initialized successfully!")


if __name__ == "__main__":
    asyncio.run(init_db())
