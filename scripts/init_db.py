"""Script to create the scheduling tables directly, without Alembic.

Intended for throwaway development databases.
"""

import asyncio

from sqlalchemy import text

from scheduling.database import engine
from scheduling.models import metadata


async def init_db() -> None:
    """Create extensions, tables and the overlap exclusion constraint."""
    async with engine.begin() as conn:
        await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "pgcrypto"'))
        await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "btree_gist"'))

        await conn.run_sync(metadata.create_all)

    await engine.dispose()
    print("✓ Database initialized successfully!")


if __name__ == "__main__":
    asyncio.run(init_db())
