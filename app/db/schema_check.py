import asyncio
import logging
from typing import List

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncEngine

import app.core.models  # noqa: F401  (registers tables on Base.metadata)
from app.core.logging import configure_logging
from app.db.session import Base, engine

logger = logging.getLogger(__name__)


async def ensure_tables(db_engine: AsyncEngine) -> List[str]:
    """
    Ensure that all workflow tables exist in the connected database.
    Missing tables are created; existing ones are left untouched. Returns the created names.
    """
    async with db_engine.begin() as conn:
        existing = set(await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names()))
        missing = [t.name for t in Base.metadata.sorted_tables if t.name not in existing]
        await conn.run_sync(Base.metadata.create_all)

    if missing:
        logger.info("Created missing tables: %s", ", ".join(missing))
    else:
        logger.info("All workflow tables already exist in the database.")
    return missing


async def main() -> None:
    configure_logging()
    await ensure_tables(engine)


if __name__ == "__main__":
    asyncio.run(main())
