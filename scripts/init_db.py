"""Initialise the history database schema.

Run once to create all tables:
    python -m scripts.init_db

The app also creates missing tables at startup; this is for preparing a
database file ahead of time (HISTORY_DATABASE_URL).
"""

import asyncio

import structlog

from src.config import get_settings
from src.db.history import HistoryStore

logger = structlog.get_logger()


async def init() -> None:
    database_url = get_settings().history_database_url
    logger.info("init_db", url=database_url)

    store = HistoryStore(database_url)
    await store.initialize()
    stats = await store.get_statistics()
    await store.close()

    logger.info("init_db.done", existing_records=stats.total_checks)


if __name__ == "__main__":
    asyncio.run(init())
