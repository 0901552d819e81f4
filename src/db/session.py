"""Database engine and session management.

History lives in an embedded SQLite file driven through SQLAlchemy's async
engine (aiosqlite). The URL comes from HISTORY_DATABASE_URL; tests point it
at a file under tmp_path.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from src.utils.logging import log, get_logger

MODULE = "db"
logger = get_logger()


def create_engine_and_sessionmaker(
    database_url: str, echo: bool = False
) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Build an async engine and its session factory."""
    engine = create_async_engine(database_url, echo=echo)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    log.debug(logger, MODULE, "configured", "Database engine configured",
              url=database_url.split("://")[0], database=database_url.rsplit("/", 1)[-1])
    return engine, session_factory
