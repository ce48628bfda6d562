import logging

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker

logger = logging.getLogger(__name__)

Base = declarative_base()


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    # echo=True gibt alle SQL-Statements aus, nur zum Debuggen einschalten
    logger.info("Verwende DATABASE_URL: %s", database_url)
    return create_async_engine(database_url, echo=echo)


def build_session_factory(engine: AsyncEngine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
        class_=AsyncSession,
    )


def sync_database_url(database_url: str) -> str:
    """Alembic migriert synchron, daher ohne async Treiber-Suffix."""
    for suffix in ("+asyncpg", "+aiosqlite"):
        if suffix in database_url:
            return database_url.replace(suffix, "")
    return database_url
