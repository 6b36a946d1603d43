"""Async database engine for the request lifecycle store.

SQLAlchemy 2.0 async over asyncpg. Nothing touches PostgreSQL until
``init_db()`` runs in the app lifespan; if that fails the app keeps the
in-memory lifecycle store.
"""

import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.config import settings

logger = logging.getLogger(__name__)

engine = create_async_engine(
    settings.database_url,
    echo=False,
    pool_size=5,
    max_overflow=10,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def init_db() -> bool:
    """Create the search_requests table if missing. Returns True when the store is usable."""
    from app.models import Base

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database initialized | tables=%s", ",".join(sorted(Base.metadata.tables)))
        return True
    except Exception as e:
        logger.warning("Database unavailable — using in-memory request store: %s", str(e)[:200])
        return False


async def ping_db() -> bool:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.debug("Database ping failed: %s", str(e)[:100])
        return False


async def close_db():
    await engine.dispose()
    logger.info("Database connections closed")
