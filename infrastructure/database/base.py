# infrastructure/database/base.py
"""
🗄️ DATABASE CONNECTION

One async engine per process and a session factory on top of it.

- API requests get a session through ``get_db_session`` (FastAPI dependency)
- bot handlers get one through ``DatabaseMiddleware``
"""

from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from config.settings import config
from infrastructure.logger import logger

# Base for every model in infrastructure/database/models.py
Base = declarative_base()


# ==========================================
# ENGINE + SESSION FACTORY
# ==========================================

engine = create_async_engine(
    config.async_database_url,
    echo=False,
    pool_pre_ping=True,
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db_session() -> AsyncIterator[AsyncSession]:
    """
    FastAPI dependency: one session per request.

    The session is always closed; anything left uncommitted is rolled back.
    """
    async with async_session_maker() as session:
        yield session


# ==========================================
# LIFECYCLE
# ==========================================

async def init_db():
    """Create the tables that do not exist yet."""

    # models must be imported so that Base.metadata knows every table
    from infrastructure.database import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("database_tables_ready", tables=sorted(Base.metadata.tables.keys()))


async def close_db():
    """Dispose of the connection pool."""
    await engine.dispose()
