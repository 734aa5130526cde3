"""Async SQLAlchemy engine and session factory.

Learn: One engine per process. Each HTTP request (get_db) and each CLI
command (cli.main.open_service) opens its own AsyncSession from the
factory; SqlUserRepository commits inside that session on every write.

expire_on_commit=False keeps row attributes readable after commit, which
the repository relies on when it converts rows back into Identity records.
"""

from typing import AsyncIterator

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from userhub.config import settings
from userhub.db.models import Base

logger = structlog.get_logger()

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_pre_ping=True,
    connect_args={"timeout": settings.db_connect_timeout},
)

async_session_factory = async_sessionmaker(engine, expire_on_commit=False)


async def get_db() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency: a session for the request, rolled back on error."""
    async with async_session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def create_tables() -> None:
    """Create the users table if missing (used by `userhub init-db`)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("db.tables_ready", tables=sorted(Base.metadata.tables))
