"""
Async SQLAlchemy engine and session factory.
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from config.settings import config
from database.models import Base

logger = logging.getLogger(__name__)


def build_engine(database_url: str, **kwargs) -> AsyncEngine:
    """
    Create an async engine for *database_url*.

    Pool sizing only applies to server databases; SQLite URLs get the
    driver defaults.
    """
    options = {"echo": config.database_echo}
    if not database_url.startswith("sqlite"):
        options.update(
            pool_size=config.database_pool_size,
            max_overflow=config.database_max_overflow,
            pool_recycle=3600,
        )
    options.update(kwargs)
    return create_async_engine(database_url, **options)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = build_engine(config.database_url)

async_session_factory = build_session_factory(engine)


async def create_tables(bind: AsyncEngine = engine) -> None:
    """Create all tables that do not exist yet."""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured")
