"""
FastAPI dependencies (shared across routes).
"""

from __future__ import annotations

from typing import AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.borrowing import BorrowingWorkflow
from core.catalog import CatalogService
from core.policy import AccessPolicy
from core.reporting import ReportingEngine
from database.session import async_session_factory

_policy = AccessPolicy()


def session_factory() -> async_sessionmaker[AsyncSession]:
    """Override in tests to point the whole API at another database."""
    return async_session_factory


async def db_session(
    factory: async_sessionmaker[AsyncSession] = Depends(session_factory),
) -> AsyncGenerator[AsyncSession, None]:
    """Yield a request-scoped session; commit on success, roll back on error."""
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def access_policy() -> AccessPolicy:
    return _policy


def borrowing_workflow(
    factory: async_sessionmaker[AsyncSession] = Depends(session_factory),
    policy: AccessPolicy = Depends(access_policy),
) -> BorrowingWorkflow:
    return BorrowingWorkflow(factory, policy)


def reporting_engine(
    factory: async_sessionmaker[AsyncSession] = Depends(session_factory),
) -> ReportingEngine:
    return ReportingEngine(factory)


def catalog_service(
    factory: async_sessionmaker[AsyncSession] = Depends(session_factory),
) -> CatalogService:
    return CatalogService(factory)
