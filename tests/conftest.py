"""
Shared fixtures: a throwaway SQLite database per test and seeding helpers.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("CREATE_TABLES_ON_STARTUP", "false")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import uuid
from datetime import date, datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy.pool import NullPool

from database import inventory, ledger
from database.models import Book, BorrowRecord, User
from database.session import build_engine, build_session_factory, create_tables
from utils.schemas import BookCreate


def sqlite_url(path) -> str:
    return f"sqlite+aiosqlite:///{path}"


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    # A file database (not :memory:) so concurrent sessions get their own
    # connections and real SQLite locking.
    engine = build_engine(sqlite_url(tmp_path / "library.db"), poolclass=NullPool)
    await create_tables(engine)
    try:
        yield build_session_factory(engine)
    finally:
        await engine.dispose()


def due_in(days: int) -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=days)


async def add_user(factory, name: str = "Ada Member", role: str = "Member") -> User:
    async with factory.begin() as session:
        user = User(
            id=uuid.uuid4(),
            name=name,
            email=f"{uuid.uuid4().hex[:10]}@example.com",
            password_hash="not-a-real-hash",
            role=role,
        )
        session.add(user)
    return user


async def add_book(factory, copies: int = 1, title: str = "Dune", isbn: str | None = None) -> Book:
    async with factory.begin() as session:
        return await inventory.add_book(
            session,
            BookCreate(
                title=title,
                author="Frank Herbert",
                isbn=isbn or uuid.uuid4().hex[:13],
                publication_date=date(1965, 8, 1),
                genre="Science Fiction",
                copies=copies,
            ),
        )


async def add_ledger_entry(factory, user_id, book_id, days: int = 14) -> BorrowRecord:
    """Write a ledger row directly, bypassing the inventory."""
    async with factory.begin() as session:
        return await ledger.create_borrow(session, user_id, book_id, due_in(days))


async def copies_of(factory, book_id) -> int:
    async with factory() as session:
        book = await inventory.get_book(session, book_id)
        return book.copies


async def ledger_size(factory) -> int:
    async with factory() as session:
        _, total = await ledger.list_borrows(session, skip=0, limit=1)
        return total
