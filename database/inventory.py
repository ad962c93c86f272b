"""
Inventory store: book records and their shared ``copies`` counter.

All functions take an open ``AsyncSession`` and never commit; the caller
owns the transaction.
"""

from __future__ import annotations

import logging
import uuid
from typing import List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import ConflictError
from database.models import Book, utcnow
from utils.pagination import build_search_clause
from utils.schemas import BookCreate

logger = logging.getLogger(__name__)

SEARCH_COLUMNS = (Book.title, Book.author, Book.genre, Book.isbn)


async def add_book(session: AsyncSession, data: BookCreate) -> Book:
    book = Book(
        id=uuid.uuid4(),
        title=data.title,
        author=data.author,
        isbn=data.isbn,
        publication_date=data.publication_date,
        genre=data.genre,
        copies=data.copies,
    )
    session.add(book)
    try:
        await session.flush()
    except IntegrityError as exc:
        raise ConflictError("Book with this ISBN already exists") from exc
    logger.info("Added book %s (%s) with %d copies", book.isbn, book.id, book.copies)
    return book


async def get_book(session: AsyncSession, book_id: uuid.UUID) -> Optional[Book]:
    result = await session.execute(select(Book).where(Book.id == book_id))
    return result.scalar_one_or_none()


async def book_exists(session: AsyncSession, book_id: uuid.UUID) -> bool:
    result = await session.execute(select(Book.id).where(Book.id == book_id))
    return result.scalar_one_or_none() is not None


async def list_books(
    session: AsyncSession,
    skip: int,
    limit: int,
    search: Optional[str] = None,
    genre: Optional[str] = None,
    author: Optional[str] = None,
) -> Tuple[List[Book], int]:
    """Return one page of books (newest first) and the total match count."""
    conditions = []
    if genre:
        conditions.append(Book.genre == genre)
    if author:
        conditions.append(Book.author == author)
    clause = build_search_clause(search, SEARCH_COLUMNS)
    if clause is not None:
        conditions.append(clause)

    result = await session.execute(
        select(Book)
        .where(*conditions)
        .order_by(Book.created_at.desc(), Book.id.desc())
        .offset(skip)
        .limit(limit)
    )
    books = list(result.scalars().all())

    total = await session.scalar(select(func.count(Book.id)).where(*conditions))
    return books, total or 0


async def reserve_copy(session: AsyncSession, book_id: uuid.UUID) -> bool:
    """
    Take one copy off the shelf in a single conditional statement.

    Returns ``False`` when the book is missing or has no copies left; the
    caller decides which of the two it was.
    """
    result = await session.execute(
        update(Book)
        .where(Book.id == book_id, Book.copies > 0)
        .values(copies=Book.copies - 1, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def release_copy(session: AsyncSession, book_id: uuid.UUID) -> bool:
    """Put one copy back on the shelf.  Returns ``False`` if the book is gone."""
    result = await session.execute(
        update(Book)
        .where(Book.id == book_id)
        .values(copies=Book.copies + 1, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1
