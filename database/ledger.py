"""
Borrow ledger: borrow records, their status lifecycle and the grouped
counts the reports are built from.

All functions take an open ``AsyncSession`` and never commit; the caller
owns the transaction.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, List, Optional, Sequence, Tuple

from sqlalchemy import Select, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import Book, BorrowRecord, BorrowStatus, User, as_utc, utcnow
from utils.schemas import BookSummary, BorrowView, UserSummary


def _view_query() -> Select:
    return (
        select(BorrowRecord, Book, User)
        .join(Book, Book.id == BorrowRecord.book_id)
        .join(User, User.id == BorrowRecord.user_id)
    )


def to_view(record: BorrowRecord, book: Book, user: User, now: datetime) -> BorrowView:
    """Project a joined row onto the typed composite the API returns."""
    due_date = as_utc(record.due_date)
    return BorrowView(
        id=record.id,
        user=UserSummary.model_validate(user),
        book=BookSummary.model_validate(book),
        borrow_date=as_utc(record.borrow_date),
        due_date=due_date,
        return_date=as_utc(record.return_date) if record.return_date else None,
        status=BorrowStatus(record.status),
        overdue=record.status == BorrowStatus.BORROWED.value and due_date < now,
        created_at=as_utc(record.created_at) if record.created_at else None,
    )


async def create_borrow(
    session: AsyncSession,
    user_id: uuid.UUID,
    book_id: uuid.UUID,
    due_date: datetime,
    borrow_date: Optional[datetime] = None,
) -> BorrowRecord:
    now = borrow_date or utcnow()
    record = BorrowRecord(
        id=uuid.uuid4(),
        user_id=user_id,
        book_id=book_id,
        borrow_date=now,
        due_date=due_date,
        status=BorrowStatus.BORROWED.value,
        created_at=now,
        updated_at=now,
    )
    session.add(record)
    await session.flush()
    return record


async def find_borrow(session: AsyncSession, borrow_id: uuid.UUID) -> Optional[BorrowRecord]:
    result = await session.execute(
        select(BorrowRecord).where(BorrowRecord.id == borrow_id)
    )
    return result.scalar_one_or_none()


async def load_borrow_view(
    session: AsyncSession,
    borrow_id: uuid.UUID,
    now: Optional[datetime] = None,
) -> Optional[BorrowView]:
    result = await session.execute(
        _view_query()
        .where(BorrowRecord.id == borrow_id)
        .execution_options(populate_existing=True)
    )
    row = result.one_or_none()
    if row is None:
        return None
    return to_view(*row, now=now or utcnow())


async def mark_returned(
    session: AsyncSession,
    borrow_id: uuid.UUID,
    returned_at: datetime,
) -> bool:
    """
    Move a record from ``borrowed`` to ``returned`` in one conditional
    statement.  Returns ``False`` when the record is absent or not currently
    borrowed, so two concurrent returns cannot both succeed.
    """
    result = await session.execute(
        update(BorrowRecord)
        .where(
            BorrowRecord.id == borrow_id,
            BorrowRecord.status == BorrowStatus.BORROWED.value,
        )
        .values(
            status=BorrowStatus.RETURNED.value,
            return_date=returned_at,
            updated_at=returned_at,
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def _criteria(
    user_id: Optional[uuid.UUID],
    book_id: Optional[uuid.UUID],
    status: Optional[BorrowStatus],
    overdue: bool,
    now: datetime,
) -> List[Any]:
    conditions: List[Any] = []
    if user_id is not None:
        conditions.append(BorrowRecord.user_id == user_id)
    if book_id is not None:
        conditions.append(BorrowRecord.book_id == book_id)
    if status is not None:
        conditions.append(BorrowRecord.status == BorrowStatus(status).value)
    if overdue:
        conditions.append(BorrowRecord.status == BorrowStatus.BORROWED.value)
        conditions.append(BorrowRecord.due_date < now)
    return conditions


async def list_borrows(
    session: AsyncSession,
    skip: int,
    limit: int,
    user_id: Optional[uuid.UUID] = None,
    book_id: Optional[uuid.UUID] = None,
    status: Optional[BorrowStatus] = None,
    overdue: bool = False,
) -> Tuple[List[BorrowView], int]:
    """Return one page of joined borrow views (most recent first) and the total."""
    now = utcnow()
    conditions = _criteria(user_id, book_id, status, overdue, now)

    result = await session.execute(
        _view_query()
        .where(*conditions)
        .order_by(BorrowRecord.created_at.desc(), BorrowRecord.id.desc())
        .offset(skip)
        .limit(limit)
    )
    views = [to_view(*row, now=now) for row in result.all()]

    total = await session.scalar(
        select(func.count(BorrowRecord.id)).where(*conditions)
    )
    return views, total or 0


# ── Aggregates ──────────────────────────────────────────────────────


async def borrow_counts_by_book(session: AsyncSession, top: int) -> Sequence[Any]:
    """
    ``(book_id, title, author, isbn, borrow_count)`` rows over every record
    regardless of status, highest count first, ties by ascending book id.
    """
    counts = (
        select(
            BorrowRecord.book_id.label("book_id"),
            func.count(BorrowRecord.id).label("borrow_count"),
        )
        .group_by(BorrowRecord.book_id)
        .subquery()
    )
    result = await session.execute(
        select(
            Book.id.label("book_id"),
            Book.title,
            Book.author,
            Book.isbn,
            counts.c.borrow_count,
        )
        .join(counts, counts.c.book_id == Book.id)
        .order_by(counts.c.borrow_count.desc(), Book.id.asc())
        .limit(top)
    )
    return result.all()


async def borrow_counts_by_user(session: AsyncSession, top: int) -> Sequence[Any]:
    """``(user_id, name, email, borrow_count)`` rows, same ordering rules."""
    counts = (
        select(
            BorrowRecord.user_id.label("user_id"),
            func.count(BorrowRecord.id).label("borrow_count"),
        )
        .group_by(BorrowRecord.user_id)
        .subquery()
    )
    result = await session.execute(
        select(
            User.id.label("user_id"),
            User.name,
            User.email,
            counts.c.borrow_count,
        )
        .join(counts, counts.c.user_id == User.id)
        .order_by(counts.c.borrow_count.desc(), User.id.asc())
        .limit(top)
    )
    return result.all()


async def active_counts_per_book(session: AsyncSession) -> Sequence[Any]:
    """
    Every book with its ``copies`` and the number of its records currently
    in status ``borrowed`` (zero when it has none).
    """
    active = (
        select(
            BorrowRecord.book_id.label("book_id"),
            func.count(BorrowRecord.id).label("borrowed_count"),
        )
        .where(BorrowRecord.status == BorrowStatus.BORROWED.value)
        .group_by(BorrowRecord.book_id)
        .subquery()
    )
    result = await session.execute(
        select(
            Book.id.label("book_id"),
            Book.title,
            Book.author,
            Book.isbn,
            Book.copies,
            func.coalesce(active.c.borrowed_count, 0).label("borrowed_count"),
        )
        .outerjoin(active, active.c.book_id == Book.id)
        .order_by(Book.title.asc(), Book.id.asc())
    )
    return result.all()
