"""
Reporting engine: read-only aggregates over the ledger and the inventory.

Reports take no locks; a borrow or return racing with a report may show
up in one view and not the other.
"""

from __future__ import annotations

import logging
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from database import ledger
from utils.schemas import (
    ActiveMemberEntry,
    AvailabilitySummary,
    AvailabilityTotals,
    BookAvailability,
    MostBorrowedEntry,
)

logger = logging.getLogger(__name__)


class ReportingEngine:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def most_borrowed_books(self, top: int = 10) -> List[MostBorrowedEntry]:
        """Books ranked by how often they were ever borrowed, ties by book id."""
        if top < 1:
            raise ValueError("top must be a positive integer")
        async with self._session_factory() as session:
            rows = await ledger.borrow_counts_by_book(session, top)
        return [
            MostBorrowedEntry(
                book_id=row.book_id,
                title=row.title,
                author=row.author,
                isbn=row.isbn,
                borrow_count=row.borrow_count,
            )
            for row in rows
        ]

    async def active_members(self, top: int = 10) -> List[ActiveMemberEntry]:
        """Users ranked by total historical borrow count, ties by user id."""
        if top < 1:
            raise ValueError("top must be a positive integer")
        async with self._session_factory() as session:
            rows = await ledger.borrow_counts_by_user(session, top)
        return [
            ActiveMemberEntry(
                user_id=row.user_id,
                name=row.name,
                email=row.email,
                borrow_count=row.borrow_count,
            )
            for row in rows
        ]

    async def book_availability_summary(self) -> AvailabilitySummary:
        """
        Per-book ``copies`` against currently borrowed records, plus totals.

        The per-book ``available_copies`` is reported raw and may be
        negative when the data disagrees; only the rolled-up
        ``available_books`` clamps each book at zero.
        """
        async with self._session_factory() as session:
            rows = await ledger.active_counts_per_book(session)

        per_book: List[BookAvailability] = []
        totals = AvailabilityTotals()
        for row in rows:
            entry = BookAvailability(
                book_id=row.book_id,
                title=row.title,
                author=row.author,
                isbn=row.isbn,
                total_copies=row.copies,
                borrowed_copies=row.borrowed_count,
                available_copies=row.copies - row.borrowed_count,
            )
            if entry.available_copies < 0:
                logger.warning(
                    "Book %s has more open borrows (%d) than copies (%d)",
                    entry.book_id, entry.borrowed_copies, entry.total_copies,
                )
            per_book.append(entry)
            totals.total_books += entry.total_copies
            totals.borrowed_books += entry.borrowed_copies
            totals.available_books += max(0, entry.available_copies)

        return AvailabilitySummary(per_book=per_book, totals=totals)
