"""
Borrowing workflow — borrow and return against the inventory store and the
borrow ledger while keeping ``copies`` and the ledger in step.

Every operation opens its own session with ``session_factory.begin()``, so
the copy-count change and the ledger change commit or roll back together.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.errors import ConflictError, NotFoundError
from core.policy import AccessPolicy, Identity
from database import inventory, ledger
from database.models import User, as_utc, utcnow
from utils.pagination import get_meta, get_pagination
from utils.schemas import BorrowFilters, BorrowPage, BorrowView

logger = logging.getLogger(__name__)


class BorrowingWorkflow:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        policy: Optional[AccessPolicy] = None,
    ):
        self._session_factory = session_factory
        self._policy = policy or AccessPolicy()

    async def borrow_book(
        self,
        user_id: uuid.UUID,
        book_id: uuid.UUID,
        due_date: datetime,
    ) -> BorrowView:
        """
        Lend one copy of *book_id* to *user_id* until *due_date*.

        Raises ``NotFoundError`` for an unknown book or user and
        ``ConflictError`` when no copy is left.  Nothing is written on
        failure.
        """
        due_date = as_utc(due_date)
        async with self._session_factory.begin() as session:
            if await session.get(User, user_id) is None:
                raise NotFoundError("User not found")

            if not await inventory.reserve_copy(session, book_id):
                if not await inventory.book_exists(session, book_id):
                    raise NotFoundError("Book not found")
                logger.info("Borrow rejected: book %s has no copies left", book_id)
                raise ConflictError("Book not available")

            record = await ledger.create_borrow(session, user_id, book_id, due_date)
            view = await ledger.load_borrow_view(session, record.id)

        logger.info("Book %s borrowed by %s (borrow %s)", book_id, user_id, record.id)
        return view

    async def return_book(
        self,
        borrow_id: uuid.UUID,
        requesting_user_id: Optional[uuid.UUID] = None,
    ) -> BorrowView:
        """
        Close an open borrow and put its copy back on the shelf.

        Raises ``NotFoundError`` for an unknown record and ``ConflictError``
        when the record is not currently ``borrowed``.
        """
        async with self._session_factory.begin() as session:
            record = await ledger.find_borrow(session, borrow_id)
            if record is None:
                raise NotFoundError("Borrow record not found")

            if not await ledger.mark_returned(session, borrow_id, utcnow()):
                raise ConflictError("This book is not currently borrowed")

            if not await inventory.release_copy(session, record.book_id):
                logger.warning(
                    "Returned borrow %s references missing book %s",
                    borrow_id, record.book_id,
                )
            view = await ledger.load_borrow_view(session, borrow_id)

        logger.info(
            "Borrow %s returned (book %s, requested by %s)",
            borrow_id, record.book_id, requesting_user_id,
        )
        return view

    async def get_borrow(self, borrow_id: uuid.UUID) -> BorrowView:
        async with self._session_factory() as session:
            view = await ledger.load_borrow_view(session, borrow_id)
        if view is None:
            raise NotFoundError("Borrow record not found")
        return view

    async def list_borrows(
        self,
        filters: BorrowFilters,
        current_user: Optional[Identity] = None,
    ) -> BorrowPage:
        """One page of the ledger as *current_user* is allowed to see it."""
        paging = get_pagination(filters.page, filters.limit)
        user_id = self._policy.visible_user_id(current_user, filters.user_id)

        async with self._session_factory() as session:
            views, total = await ledger.list_borrows(
                session,
                skip=paging.skip,
                limit=paging.limit,
                user_id=user_id,
                book_id=filters.book_id,
                status=filters.status,
                overdue=filters.overdue,
            )
        return BorrowPage(borrows=views, meta=get_meta(total, paging.page, paging.limit))
