"""
Tests for the borrowing workflow: copy accounting, status lifecycle,
transactions and ledger visibility.
"""

import asyncio
import uuid
from datetime import timezone

import pytest

from conftest import add_book, add_user, copies_of, due_in, ledger_size
from core.borrowing import BorrowingWorkflow
from core.errors import ConflictError, NotFoundError
from core.policy import Identity
from database.models import BorrowStatus
from utils.schemas import BorrowFilters, BorrowView


class TestBorrowBook:
    @pytest.mark.asyncio
    async def test_borrow_decrements_copies_and_creates_record(self, session_factory):
        user = await add_user(session_factory)
        book = await add_book(session_factory, copies=3)
        workflow = BorrowingWorkflow(session_factory)

        view = await workflow.borrow_book(user.id, book.id, due_in(14))

        assert view.status == BorrowStatus.BORROWED
        assert view.return_date is None
        assert view.overdue is False
        assert view.book.id == book.id
        assert view.book.title == "Dune"
        assert view.user.email == user.email
        assert await copies_of(session_factory, book.id) == 2
        assert await ledger_size(session_factory) == 1

    @pytest.mark.asyncio
    async def test_due_date_is_kept_as_supplied(self, session_factory):
        user = await add_user(session_factory)
        book = await add_book(session_factory)
        due = due_in(7).replace(microsecond=0)

        view = await BorrowingWorkflow(session_factory).borrow_book(user.id, book.id, due)

        assert view.due_date == due
        assert view.borrow_date.tzinfo is not None

    @pytest.mark.asyncio
    async def test_naive_due_date_is_treated_as_utc(self, session_factory):
        user = await add_user(session_factory)
        book = await add_book(session_factory)
        due = due_in(3).replace(tzinfo=None, microsecond=0)

        view = await BorrowingWorkflow(session_factory).borrow_book(user.id, book.id, due)

        assert view.due_date == due.replace(tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_no_copies_left_is_a_conflict_without_mutation(self, session_factory):
        user = await add_user(session_factory)
        book = await add_book(session_factory, copies=0)

        with pytest.raises(ConflictError, match="Book not available"):
            await BorrowingWorkflow(session_factory).borrow_book(user.id, book.id, due_in(14))

        assert await copies_of(session_factory, book.id) == 0
        assert await ledger_size(session_factory) == 0

    @pytest.mark.asyncio
    async def test_unknown_book_is_not_found(self, session_factory):
        user = await add_user(session_factory)

        with pytest.raises(NotFoundError, match="Book not found"):
            await BorrowingWorkflow(session_factory).borrow_book(user.id, uuid.uuid4(), due_in(14))

        assert await ledger_size(session_factory) == 0

    @pytest.mark.asyncio
    async def test_unknown_user_leaves_copies_untouched(self, session_factory):
        book = await add_book(session_factory, copies=2)

        with pytest.raises(NotFoundError, match="User not found"):
            await BorrowingWorkflow(session_factory).borrow_book(uuid.uuid4(), book.id, due_in(14))

        assert await copies_of(session_factory, book.id) == 2

    @pytest.mark.asyncio
    async def test_failed_record_creation_rolls_back_the_decrement(self, session_factory, monkeypatch):
        user = await add_user(session_factory)
        book = await add_book(session_factory, copies=1)

        async def broken_create(*args, **kwargs):
            raise RuntimeError("ledger unavailable")

        monkeypatch.setattr("database.ledger.create_borrow", broken_create)

        with pytest.raises(RuntimeError):
            await BorrowingWorkflow(session_factory).borrow_book(user.id, book.id, due_in(14))

        assert await copies_of(session_factory, book.id) == 1
        assert await ledger_size(session_factory) == 0

    @pytest.mark.asyncio
    async def test_concurrent_borrows_never_oversell(self, session_factory):
        user = await add_user(session_factory)
        book = await add_book(session_factory, copies=1)
        workflow = BorrowingWorkflow(session_factory)

        results = await asyncio.gather(
            *(workflow.borrow_book(user.id, book.id, due_in(14)) for _ in range(5)),
            return_exceptions=True,
        )

        successes = [r for r in results if isinstance(r, BorrowView)]
        conflicts = [r for r in results if isinstance(r, ConflictError)]
        assert len(successes) == 1
        assert len(conflicts) == 4
        assert await copies_of(session_factory, book.id) == 0
        assert await ledger_size(session_factory) == 1


class TestReturnBook:
    @pytest.mark.asyncio
    async def test_return_marks_record_and_restores_copies(self, session_factory):
        user = await add_user(session_factory)
        book = await add_book(session_factory, copies=2)
        workflow = BorrowingWorkflow(session_factory)
        borrowed = await workflow.borrow_book(user.id, book.id, due_in(14))
        assert await copies_of(session_factory, book.id) == 1

        returned = await workflow.return_book(borrowed.id, user.id)

        assert returned.id == borrowed.id
        assert returned.status == BorrowStatus.RETURNED
        assert returned.return_date is not None
        assert returned.overdue is False
        assert await copies_of(session_factory, book.id) == 2

    @pytest.mark.asyncio
    async def test_second_return_is_a_conflict_without_mutation(self, session_factory):
        user = await add_user(session_factory)
        book = await add_book(session_factory, copies=1)
        workflow = BorrowingWorkflow(session_factory)
        borrowed = await workflow.borrow_book(user.id, book.id, due_in(14))
        first = await workflow.return_book(borrowed.id, user.id)

        with pytest.raises(ConflictError, match="not currently borrowed"):
            await workflow.return_book(borrowed.id, user.id)

        again = await workflow.get_borrow(borrowed.id)
        assert again.return_date == first.return_date
        assert await copies_of(session_factory, book.id) == 1

    @pytest.mark.asyncio
    async def test_concurrent_returns_release_one_copy(self, session_factory):
        user = await add_user(session_factory)
        book = await add_book(session_factory, copies=1)
        workflow = BorrowingWorkflow(session_factory)
        borrowed = await workflow.borrow_book(user.id, book.id, due_in(14))

        results = await asyncio.gather(
            *(workflow.return_book(borrowed.id, user.id) for _ in range(3)),
            return_exceptions=True,
        )

        assert sum(isinstance(r, BorrowView) for r in results) == 1
        assert sum(isinstance(r, ConflictError) for r in results) == 2
        assert await copies_of(session_factory, book.id) == 1

    @pytest.mark.asyncio
    async def test_unknown_record_is_not_found(self, session_factory):
        with pytest.raises(NotFoundError, match="Borrow record not found"):
            await BorrowingWorkflow(session_factory).return_book(uuid.uuid4())

    @pytest.mark.asyncio
    async def test_round_trip_restores_original_copies(self, session_factory):
        user = await add_user(session_factory)
        book = await add_book(session_factory, copies=4)
        workflow = BorrowingWorkflow(session_factory)

        first = await workflow.borrow_book(user.id, book.id, due_in(14))
        second = await workflow.borrow_book(user.id, book.id, due_in(14))
        await workflow.return_book(second.id)
        await workflow.return_book(first.id)

        assert await copies_of(session_factory, book.id) == 4


class TestListBorrows:
    @pytest.mark.asyncio
    async def test_member_only_sees_own_records(self, session_factory):
        alice = await add_user(session_factory, name="Alice")
        bob = await add_user(session_factory, name="Bob")
        book = await add_book(session_factory, copies=10)
        workflow = BorrowingWorkflow(session_factory)
        for _ in range(3):
            await workflow.borrow_book(bob.id, book.id, due_in(14))
        mine = await workflow.borrow_book(alice.id, book.id, due_in(14))

        page = await workflow.list_borrows(BorrowFilters(), Identity(alice.id, "Member"))

        assert [v.id for v in page.borrows] == [mine.id]
        assert page.meta.total == 1

    @pytest.mark.asyncio
    async def test_admin_without_filter_sees_everything(self, session_factory):
        admin = await add_user(session_factory, name="Root", role="Admin")
        alice = await add_user(session_factory, name="Alice")
        bob = await add_user(session_factory, name="Bob")
        book = await add_book(session_factory, copies=10)
        workflow = BorrowingWorkflow(session_factory)
        await workflow.borrow_book(alice.id, book.id, due_in(14))
        await workflow.borrow_book(bob.id, book.id, due_in(14))

        page = await workflow.list_borrows(BorrowFilters(), Identity(admin.id, "Admin"))

        assert page.meta.total == 2

    @pytest.mark.asyncio
    async def test_explicit_user_filter_is_honoured(self, session_factory):
        admin = await add_user(session_factory, role="Admin")
        alice = await add_user(session_factory, name="Alice")
        bob = await add_user(session_factory, name="Bob")
        book = await add_book(session_factory, copies=10)
        workflow = BorrowingWorkflow(session_factory)
        await workflow.borrow_book(alice.id, book.id, due_in(14))
        bobs = await workflow.borrow_book(bob.id, book.id, due_in(14))

        page = await workflow.list_borrows(
            BorrowFilters(user_id=bob.id), Identity(admin.id, "Admin"),
        )

        assert [v.id for v in page.borrows] == [bobs.id]

    @pytest.mark.asyncio
    async def test_most_recent_first_with_page_meta(self, session_factory):
        user = await add_user(session_factory)
        book = await add_book(session_factory, copies=10)
        workflow = BorrowingWorkflow(session_factory)
        made = [await workflow.borrow_book(user.id, book.id, due_in(14)) for _ in range(5)]

        page = await workflow.list_borrows(
            BorrowFilters(page=1, limit=2), Identity(user.id, "Member"),
        )

        assert [v.id for v in page.borrows] == [made[4].id, made[3].id]
        assert page.meta.total == 5
        assert page.meta.pages == 3
        assert page.meta.limit == 2

        last = await workflow.list_borrows(
            BorrowFilters(page=3, limit=2), Identity(user.id, "Member"),
        )
        assert [v.id for v in last.borrows] == [made[0].id]

    @pytest.mark.asyncio
    async def test_status_and_book_filters(self, session_factory):
        user = await add_user(session_factory)
        dune = await add_book(session_factory, copies=5)
        emma = await add_book(session_factory, copies=5, title="Emma")
        workflow = BorrowingWorkflow(session_factory)
        returned = await workflow.borrow_book(user.id, dune.id, due_in(14))
        await workflow.return_book(returned.id)
        open_dune = await workflow.borrow_book(user.id, dune.id, due_in(14))
        await workflow.borrow_book(user.id, emma.id, due_in(14))
        me = Identity(user.id, "Member")

        page = await workflow.list_borrows(
            BorrowFilters(book_id=dune.id, status=BorrowStatus.BORROWED), me,
        )
        assert [v.id for v in page.borrows] == [open_dune.id]

        page = await workflow.list_borrows(BorrowFilters(status=BorrowStatus.RETURNED), me)
        assert [v.id for v in page.borrows] == [returned.id]

    @pytest.mark.asyncio
    async def test_overdue_is_derived_and_filterable(self, session_factory):
        user = await add_user(session_factory)
        book = await add_book(session_factory, copies=5)
        workflow = BorrowingWorkflow(session_factory)
        late = await workflow.borrow_book(user.id, book.id, due_in(-2))
        await workflow.borrow_book(user.id, book.id, due_in(10))
        me = Identity(user.id, "Member")

        page = await workflow.list_borrows(BorrowFilters(overdue=True), me)

        assert [v.id for v in page.borrows] == [late.id]
        assert page.borrows[0].overdue is True
        assert page.borrows[0].status == BorrowStatus.BORROWED

        await workflow.return_book(late.id)
        page = await workflow.list_borrows(BorrowFilters(overdue=True), me)
        assert page.borrows == []
