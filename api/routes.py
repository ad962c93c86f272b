"""
Borrowing REST routes for borrow, return, listing and reports.

Route prefix: /api/v1/borrows
"""

from __future__ import annotations

import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from api.dependencies import access_policy, borrowing_workflow, reporting_engine
from auth.dependencies import require_roles
from config.settings import config
from core.borrowing import BorrowingWorkflow
from core.errors import NotFoundError
from core.policy import AccessPolicy, Identity
from core.reporting import ReportingEngine
from database.models import BorrowStatus, Role
from utils.schemas import (
    ActiveMemberEntry,
    ApiResponse,
    AvailabilitySummary,
    BorrowFilters,
    BorrowPage,
    BorrowRequest,
    BorrowView,
    MostBorrowedEntry,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["borrows"])

_any_member = require_roles(Role.MEMBER.value, Role.ADMIN.value)
_admin_only = require_roles(Role.ADMIN.value)


@router.post(
    "/borrow",
    response_model=ApiResponse[BorrowView],
    status_code=status.HTTP_201_CREATED,
)
async def borrow_book(
    req: BorrowRequest,
    identity: Identity = Depends(_any_member),
    workflow: BorrowingWorkflow = Depends(borrowing_workflow),
    policy: AccessPolicy = Depends(access_policy),
) -> ApiResponse[BorrowView]:
    """Borrow one copy of a book until ``due_date``."""
    user_id = policy.borrower_for(identity, req.user_id)
    record = await workflow.borrow_book(user_id, req.book_id, req.due_date)
    return ApiResponse(data=record)


@router.get("/", response_model=ApiResponse[BorrowPage])
async def list_borrows(
    user_id: Optional[uuid.UUID] = None,
    book_id: Optional[uuid.UUID] = None,
    borrow_status: Optional[BorrowStatus] = Query(None, alias="status"),
    overdue: bool = False,
    page: Optional[int] = Query(None, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    identity: Identity = Depends(_any_member),
    workflow: BorrowingWorkflow = Depends(borrowing_workflow),
) -> ApiResponse[BorrowPage]:
    filters = BorrowFilters(
        user_id=user_id,
        book_id=book_id,
        status=borrow_status,
        overdue=overdue,
        page=page,
        limit=limit,
    )
    return ApiResponse(data=await workflow.list_borrows(filters, identity))


# ── Reports (declared before /{borrow_id} so the paths don't collide) ──


@router.get("/reports/most-borrowed", response_model=ApiResponse[List[MostBorrowedEntry]])
async def most_borrowed(
    top: int = Query(config.default_report_size, ge=1, le=1000),
    _: Identity = Depends(_admin_only),
    reports: ReportingEngine = Depends(reporting_engine),
) -> ApiResponse[List[MostBorrowedEntry]]:
    return ApiResponse(data=await reports.most_borrowed_books(top))


@router.get("/reports/active-members", response_model=ApiResponse[List[ActiveMemberEntry]])
async def active_members(
    top: int = Query(config.default_report_size, ge=1, le=1000),
    _: Identity = Depends(_admin_only),
    reports: ReportingEngine = Depends(reporting_engine),
) -> ApiResponse[List[ActiveMemberEntry]]:
    return ApiResponse(data=await reports.active_members(top))


@router.get("/reports/availability", response_model=ApiResponse[AvailabilitySummary])
async def availability(
    _: Identity = Depends(_admin_only),
    reports: ReportingEngine = Depends(reporting_engine),
) -> ApiResponse[AvailabilitySummary]:
    return ApiResponse(data=await reports.book_availability_summary())


@router.get("/{borrow_id}", response_model=ApiResponse[BorrowView])
async def get_borrow(
    borrow_id: uuid.UUID,
    identity: Identity = Depends(_any_member),
    workflow: BorrowingWorkflow = Depends(borrowing_workflow),
    policy: AccessPolicy = Depends(access_policy),
) -> ApiResponse[BorrowView]:
    record = await workflow.get_borrow(borrow_id)
    if not policy.can_view(identity, record.user.id):
        # Members only see their own records; don't leak existence.
        raise NotFoundError("Borrow record not found")
    return ApiResponse(data=record)


@router.put("/{borrow_id}/return", response_model=ApiResponse[BorrowView])
async def return_book(
    borrow_id: uuid.UUID,
    identity: Identity = Depends(_any_member),
    workflow: BorrowingWorkflow = Depends(borrowing_workflow),
    policy: AccessPolicy = Depends(access_policy),
) -> ApiResponse[BorrowView]:
    """Return a borrowed book; only the borrower or an admin may do so."""
    record = await workflow.get_borrow(borrow_id)
    policy.ensure_can_return(identity, record.user.id)
    updated = await workflow.return_book(borrow_id, identity.id)
    return ApiResponse(data=updated)
