"""
Pydantic schemas for the library API.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from database.models import BorrowStatus

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Envelope every endpoint answers with."""

    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None


class PageMeta(BaseModel):
    total: int
    page: int
    pages: int
    limit: int


# ═══════════════════════════════════════════════════════════════════════════════
# Auth
# ═══════════════════════════════════════════════════════════════════════════════


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=128)
    email: str = Field(..., min_length=5, max_length=255)
    password: str = Field(..., min_length=4, max_length=128)
    role: Literal["Admin", "Member"] = "Member"


class LoginRequest(BaseModel):
    email: str
    password: str


class UserOut(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    role: str


class LoginUser(BaseModel):
    id: uuid.UUID
    name: str
    role: str


class LoginResponse(BaseModel):
    token: str
    user: LoginUser


# ═══════════════════════════════════════════════════════════════════════════════
# Catalog / Inventory
# ═══════════════════════════════════════════════════════════════════════════════


class BookCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=512)
    author: str = Field(..., min_length=1, max_length=255)
    isbn: str = Field(..., min_length=1, max_length=32)
    publication_date: date
    genre: str = Field(..., min_length=1, max_length=128)
    copies: int = Field(..., ge=0)


class BookOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    author: str
    isbn: str
    publication_date: date
    genre: str
    copies: int


class BookPage(BaseModel):
    books: List[BookOut] = Field(default_factory=list)
    meta: PageMeta


# ═══════════════════════════════════════════════════════════════════════════════
# Borrow ledger
# ═══════════════════════════════════════════════════════════════════════════════


class BookSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    author: str
    isbn: str


class UserSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    email: str


class BorrowView(BaseModel):
    """
    A borrow record joined with the display fields of its book and user.

    ``overdue`` is derived at read time: the record is still ``borrowed``
    and its due date has passed.  It is never persisted.
    """

    id: uuid.UUID
    user: UserSummary
    book: BookSummary
    borrow_date: datetime
    due_date: datetime
    return_date: Optional[datetime] = None
    status: BorrowStatus
    overdue: bool = False
    created_at: Optional[datetime] = None


class BorrowRequest(BaseModel):
    book_id: uuid.UUID
    due_date: datetime
    # Admins may borrow on behalf of another user.
    user_id: Optional[uuid.UUID] = None


class BorrowFilters(BaseModel):
    user_id: Optional[uuid.UUID] = None
    book_id: Optional[uuid.UUID] = None
    status: Optional[BorrowStatus] = None
    overdue: bool = False
    page: Optional[int] = None
    limit: Optional[int] = None


class BorrowPage(BaseModel):
    borrows: List[BorrowView] = Field(default_factory=list)
    meta: PageMeta


# ═══════════════════════════════════════════════════════════════════════════════
# Reports
# ═══════════════════════════════════════════════════════════════════════════════


class MostBorrowedEntry(BaseModel):
    book_id: uuid.UUID
    title: str
    author: str
    isbn: str
    borrow_count: int


class ActiveMemberEntry(BaseModel):
    user_id: uuid.UUID
    name: str
    email: str
    borrow_count: int


class BookAvailability(BaseModel):
    book_id: uuid.UUID
    title: str
    author: str
    isbn: str
    total_copies: int
    borrowed_copies: int
    # Raw difference; may be negative when copies and ledger disagree.
    available_copies: int


class AvailabilityTotals(BaseModel):
    total_books: int = 0
    borrowed_books: int = 0
    available_books: int = 0


class AvailabilitySummary(BaseModel):
    per_book: List[BookAvailability] = Field(default_factory=list)
    totals: AvailabilityTotals = Field(default_factory=AvailabilityTotals)
