"""
SQLAlchemy ORM models for users, the book inventory and the borrow ledger.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, relationship


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite returns them without tzinfo)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Role(str, enum.Enum):
    ADMIN = "Admin"
    MEMBER = "Member"


class BorrowStatus(str, enum.Enum):
    BORROWED = "borrowed"
    RETURNED = "returned"
    OVERDUE = "overdue"  # advisory; never written by the workflow


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(128), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False, default="")
    role = Column(String(16), nullable=False, default=Role.MEMBER.value)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    borrows = relationship("BorrowRecord", back_populates="user")


class Book(Base):
    __tablename__ = "books"
    __table_args__ = (
        CheckConstraint("copies >= 0", name="ck_books_copies_non_negative"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String(512), nullable=False)
    author = Column(String(255), nullable=False)
    isbn = Column(String(32), unique=True, nullable=False)
    publication_date = Column(Date, nullable=False)
    genre = Column(String(128), nullable=False)
    # Only ever changed through inventory.reserve_copy / release_copy.
    copies = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    borrows = relationship("BorrowRecord", back_populates="book")


class BorrowRecord(Base):
    __tablename__ = "borrows"
    __table_args__ = (
        Index("ix_borrows_user_id", "user_id"),
        Index("ix_borrows_book_id_status", "book_id", "status"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    book_id = Column(Uuid(as_uuid=True), ForeignKey("books.id"), nullable=False)
    borrow_date = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    due_date = Column(DateTime(timezone=True), nullable=False)
    return_date = Column(DateTime(timezone=True), nullable=True)
    status = Column(String(16), nullable=False, default=BorrowStatus.BORROWED.value)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="borrows")
    book = relationship("Book", back_populates="borrows")
