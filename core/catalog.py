"""
Catalog service: add, fetch and list books in the inventory store.
"""

from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.errors import NotFoundError
from database import inventory
from utils.pagination import get_meta, get_pagination
from utils.schemas import BookCreate, BookOut, BookPage


class CatalogService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def add_book(self, data: BookCreate) -> BookOut:
        async with self._session_factory.begin() as session:
            book = await inventory.add_book(session, data)
            return BookOut.model_validate(book)

    async def get_book(self, book_id: uuid.UUID) -> BookOut:
        async with self._session_factory() as session:
            book = await inventory.get_book(session, book_id)
            if book is None:
                raise NotFoundError("Book not found")
            return BookOut.model_validate(book)

    async def list_books(
        self,
        page: Optional[int] = None,
        limit: Optional[int] = None,
        search: Optional[str] = None,
        genre: Optional[str] = None,
        author: Optional[str] = None,
    ) -> BookPage:
        paging = get_pagination(page, limit)
        async with self._session_factory() as session:
            books, total = await inventory.list_books(
                session,
                skip=paging.skip,
                limit=paging.limit,
                search=search,
                genre=genre,
                author=author,
            )
            items = [BookOut.model_validate(book) for book in books]
        return BookPage(books=items, meta=get_meta(total, paging.page, paging.limit))
