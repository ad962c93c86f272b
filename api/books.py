"""
Catalog routes: add and browse books.

Route prefix: /api/v1/books
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from api.dependencies import catalog_service
from auth.dependencies import get_current_user, require_roles
from core.catalog import CatalogService
from core.policy import Identity
from database.models import Role
from utils.schemas import ApiResponse, BookCreate, BookOut, BookPage

router = APIRouter(tags=["books"])


@router.post(
    "/",
    response_model=ApiResponse[BookOut],
    status_code=status.HTTP_201_CREATED,
)
async def add_book(
    req: BookCreate,
    _: Identity = Depends(require_roles(Role.ADMIN.value)),
    catalog: CatalogService = Depends(catalog_service),
) -> ApiResponse[BookOut]:
    return ApiResponse(data=await catalog.add_book(req))


@router.get("/", response_model=ApiResponse[BookPage])
async def list_books(
    search: Optional[str] = None,
    genre: Optional[str] = None,
    author: Optional[str] = None,
    page: Optional[int] = Query(None, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    _: Identity = Depends(get_current_user),
    catalog: CatalogService = Depends(catalog_service),
) -> ApiResponse[BookPage]:
    """Newest books first; ``search`` matches title, author, genre or ISBN."""
    books = await catalog.list_books(
        page=page, limit=limit, search=search, genre=genre, author=author,
    )
    return ApiResponse(data=books)


@router.get("/{book_id}", response_model=ApiResponse[BookOut])
async def get_book(
    book_id: uuid.UUID,
    _: Identity = Depends(get_current_user),
    catalog: CatalogService = Depends(catalog_service),
) -> ApiResponse[BookOut]:
    return ApiResponse(data=await catalog.get_book(book_id))
