"""
Pagination and search helpers shared by the catalog and the borrow ledger.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence

from sqlalchemy import ColumnElement, or_

from config.settings import config
from utils.schemas import PageMeta


@dataclass(frozen=True)
class Pagination:
    page: int
    limit: int
    skip: int


def get_pagination(page: Optional[int] = None, limit: Optional[int] = None) -> Pagination:
    """Translate page/limit query values into skip/limit."""
    page = page if page and page > 0 else 1
    limit = limit if limit and limit > 0 else config.default_page_size
    limit = min(limit, config.max_page_size)
    return Pagination(page=page, limit=limit, skip=(page - 1) * limit)


def get_meta(total: int, page: int, limit: int) -> PageMeta:
    return PageMeta(
        total=total,
        page=page,
        pages=math.ceil(total / limit) if limit else 0,
        limit=limit,
    )


def build_search_clause(
    search: Optional[str],
    columns: Sequence[ColumnElement],
) -> Optional[ColumnElement]:
    """
    Case-insensitive substring match of *search* against any of *columns*.

    Returns ``None`` when there is nothing to search for, so callers can
    skip the ``WHERE`` fragment entirely.
    """
    term = (search or "").strip()
    if not term or not columns:
        return None
    pattern = f"%{term}%"
    return or_(*(column.ilike(pattern) for column in columns))
