"""Reusable pagination helpers."""

from __future__ import annotations

from typing import Generic, Literal, TypeVar

from fastapi import Query
from pydantic import BaseModel

T = TypeVar("T")

SortOrder = Literal["asc", "desc"]


class PaginationParams(BaseModel):
    """Pagination and ordering query params."""

    limit: int = 20
    offset: int = 0
    sort_order: SortOrder = "asc"


def get_pagination_params(
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    sort_order: SortOrder = Query(default="asc"),
) -> PaginationParams:
    """FastAPI dependency for pagination params."""
    return PaginationParams(limit=limit, offset=offset, sort_order=sort_order)


class Page(BaseModel, Generic[T]):
    """Generic paginated response."""

    items: list[T]
    total: int
    limit: int
    offset: int


def build_page(items: list[T], total: int, params: PaginationParams) -> Page[T]:
    """Build page object from query result and params."""
    return Page(items=items, total=total, limit=params.limit, offset=params.offset)
