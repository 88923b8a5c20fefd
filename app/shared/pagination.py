"""Limit/offset paging for booking listings and event trails."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Generic, TypeVar

from fastapi import Query
from pydantic import BaseModel

ItemT = TypeVar("ItemT", bound=BaseModel)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


class PageWindow(BaseModel):
    """Requested slice of a listing."""

    limit: int
    offset: int


def get_page_window(
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(default=0, ge=0),
) -> PageWindow:
    """FastAPI dependency reading `limit` and `offset` query params."""
    return PageWindow(limit=limit, offset=offset)


class Page(BaseModel, Generic[ItemT]):
    items: list[ItemT]
    total: int
    limit: int
    offset: int
    has_more: bool


def build_page(
    rows: Iterable[Any],
    total: int,
    window: PageWindow,
    schema: type[ItemT],
) -> Page[ItemT]:
    """Serialize ORM rows (or dicts) with schema and wrap them in a page."""
    items = [schema.model_validate(row) for row in rows]
    return Page(
        items=items,
        total=total,
        limit=window.limit,
        offset=window.offset,
        has_more=window.offset + len(items) < total,
    )
