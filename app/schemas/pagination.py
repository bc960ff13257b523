"""Pagination metadata and paginated list envelopes."""

from __future__ import annotations

from typing import Generic
from typing import TypeVar

from pydantic import BaseModel

ItemT = TypeVar("ItemT")


class PaginationMeta(BaseModel):
    """Navigation metadata derived from a page window and a total count."""

    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool
    offset: int


class PaginatedResponse(BaseModel, Generic[ItemT]):
    """List response envelope carrying one page of items."""

    items: list[ItemT]
    pagination: PaginationMeta
