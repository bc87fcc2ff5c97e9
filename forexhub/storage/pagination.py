# forexhub/storage/pagination.py
"""
Pagination shared by every repository.

Both adapters slice with skip = (page - 1) * limit and order by
(sort_by, sort_order) followed by id ASC, with NULLs sorting as the
smallest value. The volatile adapter uses sort_records() below; the durable
adapter builds the equivalent ORDER BY.
"""

import math
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from forexhub.storage.errors import ValidationError

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class PaginationOptions(BaseModel):
    """Page/limit/sort request issued by a caller."""

    model_config = ConfigDict(frozen=True)

    page: int = Field(1, ge=1, description="1-based page number")
    limit: int = Field(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, description="Items per page")
    sort_by: str = Field("created_at", description="Field to order by")
    sort_order: SortOrder = Field(SortOrder.DESC, description="asc or desc")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class Page(BaseModel, Generic[T]):
    """One slice of a paginated result."""

    data: list[T] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    total_pages: int = 0
    has_next_page: bool = False
    has_previous_page: bool = False

    @classmethod
    def build(cls, data: list[T], total: int, options: PaginationOptions) -> "Page[T]":
        pages = total_pages(total, options.limit)
        return cls(
            data=data,
            total=total,
            page=options.page,
            total_pages=pages,
            has_next_page=options.page < pages,
            has_previous_page=options.page > 1,
        )

    @classmethod
    def empty(cls, options: PaginationOptions) -> "Page[T]":
        return cls.build([], 0, options)


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if total else 0


def resolve_sort_field(options: PaginationOptions, allowed: frozenset[str], entity: str) -> str:
    """Return options.sort_by if the entity allows ordering by it."""
    if options.sort_by not in allowed:
        raise ValidationError(
            f"Cannot sort {entity} by '{options.sort_by}'. Allowed: {', '.join(sorted(allowed))}",
            field="sort_by",
        )
    return options.sort_by


def _nulls_first_key(value: Any) -> tuple[bool, Any]:
    return (value is not None, value)


def sort_records(records: list[dict], sort_by: str, sort_order: SortOrder) -> list[dict]:
    """
    Order records the way the durable adapter's ORDER BY does.

    Sorting by id first and then by the requested key with a stable sort
    makes id ASC the tiebreak in both directions.
    """
    ordered = sorted(records, key=lambda r: r["id"])
    ordered.sort(
        key=lambda r: _nulls_first_key(r.get(sort_by)),
        reverse=sort_order is SortOrder.DESC,
    )
    return ordered


def slice_records(records: list[dict], options: PaginationOptions) -> list[dict]:
    return records[options.offset : options.offset + options.limit]
