# forexhub/schemas/common.py
"""
Response envelopes shared by every router.

Each envelope says which store served it. persistent=False means the data
lives in process memory and is lost on restart; degraded=True means the
durable store failed mid-request and the volatile store answered instead.
"""

from typing import Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class StorageInfo(BaseModel):
    storage_type: str = Field(..., description="durable or volatile")
    persistent: bool
    degraded: bool = False
    warning: str | None = None


class PageResponse(StorageInfo, Generic[T]):
    data: list[T] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    total_pages: int = 0
    has_next_page: bool = False
    has_previous_page: bool = False


class ItemResponse(StorageInfo, Generic[T]):
    data: T


class ListResponse(StorageInfo, Generic[T]):
    """Unpaginated list (tree, tags, featured)."""

    data: list[T] = Field(default_factory=list)


class CounterResponse(StorageInfo):
    id: str
    count: int
