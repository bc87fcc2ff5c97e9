# forexhub/routers/deps.py
"""
Dependencies and helpers shared by the routers.

Handlers never hold an adapter across requests: they ask the selector for
the active one each time. Reads go through read_with_fallback(), which
answers from the volatile store when the durable store fails mid-request
instead of failing the request.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from cachetools import TTLCache
from fastapi import Depends, Query, Request

from forexhub.schemas.common import ItemResponse, ListResponse, PageResponse
from forexhub.storage.base import StorageAdapter
from forexhub.storage.errors import StoreUnavailableError
from forexhub.storage.pagination import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, Page, PaginationOptions, SortOrder
from forexhub.storage.selector import StorageSelector

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEGRADED_WARNING = "Durable storage is unavailable; results come from temporary storage and may be incomplete"
VOLATILE_WARNING = "Running on temporary storage; changes will not survive a restart"


def get_selector(request: Request) -> StorageSelector:
    return request.app.state.storage_selector


def get_read_cache(request: Request) -> TTLCache:
    """Short-lived cache for aggregate reads (tags, category tree). Cleared on writes."""
    return request.app.state.read_cache


def get_storage(selector: StorageSelector = Depends(get_selector)) -> StorageAdapter:
    return selector.get_active_adapter()


def pagination_params(
    page: int = Query(1, ge=1, description="1-based page number"),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, description="Items per page"),
    sort_by: str = Query("created_at", description="Field to order by"),
    sort_order: SortOrder = Query(SortOrder.DESC, description="asc or desc"),
) -> PaginationOptions:
    return PaginationOptions(page=page, limit=limit, sort_by=sort_by, sort_order=sort_order)


class ReadResult:
    """Value of a read plus which adapter produced it."""

    def __init__(self, value, adapter: StorageAdapter, degraded: bool = False):
        self.value = value
        self.adapter = adapter
        self.degraded = degraded

    @property
    def info(self) -> dict:
        warning = None
        if self.degraded:
            warning = DEGRADED_WARNING
        elif not self.adapter.is_persistent:
            warning = VOLATILE_WARNING
        return {
            "storage_type": self.adapter.name,
            "persistent": self.adapter.is_persistent,
            "degraded": self.degraded,
            "warning": warning,
        }


async def read_with_fallback(
    selector: StorageSelector,
    op: Callable[[StorageAdapter], Awaitable[T]],
) -> ReadResult:
    """
    Run a read on the active adapter, falling back to the volatile one.

    A StoreUnavailableError marks the selector stale (the next request
    re-probes immediately) and the read is answered from the volatile store
    with degraded=True. Other errors propagate.
    """
    adapter = selector.get_active_adapter()
    try:
        return ReadResult(await op(adapter), adapter)
    except StoreUnavailableError as e:
        selector.note_unavailable(e)
        logger.warning(
            f"Read failed on {adapter.name} storage; serving from volatile store",
            extra={"event": "read_degraded", "storage_type": adapter.name},
        )
        fallback = selector.volatile
        return ReadResult(await op(fallback), fallback, degraded=True)


def page_response(result: ReadResult) -> PageResponse:
    page: Page = result.value
    return PageResponse(**page.model_dump(exclude={"data"}), data=page.data, **result.info)


def list_response(result: ReadResult) -> ListResponse:
    return ListResponse(data=result.value, **result.info)


def item_response(value, adapter: StorageAdapter) -> ItemResponse:
    return ItemResponse(data=value, **ReadResult(value, adapter).info)
