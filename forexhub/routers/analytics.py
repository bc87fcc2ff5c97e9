# forexhub/routers/analytics.py
"""
Analytics event endpoints.

POST /v1/analytics/page-view    - Record a page view reported by the site
POST /v1/analytics/search       - Record a search and its result count

Admin (X-API-Key):
GET /v1/admin/analytics/popular - Most viewed/downloaded content
GET /v1/admin/analytics/events  - Events within a date range
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Query, Request

from forexhub.auth import require_admin_key
from forexhub.routers.deps import (
    get_selector,
    get_storage,
    item_response,
    list_response,
    page_response,
    pagination_params,
    read_with_fallback,
)
from forexhub.schemas.common import ItemResponse, ListResponse, PageResponse
from forexhub.schemas.engagement import AnalyticsEvent, ContentCount, EventType, PageViewCreate, SearchEventCreate
from forexhub.storage.base import StorageAdapter
from forexhub.storage.pagination import PaginationOptions
from forexhub.storage.selector import StorageSelector

router = APIRouter(prefix="/v1/analytics", tags=["analytics"])
admin_router = APIRouter(prefix="/v1/admin/analytics", tags=["admin"], dependencies=[Depends(require_admin_key)])


@router.post("/page-view", response_model=ItemResponse[AnalyticsEvent], status_code=201)
async def track_page_view(payload: PageViewCreate, request: Request, storage: StorageAdapter = Depends(get_storage)):
    event = await storage.analytics.track_page_view(
        payload,
        user_agent=request.headers.get("user-agent"),
        ip_address=request.client.host if request.client else None,
    )
    return item_response(event, storage)


@router.post("/search", response_model=ItemResponse[AnalyticsEvent], status_code=201)
async def track_search(payload: SearchEventCreate, storage: StorageAdapter = Depends(get_storage)):
    event = await storage.analytics.track_search(payload.query, payload.results_count, session_id=payload.session_id)
    return item_response(event, storage)


# -----------------------------------------------------------------------------
# Admin
# -----------------------------------------------------------------------------


@admin_router.get("/popular", response_model=ListResponse[ContentCount])
async def popular_content(
    event_type: EventType = Query(EventType.PAGE_VIEW),
    limit: int = Query(10, ge=1, le=100),
    since: datetime | None = Query(None, description="Only count events at or after this time"),
    selector: StorageSelector = Depends(get_selector),
):
    result = await read_with_fallback(selector, lambda a: a.analytics.popular_content(event_type, limit, since))
    return list_response(result)


@admin_router.get("/events", response_model=PageResponse[AnalyticsEvent])
async def events_between(
    start: datetime = Query(...),
    end: datetime = Query(...),
    event_type: EventType | None = Query(None),
    pagination: PaginationOptions = Depends(pagination_params),
    selector: StorageSelector = Depends(get_selector),
):
    return page_response(
        await read_with_fallback(selector, lambda a: a.analytics.events_between(start, end, event_type, pagination))
    )
