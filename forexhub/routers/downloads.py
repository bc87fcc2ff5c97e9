# forexhub/routers/downloads.py
"""
Download catalog endpoints (Expert Advisors, indicators).

Public:
GET  /v1/downloads                  - List with platform/premium filters
GET  /v1/downloads/search?q=        - Search titles and descriptions
GET  /v1/downloads/featured         - Most downloaded
GET  /v1/downloads/top-rated        - Highest rated
GET  /v1/downloads/slug/{slug}      - Download by slug
GET  /v1/downloads/{id}             - Download by id
POST /v1/downloads/{id}/download    - Count a download
GET  /v1/downloads/{id}/reviews     - Reviews, newest first
POST /v1/downloads/{id}/reviews     - Add a review (updates the rating)

Admin (X-API-Key):
POST /v1/admin/downloads, PATCH/DELETE /v1/admin/downloads/{id},
DELETE /v1/admin/downloads/reviews/{review_id}
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

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
from forexhub.schemas.catalog import (
    Download,
    DownloadCreate,
    DownloadFilters,
    DownloadUpdate,
    Platform,
    Review,
    ReviewCreate,
    ReviewFilters,
    ReviewSubmission,
)
from forexhub.schemas.common import CounterResponse, ItemResponse, ListResponse, PageResponse
from forexhub.storage.base import StorageAdapter
from forexhub.storage.errors import NotFoundError
from forexhub.storage.pagination import PaginationOptions
from forexhub.storage.selector import StorageSelector

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/downloads", tags=["downloads"])
admin_router = APIRouter(prefix="/v1/admin/downloads", tags=["admin"], dependencies=[Depends(require_admin_key)])


@router.get("", response_model=PageResponse[Download])
async def list_downloads(
    platform: Platform | None = Query(None),
    is_premium: bool | None = Query(None),
    pagination: PaginationOptions = Depends(pagination_params),
    selector: StorageSelector = Depends(get_selector),
):
    filters = DownloadFilters(platform=platform, is_premium=is_premium)
    return page_response(await read_with_fallback(selector, lambda a: a.downloads.list(pagination, filters)))


@router.get("/search", response_model=PageResponse[Download])
async def search_downloads(
    q: str = Query(..., description="Search text (case and accent insensitive)"),
    platform: Platform | None = Query(None),
    pagination: PaginationOptions = Depends(pagination_params),
    selector: StorageSelector = Depends(get_selector),
):
    filters = DownloadFilters(platform=platform)
    return page_response(await read_with_fallback(selector, lambda a: a.downloads.search(q, pagination, filters)))


@router.get("/featured", response_model=ListResponse[Download])
async def featured_downloads(
    limit: int = Query(6, ge=1, le=50),
    selector: StorageSelector = Depends(get_selector),
):
    return list_response(await read_with_fallback(selector, lambda a: a.downloads.featured(limit)))


@router.get("/top-rated", response_model=ListResponse[Download])
async def top_rated_downloads(
    limit: int = Query(6, ge=1, le=50),
    selector: StorageSelector = Depends(get_selector),
):
    return list_response(await read_with_fallback(selector, lambda a: a.downloads.top_rated(limit)))


@router.get("/slug/{slug}", response_model=ItemResponse[Download])
async def get_download_by_slug(slug: str, selector: StorageSelector = Depends(get_selector)):
    result = await read_with_fallback(selector, lambda a: a.downloads.get_by_slug(slug))
    if result.value is None:
        raise HTTPException(status_code=404, detail=f"Download not found: {slug}")
    return ItemResponse(data=result.value, **result.info)


@router.get("/{download_id}", response_model=ItemResponse[Download])
async def get_download(download_id: str, selector: StorageSelector = Depends(get_selector)):
    result = await read_with_fallback(selector, lambda a: a.downloads.get_by_id(download_id))
    if result.value is None:
        raise HTTPException(status_code=404, detail=f"Download not found: {download_id}")
    return ItemResponse(data=result.value, **result.info)


@router.post("/{download_id}/download", response_model=CounterResponse)
async def record_download(download_id: str, storage: StorageAdapter = Depends(get_storage)):
    count = await storage.downloads.increment_download_count(download_id)
    return CounterResponse(id=download_id, count=count, storage_type=storage.name, persistent=storage.is_persistent)


@router.get("/{download_id}/reviews", response_model=PageResponse[Review])
async def download_reviews(
    download_id: str,
    pagination: PaginationOptions = Depends(pagination_params),
    selector: StorageSelector = Depends(get_selector),
):
    filters = ReviewFilters(download_id=download_id)
    return page_response(await read_with_fallback(selector, lambda a: a.reviews.list(pagination, filters)))


@router.post("/{download_id}/reviews", response_model=ItemResponse[Review], status_code=201)
async def create_review(download_id: str, payload: ReviewSubmission, storage: StorageAdapter = Depends(get_storage)):
    review = await storage.reviews.create(ReviewCreate(download_id=download_id, **payload.model_dump()))
    logger.info(
        f"Review {review.id} added to download {download_id}",
        extra={"event": "review_created", "entity": "review", "entity_id": review.id},
    )
    return item_response(review, storage)


# -----------------------------------------------------------------------------
# Admin
# -----------------------------------------------------------------------------


@admin_router.post("", response_model=ItemResponse[Download], status_code=201)
async def create_download(payload: DownloadCreate, storage: StorageAdapter = Depends(get_storage)):
    download = await storage.downloads.create(payload)
    logger.info(
        f"Created download {download.id} ({download.slug})",
        extra={"event": "download_created", "entity": "download", "entity_id": download.id},
    )
    return item_response(download, storage)


@admin_router.patch("/{download_id}", response_model=ItemResponse[Download])
async def update_download(download_id: str, payload: DownloadUpdate, storage: StorageAdapter = Depends(get_storage)):
    return item_response(await storage.downloads.update(download_id, payload), storage)


@admin_router.delete("/{download_id}", status_code=204)
async def delete_download(download_id: str, storage: StorageAdapter = Depends(get_storage)) -> None:
    """Deletes the download and all of its reviews."""
    if not await storage.downloads.delete(download_id):
        raise NotFoundError("download", download_id)


@admin_router.delete("/reviews/{review_id}", status_code=204)
async def delete_review(review_id: str, storage: StorageAdapter = Depends(get_storage)) -> None:
    if not await storage.reviews.delete(review_id):
        raise NotFoundError("review", review_id)
