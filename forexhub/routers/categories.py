# forexhub/routers/categories.py
"""
Category endpoints.

GET /v1/categories              - Flat list (filter by parent or roots only)
GET /v1/categories/tree         - Nested tree, cached briefly
GET /v1/categories/slug/{slug}  - Category by slug
GET /v1/categories/{id}         - Category by id

Admin (X-API-Key): POST /v1/admin/categories, PATCH/DELETE /v1/admin/categories/{id}
"""

import logging

from cachetools import TTLCache
from fastapi import APIRouter, Depends, HTTPException, Query

from forexhub.auth import require_admin_key
from forexhub.routers.deps import (
    get_read_cache,
    get_selector,
    get_storage,
    item_response,
    list_response,
    page_response,
    pagination_params,
    read_with_fallback,
)
from forexhub.schemas.common import ItemResponse, ListResponse, PageResponse
from forexhub.schemas.content import Category, CategoryCreate, CategoryFilters, CategoryNode, CategoryUpdate
from forexhub.storage.base import StorageAdapter
from forexhub.storage.errors import NotFoundError
from forexhub.storage.pagination import PaginationOptions
from forexhub.storage.selector import StorageSelector

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/categories", tags=["categories"])
admin_router = APIRouter(prefix="/v1/admin/categories", tags=["admin"], dependencies=[Depends(require_admin_key)])


@router.get("", response_model=PageResponse[Category])
async def list_categories(
    parent_id: str | None = Query(None),
    root_only: bool = Query(False),
    pagination: PaginationOptions = Depends(pagination_params),
    selector: StorageSelector = Depends(get_selector),
):
    filters = CategoryFilters(parent_id=parent_id, root_only=root_only)
    return page_response(await read_with_fallback(selector, lambda a: a.categories.list(pagination, filters)))


@router.get("/tree", response_model=ListResponse[CategoryNode])
async def category_tree(
    selector: StorageSelector = Depends(get_selector),
    cache: TTLCache = Depends(get_read_cache),
):
    async def load(adapter: StorageAdapter) -> list[CategoryNode]:
        key = ("category_tree", adapter.name)
        tree = cache.get(key)
        if tree is None:
            tree = await adapter.categories.tree()
            cache[key] = tree
        return tree

    return list_response(await read_with_fallback(selector, load))


@router.get("/slug/{slug}", response_model=ItemResponse[Category])
async def get_category_by_slug(slug: str, selector: StorageSelector = Depends(get_selector)):
    result = await read_with_fallback(selector, lambda a: a.categories.get_by_slug(slug))
    if result.value is None:
        raise HTTPException(status_code=404, detail=f"Category not found: {slug}")
    return ItemResponse(data=result.value, **result.info)


@router.get("/{category_id}", response_model=ItemResponse[Category])
async def get_category(category_id: str, selector: StorageSelector = Depends(get_selector)):
    result = await read_with_fallback(selector, lambda a: a.categories.get_by_id(category_id))
    if result.value is None:
        raise HTTPException(status_code=404, detail=f"Category not found: {category_id}")
    return ItemResponse(data=result.value, **result.info)


# -----------------------------------------------------------------------------
# Admin
# -----------------------------------------------------------------------------


@admin_router.post("", response_model=ItemResponse[Category], status_code=201)
async def create_category(
    payload: CategoryCreate,
    storage: StorageAdapter = Depends(get_storage),
    cache: TTLCache = Depends(get_read_cache),
):
    category = await storage.categories.create(payload)
    cache.clear()
    logger.info(
        f"Created category {category.slug}",
        extra={"event": "category_created", "entity": "category", "entity_id": category.id},
    )
    return item_response(category, storage)


@admin_router.patch("/{category_id}", response_model=ItemResponse[Category])
async def update_category(
    category_id: str,
    payload: CategoryUpdate,
    storage: StorageAdapter = Depends(get_storage),
    cache: TTLCache = Depends(get_read_cache),
):
    category = await storage.categories.update(category_id, payload)
    cache.clear()
    return item_response(category, storage)


@admin_router.delete("/{category_id}", status_code=204)
async def delete_category(
    category_id: str,
    storage: StorageAdapter = Depends(get_storage),
    cache: TTLCache = Depends(get_read_cache),
) -> None:
    """Refused (400) while posts or child categories still reference it."""
    if not await storage.categories.delete(category_id):
        raise NotFoundError("category", category_id)
    cache.clear()
