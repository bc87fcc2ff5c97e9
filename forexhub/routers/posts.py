# forexhub/routers/posts.py
"""
Blog post endpoints.

Public (published posts only):
GET  /v1/posts                  - List with filters and pagination
GET  /v1/posts/search?q=        - Accent/case-insensitive search
GET  /v1/posts/tags             - Popular tags with counts
GET  /v1/posts/slug/{slug}      - Post by slug
GET  /v1/posts/{id}             - Post by id
GET  /v1/posts/{id}/related     - Published posts in the same category
GET  /v1/posts/{id}/comments    - Approved comments
GET  /v1/posts/{id}/seo         - SEO overrides
POST /v1/posts/{id}/view        - Count a view

Admin (X-API-Key):
GET/POST /v1/admin/posts, PATCH/DELETE /v1/admin/posts/{id},
PUT /v1/admin/posts/{id}/seo
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
from forexhub.schemas.common import CounterResponse, ItemResponse, ListResponse, PageResponse
from forexhub.schemas.content import (
    Comment,
    Post,
    PostCreate,
    PostFilters,
    PostStatus,
    PostUpdate,
    SeoMeta,
    SeoMetaUpdate,
    TagCount,
)
from forexhub.storage.base import StorageAdapter
from forexhub.storage.errors import NotFoundError
from forexhub.storage.pagination import PaginationOptions
from forexhub.storage.selector import StorageSelector

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/posts", tags=["posts"])
admin_router = APIRouter(prefix="/v1/admin/posts", tags=["admin"], dependencies=[Depends(require_admin_key)])


def _published_or_404(post: Post | None, ref: str) -> Post:
    if post is None or post.status != PostStatus.PUBLISHED:
        raise HTTPException(status_code=404, detail=f"Post not found: {ref}")
    return post


async def _require_published(adapter: StorageAdapter, post_id: str) -> Post:
    return _published_or_404(await adapter.posts.get_by_id(post_id), post_id)


@router.get("", response_model=PageResponse[Post])
async def list_posts(
    category_id: str | None = Query(None),
    author_id: str | None = Query(None),
    tag: str | None = Query(None, description="Only posts carrying this tag"),
    pagination: PaginationOptions = Depends(pagination_params),
    selector: StorageSelector = Depends(get_selector),
):
    filters = PostFilters(status=PostStatus.PUBLISHED, category_id=category_id, author_id=author_id, tag=tag)
    result = await read_with_fallback(selector, lambda a: a.posts.list(pagination, filters))
    return page_response(result)


@router.get("/search", response_model=PageResponse[Post])
async def search_posts(
    q: str = Query(..., description="Search text (case and accent insensitive)"),
    pagination: PaginationOptions = Depends(pagination_params),
    selector: StorageSelector = Depends(get_selector),
):
    filters = PostFilters(status=PostStatus.PUBLISHED)
    return page_response(await read_with_fallback(selector, lambda a: a.posts.search(q, pagination, filters)))


@router.get("/tags", response_model=ListResponse[TagCount])
async def popular_tags(
    limit: int = Query(20, ge=1, le=100),
    selector: StorageSelector = Depends(get_selector),
    cache: TTLCache = Depends(get_read_cache),
):
    async def load(adapter: StorageAdapter) -> list[TagCount]:
        key = ("tags", adapter.name)
        cached = cache.get(key)
        if cached is None:
            cached = await adapter.posts.list_tags(PostStatus.PUBLISHED)
            cache[key] = cached
        return cached[:limit]

    return list_response(await read_with_fallback(selector, load))


@router.get("/slug/{slug}", response_model=ItemResponse[Post])
async def get_post_by_slug(slug: str, selector: StorageSelector = Depends(get_selector)):
    result = await read_with_fallback(selector, lambda a: a.posts.get_by_slug(slug))
    post = _published_or_404(result.value, slug)
    return ItemResponse(data=post, **result.info)


@router.get("/{post_id}", response_model=ItemResponse[Post])
async def get_post(post_id: str, selector: StorageSelector = Depends(get_selector)):
    result = await read_with_fallback(selector, lambda a: a.posts.get_by_id(post_id))
    post = _published_or_404(result.value, post_id)
    return ItemResponse(data=post, **result.info)


@router.get("/{post_id}/related", response_model=ListResponse[Post])
async def related_posts(
    post_id: str,
    limit: int = Query(3, ge=1, le=20),
    selector: StorageSelector = Depends(get_selector),
):
    async def load(adapter: StorageAdapter) -> list[Post]:
        await _require_published(adapter, post_id)
        return await adapter.posts.related(post_id, limit)

    return list_response(await read_with_fallback(selector, load))


@router.get("/{post_id}/comments", response_model=PageResponse[Comment])
async def post_comments(post_id: str, selector: StorageSelector = Depends(get_selector)):
    """Approved comments only, oldest first."""

    async def load(adapter: StorageAdapter):
        await _require_published(adapter, post_id)
        return await adapter.comments.list_for_post(post_id)

    return page_response(await read_with_fallback(selector, load))


@router.get("/{post_id}/seo", response_model=ItemResponse[SeoMeta])
async def get_post_seo(post_id: str, selector: StorageSelector = Depends(get_selector)):
    async def load(adapter: StorageAdapter) -> SeoMeta | None:
        await _require_published(adapter, post_id)
        return await adapter.seo.get_for_post(post_id)

    result = await read_with_fallback(selector, load)
    if result.value is None:
        raise HTTPException(status_code=404, detail=f"SEO metadata not found for post: {post_id}")
    return ItemResponse(data=result.value, **result.info)


@router.post("/{post_id}/view", response_model=CounterResponse)
async def record_view(post_id: str, storage: StorageAdapter = Depends(get_storage)):
    await _require_published(storage, post_id)
    count = await storage.posts.increment_view_count(post_id)
    return CounterResponse(id=post_id, count=count, storage_type=storage.name, persistent=storage.is_persistent)


# -----------------------------------------------------------------------------
# Admin
# -----------------------------------------------------------------------------


@admin_router.get("", response_model=PageResponse[Post])
async def admin_list_posts(
    status: PostStatus | None = Query(None),
    category_id: str | None = Query(None),
    author_id: str | None = Query(None),
    tag: str | None = Query(None),
    q: str | None = Query(None, description="Search instead of filtering"),
    pagination: PaginationOptions = Depends(pagination_params),
    selector: StorageSelector = Depends(get_selector),
):
    if q is not None:
        return page_response(await read_with_fallback(selector, lambda a: a.posts.search(q, pagination)))
    filters = PostFilters(status=status, category_id=category_id, author_id=author_id, tag=tag)
    return page_response(await read_with_fallback(selector, lambda a: a.posts.list(pagination, filters)))


@admin_router.post("", response_model=ItemResponse[Post], status_code=201)
async def create_post(
    payload: PostCreate,
    storage: StorageAdapter = Depends(get_storage),
    cache: TTLCache = Depends(get_read_cache),
):
    post = await storage.posts.create(payload)
    cache.clear()
    logger.info(f"Created post {post.id} ({post.slug})", extra={"event": "post_created", "entity_id": post.id})
    return item_response(post, storage)


@admin_router.patch("/{post_id}", response_model=ItemResponse[Post])
async def update_post(
    post_id: str,
    payload: PostUpdate,
    storage: StorageAdapter = Depends(get_storage),
    cache: TTLCache = Depends(get_read_cache),
):
    post = await storage.posts.update(post_id, payload)
    cache.clear()
    return item_response(post, storage)


@admin_router.delete("/{post_id}", status_code=204)
async def delete_post(
    post_id: str,
    storage: StorageAdapter = Depends(get_storage),
    cache: TTLCache = Depends(get_read_cache),
) -> None:
    if not await storage.posts.delete(post_id):
        raise NotFoundError("post", post_id)
    cache.clear()


@admin_router.put("/{post_id}/seo", response_model=ItemResponse[SeoMeta])
async def upsert_post_seo(post_id: str, payload: SeoMetaUpdate, storage: StorageAdapter = Depends(get_storage)):
    return item_response(await storage.seo.upsert_for_post(post_id, payload), storage)
