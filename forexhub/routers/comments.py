# forexhub/routers/comments.py
"""
Comment endpoints.

POST /v1/comments                       - Submit a comment (starts pending)

Admin (X-API-Key):
GET    /v1/admin/comments               - Moderation queue, any status
GET    /v1/admin/comments/post/{id}     - Every comment on a post
PATCH  /v1/admin/comments/{id}          - Moderate or edit
DELETE /v1/admin/comments/{id}          - Delete with its replies

Approved comments are read through GET /v1/posts/{id}/comments.
"""

import logging

from fastapi import APIRouter, Depends, Query

from forexhub.auth import require_admin_key
from forexhub.routers.deps import (
    get_selector,
    get_storage,
    item_response,
    page_response,
    pagination_params,
    read_with_fallback,
)
from forexhub.schemas.common import ItemResponse, PageResponse
from forexhub.schemas.content import (
    Comment,
    CommentCreate,
    CommentFilters,
    CommentStatus,
    CommentSubmission,
    CommentUpdate,
    PostStatus,
)
from forexhub.storage.base import StorageAdapter
from forexhub.storage.errors import NotFoundError, ValidationError
from forexhub.storage.pagination import PaginationOptions
from forexhub.storage.selector import StorageSelector

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/comments", tags=["comments"])
admin_router = APIRouter(prefix="/v1/admin/comments", tags=["admin"], dependencies=[Depends(require_admin_key)])


@router.post("", response_model=ItemResponse[Comment], status_code=201)
async def submit_comment(payload: CommentSubmission, storage: StorageAdapter = Depends(get_storage)):
    """Readers may only comment on published posts."""
    post = await storage.posts.get_by_id(payload.post_id)
    if post is None or post.status != PostStatus.PUBLISHED:
        raise ValidationError(f"Post not found: {payload.post_id}", field="post_id")
    comment = await storage.comments.create(CommentCreate(**payload.model_dump()))
    logger.info(
        f"Comment {comment.id} submitted on post {comment.post_id}",
        extra={"event": "comment_submitted", "entity": "comment", "entity_id": comment.id},
    )
    return item_response(comment, storage)


@admin_router.get("", response_model=PageResponse[Comment])
async def list_comments(
    status: CommentStatus | None = Query(None, description="pending for the moderation queue"),
    post_id: str | None = Query(None),
    user_id: str | None = Query(None),
    q: str | None = Query(None, description="Search comment bodies and author names"),
    pagination: PaginationOptions = Depends(pagination_params),
    selector: StorageSelector = Depends(get_selector),
):
    filters = CommentFilters(status=status, post_id=post_id, user_id=user_id)
    if q is not None:
        return page_response(await read_with_fallback(selector, lambda a: a.comments.search(q, pagination, filters)))
    return page_response(await read_with_fallback(selector, lambda a: a.comments.list(pagination, filters)))


@admin_router.get("/post/{post_id}", response_model=PageResponse[Comment])
async def list_post_comments(post_id: str, selector: StorageSelector = Depends(get_selector)):
    result = await read_with_fallback(selector, lambda a: a.comments.list_for_post(post_id, include_all=True))
    return page_response(result)


@admin_router.patch("/{comment_id}", response_model=ItemResponse[Comment])
async def moderate_comment(comment_id: str, payload: CommentUpdate, storage: StorageAdapter = Depends(get_storage)):
    comment = await storage.comments.update(comment_id, payload)
    if payload.status is not None:
        logger.info(
            f"Comment {comment_id} marked {comment.status.value}",
            extra={"event": "comment_moderated", "entity": "comment", "entity_id": comment_id},
        )
    return item_response(comment, storage)


@admin_router.delete("/{comment_id}", status_code=204)
async def delete_comment(comment_id: str, storage: StorageAdapter = Depends(get_storage)) -> None:
    if not await storage.comments.delete(comment_id):
        raise NotFoundError("comment", comment_id)
