# forexhub/routers/newsletter.py
"""
Newsletter subscriptions.

POST /v1/newsletter/subscribe     - Join the list (reactivates a lapsed address)
POST /v1/newsletter/unsubscribe   - Leave the list

Admin (X-API-Key):
GET /v1/admin/newsletter          - Subscribers, optionally active only
PUT /v1/admin/newsletter/preferences

Confirmation tokens are never returned: responses are NewsletterSubscriberPublic.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from forexhub.auth import require_admin_key
from forexhub.routers.deps import (
    ReadResult,
    get_selector,
    get_storage,
    item_response,
    pagination_params,
    read_with_fallback,
)
from forexhub.schemas.common import ItemResponse, PageResponse
from forexhub.schemas.engagement import (
    EmailRequest,
    NewsletterSubscriber,
    NewsletterSubscriberPublic,
    PreferencesUpdate,
    SubscriberCreate,
    SubscriberFilters,
)
from forexhub.storage.base import StorageAdapter
from forexhub.storage.pagination import PaginationOptions
from forexhub.storage.selector import StorageSelector

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/newsletter", tags=["newsletter"])
admin_router = APIRouter(prefix="/v1/admin/newsletter", tags=["admin"], dependencies=[Depends(require_admin_key)])


def _public(subscriber: NewsletterSubscriber) -> NewsletterSubscriberPublic:
    return NewsletterSubscriberPublic.model_validate(subscriber)


def _public_page(result: ReadResult) -> PageResponse[NewsletterSubscriberPublic]:
    page = result.value
    return PageResponse[NewsletterSubscriberPublic](
        **page.model_dump(exclude={"data"}),
        data=[_public(s) for s in page.data],
        **result.info,
    )


@router.post("/subscribe", response_model=ItemResponse[NewsletterSubscriberPublic], status_code=201)
async def subscribe(payload: SubscriberCreate, storage: StorageAdapter = Depends(get_storage)):
    subscriber = await storage.newsletter.subscribe(payload)
    logger.info(
        f"Newsletter subscriber {subscriber.id} active",
        extra={"event": "newsletter_subscribed", "entity": "newsletter_subscriber", "entity_id": subscriber.id},
    )
    return item_response(_public(subscriber), storage)


@router.post("/unsubscribe", status_code=204)
async def unsubscribe(payload: EmailRequest, storage: StorageAdapter = Depends(get_storage)) -> None:
    if not await storage.newsletter.unsubscribe(payload.email):
        raise HTTPException(status_code=404, detail="Subscriber not found")


# -----------------------------------------------------------------------------
# Admin
# -----------------------------------------------------------------------------


@admin_router.get("", response_model=PageResponse[NewsletterSubscriberPublic])
async def list_subscribers(
    active: bool | None = Query(None, description="true for active subscribers only"),
    q: str | None = Query(None, description="Search emails and names"),
    pagination: PaginationOptions = Depends(pagination_params),
    selector: StorageSelector = Depends(get_selector),
):
    filters = SubscriberFilters(is_active=active)
    if q is not None:
        return _public_page(await read_with_fallback(selector, lambda a: a.newsletter.search(q, pagination, filters)))
    return _public_page(await read_with_fallback(selector, lambda a: a.newsletter.list(pagination, filters)))


@admin_router.put("/preferences", response_model=ItemResponse[NewsletterSubscriberPublic])
async def update_preferences(payload: PreferencesUpdate, storage: StorageAdapter = Depends(get_storage)):
    subscriber = await storage.newsletter.update_preferences(payload.email, payload.preferences)
    if subscriber is None:
        raise HTTPException(status_code=404, detail="Subscriber not found")
    return item_response(_public(subscriber), storage)
