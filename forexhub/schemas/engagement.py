# forexhub/schemas/engagement.py
"""
Schemas for reader engagement: analytics events and newsletter subscribers.

Analytics events are append-only. A subscriber is keyed by email; leaving
the list deactivates the subscription instead of deleting it, so a later
signup with the same address reactivates the same record.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

_PAYLOAD_CONFIG = ConfigDict(use_enum_values=True)


class EventType(str, Enum):
    PAGE_VIEW = "page_view"
    DOWNLOAD = "download"
    SEARCH = "search"


# -----------------------------------------------------------------------------
# Analytics events
# -----------------------------------------------------------------------------


class AnalyticsEvent(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    event_type: EventType
    page_url: str | None = None
    referrer: str | None = None
    user_agent: str | None = None
    ip_address: str | None = None
    session_id: str | None = None
    user_id: str | None = None
    post_id: str | None = None
    download_id: str | None = None
    search_query: str | None = None
    search_results_count: int | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime


class AnalyticsEventCreate(BaseModel):
    model_config = _PAYLOAD_CONFIG

    event_type: EventType
    page_url: str | None = Field(None, max_length=2000)
    referrer: str | None = Field(None, max_length=2000)
    user_agent: str | None = Field(None, max_length=500)
    ip_address: str | None = Field(None, max_length=64)
    session_id: str | None = Field(None, max_length=120)
    user_id: str | None = None
    post_id: str | None = None
    download_id: str | None = None
    search_query: str | None = Field(None, max_length=500)
    search_results_count: int | None = Field(None, ge=0)
    details: dict[str, Any] = Field(default_factory=dict)


class PageViewCreate(BaseModel):
    """Page view reported by the site frontend."""

    page_url: str = Field(..., min_length=1, max_length=2000)
    referrer: str | None = Field(None, max_length=2000)
    session_id: str | None = Field(None, max_length=120)
    post_id: str | None = None
    download_id: str | None = None


class SearchEventCreate(BaseModel):
    query: str = Field(..., min_length=1, max_length=500)
    results_count: int = Field(..., ge=0)
    session_id: str | None = Field(None, max_length=120)


class AnalyticsEventFilters(BaseModel):
    """since and until bound created_at, both inclusive."""

    model_config = _PAYLOAD_CONFIG

    event_type: EventType | None = None
    user_id: str | None = None
    session_id: str | None = None
    post_id: str | None = None
    download_id: str | None = None
    since: datetime | None = None
    until: datetime | None = None


class ContentCount(BaseModel):
    """How often one post or download appears in events of a type."""

    id: str
    count: int


# -----------------------------------------------------------------------------
# Newsletter
# -----------------------------------------------------------------------------


class NewsletterSubscriber(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str | None = None
    preferences: dict[str, Any] = Field(default_factory=dict)
    is_active: bool
    confirmation_token: str | None = None
    confirmed_at: datetime | None = None
    subscribed_at: datetime
    unsubscribed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class NewsletterSubscriberPublic(BaseModel):
    """Subscriber as exposed over HTTP (no confirmation token)."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str | None = None
    preferences: dict[str, Any] = Field(default_factory=dict)
    is_active: bool
    confirmed_at: datetime | None = None
    subscribed_at: datetime
    unsubscribed_at: datetime | None = None


class SubscriberCreate(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    name: str | None = Field(None, max_length=120)
    preferences: dict[str, Any] = Field(default_factory=dict)


class SubscriberUpdate(BaseModel):
    name: str | None = Field(None, max_length=120)
    preferences: dict[str, Any] | None = None
    is_active: bool | None = None


class SubscriberFilters(BaseModel):
    is_active: bool | None = None


class EmailRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)


class PreferencesUpdate(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    preferences: dict[str, Any]
