# forexhub/schemas/__init__.py
"""
Pydantic schemas for entities, payloads and API responses.
"""

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
    ReviewUpdate,
)
from forexhub.schemas.common import CounterResponse, ItemResponse, ListResponse, PageResponse, StorageInfo
from forexhub.schemas.content import (
    Category,
    CategoryCreate,
    CategoryFilters,
    CategoryNode,
    CategoryUpdate,
    Comment,
    CommentCreate,
    CommentFilters,
    CommentStatus,
    CommentSubmission,
    CommentUpdate,
    Post,
    PostCreate,
    PostFilters,
    PostStatus,
    PostUpdate,
    SeoMeta,
    SeoMetaCreate,
    SeoMetaFilters,
    SeoMetaUpdate,
    TagCount,
)
from forexhub.schemas.engagement import (
    AnalyticsEvent,
    AnalyticsEventCreate,
    AnalyticsEventFilters,
    ContentCount,
    EventType,
    NewsletterSubscriber,
    NewsletterSubscriberPublic,
    PageViewCreate,
    SearchEventCreate,
    SubscriberCreate,
    SubscriberFilters,
    SubscriberUpdate,
)
from forexhub.schemas.health import HealthResponse, StorageStatus
from forexhub.schemas.users import LoginRequest, User, UserCreate, UserFilters, UserPublic, UserRole, UserUpdate

__all__ = [
    # Content
    "Post",
    "PostCreate",
    "PostUpdate",
    "PostFilters",
    "PostStatus",
    "TagCount",
    "Category",
    "CategoryNode",
    "CategoryCreate",
    "CategoryUpdate",
    "CategoryFilters",
    "Comment",
    "CommentCreate",
    "CommentSubmission",
    "CommentUpdate",
    "CommentFilters",
    "CommentStatus",
    "SeoMeta",
    "SeoMetaCreate",
    "SeoMetaUpdate",
    "SeoMetaFilters",
    # Catalog
    "Download",
    "DownloadCreate",
    "DownloadUpdate",
    "DownloadFilters",
    "Platform",
    "Review",
    "ReviewCreate",
    "ReviewSubmission",
    "ReviewUpdate",
    "ReviewFilters",
    # Engagement
    "AnalyticsEvent",
    "AnalyticsEventCreate",
    "AnalyticsEventFilters",
    "ContentCount",
    "EventType",
    "PageViewCreate",
    "SearchEventCreate",
    "NewsletterSubscriber",
    "NewsletterSubscriberPublic",
    "SubscriberCreate",
    "SubscriberUpdate",
    "SubscriberFilters",
    # Users
    "User",
    "UserPublic",
    "UserCreate",
    "UserUpdate",
    "UserFilters",
    "UserRole",
    "LoginRequest",
    # Responses
    "StorageInfo",
    "PageResponse",
    "ItemResponse",
    "ListResponse",
    "CounterResponse",
    "HealthResponse",
    "StorageStatus",
]
