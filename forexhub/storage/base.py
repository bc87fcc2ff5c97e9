# forexhub/storage/base.py
"""
Uniform storage contract.

Route handlers only ever see a StorageAdapter and its repositories; the
durable (SQL) and volatile (in-memory) adapters implement the same method
surface and return the same pydantic entities, so a handler cannot tell
which backend served it except through StorageAdapter.name.

Every repository supports:
- create(payload) -> entity
- get_by_id(id) -> entity | None
- update(id, payload) -> entity          (NotFoundError if absent)
- delete(id) -> bool                     (False if absent)
- list(pagination, filters) -> Page
- search(query, pagination, filters) -> Page

Slugged repositories add get_by_slug(); the rest of the entity-specific
operations are declared on the subclasses below.
"""

import asyncio
from abc import ABC, abstractmethod
from collections import Counter
from collections.abc import Callable
from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from forexhub.schemas.catalog import Download, Review
from forexhub.schemas.content import (
    Category,
    CategoryNode,
    Comment,
    CommentFilters,
    CommentStatus,
    Post,
    PostFilters,
    PostStatus,
    SeoMeta,
    SeoMetaCreate,
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
    PageViewCreate,
    SubscriberCreate,
    SubscriberUpdate,
)
from forexhub.schemas.users import User
from forexhub.storage.errors import ValidationError
from forexhub.storage.pagination import Page, PaginationOptions, SortOrder
from forexhub.storage.rules import EntityRules
from forexhub.storage.text import naive_utc, normalize_email, verify_password

E = TypeVar("E", bound=BaseModel)
R = TypeVar("R")


class Repository(ABC, Generic[E]):
    """CRUD + list + search over one entity collection."""

    rules: EntityRules

    @abstractmethod
    async def create(self, payload: BaseModel) -> E:
        """Validate and store a new entity. Raises ValidationError."""
        pass

    @abstractmethod
    async def get_by_id(self, entity_id: str) -> E | None:
        pass

    @abstractmethod
    async def update(self, entity_id: str, payload: BaseModel) -> E:
        """Apply the fields explicitly set on payload. Raises NotFoundError, ValidationError."""
        pass

    @abstractmethod
    async def delete(self, entity_id: str) -> bool:
        """Delete an entity and apply its cascade rules. Returns False if it did not exist."""
        pass

    @abstractmethod
    async def list(
        self,
        pagination: PaginationOptions | None = None,
        filters: BaseModel | None = None,
    ) -> Page[E]:
        pass

    @abstractmethod
    async def search(
        self,
        query: str,
        pagination: PaginationOptions | None = None,
        filters: BaseModel | None = None,
    ) -> Page[E]:
        """
        Case- and accent-insensitive substring search, optionally narrowed by filters.

        An empty (or whitespace-only) query returns an empty page.
        """
        pass

    @abstractmethod
    async def _get_by_field(self, field: str, value: Any) -> E | None:
        """First entity whose field equals value, or None."""
        pass

    async def _after_write(self, entity: E) -> None:
        """Called after a successful create or update."""
        return None

    async def _after_delete(self, entity: E) -> None:
        """Called after a successful delete with the entity as it was."""
        return None


class SluggedRepository(Repository[E]):
    async def get_by_slug(self, slug: str) -> E | None:
        return await self._get_by_field("slug", slug)


class PostRepository(SluggedRepository[Post]):
    @abstractmethod
    async def increment_view_count(self, post_id: str) -> int:
        """Atomically add one view. Returns the new count. Raises NotFoundError."""
        pass

    @abstractmethod
    async def list_tags(self, status: PostStatus | None = None) -> list[TagCount]:
        """Distinct tags with usage counts, most used first. status narrows the posts counted."""
        pass

    async def related(self, post_id: str, limit: int = 3) -> list[Post]:
        """Published posts in the same category as post_id, newest first, excluding itself."""
        post = await self.get_by_id(post_id)
        if post is None:
            return []
        page = await self.list(
            PaginationOptions(page=1, limit=min(limit + 1, 100), sort_by="published_at", sort_order=SortOrder.DESC),
            PostFilters(status=PostStatus.PUBLISHED, category_id=post.category_id),
        )
        return [p for p in page.data if p.id != post_id][:limit]


class DownloadRepository(SluggedRepository[Download]):
    @abstractmethod
    async def increment_download_count(self, download_id: str) -> int:
        """Atomically add one download. Returns the new count. Raises NotFoundError."""
        pass

    @abstractmethod
    async def update_rating_aggregate(self, download_id: str) -> Download:
        """Recompute rating (mean of reviews, 2 decimals) and review_count. Raises NotFoundError."""
        pass

    async def featured(self, limit: int = 6) -> list[Download]:
        page = await self.list(PaginationOptions(limit=limit, sort_by="download_count", sort_order=SortOrder.DESC))
        return page.data

    async def top_rated(self, limit: int = 6) -> list[Download]:
        page = await self.list(PaginationOptions(limit=limit, sort_by="rating", sort_order=SortOrder.DESC))
        return page.data


class ReviewRepository(Repository[Review]):
    """
    Reviews keep their download's rating aggregate current.

    Concrete subclasses set self.downloads to the adapter's download
    repository.
    """

    downloads: DownloadRepository

    async def _after_write(self, entity: Review) -> None:
        await self.downloads.update_rating_aggregate(entity.download_id)

    async def _after_delete(self, entity: Review) -> None:
        if await self.downloads.get_by_id(entity.download_id) is not None:
            await self.downloads.update_rating_aggregate(entity.download_id)


class CategoryRepository(SluggedRepository[Category]):
    @abstractmethod
    async def all(self) -> list[Category]:
        pass

    async def tree(self) -> list[CategoryNode]:
        return build_category_tree(await self.all())


class CommentRepository(Repository[Comment]):
    async def list_for_post(
        self,
        post_id: str,
        include_all: bool = False,
        pagination: PaginationOptions | None = None,
    ) -> Page[Comment]:
        """
        Comments on a post, oldest first by default.

        Public readers get approved comments only; admins pass
        include_all=True to see every moderation status.
        """
        pagination = pagination or PaginationOptions(limit=100, sort_by="created_at", sort_order=SortOrder.ASC)
        filters = CommentFilters(post_id=post_id, status=None if include_all else CommentStatus.APPROVED)
        return await self.list(pagination, filters)


class UserRepository(Repository[User]):
    async def get_by_email(self, email: str) -> User | None:
        return await self._get_by_field("email", normalize_email(email))

    async def get_by_username(self, username: str) -> User | None:
        return await self._get_by_field("username", username.strip())

    @abstractmethod
    async def record_login(self, user_id: str) -> User:
        """Stamp last_login_at. Raises NotFoundError."""
        pass

    async def authenticate(self, email: str, password: str) -> User | None:
        """Return the user if the password matches, stamping the login time."""
        user = await self.get_by_email(email)
        if user is None:
            return None
        loop = asyncio.get_running_loop()
        # PBKDF2 is CPU bound
        ok = await loop.run_in_executor(None, verify_password, password, user.password_hash)
        if not ok:
            return None
        return await self.record_login(user.id)


class SeoMetaRepository(Repository[SeoMeta]):
    async def get_for_post(self, post_id: str) -> SeoMeta | None:
        return await self._get_by_field("post_id", post_id)

    async def upsert_for_post(self, post_id: str, payload: SeoMetaUpdate) -> SeoMeta:
        existing = await self.get_for_post(post_id)
        if existing is not None:
            return await self.update(existing.id, payload)
        data = payload.model_dump(exclude_unset=True, exclude_none=True)
        return await self.create(SeoMetaCreate(post_id=post_id, **data))


class AnalyticsRepository(Repository[AnalyticsEvent]):
    """Append-only event log. update() always raises ValidationError."""

    async def track_page_view(
        self,
        payload: PageViewCreate,
        user_id: str | None = None,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> AnalyticsEvent:
        return await self.create(
            AnalyticsEventCreate(
                event_type=EventType.PAGE_VIEW,
                user_id=user_id,
                user_agent=user_agent,
                ip_address=ip_address,
                **payload.model_dump(),
            )
        )

    async def track_download(
        self,
        download_id: str,
        user_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> AnalyticsEvent:
        return await self.create(
            AnalyticsEventCreate(
                event_type=EventType.DOWNLOAD,
                download_id=download_id,
                user_id=user_id,
                details=details or {},
            )
        )

    async def track_search(
        self,
        query: str,
        results_count: int,
        user_id: str | None = None,
        session_id: str | None = None,
    ) -> AnalyticsEvent:
        return await self.create(
            AnalyticsEventCreate(
                event_type=EventType.SEARCH,
                search_query=query,
                search_results_count=results_count,
                user_id=user_id,
                session_id=session_id,
            )
        )

    @abstractmethod
    async def popular_content(
        self,
        event_type: EventType,
        limit: int = 10,
        since: datetime | None = None,
    ) -> list[ContentCount]:
        """
        Posts and downloads ranked by how many events of event_type name them.

        An event counts for its post_id, or its download_id when it has no
        post. Ties are broken by id.
        """
        pass

    async def events_between(
        self,
        start: datetime,
        end: datetime,
        event_type: EventType | None = None,
        pagination: PaginationOptions | None = None,
    ) -> Page[AnalyticsEvent]:
        """Events with start <= created_at <= end, newest first unless pagination says otherwise."""
        start, end = naive_utc(start), naive_utc(end)
        if end < start:
            raise ValidationError("end must not be before start", field="end")
        filters = AnalyticsEventFilters(event_type=event_type, since=start, until=end)
        return await self.list(pagination or PaginationOptions(limit=100), filters)


class NewsletterRepository(Repository[NewsletterSubscriber]):
    async def get_by_email(self, email: str) -> NewsletterSubscriber | None:
        return await self._get_by_field("email", normalize_email(email))

    async def subscribe(self, payload: SubscriberCreate) -> NewsletterSubscriber:
        """
        Add an address to the list, or reactivate it if it unsubscribed earlier.

        Raises ValidationError (field "email") if the address is already active.
        """
        existing = await self.get_by_email(payload.email)
        if existing is None:
            return await self.create(payload)
        if existing.is_active:
            raise ValidationError(f"{existing.email} is already subscribed", field="email")
        changes: dict[str, Any] = {"is_active": True, "preferences": payload.preferences}
        if payload.name is not None:
            changes["name"] = payload.name
        return await self.update(existing.id, SubscriberUpdate(**changes))

    async def unsubscribe(self, email: str) -> bool:
        """Deactivate a subscription. Returns False for an unknown address."""
        existing = await self.get_by_email(email)
        if existing is None:
            return False
        if existing.is_active:
            await self.update(existing.id, SubscriberUpdate(is_active=False))
        return True

    async def update_preferences(self, email: str, preferences: dict[str, Any]) -> NewsletterSubscriber | None:
        existing = await self.get_by_email(email)
        if existing is None:
            return None
        return await self.update(existing.id, SubscriberUpdate(preferences=preferences))


class StorageAdapter(ABC):
    """
    One complete storage backend.

    name is "durable" or "volatile"; is_persistent tells callers whether
    writes survive a restart.
    """

    name: str
    is_persistent: bool
    supports_transactions: bool = False

    posts: PostRepository
    downloads: DownloadRepository
    reviews: ReviewRepository
    categories: CategoryRepository
    comments: CommentRepository
    users: UserRepository
    seo: SeoMetaRepository
    analytics: AnalyticsRepository
    newsletter: NewsletterRepository

    @abstractmethod
    async def initialize(self) -> None:
        """Ready the backend. Idempotent. Raises InitializationError."""
        pass

    @abstractmethod
    async def close(self) -> None:
        pass

    @property
    def is_ready(self) -> bool:
        return True

    async def run_in_transaction(self, fn: Callable[[Any], R]) -> R:
        raise NotImplementedError(f"{self.name} storage does not support transactions")


def build_category_tree(categories: list[Category]) -> list[CategoryNode]:
    """Nest categories under their parents, siblings ordered by (sort_order, name)."""
    nodes = {c.id: CategoryNode(**c.model_dump()) for c in categories}
    roots: list[CategoryNode] = []
    for node in nodes.values():
        parent = nodes.get(node.parent_id) if node.parent_id else None
        if parent is None:
            roots.append(node)
        else:
            parent.children.append(node)

    def _sort(items: list[CategoryNode]) -> list[CategoryNode]:
        items.sort(key=lambda n: (n.sort_order, n.name, n.id))
        for item in items:
            _sort(item.children)
        return items

    return _sort(roots)


def count_tags(tag_lists: list[list[str]]) -> list[TagCount]:
    counts = Counter(tag for tags in tag_lists for tag in tags or [])
    return [TagCount(tag=tag, count=n) for tag, n in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))]


def rank_content(counts: Counter, limit: int) -> list[ContentCount]:
    ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))[:limit]
    return [ContentCount(id=content_id, count=n) for content_id, n in ranked]
