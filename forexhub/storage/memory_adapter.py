# forexhub/storage/memory_adapter.py
"""
Volatile Store Adapter.

Keeps every collection in process memory. Nothing survives a restart: this
adapter exists so the service stays available while the database is
unreachable, not to hold data.

Mutations hold a per-collection threading.Lock for the whole
read-validate-write sequence, so uniqueness checks and counter increments
cannot interleave. Deletes touch several collections (cascades,
nullification) and take every lock in sorted name order.
"""

import logging
import threading
from collections import Counter
from collections.abc import Iterator
from contextlib import ExitStack, contextmanager
from typing import Any

from pydantic import BaseModel

from forexhub.schemas.catalog import Download
from forexhub.schemas.content import PostStatus
from forexhub.schemas.engagement import EventType
from forexhub.schemas.users import User
from forexhub.storage.base import (
    AnalyticsRepository,
    CategoryRepository,
    CommentRepository,
    DownloadRepository,
    NewsletterRepository,
    PostRepository,
    Repository,
    ReviewRepository,
    SeoMetaRepository,
    StorageAdapter,
    UserRepository,
    count_tags,
    rank_content,
)
from forexhub.storage.errors import NotFoundError
from forexhub.storage.pagination import Page, PaginationOptions, resolve_sort_field, slice_records, sort_records
from forexhub.storage.rules import (
    ANALYTICS_EVENTS,
    CATEGORIES,
    COMMENTS,
    DOWNLOADS,
    ENTITY_RULES,
    NEWSLETTER_SUBSCRIBERS,
    POSTS,
    REVIEWS,
    SEO_META,
    USERS,
    EntityRules,
    filter_conditions,
    mean_rating,
    plan_delete,
    record_matches,
    validate_record,
)
from forexhub.storage.text import matches_search, naive_utc, normalize_search_text, utcnow

logger = logging.getLogger(__name__)


class MemoryStore:
    """Process-local record collections, one lock per collection."""

    def __init__(self):
        self._data: dict[str, dict[str, dict]] = {name: {} for name in ENTITY_RULES}
        self._locks: dict[str, threading.Lock] = {name: threading.Lock() for name in ENTITY_RULES}

    # RecordSource

    def get(self, collection: str, record_id: str) -> dict | None:
        return self._data[collection].get(record_id)

    def find_one(self, collection: str, field: str, value: Any) -> dict | None:
        for record in self._data[collection].values():
            if record.get(field) == value:
                return record
        return None

    def find_all(self, collection: str, field: str, value: Any) -> list[dict]:
        return [r for r in self._data[collection].values() if r.get(field) == value]

    # Writes (caller holds the collection lock)

    def records(self, collection: str) -> list[dict]:
        return list(self._data[collection].values())

    def put(self, collection: str, record: dict) -> None:
        self._data[collection][record["id"]] = record

    def remove(self, collection: str, record_id: str) -> None:
        self._data[collection].pop(record_id, None)

    @contextmanager
    def locked(self, *collections: str) -> Iterator[None]:
        with ExitStack() as stack:
            for name in sorted(set(collections)):
                stack.enter_context(self._locks[name])
            yield

    def count(self, collection: str) -> int:
        return len(self._data[collection])

    def clear(self) -> None:
        with self.locked(*self._data):
            for records in self._data.values():
                records.clear()


class MemoryRepository(Repository):
    """Generic repository over one MemoryStore collection."""

    def __init__(self, store: MemoryStore, rules: EntityRules):
        self._store = store
        self.rules = rules

    @property
    def _collection(self) -> str:
        return self.rules.collection

    async def create(self, payload: BaseModel):
        with self._store.locked(self._collection):
            record = self.rules.new_record(payload)
            validate_record(self.rules, record, self._store)
            self._store.put(self._collection, record)
        entity = self.rules.to_entity(record)
        await self._after_write(entity)
        return entity

    async def get_by_id(self, entity_id: str):
        record = self._store.get(self._collection, entity_id)
        return self.rules.to_entity(record) if record is not None else None

    async def update(self, entity_id: str, payload: BaseModel):
        with self._store.locked(self._collection):
            existing = self._store.get(self._collection, entity_id)
            if existing is None:
                raise NotFoundError(self.rules.name, entity_id)
            record = self.rules.apply_update(existing, payload)
            validate_record(self.rules, record, self._store, existing)
            self._store.put(self._collection, record)
        entity = self.rules.to_entity(record)
        await self._after_write(entity)
        return entity

    async def delete(self, entity_id: str) -> bool:
        with self._store.locked(*ENTITY_RULES):
            existing = self._store.get(self._collection, entity_id)
            if existing is None:
                return False
            plan = plan_delete(self._collection, entity_id, self._store)
            for collection, record_id, field in plan.nullify:
                child = self._store.get(collection, record_id)
                if child is not None:
                    self._store.put(collection, {**child, field: None})
            for collection, record_id in plan.deletes:
                self._store.remove(collection, record_id)
        await self._after_delete(self.rules.to_entity(existing))
        return True

    async def _get_by_field(self, field: str, value: Any):
        record = self._store.find_one(self._collection, field, value)
        return self.rules.to_entity(record) if record is not None else None

    def _increment(self, entity_id: str, field: str) -> int:
        with self._store.locked(self._collection):
            record = self._store.get(self._collection, entity_id)
            if record is None:
                raise NotFoundError(self.rules.name, entity_id)
            value = record[field] + 1
            self._store.put(self._collection, {**record, field: value})
        return value

    def _page(self, records: list[dict], sort_by: str, options: PaginationOptions) -> Page:
        ordered = sort_records(records, sort_by, options.sort_order)
        data = [self.rules.to_entity(r) for r in slice_records(ordered, options)]
        return Page.build(data, len(ordered), options)

    async def search(
        self,
        query: str,
        pagination: PaginationOptions | None = None,
        filters: BaseModel | None = None,
    ) -> Page:
        options = pagination or PaginationOptions()
        sort_by = resolve_sort_field(options, self.rules.sort_fields, self.rules.name)
        if not normalize_search_text(query):
            return Page.empty(options)
        conditions = filter_conditions(filters)
        records = [
            r
            for r in self._store.records(self._collection)
            if matches_search(r["search_text"], query) and record_matches(r, conditions)
        ]
        return self._page(records, sort_by, options)

    async def list(
        self,
        pagination: PaginationOptions | None = None,
        filters: BaseModel | None = None,
    ) -> Page:
        options = pagination or PaginationOptions()
        sort_by = resolve_sort_field(options, self.rules.sort_fields, self.rules.name)
        conditions = filter_conditions(filters)
        records = [r for r in self._store.records(self._collection) if record_matches(r, conditions)]
        return self._page(records, sort_by, options)


# -----------------------------------------------------------------------------
# Entity repositories
# -----------------------------------------------------------------------------


class MemoryPostRepository(MemoryRepository, PostRepository):
    def __init__(self, store: MemoryStore):
        super().__init__(store, POSTS)

    async def increment_view_count(self, post_id: str) -> int:
        return self._increment(post_id, "view_count")

    async def list_tags(self, status=None):
        records = self._store.records(self._collection)
        if status is not None:
            records = [r for r in records if r["status"] == PostStatus(status).value]
        return count_tags([r["tags"] for r in records])


class MemoryDownloadRepository(MemoryRepository, DownloadRepository):
    def __init__(self, store: MemoryStore):
        super().__init__(store, DOWNLOADS)

    async def increment_download_count(self, download_id: str) -> int:
        return self._increment(download_id, "download_count")

    async def update_rating_aggregate(self, download_id: str) -> Download:
        with self._store.locked(self._collection, REVIEWS.collection):
            record = self._store.get(self._collection, download_id)
            if record is None:
                raise NotFoundError(self.rules.name, download_id)
            ratings = [r["rating"] for r in self._store.find_all(REVIEWS.collection, "download_id", download_id)]
            record = {**record, "rating": mean_rating(ratings), "review_count": len(ratings)}
            self._store.put(self._collection, record)
        return self.rules.to_entity(record)


class MemoryReviewRepository(MemoryRepository, ReviewRepository):
    def __init__(self, store: MemoryStore, downloads: DownloadRepository):
        super().__init__(store, REVIEWS)
        self.downloads = downloads


class MemoryCategoryRepository(MemoryRepository, CategoryRepository):
    def __init__(self, store: MemoryStore):
        super().__init__(store, CATEGORIES)

    async def all(self):
        return [self.rules.to_entity(r) for r in self._store.records(self._collection)]


class MemoryCommentRepository(MemoryRepository, CommentRepository):
    def __init__(self, store: MemoryStore):
        super().__init__(store, COMMENTS)


class MemoryUserRepository(MemoryRepository, UserRepository):
    def __init__(self, store: MemoryStore):
        super().__init__(store, USERS)

    async def record_login(self, user_id: str) -> User:
        with self._store.locked(self._collection):
            record = self._store.get(self._collection, user_id)
            if record is None:
                raise NotFoundError(self.rules.name, user_id)
            record = {**record, "last_login_at": utcnow()}
            self._store.put(self._collection, record)
        return self.rules.to_entity(record)


class MemorySeoMetaRepository(MemoryRepository, SeoMetaRepository):
    def __init__(self, store: MemoryStore):
        super().__init__(store, SEO_META)


class MemoryAnalyticsRepository(MemoryRepository, AnalyticsRepository):
    def __init__(self, store: MemoryStore):
        super().__init__(store, ANALYTICS_EVENTS)

    async def popular_content(self, event_type, limit=10, since=None):
        event_type = EventType(event_type).value
        since = naive_utc(since) if since is not None else None
        counts: Counter = Counter()
        for record in self._store.records(self._collection):
            if record["event_type"] != event_type or (since is not None and record["created_at"] < since):
                continue
            content_id = record.get("post_id") or record.get("download_id")
            if content_id:
                counts[content_id] += 1
        return rank_content(counts, limit)


class MemoryNewsletterRepository(MemoryRepository, NewsletterRepository):
    def __init__(self, store: MemoryStore):
        super().__init__(store, NEWSLETTER_SUBSCRIBERS)


# -----------------------------------------------------------------------------
# Adapter
# -----------------------------------------------------------------------------


class MemoryStoreAdapter(StorageAdapter):
    """In-process fallback store. Always ready, never persistent."""

    name = "volatile"
    is_persistent = False

    def __init__(self):
        self.store = MemoryStore()
        self.posts = MemoryPostRepository(self.store)
        self.downloads = MemoryDownloadRepository(self.store)
        self.reviews = MemoryReviewRepository(self.store, self.downloads)
        self.categories = MemoryCategoryRepository(self.store)
        self.comments = MemoryCommentRepository(self.store)
        self.users = MemoryUserRepository(self.store)
        self.seo = MemorySeoMetaRepository(self.store)
        self.analytics = MemoryAnalyticsRepository(self.store)
        self.newsletter = MemoryNewsletterRepository(self.store)

    async def initialize(self) -> None:
        return None

    async def close(self) -> None:
        return None

    def clear(self) -> None:
        """Drop every record (tests, and operators resetting a degraded instance)."""
        self.store.clear()
        logger.info("Volatile store cleared", extra={"event": "volatile_store_cleared", "storage_type": self.name})
