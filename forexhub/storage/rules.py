# forexhub/storage/rules.py
"""
Entity rules shared by the durable and volatile adapters.

Each adapter persists plain "records" (dicts whose keys match the ORM
columns). Building a record from a payload, applying a partial update,
checking uniqueness and references, and planning cascading deletes all
happen here, against a small synchronous RecordSource that each adapter
implements over its own backend. The adapters only differ in how they
read and write records, never in what they accept.
"""

import secrets
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Protocol

from pydantic import BaseModel

from forexhub.schemas.catalog import Download, Review
from forexhub.schemas.content import Category, Comment, CommentStatus, Post, PostStatus, SeoMeta
from forexhub.schemas.engagement import AnalyticsEvent, EventType, NewsletterSubscriber
from forexhub.schemas.users import User, UserRole
from forexhub.storage.errors import ValidationError
from forexhub.storage.text import (
    build_search_text,
    hash_password,
    is_valid_email,
    is_valid_slug,
    naive_utc,
    normalize_email,
    normalize_tags,
    slugify,
    utcnow,
)

# Allowed post status transitions (same-status updates are always allowed).
POST_TRANSITIONS: dict[PostStatus, frozenset[PostStatus]] = {
    PostStatus.DRAFT: frozenset({PostStatus.PUBLISHED}),
    PostStatus.PUBLISHED: frozenset({PostStatus.DRAFT, PostStatus.ARCHIVED}),
    PostStatus.ARCHIVED: frozenset(),
}


class RecordSource(Protocol):
    """Synchronous read access to stored records, implemented by each adapter."""

    def get(self, collection: str, record_id: str) -> dict | None: ...

    def find_one(self, collection: str, field: str, value: Any) -> dict | None: ...

    def find_all(self, collection: str, field: str, value: Any) -> list[dict]: ...


@dataclass(frozen=True)
class FilterCondition:
    """
    One filter predicate.

    op is "eq" (field equals value), "is_null" (field is None), "tag"
    (record's tag list contains value), or "gte" / "lte" (inclusive bounds).
    """

    field: str
    op: str
    value: Any = None


@dataclass
class DeletePlan:
    """Ordered side effects of deleting one record."""

    nullify: list[tuple[str, str, str]] = field(default_factory=list)  # (collection, id, field)
    deletes: list[tuple[str, str]] = field(default_factory=list)  # (collection, id), children first


@dataclass(frozen=True)
class EntityRules:
    name: str
    collection: str
    model: type[BaseModel]
    new_record: Callable[[BaseModel], dict]
    apply_update: Callable[[dict, BaseModel], dict]
    sort_fields: frozenset[str]
    unique_fields: tuple[str, ...] = ()
    references: tuple[tuple[str, str], ...] = ()  # (field, target collection)
    restrict_delete: tuple[tuple[str, str], ...] = ()  # (child collection, fk field)
    cascade_delete: tuple[tuple[str, str], ...] = ()
    nullify_on_delete: tuple[tuple[str, str], ...] = ()
    check: Callable[[dict, RecordSource, dict | None], None] | None = None

    def to_entity(self, record: dict) -> Any:
        return self.model.model_validate(record)


# -----------------------------------------------------------------------------
# Field helpers
# -----------------------------------------------------------------------------


def _stamp(data: dict) -> dict:
    now = utcnow()
    return {"id": str(uuid.uuid4()), **data, "created_at": now, "updated_at": now}


def _touch(record: dict, changes: dict) -> dict:
    return {**record, **changes, "updated_at": utcnow()}


def _require_text(value: str | None, field_name: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{field_name} is required", field=field_name)
    return value.strip()


def _resolve_slug(slug: str | None, source_text: str) -> str:
    value = slug.strip() if slug is not None else slugify(source_text)
    if not value or not is_valid_slug(value):
        raise ValidationError(
            f"Invalid slug '{value}': use lowercase letters, digits and single hyphens",
            field="slug",
        )
    return value


def _validated_email(value: str | None, field_name: str = "email") -> str:
    email = normalize_email(_require_text(value, field_name))
    if not is_valid_email(email):
        raise ValidationError(f"Invalid email address: {value}", field=field_name)
    return email


def _tag_index(tags: list[str]) -> str:
    return f",{','.join(tags)}," if tags else ""


def check_post_transition(current: PostStatus, target: PostStatus) -> None:
    if current == target:
        return
    if target not in POST_TRANSITIONS[current]:
        raise ValidationError(
            f"Invalid status transition: {current.value} -> {target.value}",
            field="status",
        )


# -----------------------------------------------------------------------------
# Posts
# -----------------------------------------------------------------------------


def _finish_post(record: dict) -> dict:
    record["search_text"] = build_search_text(
        record["title"], record.get("excerpt"), record.get("body"), " ".join(record["tags"])
    )
    record["tag_index"] = _tag_index(record["tags"])
    return record


def new_post_record(payload) -> dict:
    data = payload.model_dump()
    data["title"] = _require_text(data["title"], "title")
    data["slug"] = _resolve_slug(data.get("slug"), data["title"])
    data["tags"] = normalize_tags(data.get("tags"))
    record = _stamp({**data, "view_count": 0, "published_at": None})
    if record["status"] == PostStatus.PUBLISHED.value:
        record["published_at"] = record["created_at"]
    return _finish_post(record)


def apply_post_update(record: dict, payload) -> dict:
    changes = payload.model_dump(exclude_unset=True)
    if "title" in changes:
        changes["title"] = _require_text(changes["title"], "title")
    if "slug" in changes:
        changes["slug"] = _resolve_slug(_require_text(changes["slug"], "slug"), "")
    if "body" in changes and changes["body"] is None:
        changes["body"] = ""
    if "tags" in changes:
        changes["tags"] = normalize_tags(changes["tags"])
    if "status" in changes:
        if changes["status"] is None:
            raise ValidationError("status is required", field="status")
        target = PostStatus(changes["status"])
        check_post_transition(PostStatus(record["status"]), target)
        if target is PostStatus.PUBLISHED and record.get("published_at") is None:
            changes["published_at"] = utcnow()
    return _finish_post(_touch(record, changes))


# -----------------------------------------------------------------------------
# Downloads and reviews
# -----------------------------------------------------------------------------


def _finish_download(record: dict) -> dict:
    record["search_text"] = build_search_text(record["title"], record.get("description"), record.get("platform"))
    return record


def new_download_record(payload) -> dict:
    data = payload.model_dump()
    data["title"] = _require_text(data["title"], "title")
    data["slug"] = _resolve_slug(data.get("slug"), data["title"])
    data["file_url"] = _require_text(data["file_url"], "file_url")
    data["description"] = data.get("description") or ""
    return _finish_download(_stamp({**data, "download_count": 0, "rating": 0.0, "review_count": 0}))


def apply_download_update(record: dict, payload) -> dict:
    changes = payload.model_dump(exclude_unset=True)
    for required in ("title", "file_url", "platform"):
        if required in changes:
            changes[required] = _require_text(changes[required], required)
    if "slug" in changes:
        changes["slug"] = _resolve_slug(_require_text(changes["slug"], "slug"), "")
    if "description" in changes and changes["description"] is None:
        changes["description"] = ""
    if "is_premium" in changes and changes["is_premium"] is None:
        changes["is_premium"] = False
    return _finish_download(_touch(record, changes))


def _finish_review(record: dict) -> dict:
    record["search_text"] = build_search_text(record.get("body"), record.get("author_name"))
    return record


def new_review_record(payload) -> dict:
    return _finish_review(_stamp(payload.model_dump()))


def apply_review_update(record: dict, payload) -> dict:
    changes = payload.model_dump(exclude_unset=True)
    if "rating" in changes and changes["rating"] is None:
        raise ValidationError("rating is required", field="rating")
    return _finish_review(_touch(record, changes))


def mean_rating(ratings: list[int]) -> float:
    """Mean of review ratings rounded half-up to two decimals (2.175 -> 2.18) on exact values."""
    if not ratings:
        return 0.0
    mean = Decimal(sum(ratings)) / Decimal(len(ratings))
    return float(mean.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


# -----------------------------------------------------------------------------
# Categories
# -----------------------------------------------------------------------------


def _finish_category(record: dict) -> dict:
    record["search_text"] = build_search_text(record["name"], record.get("description"))
    return record


def new_category_record(payload) -> dict:
    data = payload.model_dump()
    data["name"] = _require_text(data["name"], "name")
    data["slug"] = _resolve_slug(data.get("slug"), data["name"])
    return _finish_category(_stamp(data))


def apply_category_update(record: dict, payload) -> dict:
    changes = payload.model_dump(exclude_unset=True)
    if "name" in changes:
        changes["name"] = _require_text(changes["name"], "name")
    if "slug" in changes:
        changes["slug"] = _resolve_slug(_require_text(changes["slug"], "slug"), "")
    if "sort_order" in changes and changes["sort_order"] is None:
        changes["sort_order"] = 0
    return _finish_category(_touch(record, changes))


def check_category_parent(record: dict, source: RecordSource, existing: dict | None) -> None:
    """Reject a parent assignment that would close a cycle in the category tree."""
    parent_id = record.get("parent_id")
    if parent_id is None or (existing is not None and existing.get("parent_id") == parent_id):
        return
    if parent_id == record["id"]:
        raise ValidationError("A category cannot be its own parent", field="parent_id")
    seen: set[str] = set()
    current = parent_id
    while current is not None and current not in seen:
        if current == record["id"]:
            raise ValidationError("Parent assignment would create a category cycle", field="parent_id")
        seen.add(current)
        parent = source.get("categories", current)
        current = parent.get("parent_id") if parent else None


# -----------------------------------------------------------------------------
# Comments
# -----------------------------------------------------------------------------


def _finish_comment(record: dict) -> dict:
    record["search_text"] = build_search_text(record["body"], record.get("author_name"))
    return record


def new_comment_record(payload) -> dict:
    data = payload.model_dump()
    data["body"] = _require_text(data["body"], "body")
    if data.get("user_id") is None:
        data["author_name"] = _require_text(data.get("author_name"), "author_name")
        data["author_email"] = _validated_email(data.get("author_email"), "author_email")
    elif data.get("author_email"):
        data["author_email"] = _validated_email(data["author_email"], "author_email")
    return _finish_comment(_stamp({**data, "status": CommentStatus.PENDING.value}))


def apply_comment_update(record: dict, payload) -> dict:
    changes = payload.model_dump(exclude_unset=True)
    if "body" in changes:
        changes["body"] = _require_text(changes["body"], "body")
    if "status" in changes and changes["status"] is None:
        raise ValidationError("status is required", field="status")
    return _finish_comment(_touch(record, changes))


def check_comment_parent(record: dict, source: RecordSource, existing: dict | None) -> None:
    parent_id = record.get("parent_id")
    if parent_id is None or existing is not None:
        return
    parent = source.get("comments", parent_id)
    if parent is not None and parent["post_id"] != record["post_id"]:
        raise ValidationError("Reply must belong to the same post as its parent comment", field="parent_id")


# -----------------------------------------------------------------------------
# Users
# -----------------------------------------------------------------------------


def _finish_user(record: dict) -> dict:
    record["search_text"] = build_search_text(record["email"], record["username"])
    return record


def new_user_record(payload) -> dict:
    data = payload.model_dump()
    password = data.pop("password")
    data["email"] = _validated_email(data["email"])
    data["username"] = _require_text(data["username"], "username")
    data["subscription_preferences"] = data.get("subscription_preferences") or {}
    record = _stamp({**data, "password_hash": hash_password(password), "last_login_at": None})
    return _finish_user(record)


def apply_user_update(record: dict, payload) -> dict:
    changes = payload.model_dump(exclude_unset=True)
    if "email" in changes:
        changes["email"] = _validated_email(changes["email"])
    if "username" in changes:
        changes["username"] = _require_text(changes["username"], "username")
    if "role" in changes:
        changes["role"] = UserRole(_require_text(changes["role"], "role")).value
    if "subscription_preferences" in changes and changes["subscription_preferences"] is None:
        changes["subscription_preferences"] = {}
    if "password" in changes:
        password = changes.pop("password")
        if not password:
            raise ValidationError("password is required", field="password")
        changes["password_hash"] = hash_password(password)
    return _finish_user(_touch(record, changes))


# -----------------------------------------------------------------------------
# SEO metadata
# -----------------------------------------------------------------------------


def _finish_seo(record: dict) -> dict:
    record["keywords"] = normalize_tags(record.get("keywords"))
    record["search_text"] = build_search_text(
        record.get("meta_title"), record.get("meta_description"), " ".join(record["keywords"])
    )
    return record


def new_seo_record(payload) -> dict:
    return _finish_seo(_stamp(payload.model_dump()))


def apply_seo_update(record: dict, payload) -> dict:
    return _finish_seo(_touch(record, payload.model_dump(exclude_unset=True)))


# -----------------------------------------------------------------------------
# Analytics events
# -----------------------------------------------------------------------------


def _finish_event(record: dict) -> dict:
    record["search_text"] = build_search_text(record.get("page_url"), record.get("search_query"))
    return record


def new_event_record(payload) -> dict:
    data = payload.model_dump()
    event_type = EventType(data["event_type"])
    data["event_type"] = event_type.value
    data["details"] = data.get("details") or {}
    if event_type is EventType.SEARCH:
        data["search_query"] = _require_text(data.get("search_query"), "search_query")
    elif event_type is EventType.DOWNLOAD and data.get("download_id") is None:
        raise ValidationError("download_id is required for download events", field="download_id")
    return _finish_event(_stamp(data))


def apply_event_update(record: dict, payload) -> dict:
    raise ValidationError("Analytics events cannot be changed once recorded")


# -----------------------------------------------------------------------------
# Newsletter subscribers
# -----------------------------------------------------------------------------


def _finish_subscriber(record: dict) -> dict:
    record["search_text"] = build_search_text(record["email"], record.get("name"))
    return record


def new_subscriber_record(payload) -> dict:
    data = payload.model_dump()
    data["email"] = _validated_email(data["email"])
    data["preferences"] = data.get("preferences") or {}
    record = _stamp(
        {
            **data,
            "is_active": True,
            "confirmation_token": secrets.token_urlsafe(24),
            "confirmed_at": None,
            "unsubscribed_at": None,
        }
    )
    record["subscribed_at"] = record["created_at"]
    return _finish_subscriber(record)


def apply_subscriber_update(record: dict, payload) -> dict:
    """Reactivating starts a fresh subscription; deactivating stamps unsubscribed_at."""
    changes = payload.model_dump(exclude_unset=True)
    if "preferences" in changes and changes["preferences"] is None:
        changes["preferences"] = {}
    if "is_active" in changes:
        active = changes["is_active"]
        if active is None:
            raise ValidationError("is_active is required", field="is_active")
        if active and not record["is_active"]:
            changes.update(
                subscribed_at=utcnow(),
                unsubscribed_at=None,
                confirmation_token=secrets.token_urlsafe(24),
                confirmed_at=None,
            )
        elif not active and record["is_active"]:
            changes["unsubscribed_at"] = utcnow()
    return _finish_subscriber(_touch(record, changes))


# -----------------------------------------------------------------------------
# Registry
# -----------------------------------------------------------------------------

_COMMON_SORT = frozenset({"created_at", "updated_at"})

POSTS = EntityRules(
    name="post",
    collection="posts",
    model=Post,
    new_record=new_post_record,
    apply_update=apply_post_update,
    sort_fields=_COMMON_SORT | {"published_at", "title", "slug", "view_count", "status"},
    unique_fields=("slug",),
    references=(("category_id", "categories"), ("author_id", "users")),
    cascade_delete=(("comments", "post_id"), ("seo_meta", "post_id")),
    nullify_on_delete=(("analytics_events", "post_id"),),
)

DOWNLOADS = EntityRules(
    name="download",
    collection="downloads",
    model=Download,
    new_record=new_download_record,
    apply_update=apply_download_update,
    sort_fields=_COMMON_SORT | {"title", "slug", "download_count", "rating", "file_size", "platform"},
    unique_fields=("slug",),
    cascade_delete=(("reviews", "download_id"),),
    nullify_on_delete=(("analytics_events", "download_id"),),
)

REVIEWS = EntityRules(
    name="review",
    collection="reviews",
    model=Review,
    new_record=new_review_record,
    apply_update=apply_review_update,
    sort_fields=_COMMON_SORT | {"rating"},
    references=(("download_id", "downloads"), ("user_id", "users")),
)

CATEGORIES = EntityRules(
    name="category",
    collection="categories",
    model=Category,
    new_record=new_category_record,
    apply_update=apply_category_update,
    sort_fields=_COMMON_SORT | {"name", "slug", "sort_order"},
    unique_fields=("name", "slug"),
    references=(("parent_id", "categories"),),
    restrict_delete=(("posts", "category_id"), ("categories", "parent_id")),
    check=check_category_parent,
)

COMMENTS = EntityRules(
    name="comment",
    collection="comments",
    model=Comment,
    new_record=new_comment_record,
    apply_update=apply_comment_update,
    sort_fields=_COMMON_SORT | {"status"},
    references=(("post_id", "posts"), ("parent_id", "comments"), ("user_id", "users")),
    cascade_delete=(("comments", "parent_id"),),
    check=check_comment_parent,
)

USERS = EntityRules(
    name="user",
    collection="users",
    model=User,
    new_record=new_user_record,
    apply_update=apply_user_update,
    sort_fields=_COMMON_SORT | {"email", "username", "role", "last_login_at"},
    unique_fields=("email", "username"),
    nullify_on_delete=(
        ("posts", "author_id"),
        ("comments", "user_id"),
        ("reviews", "user_id"),
        ("analytics_events", "user_id"),
    ),
)

SEO_META = EntityRules(
    name="seo_meta",
    collection="seo_meta",
    model=SeoMeta,
    new_record=new_seo_record,
    apply_update=apply_seo_update,
    sort_fields=_COMMON_SORT,
    unique_fields=("post_id",),
    references=(("post_id", "posts"),),
)

ANALYTICS_EVENTS = EntityRules(
    name="analytics_event",
    collection="analytics_events",
    model=AnalyticsEvent,
    new_record=new_event_record,
    apply_update=apply_event_update,
    sort_fields=_COMMON_SORT | {"event_type"},
    references=(("user_id", "users"), ("post_id", "posts"), ("download_id", "downloads")),
)

NEWSLETTER_SUBSCRIBERS = EntityRules(
    name="newsletter_subscriber",
    collection="newsletter_subscribers",
    model=NewsletterSubscriber,
    new_record=new_subscriber_record,
    apply_update=apply_subscriber_update,
    sort_fields=_COMMON_SORT | {"email", "subscribed_at"},
    unique_fields=("email",),
)

ENTITY_RULES: dict[str, EntityRules] = {
    rules.collection: rules
    for rules in (
        POSTS,
        DOWNLOADS,
        REVIEWS,
        CATEGORIES,
        COMMENTS,
        USERS,
        SEO_META,
        ANALYTICS_EVENTS,
        NEWSLETTER_SUBSCRIBERS,
    )
}


# -----------------------------------------------------------------------------
# Validation and delete planning
# -----------------------------------------------------------------------------


def validate_record(rules: EntityRules, record: dict, source: RecordSource, existing: dict | None = None) -> None:
    """Check uniqueness, references and entity-specific invariants for a record about to be written."""
    for field_name in rules.unique_fields:
        value = record.get(field_name)
        if value is None or (existing is not None and existing.get(field_name) == value):
            continue
        other = source.find_one(rules.collection, field_name, value)
        if other is not None and other["id"] != record["id"]:
            raise ValidationError(f"A {rules.name} with {field_name} '{value}' already exists", field=field_name)

    for field_name, target in rules.references:
        value = record.get(field_name)
        if value is None or (existing is not None and existing.get(field_name) == value):
            continue
        if source.get(target, value) is None:
            raise ValidationError(
                f"{field_name} references an unknown {ENTITY_RULES[target].name}: {value}",
                field=field_name,
            )

    if rules.check is not None:
        rules.check(record, source, existing)


def plan_delete(collection: str, record_id: str, source: RecordSource) -> DeletePlan:
    """
    Work out every write needed to delete a record.

    Raises ValidationError if a restricting child still references it.
    """
    plan = DeletePlan()
    _plan_delete(collection, record_id, source, plan, set())
    return plan


def _plan_delete(
    collection: str,
    record_id: str,
    source: RecordSource,
    plan: DeletePlan,
    visited: set[tuple[str, str]],
) -> None:
    if (collection, record_id) in visited:
        return
    visited.add((collection, record_id))
    rules = ENTITY_RULES[collection]

    for child_collection, fk in rules.restrict_delete:
        if source.find_one(child_collection, fk, record_id) is not None:
            raise ValidationError(
                f"Cannot delete {rules.name} {record_id}: {child_collection} still reference it; reassign them first"
            )
    for child_collection, fk in rules.cascade_delete:
        for child in source.find_all(child_collection, fk, record_id):
            _plan_delete(child_collection, child["id"], source, plan, visited)
    for child_collection, fk in rules.nullify_on_delete:
        for child in source.find_all(child_collection, fk, record_id):
            plan.nullify.append((child_collection, child["id"], fk))
    plan.deletes.append((collection, record_id))


def filter_conditions(filters: BaseModel | None) -> list[FilterCondition]:
    """Translate a filter model into predicates both adapters evaluate the same way."""
    if filters is None:
        return []
    conditions: list[FilterCondition] = []
    for key, value in filters.model_dump(exclude_none=True).items():
        if key == "tag":
            tag = slugify(value)
            conditions.append(FilterCondition("tags", "tag", tag))
        elif key == "since":
            conditions.append(FilterCondition("created_at", "gte", naive_utc(value)))
        elif key == "until":
            conditions.append(FilterCondition("created_at", "lte", naive_utc(value)))
        elif key == "root_only":
            if value:
                conditions.append(FilterCondition("parent_id", "is_null"))
        else:
            conditions.append(FilterCondition(key, "eq", value))
    return conditions


def record_matches(record: dict, conditions: list[FilterCondition]) -> bool:
    for condition in conditions:
        value = record.get(condition.field)
        if condition.op == "eq" and value != condition.value:
            return False
        if condition.op == "is_null" and value is not None:
            return False
        if condition.op == "tag" and condition.value not in (value or []):
            return False
        if condition.op == "gte" and (value is None or value < condition.value):
            return False
        if condition.op == "lte" and (value is None or value > condition.value):
            return False
    return True
