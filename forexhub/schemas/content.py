# forexhub/schemas/content.py
"""
Schemas for blog content: posts, categories, comments and SEO metadata.

Entity models are what every storage adapter returns. *Create / *Update
models are the payloads adapters accept; updates are partial and only the
fields a caller explicitly sets are applied.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

# -----------------------------------------------------------------------------
# Enums
# -----------------------------------------------------------------------------


class PostStatus(str, Enum):
    """Post lifecycle. archived is terminal; published may revert to draft."""

    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class CommentStatus(str, Enum):
    """Moderation state. Public readers only see approved comments."""

    PENDING = "pending"
    APPROVED = "approved"
    SPAM = "spam"


_PAYLOAD_CONFIG = ConfigDict(use_enum_values=True)


# -----------------------------------------------------------------------------
# Posts
# -----------------------------------------------------------------------------


class Post(BaseModel):
    """A blog post (content item)."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    slug: str
    body: str = ""
    excerpt: str | None = None
    status: PostStatus
    category_id: str | None = None
    author_id: str | None = None
    tags: list[str] = Field(default_factory=list)
    view_count: int = 0
    published_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class PostCreate(BaseModel):
    model_config = _PAYLOAD_CONFIG

    title: str = Field(..., min_length=1, max_length=300)
    slug: str | None = Field(None, max_length=200, description="Derived from the title when omitted")
    body: str = ""
    excerpt: str | None = None
    status: PostStatus = PostStatus.DRAFT
    category_id: str | None = None
    author_id: str | None = None
    tags: list[str] = Field(default_factory=list)


class PostUpdate(BaseModel):
    model_config = _PAYLOAD_CONFIG

    title: str | None = Field(None, min_length=1, max_length=300)
    slug: str | None = Field(None, max_length=200)
    body: str | None = None
    excerpt: str | None = None
    status: PostStatus | None = None
    category_id: str | None = None
    author_id: str | None = None
    tags: list[str] | None = None


class PostFilters(BaseModel):
    model_config = _PAYLOAD_CONFIG

    status: PostStatus | None = None
    category_id: str | None = None
    author_id: str | None = None
    tag: str | None = Field(None, description="Only posts carrying this tag")


class TagCount(BaseModel):
    """A tag and the number of posts carrying it."""

    tag: str
    count: int


# -----------------------------------------------------------------------------
# Categories
# -----------------------------------------------------------------------------


class Category(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    slug: str
    description: str | None = None
    parent_id: str | None = None
    sort_order: int = 0
    created_at: datetime
    updated_at: datetime


class CategoryNode(Category):
    """A category with its nested children, as returned by the category tree."""

    children: list["CategoryNode"] = Field(default_factory=list)


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    slug: str | None = Field(None, max_length=120)
    description: str | None = None
    parent_id: str | None = None
    sort_order: int = 0


class CategoryUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=120)
    slug: str | None = Field(None, max_length=120)
    description: str | None = None
    parent_id: str | None = None
    sort_order: int | None = None


class CategoryFilters(BaseModel):
    parent_id: str | None = None
    root_only: bool = Field(False, description="Only categories without a parent")


# -----------------------------------------------------------------------------
# Comments
# -----------------------------------------------------------------------------


class Comment(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    post_id: str
    parent_id: str | None = None
    user_id: str | None = None
    author_name: str | None = None
    author_email: str | None = None
    body: str
    status: CommentStatus
    created_at: datetime
    updated_at: datetime


class CommentSubmission(BaseModel):
    """Comment as posted by a public reader. Author name and email are required."""

    post_id: str
    body: str = Field(..., min_length=1, max_length=5000)
    parent_id: str | None = Field(None, description="Comment being replied to (same post)")
    author_name: str | None = Field(None, max_length=120)
    author_email: str | None = Field(None, max_length=255)


class CommentCreate(CommentSubmission):
    """New comments always start pending moderation."""

    user_id: str | None = None


class CommentUpdate(BaseModel):
    model_config = _PAYLOAD_CONFIG

    body: str | None = Field(None, min_length=1, max_length=5000)
    status: CommentStatus | None = None


class CommentFilters(BaseModel):
    model_config = _PAYLOAD_CONFIG

    post_id: str | None = None
    status: CommentStatus | None = None
    parent_id: str | None = None
    user_id: str | None = None


# -----------------------------------------------------------------------------
# SEO metadata
# -----------------------------------------------------------------------------


class SeoMeta(BaseModel):
    """Title/description/keyword overrides attached one-to-one to a post."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    post_id: str
    meta_title: str | None = None
    meta_description: str | None = None
    keywords: list[str] = Field(default_factory=list)
    canonical_url: str | None = None
    created_at: datetime
    updated_at: datetime


class SeoMetaCreate(BaseModel):
    post_id: str
    meta_title: str | None = Field(None, max_length=300)
    meta_description: str | None = Field(None, max_length=500)
    keywords: list[str] = Field(default_factory=list)
    canonical_url: str | None = None


class SeoMetaUpdate(BaseModel):
    meta_title: str | None = Field(None, max_length=300)
    meta_description: str | None = Field(None, max_length=500)
    keywords: list[str] | None = None
    canonical_url: str | None = None


class SeoMetaFilters(BaseModel):
    post_id: str | None = None
