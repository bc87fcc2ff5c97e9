# forexhub/models.py
"""
Durable store tables.

Tables:
- Post: blog content items
- Download: downloadable assets (Expert Advisors, indicators)
- Review: per-download ratings feeding the rating aggregate
- Category: content taxonomy (self-referencing tree)
- Comment: post comments with reply threading and moderation status
- User: admins, editors and regular users in one table (email unique across roles)
- SeoMeta: one-to-one SEO overrides for posts
- AnalyticsEvent: append-only page view, download and search events
- NewsletterSubscriber: newsletter signups keyed by email

Attribute names equal column names so a row converts to the plain record
dicts shared with the volatile adapter (see row_to_record). Foreign keys
carry no ON DELETE actions; cascades and nullification run in the adapter
so both backends apply the same rules. search_text holds the normalized
search blob computed in Python.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB

from forexhub.database import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


# -----------------------------------------------------------------------------
# Content
# -----------------------------------------------------------------------------


class Category(Base):
    __tablename__ = "categories"

    id = Column(String(36), primary_key=True)
    name = Column(String(120), unique=True, nullable=False)
    slug = Column(String(120), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    parent_id = Column(String(36), ForeignKey("categories.id"), nullable=True)
    sort_order = Column(Integer, default=0, nullable=False)
    search_text = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    __table_args__ = (Index("ix_categories_parent_id", "parent_id"),)


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True)
    email = Column(String(255), unique=True, nullable=False)  # stored lowercased
    username = Column(String(80), unique=True, nullable=False)
    role = Column(String(16), nullable=False)  # admin | editor | viewer
    password_hash = Column(String(255), nullable=False)
    subscription_preferences = Column(JSONType, nullable=False, default=dict)
    last_login_at = Column(DateTime, nullable=True)
    search_text = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    __table_args__ = (Index("ix_users_role", "role"),)


class Post(Base):
    __tablename__ = "posts"

    id = Column(String(36), primary_key=True)
    title = Column(String(300), nullable=False)
    slug = Column(String(200), unique=True, nullable=False)
    body = Column(Text, nullable=False, default="")
    excerpt = Column(Text, nullable=True)
    status = Column(String(16), nullable=False)  # draft | published | archived
    category_id = Column(String(36), ForeignKey("categories.id"), nullable=True)
    author_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    tags = Column(JSONType, nullable=False, default=list)
    tag_index = Column(Text, nullable=False, default="")  # ",tag-a,tag-b," for LIKE filtering
    view_count = Column(Integer, nullable=False, default=0)
    published_at = Column(DateTime, nullable=True)
    search_text = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_posts_status", "status"),
        Index("ix_posts_category_id", "category_id"),
        Index("ix_posts_author_id", "author_id"),
        Index("ix_posts_published_at", "published_at"),
        Index("ix_posts_created_at", "created_at"),
    )


class Comment(Base):
    __tablename__ = "comments"

    id = Column(String(36), primary_key=True)
    post_id = Column(String(36), ForeignKey("posts.id"), nullable=False)
    parent_id = Column(String(36), ForeignKey("comments.id"), nullable=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    author_name = Column(String(120), nullable=True)
    author_email = Column(String(255), nullable=True)
    body = Column(Text, nullable=False)
    status = Column(String(16), nullable=False)  # pending | approved | spam
    search_text = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_comments_post_id_status", "post_id", "status"),
        Index("ix_comments_parent_id", "parent_id"),
        Index("ix_comments_user_id", "user_id"),
    )


class SeoMeta(Base):
    __tablename__ = "seo_meta"

    id = Column(String(36), primary_key=True)
    post_id = Column(String(36), ForeignKey("posts.id"), unique=True, nullable=False)
    meta_title = Column(String(300), nullable=True)
    meta_description = Column(String(500), nullable=True)
    keywords = Column(JSONType, nullable=False, default=list)
    canonical_url = Column(Text, nullable=True)
    search_text = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)


# -----------------------------------------------------------------------------
# Download catalog
# -----------------------------------------------------------------------------


class Download(Base):
    __tablename__ = "downloads"

    id = Column(String(36), primary_key=True)
    title = Column(String(300), nullable=False)
    slug = Column(String(200), unique=True, nullable=False)
    description = Column(Text, nullable=False, default="")
    file_url = Column(Text, nullable=False)  # storage path or external URL
    file_size = Column(Integer, nullable=True)  # bytes
    platform = Column(String(16), nullable=False)  # mt4 | mt5 | both
    version = Column(String(40), nullable=True)
    is_premium = Column(Boolean, nullable=False, default=False)
    download_count = Column(Integer, nullable=False, default=0)
    rating = Column(Float, nullable=False, default=0.0)
    review_count = Column(Integer, nullable=False, default=0)
    search_text = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_downloads_platform", "platform"),
        Index("ix_downloads_download_count", "download_count"),
    )


class Review(Base):
    __tablename__ = "reviews"

    id = Column(String(36), primary_key=True)
    download_id = Column(String(36), ForeignKey("downloads.id"), nullable=False)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    author_name = Column(String(120), nullable=True)
    rating = Column(Integer, nullable=False)
    body = Column(Text, nullable=True)
    search_text = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    __table_args__ = (Index("ix_reviews_download_id", "download_id"),)


# -----------------------------------------------------------------------------
# Engagement
# -----------------------------------------------------------------------------


class AnalyticsEvent(Base):
    __tablename__ = "analytics_events"

    id = Column(String(36), primary_key=True)
    event_type = Column(String(16), nullable=False)  # page_view | download | search
    page_url = Column(Text, nullable=True)
    referrer = Column(Text, nullable=True)
    user_agent = Column(String(500), nullable=True)
    ip_address = Column(String(64), nullable=True)
    session_id = Column(String(120), nullable=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    post_id = Column(String(36), ForeignKey("posts.id"), nullable=True)
    download_id = Column(String(36), ForeignKey("downloads.id"), nullable=True)
    search_query = Column(Text, nullable=True)
    search_results_count = Column(Integer, nullable=True)
    details = Column(JSONType, nullable=False, default=dict)
    search_text = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_analytics_events_event_type", "event_type"),
        Index("ix_analytics_events_user_id", "user_id"),
        Index("ix_analytics_events_session_id", "session_id"),
        Index("ix_analytics_events_post_id", "post_id"),
        Index("ix_analytics_events_download_id", "download_id"),
        Index("ix_analytics_events_created_at", "created_at"),
    )


class NewsletterSubscriber(Base):
    __tablename__ = "newsletter_subscribers"

    id = Column(String(36), primary_key=True)
    email = Column(String(255), unique=True, nullable=False)  # stored lowercased
    name = Column(String(120), nullable=True)
    preferences = Column(JSONType, nullable=False, default=dict)
    is_active = Column(Boolean, nullable=False, default=True)
    confirmation_token = Column(String(64), nullable=True)
    confirmed_at = Column(DateTime, nullable=True)
    subscribed_at = Column(DateTime, nullable=False)
    unsubscribed_at = Column(DateTime, nullable=True)
    search_text = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    __table_args__ = (Index("ix_newsletter_subscribers_is_active", "is_active"),)


MODELS_BY_COLLECTION = {
    "posts": Post,
    "downloads": Download,
    "reviews": Review,
    "categories": Category,
    "comments": Comment,
    "users": User,
    "seo_meta": SeoMeta,
    "analytics_events": AnalyticsEvent,
    "newsletter_subscribers": NewsletterSubscriber,
}


def row_to_record(row) -> dict:
    """Plain dict of every column value on an ORM row."""
    return {c.key: getattr(row, c.key) for c in row.__table__.columns}
