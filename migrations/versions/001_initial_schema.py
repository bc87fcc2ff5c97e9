"""ForexHub initial schema

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18

Creates the blog tables (categories, users, posts, comments, seo_meta) and
the download catalog (downloads, reviews). Foreign keys carry no ON DELETE
actions: cascades and author nullification are applied by the storage
adapter so the database and the in-memory fallback behave the same.
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')


def _timestamps():
    return [
        sa.Column('search_text', sa.Text, nullable=False, server_default=''),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'categories',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(120), unique=True, nullable=False),
        sa.Column('slug', sa.String(120), unique=True, nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('parent_id', sa.String(36), sa.ForeignKey('categories.id'), nullable=True),
        sa.Column('sort_order', sa.Integer, nullable=False, server_default='0'),
        *_timestamps(),
    )
    op.create_index('ix_categories_parent_id', 'categories', ['parent_id'])

    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(255), unique=True, nullable=False),
        sa.Column('username', sa.String(80), unique=True, nullable=False),
        sa.Column('role', sa.String(16), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('subscription_preferences', JSONType, nullable=False),
        sa.Column('last_login_at', sa.DateTime, nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table(
        'posts',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('title', sa.String(300), nullable=False),
        sa.Column('slug', sa.String(200), unique=True, nullable=False),
        sa.Column('body', sa.Text, nullable=False, server_default=''),
        sa.Column('excerpt', sa.Text, nullable=True),
        sa.Column('status', sa.String(16), nullable=False),
        sa.Column('category_id', sa.String(36), sa.ForeignKey('categories.id'), nullable=True),
        sa.Column('author_id', sa.String(36), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('tags', JSONType, nullable=False),
        sa.Column('tag_index', sa.Text, nullable=False, server_default=''),
        sa.Column('view_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('published_at', sa.DateTime, nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_posts_status', 'posts', ['status'])
    op.create_index('ix_posts_category_id', 'posts', ['category_id'])
    op.create_index('ix_posts_author_id', 'posts', ['author_id'])
    op.create_index('ix_posts_published_at', 'posts', ['published_at'])
    op.create_index('ix_posts_created_at', 'posts', ['created_at'])

    op.create_table(
        'comments',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('post_id', sa.String(36), sa.ForeignKey('posts.id'), nullable=False),
        sa.Column('parent_id', sa.String(36), sa.ForeignKey('comments.id'), nullable=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('author_name', sa.String(120), nullable=True),
        sa.Column('author_email', sa.String(255), nullable=True),
        sa.Column('body', sa.Text, nullable=False),
        sa.Column('status', sa.String(16), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_comments_post_id_status', 'comments', ['post_id', 'status'])
    op.create_index('ix_comments_parent_id', 'comments', ['parent_id'])
    op.create_index('ix_comments_user_id', 'comments', ['user_id'])

    op.create_table(
        'seo_meta',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('post_id', sa.String(36), sa.ForeignKey('posts.id'), unique=True, nullable=False),
        sa.Column('meta_title', sa.String(300), nullable=True),
        sa.Column('meta_description', sa.String(500), nullable=True),
        sa.Column('keywords', JSONType, nullable=False),
        sa.Column('canonical_url', sa.Text, nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'downloads',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('title', sa.String(300), nullable=False),
        sa.Column('slug', sa.String(200), unique=True, nullable=False),
        sa.Column('description', sa.Text, nullable=False, server_default=''),
        sa.Column('file_url', sa.Text, nullable=False),
        sa.Column('file_size', sa.Integer, nullable=True),
        sa.Column('platform', sa.String(16), nullable=False),
        sa.Column('version', sa.String(40), nullable=True),
        sa.Column('is_premium', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('download_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('rating', sa.Float, nullable=False, server_default='0'),
        sa.Column('review_count', sa.Integer, nullable=False, server_default='0'),
        *_timestamps(),
    )
    op.create_index('ix_downloads_platform', 'downloads', ['platform'])
    op.create_index('ix_downloads_download_count', 'downloads', ['download_count'])

    op.create_table(
        'reviews',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('download_id', sa.String(36), sa.ForeignKey('downloads.id'), nullable=False),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('author_name', sa.String(120), nullable=True),
        sa.Column('rating', sa.Integer, nullable=False),
        sa.Column('body', sa.Text, nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_reviews_download_id', 'reviews', ['download_id'])


def downgrade() -> None:
    op.drop_table('reviews')
    op.drop_table('downloads')
    op.drop_table('seo_meta')
    op.drop_table('comments')
    op.drop_table('posts')
    op.drop_table('users')
    op.drop_table('categories')
