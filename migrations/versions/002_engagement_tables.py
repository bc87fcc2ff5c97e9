"""Analytics events and newsletter subscribers

Revision ID: 002_engagement_tables
Revises: 001_initial_schema
Create Date: 2026-10-18

Adds the append-only analytics event log and the newsletter subscriber
list. Event references to users, posts and downloads are nulled by the
storage adapter when the referenced row is deleted.
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '002_engagement_tables'
down_revision = '001_initial_schema'
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
        'analytics_events',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('event_type', sa.String(16), nullable=False),
        sa.Column('page_url', sa.Text, nullable=True),
        sa.Column('referrer', sa.Text, nullable=True),
        sa.Column('user_agent', sa.String(500), nullable=True),
        sa.Column('ip_address', sa.String(64), nullable=True),
        sa.Column('session_id', sa.String(120), nullable=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('post_id', sa.String(36), sa.ForeignKey('posts.id'), nullable=True),
        sa.Column('download_id', sa.String(36), sa.ForeignKey('downloads.id'), nullable=True),
        sa.Column('search_query', sa.Text, nullable=True),
        sa.Column('search_results_count', sa.Integer, nullable=True),
        sa.Column('details', JSONType, nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_analytics_events_event_type', 'analytics_events', ['event_type'])
    op.create_index('ix_analytics_events_user_id', 'analytics_events', ['user_id'])
    op.create_index('ix_analytics_events_session_id', 'analytics_events', ['session_id'])
    op.create_index('ix_analytics_events_post_id', 'analytics_events', ['post_id'])
    op.create_index('ix_analytics_events_download_id', 'analytics_events', ['download_id'])
    op.create_index('ix_analytics_events_created_at', 'analytics_events', ['created_at'])

    op.create_table(
        'newsletter_subscribers',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(255), unique=True, nullable=False),
        sa.Column('name', sa.String(120), nullable=True),
        sa.Column('preferences', JSONType, nullable=False),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('confirmation_token', sa.String(64), nullable=True),
        sa.Column('confirmed_at', sa.DateTime, nullable=True),
        sa.Column('subscribed_at', sa.DateTime, nullable=False),
        sa.Column('unsubscribed_at', sa.DateTime, nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_newsletter_subscribers_is_active', 'newsletter_subscribers', ['is_active'])


def downgrade() -> None:
    op.drop_table('newsletter_subscribers')
    op.drop_table('analytics_events')
