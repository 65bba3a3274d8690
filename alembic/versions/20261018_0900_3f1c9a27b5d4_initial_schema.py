"""initial schema: users, notifications, preferences, push subscriptions

Revision ID: 3f1c9a27b5d4
Revises:
Create Date: 2026-10-18 09:00:00.000000+00:00

"""
from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

from notification_service.core.database.types import UTCDateTime

# revision identifiers, used by Alembic.
revision: str = '3f1c9a27b5d4'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

JSON_DOCUMENT = postgresql.JSONB().with_variant(sa.JSON(), 'sqlite')


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            'created_at',
            UTCDateTime(),
            server_default=sa.text('CURRENT_TIMESTAMP'),
            nullable=False,
            comment='Timestamp of record creation',
        ),
        sa.Column(
            'updated_at',
            UTCDateTime(),
            server_default=sa.text('CURRENT_TIMESTAMP'),
            nullable=False,
            comment='Timestamp of last update',
        ),
    ]


def upgrade() -> None:
    """Upgrade database schema."""
    op.create_table(
        'users',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_users')),
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=False)

    op.create_table(
        'notifications',
        sa.Column('id', sa.Uuid(), nullable=False, comment='UUID v4 primary key'),
        sa.Column(
            'recipient_id',
            sa.String(length=64),
            nullable=False,
            comment='User receiving the notification',
        ),
        sa.Column(
            'type',
            sa.String(length=100),
            nullable=False,
            comment='Free-form notification type tag (like, comment, security, ...)',
        ),
        sa.Column(
            'category',
            sa.String(length=50),
            nullable=False,
            comment='Preference category derived from type',
        ),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('data', JSON_DOCUMENT, nullable=False, comment='Arbitrary client payload'),
        sa.Column(
            'status',
            sa.String(length=20),
            nullable=False,
            comment='unread | read | archived | deleted',
        ),
        sa.Column('read_at', UTCDateTime(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ['recipient_id'],
            ['users.id'],
            name=op.f('fk_notifications_recipient_id_users'),
            ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_notifications')),
    )
    op.create_index(op.f('ix_notifications_category'), 'notifications', ['category'])
    op.create_index(
        'ix_notifications_recipient_status', 'notifications', ['recipient_id', 'status']
    )
    op.create_index(
        'ix_notifications_recipient_created', 'notifications', ['recipient_id', 'created_at']
    )
    op.create_index('ix_notifications_status_created', 'notifications', ['status', 'created_at'])

    op.create_table(
        'notification_preferences',
        sa.Column(
            'user_id',
            sa.String(length=64),
            nullable=False,
            comment='Owner of the preference document',
        ),
        sa.Column(
            'document',
            JSON_DOCUMENT,
            nullable=False,
            comment='Preference document (toggles, categories, frequency)',
        ),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ['user_id'],
            ['users.id'],
            name=op.f('fk_notification_preferences_user_id_users'),
            ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('user_id', name=op.f('pk_notification_preferences')),
    )

    op.create_table(
        'push_subscriptions',
        sa.Column('id', sa.Uuid(), nullable=False, comment='UUID v4 primary key'),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('endpoint', sa.Text(), nullable=False, comment='Push service URL'),
        sa.Column('keys', JSON_DOCUMENT, nullable=False, comment='Client keys (p256dh, auth)'),
        sa.Column('user_agent', sa.String(length=500), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('last_active_at', UTCDateTime(), nullable=False),
        sa.Column('deactivated_at', UTCDateTime(), nullable=True),
        sa.Column(
            'deactivation_reason',
            sa.String(length=32),
            nullable=True,
            comment='user-initiated | expired | cleanup',
        ),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ['user_id'],
            ['users.id'],
            name=op.f('fk_push_subscriptions_user_id_users'),
            ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_push_subscriptions')),
        sa.UniqueConstraint('user_id', 'endpoint', name='uq_push_subscriptions_user_endpoint'),
    )
    op.create_index(op.f('ix_push_subscriptions_user_id'), 'push_subscriptions', ['user_id'])
    op.create_index(
        'ix_push_subscriptions_active_last_active',
        'push_subscriptions',
        ['is_active', 'last_active_at'],
    )


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_index('ix_push_subscriptions_active_last_active', table_name='push_subscriptions')
    op.drop_index(op.f('ix_push_subscriptions_user_id'), table_name='push_subscriptions')
    op.drop_table('push_subscriptions')

    op.drop_table('notification_preferences')

    op.drop_index('ix_notifications_status_created', table_name='notifications')
    op.drop_index('ix_notifications_recipient_created', table_name='notifications')
    op.drop_index('ix_notifications_recipient_status', table_name='notifications')
    op.drop_index(op.f('ix_notifications_category'), table_name='notifications')
    op.drop_table('notifications')

    op.drop_index(op.f('ix_users_email'), table_name='users')
    op.drop_table('users')
