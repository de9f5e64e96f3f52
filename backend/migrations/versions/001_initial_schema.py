"""
Alembic migration: Initial storefront schema.

Creates the orders table written by checkout and the payment webhook, the
back-office users table, and the append-only activity log.

Revision ID: 001
Revises:
Create Date: 2026-10-18 09:12:41.530211
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# Revision identifiers, used by Alembic
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), 'postgresql')

ORDER_STATUSES = (
    'pending',
    'payment_initiated',
    'paid',
    'processing',
    'shipped',
    'delivered',
    'cancelled',
    'refunded',
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            'created_at',
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
            comment='Timestamp when record was created',
        ),
        sa.Column(
            'updated_at',
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
            comment='Timestamp when record was last updated',
        ),
    ]


def upgrade() -> None:
    """Create orders, users and activity_logs."""
    op.create_table(
        'orders',
        sa.Column('id', sa.Uuid(), nullable=False, comment='Unique identifier for the record'),
        sa.Column('reference_number', sa.String(length=32), nullable=False,
                  comment='Human-readable order reference'),
        sa.Column('customer_email', sa.String(length=255), nullable=False,
                  comment='Buyer e-mail address'),
        sa.Column('customer_name', sa.String(length=255), nullable=False),
        sa.Column('customer_phone', sa.String(length=50), nullable=True),
        sa.Column('items', JSON_TYPE, nullable=False, comment='Denormalized line-item snapshots'),
        sa.Column('shipping_address', JSON_TYPE, nullable=False, comment='Delivery address snapshot'),
        sa.Column('subtotal', sa.Numeric(10, 2), nullable=False),
        sa.Column('shipping', sa.Numeric(10, 2), nullable=False),
        sa.Column('tax', sa.Numeric(10, 2), nullable=False),
        sa.Column('total', sa.Numeric(10, 2), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False, comment='Current order status'),
        sa.Column('payment_id', sa.String(length=255), nullable=True,
                  comment='Gateway payment request identifier'),
        sa.Column('payment_provider', sa.String(length=50), nullable=True),
        sa.Column('tracking_number', sa.String(length=255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('reference_number'),
        sa.CheckConstraint('subtotal >= 0', name='ck_orders_subtotal_non_negative'),
        sa.CheckConstraint('shipping >= 0', name='ck_orders_shipping_non_negative'),
        sa.CheckConstraint('tax >= 0', name='ck_orders_tax_non_negative'),
        sa.CheckConstraint('total >= 0', name='ck_orders_total_non_negative'),
        sa.CheckConstraint(
            'status IN (' + ', '.join(f"'{s}'" for s in ORDER_STATUSES) + ')',
            name='ck_orders_status_valid',
        ),
    )
    op.create_index('ix_orders_customer_email', 'orders', ['customer_email'])
    op.create_index('ix_orders_payment_id', 'orders', ['payment_id'])
    op.create_index('ix_orders_status_created', 'orders', ['status', 'created_at'])

    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), nullable=False, comment='Unique identifier for the record'),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False,
                  comment='User email address (unique, lowercase)'),
        sa.Column('password_hash', sa.String(length=255), nullable=False,
                  comment='Bcrypt hashed password'),
        sa.Column('role', sa.String(length=32), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            "role IN ('super_admin', 'admin', 'editor')",
            name='ck_users_role_valid',
        ),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'activity_logs',
        sa.Column('id', sa.Uuid(), nullable=False, comment='Unique identifier for the record'),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('user_email', sa.String(length=255), nullable=False),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('details', sa.Text(), nullable=False),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('entity_id', sa.String(length=255), nullable=True),
        sa.Column('entity_type', sa.String(length=64), nullable=True),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_activity_logs_timestamp', 'activity_logs', ['timestamp'])
    op.create_index('ix_activity_logs_user_action', 'activity_logs', ['user_id', 'action'])
    op.create_index('ix_activity_logs_entity', 'activity_logs', ['entity_type', 'entity_id'])


def downgrade() -> None:
    """Drop all storefront tables."""
    op.drop_index('ix_activity_logs_entity', table_name='activity_logs')
    op.drop_index('ix_activity_logs_user_action', table_name='activity_logs')
    op.drop_index('ix_activity_logs_timestamp', table_name='activity_logs')
    op.drop_table('activity_logs')

    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')

    op.drop_index('ix_orders_status_created', table_name='orders')
    op.drop_index('ix_orders_payment_id', table_name='orders')
    op.drop_index('ix_orders_customer_email', table_name='orders')
    op.drop_table('orders')
