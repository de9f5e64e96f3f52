"""
Alembic migration: Product catalog.

Adds categories and products. Products reference their category with
ON DELETE RESTRICT so a category in use cannot be dropped.

Revision ID: 002
Revises: 001
Create Date: 2026-10-18 14:03:27.118904
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# Revision identifiers, used by Alembic
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), 'postgresql')


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


def _json_list(name: str) -> sa.Column:
    return sa.Column(name, JSON_TYPE, nullable=False, server_default=sa.text("'[]'"))


def upgrade() -> None:
    """Create categories and products."""
    op.create_table(
        'categories',
        sa.Column('id', sa.Uuid(), nullable=False, comment='Unique identifier for the record'),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=255), nullable=False, comment='URL identifier (unique)'),
        sa.Column('description', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_categories_slug', 'categories', ['slug'], unique=True)

    op.create_table(
        'products',
        sa.Column('id', sa.Uuid(), nullable=False, comment='Unique identifier for the record'),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=255), nullable=False, comment='URL identifier (unique)'),
        sa.Column('category_id', sa.Uuid(), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=True),
        sa.Column('description', sa.Text(), nullable=False),
        _json_list('features'),
        _json_list('colors'),
        _json_list('images'),
        _json_list('materials'),
        _json_list('care_instructions'),
        sa.Column('dimensions', JSON_TYPE, nullable=True),
        sa.Column('delivery_time', sa.String(length=255), nullable=True),
        sa.Column('return_policy', sa.String(length=255), nullable=True),
        sa.Column('warranty', sa.String(length=255), nullable=True),
        sa.Column('in_stock', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('is_weekly_best_seller', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id'], ondelete='RESTRICT'),
        sa.CheckConstraint('price IS NULL OR price >= 0', name='ck_products_price_non_negative'),
    )
    op.create_index('ix_products_slug', 'products', ['slug'], unique=True)
    op.create_index('ix_products_category_id', 'products', ['category_id'])
    op.create_index('ix_products_created_at', 'products', ['created_at'])


def downgrade() -> None:
    """Drop the catalog tables."""
    op.drop_index('ix_products_created_at', table_name='products')
    op.drop_index('ix_products_category_id', table_name='products')
    op.drop_index('ix_products_slug', table_name='products')
    op.drop_table('products')

    op.drop_index('ix_categories_slug', table_name='categories')
    op.drop_table('categories')
