"""Initial schema: catalogue, stock entries, orders with lot allocations, audit log

Revision ID: 3f1c2a9d0b17
Revises:
Create Date: 2026-10-17 09:12:44.518302

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# Revision identifiers used by Alembic
revision: str = '3f1c2a9d0b17'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(updated: bool = True):
    cols = [sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False)]
    if updated:
        cols.append(sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False))
    return cols


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('banned', sa.Boolean(), nullable=False),
        *_timestamps(updated=False),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])
    op.create_index('ix_users_created_at', 'users', ['created_at'])

    op.create_table(
        'product_categories',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_product_categories_id', 'product_categories', ['id'])
    op.create_index('ix_product_categories_name', 'product_categories', ['name'], unique=True)

    op.create_table(
        'shops',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_shops_id', 'shops', ['id'])
    op.create_index('ix_shops_name', 'shops', ['name'], unique=True)

    op.create_table(
        'suppliers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('address', sa.String(length=500), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_suppliers_id', 'suppliers', ['id'])
    op.create_index('ix_suppliers_name', 'suppliers', ['name'], unique=True)

    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=255), nullable=False),
        sa.Column('price', sa.Integer(), sa.CheckConstraint('price >= 0', name='ck_products_price'), nullable=False),
        sa.Column('stock', sa.Integer(), sa.CheckConstraint('stock >= 0', name='ck_products_stock'), nullable=False),
        sa.Column(
            'reserved_stock',
            sa.Integer(),
            sa.CheckConstraint('reserved_stock >= 0', name='ck_products_reserved_stock'),
            nullable=False,
        ),
        sa.Column(
            'category_id',
            sa.Integer(),
            sa.ForeignKey('product_categories.id', ondelete='SET NULL'),
            nullable=True,
        ),
        *_timestamps(),
    )
    op.create_index('ix_products_id', 'products', ['id'])
    op.create_index('ix_products_name', 'products', ['name'])
    op.create_index('ix_products_slug', 'products', ['slug'], unique=True)
    op.create_index('ix_products_category_id', 'products', ['category_id'])

    op.create_table(
        'stock_entries',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('supplier_id', sa.Integer(), sa.ForeignKey('suppliers.id'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_cost', sa.Integer(), nullable=False),
        sa.Column('total_cost', sa.Integer(), nullable=False),
        sa.Column('remaining_qty', sa.Integer(), nullable=False),
        sa.Column('purchase_date', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('notes', sa.String(length=500), nullable=True),
        *_timestamps(updated=False),
        sa.CheckConstraint('remaining_qty >= 0', name='ck_stock_entries_remaining_nonneg'),
        sa.CheckConstraint('remaining_qty <= quantity', name='ck_stock_entries_remaining_le_quantity'),
    )
    op.create_index('ix_stock_entries_id', 'stock_entries', ['id'])
    op.create_index('ix_stock_entries_product_id', 'stock_entries', ['product_id'])
    op.create_index('ix_stock_entries_supplier_id', 'stock_entries', ['supplier_id'])
    op.create_index('ix_stock_entries_purchase_date', 'stock_entries', ['purchase_date'])

    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('shop_id', sa.Integer(), sa.ForeignKey('shops.id'), nullable=False),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column(
            'status',
            sa.Enum('PENDING', 'PROCESSING', 'COMPLETED', 'CANCELLED', name='orderstatus', native_enum=False, length=20),
            nullable=False,
        ),
        sa.Column('total_amount', sa.Integer(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_orders_id', 'orders', ['id'])
    op.create_index('ix_orders_shop_id', 'orders', ['shop_id'])
    op.create_index('ix_orders_created_by', 'orders', ['created_by'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_created_at', 'orders', ['created_at'])

    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price', sa.Integer(), nullable=False),
        sa.Column('total_cost', sa.Integer(), nullable=True),
        sa.Column('total_margin', sa.Integer(), nullable=True),
        sa.Column('avg_margin_rate', sa.Float(), nullable=True),
    )
    op.create_index('ix_order_items_id', 'order_items', ['id'])
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])
    op.create_index('ix_order_items_product_id', 'order_items', ['product_id'])

    op.create_table(
        'order_item_stock_entries',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column(
            'order_item_id', sa.Integer(), sa.ForeignKey('order_items.id', ondelete='CASCADE'), nullable=False
        ),
        sa.Column('stock_entry_id', sa.Integer(), sa.ForeignKey('stock_entries.id'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_cost', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Integer(), nullable=False),
        sa.Column('margin_amount', sa.Integer(), nullable=False),
        sa.Column('margin_rate', sa.Float(), nullable=False),
        *_timestamps(updated=False),
    )
    op.create_index('ix_order_item_stock_entries_id', 'order_item_stock_entries', ['id'])
    op.create_index('ix_order_item_stock_entries_order_item_id', 'order_item_stock_entries', ['order_item_id'])
    op.create_index('ix_order_item_stock_entries_stock_entry_id', 'order_item_stock_entries', ['stock_entry_id'])

    op.create_table(
        'logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('ts', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('action', sa.String(length=50), nullable=True),
        sa.Column('resource', sa.String(length=50), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=True),
        sa.Column('ip', sa.String(length=64), nullable=True),
        sa.Column('meta', sa.JSON(), nullable=True),
    )
    op.create_index('ix_logs_id', 'logs', ['id'])
    op.create_index('ix_logs_ts', 'logs', ['ts'])
    op.create_index('ix_logs_user_id', 'logs', ['user_id'])
    op.create_index('ix_logs_action', 'logs', ['action'])
    op.create_index('ix_logs_resource', 'logs', ['resource'])
    op.create_index('ix_logs_status', 'logs', ['status'])


def downgrade() -> None:
    """Downgrade schema."""
    # Reverse dependency order
    op.drop_table('logs')
    op.drop_table('order_item_stock_entries')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('stock_entries')
    op.drop_table('products')
    op.drop_table('suppliers')
    op.drop_table('shops')
    op.drop_table('product_categories')
    op.drop_table('users')
