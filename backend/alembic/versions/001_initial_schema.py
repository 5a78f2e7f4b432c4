"""Initial garment work order schema

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    # Catalog
    op.create_table('products',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('name', sa.String(length=255), nullable=False),
    sa.Column('reference', sa.String(length=100), nullable=False),
    sa.Column('description', sa.Text(), nullable=True),
    *_timestamps(),
    sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_products_id'), 'products', ['id'], unique=False)
    op.create_index(op.f('ix_products_reference'), 'products', ['reference'], unique=True)

    # Raw items
    op.create_table('raw_items',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('name', sa.String(length=255), nullable=False),
    sa.Column('sku', sa.String(length=100), nullable=False),
    sa.Column('unit', sa.String(length=20), nullable=False, server_default='m'),
    sa.Column('quantity', sa.Numeric(precision=18, scale=4), nullable=False, server_default='0'),
    sa.Column('min_stock', sa.Numeric(precision=18, scale=4), nullable=False, server_default='0'),
    sa.Column('status', sa.String(length=20), nullable=False, server_default='out_of_stock'),
    sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
    *_timestamps(),
    sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_raw_items_id'), 'raw_items', ['id'], unique=False)
    op.create_index(op.f('ix_raw_items_sku'), 'raw_items', ['sku'], unique=True)

    op.create_table('raw_item_variants',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('raw_item_id', sa.Integer(), nullable=False),
    sa.Column('combination', sa.JSON(), nullable=False),
    sa.Column('quantity', sa.Numeric(precision=18, scale=4), nullable=False, server_default='0'),
    sa.ForeignKeyConstraint(['raw_item_id'], ['raw_items.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_raw_item_variants_id'), 'raw_item_variants', ['id'], unique=False)
    op.create_index(op.f('ix_raw_item_variants_raw_item_id'), 'raw_item_variants', ['raw_item_id'], unique=False)

    # Machines
    op.create_table('machines',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('name', sa.String(length=200), nullable=False),
    sa.Column('serial_number', sa.String(length=100), nullable=False),
    sa.Column('machine_type', sa.String(length=100), nullable=False),
    sa.Column('status', sa.String(length=50), nullable=False, server_default='operational'),
    sa.Column('notes', sa.Text(), nullable=True),
    *_timestamps(),
    sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_machines_id'), 'machines', ['id'], unique=False)
    op.create_index(op.f('ix_machines_serial_number'), 'machines', ['serial_number'], unique=True)
    op.create_index(op.f('ix_machines_machine_type'), 'machines', ['machine_type'], unique=False)
    op.create_index(op.f('ix_machines_status'), 'machines', ['status'], unique=False)

    op.create_table('product_variants',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('product_id', sa.Integer(), nullable=False),
    sa.Column('sku', sa.String(length=100), nullable=False),
    sa.Column('attributes', sa.JSON(), nullable=False),
    sa.Column('stock_quantity', sa.Integer(), nullable=False, server_default='0'),
    *_timestamps(),
    sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_product_variants_id'), 'product_variants', ['id'], unique=False)
    op.create_index(op.f('ix_product_variants_product_id'), 'product_variants', ['product_id'], unique=False)
    op.create_index(op.f('ix_product_variants_sku'), 'product_variants', ['sku'], unique=True)

    op.create_table('product_variant_materials',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('variant_id', sa.Integer(), nullable=False),
    sa.Column('raw_item_id', sa.Integer(), nullable=False),
    sa.Column('quantity', sa.Numeric(precision=18, scale=4), nullable=False),
    sa.Column('unit', sa.String(length=20), nullable=False, server_default='m'),
    sa.Column('unit_cost', sa.Numeric(precision=18, scale=4), nullable=False, server_default='0'),
    sa.Column('raw_item_variant_id', sa.Integer(), nullable=True),
    sa.Column('raw_item_variant_combination', sa.JSON(), nullable=True),
    sa.ForeignKeyConstraint(['variant_id'], ['product_variants.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['raw_item_id'], ['raw_items.id'], ),
    sa.ForeignKeyConstraint(['raw_item_variant_id'], ['raw_item_variants.id'], ),
    sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_product_variant_materials_id'), 'product_variant_materials', ['id'], unique=False)
    op.create_index(op.f('ix_product_variant_materials_variant_id'), 'product_variant_materials', ['variant_id'], unique=False)
    op.create_index(op.f('ix_product_variant_materials_raw_item_id'), 'product_variant_materials', ['raw_item_id'], unique=False)

    op.create_table('product_operations',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('product_id', sa.Integer(), nullable=False),
    sa.Column('sequence', sa.Integer(), nullable=False, server_default='1'),
    sa.Column('operation_type', sa.String(length=100), nullable=False),
    sa.Column('machine_type', sa.String(length=100), nullable=False),
    sa.Column('estimated_seconds', sa.Integer(), nullable=False, server_default='0'),
    sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_product_operations_id'), 'product_operations', ['id'], unique=False)
    op.create_index(op.f('ix_product_operations_product_id'), 'product_operations', ['product_id'], unique=False)

    # Work orders
    op.create_table('work_orders',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('work_order_number', sa.String(length=50), nullable=False),
    sa.Column('quotation_reference', sa.String(length=100), nullable=False),
    sa.Column('customer_name', sa.String(length=255), nullable=True),
    sa.Column('priority', sa.String(length=20), nullable=False, server_default='medium'),
    sa.Column('product_id', sa.Integer(), nullable=False),
    sa.Column('product_name', sa.String(length=255), nullable=False),
    sa.Column('product_reference', sa.String(length=100), nullable=False),
    sa.Column('product_variant_id', sa.Integer(), nullable=False),
    sa.Column('variant_sku', sa.String(length=100), nullable=False),
    sa.Column('variant_attributes', sa.JSON(), nullable=False),
    sa.Column('quantity', sa.Integer(), nullable=False),
    sa.Column('original_quantity', sa.Integer(), nullable=False),
    sa.Column('status', sa.String(length=50), nullable=False, server_default='pending'),
    sa.Column('is_split_order', sa.Boolean(), nullable=False, server_default=sa.false()),
    sa.Column('parent_work_order_id', sa.Integer(), nullable=True),
    sa.Column('split_reason', sa.String(length=255), nullable=True),
    sa.Column('estimated_cost', sa.Numeric(precision=18, scale=2), nullable=False, server_default='0'),
    sa.Column('total_estimated_seconds', sa.Integer(), nullable=False, server_default='0'),
    sa.Column('total_planned_seconds', sa.Integer(), nullable=False, server_default='0'),
    sa.Column('special_instructions', sa.Text(), nullable=True),
    sa.Column('planning_notes', sa.Text(), nullable=True),
    sa.Column('planned_by', sa.String(length=100), nullable=True),
    sa.Column('planned_at', sa.DateTime(), nullable=True),
    sa.Column('actual_start', sa.DateTime(), nullable=True),
    sa.Column('actual_end', sa.DateTime(), nullable=True),
    sa.Column('cancelled_by', sa.String(length=100), nullable=True),
    sa.Column('cancelled_at', sa.DateTime(), nullable=True),
    sa.Column('cancellation_reason', sa.Text(), nullable=True),
    sa.Column('created_by', sa.String(length=100), nullable=True),
    *_timestamps(),
    sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
    sa.ForeignKeyConstraint(['product_variant_id'], ['product_variants.id'], ),
    sa.ForeignKeyConstraint(['parent_work_order_id'], ['work_orders.id'], ),
    sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_work_orders_id'), 'work_orders', ['id'], unique=False)
    op.create_index(op.f('ix_work_orders_work_order_number'), 'work_orders', ['work_order_number'], unique=True)
    op.create_index(op.f('ix_work_orders_quotation_reference'), 'work_orders', ['quotation_reference'], unique=False)
    op.create_index(op.f('ix_work_orders_product_id'), 'work_orders', ['product_id'], unique=False)
    op.create_index(op.f('ix_work_orders_status'), 'work_orders', ['status'], unique=False)
    op.create_index(op.f('ix_work_orders_parent_work_order_id'), 'work_orders', ['parent_work_order_id'], unique=False)

    op.create_table('work_order_operations',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('work_order_id', sa.Integer(), nullable=False),
    sa.Column('sequence', sa.Integer(), nullable=False),
    sa.Column('operation_type', sa.String(length=100), nullable=False),
    sa.Column('machine_type', sa.String(length=100), nullable=False),
    sa.Column('status', sa.String(length=50), nullable=False, server_default='pending'),
    sa.Column('estimated_seconds', sa.Integer(), nullable=False, server_default='0'),
    sa.Column('planned_seconds', sa.Integer(), nullable=True),
    sa.Column('machine_id', sa.Integer(), nullable=True),
    sa.Column('additional_machine_ids', sa.JSON(), nullable=False),
    sa.Column('notes', sa.Text(), nullable=True),
    *_timestamps(),
    sa.ForeignKeyConstraint(['work_order_id'], ['work_orders.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['machine_id'], ['machines.id'], ),
    sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_work_order_operations_id'), 'work_order_operations', ['id'], unique=False)
    op.create_index(op.f('ix_work_order_operations_work_order_id'), 'work_order_operations', ['work_order_id'], unique=False)

    op.create_table('work_order_materials',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('work_order_id', sa.Integer(), nullable=False),
    sa.Column('raw_item_id', sa.Integer(), nullable=False),
    sa.Column('raw_item_name', sa.String(length=255), nullable=False),
    sa.Column('raw_item_sku', sa.String(length=100), nullable=False),
    sa.Column('unit', sa.String(length=20), nullable=False, server_default='m'),
    sa.Column('quantity_per_unit', sa.Numeric(precision=18, scale=4), nullable=False),
    sa.Column('original_quantity_required', sa.Numeric(precision=18, scale=4), nullable=False),
    sa.Column('quantity_required', sa.Numeric(precision=18, scale=4), nullable=False),
    sa.Column('quantity_allocated', sa.Numeric(precision=18, scale=4), nullable=False, server_default='0'),
    sa.Column('quantity_issued', sa.Numeric(precision=18, scale=4), nullable=False, server_default='0'),
    sa.Column('unit_cost', sa.Numeric(precision=18, scale=4), nullable=False, server_default='0'),
    sa.Column('total_cost', sa.Numeric(precision=18, scale=2), nullable=False, server_default='0'),
    sa.Column('allocation_status', sa.String(length=30), nullable=False, server_default='not_allocated'),
    sa.Column('raw_item_variant_id', sa.Integer(), nullable=True),
    sa.Column('raw_item_variant_combination', sa.JSON(), nullable=True),
    sa.Column('issued_at', sa.DateTime(), nullable=True),
    sa.ForeignKeyConstraint(['work_order_id'], ['work_orders.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['raw_item_id'], ['raw_items.id'], ),
    sa.ForeignKeyConstraint(['raw_item_variant_id'], ['raw_item_variants.id'], ),
    sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_work_order_materials_id'), 'work_order_materials', ['id'], unique=False)
    op.create_index(op.f('ix_work_order_materials_work_order_id'), 'work_order_materials', ['work_order_id'], unique=False)
    op.create_index(op.f('ix_work_order_materials_raw_item_id'), 'work_order_materials', ['raw_item_id'], unique=False)

    # Stock ledger
    op.create_table('stock_transactions',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('raw_item_id', sa.Integer(), nullable=False),
    sa.Column('raw_item_variant_id', sa.Integer(), nullable=True),
    sa.Column('transaction_type', sa.String(length=30), nullable=False),
    sa.Column('quantity', sa.Numeric(precision=18, scale=4), nullable=False),
    sa.Column('previous_quantity', sa.Numeric(precision=18, scale=4), nullable=False),
    sa.Column('new_quantity', sa.Numeric(precision=18, scale=4), nullable=False),
    sa.Column('previous_variant_quantity', sa.Numeric(precision=18, scale=4), nullable=True),
    sa.Column('new_variant_quantity', sa.Numeric(precision=18, scale=4), nullable=True),
    sa.Column('work_order_id', sa.Integer(), nullable=True),
    sa.Column('work_order_material_id', sa.Integer(), nullable=True),
    sa.Column('reason', sa.String(length=500), nullable=False),
    sa.Column('notes', sa.Text(), nullable=True),
    sa.Column('performed_by', sa.String(length=100), nullable=False, server_default='system'),
    sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    sa.ForeignKeyConstraint(['raw_item_id'], ['raw_items.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['raw_item_variant_id'], ['raw_item_variants.id'], ),
    sa.ForeignKeyConstraint(['work_order_id'], ['work_orders.id'], ),
    sa.ForeignKeyConstraint(['work_order_material_id'], ['work_order_materials.id'], ),
    sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_stock_transactions_id'), 'stock_transactions', ['id'], unique=False)
    op.create_index(op.f('ix_stock_transactions_raw_item_id'), 'stock_transactions', ['raw_item_id'], unique=False)
    op.create_index(op.f('ix_stock_transactions_transaction_type'), 'stock_transactions', ['transaction_type'], unique=False)
    op.create_index(op.f('ix_stock_transactions_work_order_id'), 'stock_transactions', ['work_order_id'], unique=False)
    op.create_index(op.f('ix_stock_transactions_created_at'), 'stock_transactions', ['created_at'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('stock_transactions')
    op.drop_table('work_order_materials')
    op.drop_table('work_order_operations')
    op.drop_table('work_orders')
    op.drop_table('product_operations')
    op.drop_table('product_variant_materials')
    op.drop_table('product_variants')
    op.drop_table('machines')
    op.drop_table('raw_item_variants')
    op.drop_table('raw_items')
    op.drop_table('products')
