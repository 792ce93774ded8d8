"""
Alembic migration: Create catalog, approval and order tables.

Creates products with their approval ledger, then orders, order item
snapshots and the order status ledger. Status columns are enum types;
money columns are NUMERIC(12, 2) with CHECK constraints keeping stock
non-negative and line and order totals consistent with their parts.

Revision ID: 001
Revises:
Create Date: 2026-10-17 09:00:00.000000
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

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')

product_category = sa.Enum(
    'INVERTER', 'BATTERY', 'SOLAR_PANEL', 'FULL_SYSTEM',
    name='product_category', create_constraint=True,
)
product_status = sa.Enum(
    'DRAFT', 'PENDING_APPROVAL', 'ACTIVE', 'INACTIVE', 'DISCONTINUED',
    name='product_status', create_constraint=True,
)
approval_status = sa.Enum(
    'PENDING', 'APPROVED', 'REJECTED', 'CHANGES_REQUIRED',
    name='approval_status', create_constraint=True,
)
stock_status = sa.Enum(
    'IN_STOCK', 'LOW_STOCK', 'OUT_OF_STOCK',
    name='stock_status', create_constraint=True,
)
approval_action = sa.Enum(
    'SUBMIT', 'APPROVE', 'REJECT', 'REQUEST_CHANGES',
    name='approval_action', create_constraint=True,
)
order_status = sa.Enum(
    'PENDING', 'CONFIRMED', 'PROCESSING', 'SHIPPED', 'DELIVERED', 'CANCELLED', 'REFUNDED',
    name='order_status', create_constraint=True,
)
payment_status = sa.Enum(
    'PENDING', 'PAID', 'PARTIALLY_PAID', 'FAILED', 'REFUNDED',
    name='payment_status', create_constraint=True,
)
shipping_status = sa.Enum(
    'NOT_SHIPPED', 'PREPARING', 'IN_TRANSIT', 'DELIVERED', 'RETURNED',
    name='shipping_status', create_constraint=True,
)
installation_status = sa.Enum(
    'NOT_REQUIRED', 'PENDING', 'SCHEDULED', 'IN_PROGRESS', 'COMPLETED', 'CANCELLED',
    name='installation_status', create_constraint=True,
)
status_type = sa.Enum(
    'ORDER', 'PAYMENT', 'SHIPPING', 'INSTALLATION',
    name='status_type', create_constraint=True,
)

ENUM_TYPES = (
    product_category,
    product_status,
    approval_status,
    stock_status,
    approval_action,
    order_status,
    payment_status,
    shipping_status,
    installation_status,
    status_type,
)


def _id_column() -> sa.Column:
    return sa.Column(
        'id',
        sa.Uuid(as_uuid=True),
        primary_key=True,
        nullable=False,
        comment='Unique identifier for the record',
    )


def _created_at_column() -> sa.Column:
    return sa.Column(
        'created_at',
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
        comment='Timestamp when record was created',
    )


def _audit_columns() -> list[sa.Column]:
    return [
        _created_at_column(),
        sa.Column(
            'updated_at',
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
            comment='Timestamp when record was last updated',
        ),
        sa.Column(
            'created_by',
            sa.String(length=255),
            nullable=True,
            comment='Principal ID who created the record',
        ),
        sa.Column(
            'updated_by',
            sa.String(length=255),
            nullable=True,
            comment='Principal ID who last updated the record',
        ),
    ]


def upgrade() -> None:
    """
    Create the marketplace schema.

    Ledger tables reference their parent with ON DELETE RESTRICT so history
    can never be removed by deleting the product or order it describes.
    """
    op.create_table(
        'products',
        _id_column(),
        sa.Column(
            'contractor_id',
            sa.Uuid(as_uuid=True),
            nullable=False,
            comment='Owning contractor',
        ),
        sa.Column(
            'category_id',
            sa.Uuid(as_uuid=True),
            nullable=True,
            comment='Catalog category managed by the search subsystem',
        ),
        sa.Column('product_category', product_category, nullable=False, comment='Product category'),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('name_ar', sa.String(length=255), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('brand', sa.String(length=100), nullable=False),
        sa.Column('model', sa.String(length=100), nullable=True),
        sa.Column('sku', sa.String(length=100), nullable=True),
        sa.Column(
            'specifications',
            JSON_TYPE,
            nullable=False,
            comment='Category-specific specifications',
        ),
        sa.Column('price', sa.Numeric(precision=12, scale=2), nullable=False, comment='Unit price'),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('vat_included', sa.Boolean(), nullable=False),
        sa.Column('stock_quantity', sa.Integer(), nullable=False, comment='Units on hand'),
        sa.Column('stock_status', stock_status, nullable=False, comment='Derived availability'),
        sa.Column('status', product_status, nullable=False, comment='Publish status'),
        sa.Column('approval_status', approval_status, nullable=False, comment='Admin review status'),
        sa.Column('approved_by', sa.Uuid(as_uuid=True), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('admin_notes', sa.Text(), nullable=True),
        *_audit_columns(),
        sa.CheckConstraint(
            'stock_quantity >= 0',
            name='ck_products_stock_quantity_non_negative',
        ),
        sa.CheckConstraint('price > 0', name='ck_products_price_positive'),
        comment='Contractor catalog products',
    )
    op.create_index('ix_products_contractor_id', 'products', ['contractor_id'])
    op.create_index('ix_products_sku', 'products', ['sku'])
    op.create_index('ix_products_status', 'products', ['status'])
    op.create_index('ix_products_approval_status', 'products', ['approval_status'])
    op.create_index(
        'ix_products_review_queue',
        'products',
        ['status', 'approval_status', 'created_at'],
    )
    op.create_index(
        'ix_products_contractor_status',
        'products',
        ['contractor_id', 'status'],
    )

    op.create_table(
        'product_approval_history',
        _id_column(),
        sa.Column(
            'product_id',
            sa.Uuid(as_uuid=True),
            sa.ForeignKey('products.id', ondelete='RESTRICT'),
            nullable=False,
            comment='Product the transition applies to',
        ),
        sa.Column('previous_status', sa.String(length=32), nullable=True),
        sa.Column('new_status', sa.String(length=32), nullable=False),
        sa.Column('action_type', approval_action, nullable=False),
        sa.Column('admin_id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('admin_notes', sa.Text(), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('changes_required', sa.Text(), nullable=True),
        _created_at_column(),
        comment='Append-only product approval ledger',
    )
    op.create_index(
        'ix_product_approval_history_product_created',
        'product_approval_history',
        ['product_id', 'created_at'],
    )

    op.create_table(
        'orders',
        _id_column(),
        sa.Column('order_number', sa.String(length=32), nullable=False, comment='Human-readable order number'),
        sa.Column('user_id', sa.Uuid(as_uuid=True), nullable=False, comment='Customer who owns the order'),
        sa.Column('customer_name', sa.String(length=255), nullable=False),
        sa.Column('customer_email', sa.String(length=255), nullable=False),
        sa.Column('customer_phone', sa.String(length=20), nullable=False),
        sa.Column('shipping_address', JSON_TYPE, nullable=False, comment='Shipping address'),
        sa.Column('billing_same_as_shipping', sa.Boolean(), nullable=False),
        sa.Column('billing_address', JSON_TYPE, nullable=True),
        sa.Column('subtotal', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('tax_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('shipping_cost', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('discount_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('total_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('status', order_status, nullable=False, comment='Order lifecycle status'),
        sa.Column('payment_status', payment_status, nullable=False, comment='Payment status'),
        sa.Column('shipping_status', shipping_status, nullable=False, comment='Shipment status'),
        sa.Column(
            'installation_status',
            installation_status,
            nullable=False,
            comment='Installation status',
        ),
        sa.Column('installation_required', sa.Boolean(), nullable=False),
        sa.Column('special_instructions', sa.Text(), nullable=True),
        sa.Column('payment_method', sa.String(length=50), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('actual_delivery_date', sa.DateTime(timezone=True), nullable=True),
        *_audit_columns(),
        sa.UniqueConstraint('order_number', name='uq_orders_order_number'),
        sa.CheckConstraint('subtotal >= 0', name='ck_orders_subtotal_non_negative'),
        sa.CheckConstraint('tax_amount >= 0', name='ck_orders_tax_amount_non_negative'),
        sa.CheckConstraint('shipping_cost >= 0', name='ck_orders_shipping_cost_non_negative'),
        sa.CheckConstraint('discount_amount >= 0', name='ck_orders_discount_amount_non_negative'),
        sa.CheckConstraint(
            'total_amount = round(subtotal + tax_amount + shipping_cost - discount_amount, 2)',
            name='ck_orders_total_amount_consistent',
        ),
        comment='Customer orders',
    )
    op.create_index('ix_orders_user_status', 'orders', ['user_id', 'status'])
    op.create_index('ix_orders_status_created', 'orders', ['status', 'created_at'])

    op.create_table(
        'order_items',
        _id_column(),
        sa.Column(
            'order_id',
            sa.Uuid(as_uuid=True),
            sa.ForeignKey('orders.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column(
            'product_id',
            sa.Uuid(as_uuid=True),
            sa.ForeignKey('products.id', ondelete='RESTRICT'),
            nullable=False,
        ),
        sa.Column('contractor_id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('product_name_ar', sa.String(length=255), nullable=True),
        sa.Column('product_sku', sa.String(length=100), nullable=True),
        sa.Column('product_brand', sa.String(length=100), nullable=False),
        sa.Column('product_model', sa.String(length=100), nullable=True),
        sa.Column('specifications', JSON_TYPE, nullable=False),
        sa.Column('unit_price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('line_total', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('installation_notes', sa.Text(), nullable=True),
        sa.Column('warranty_period_months', sa.Integer(), nullable=False),
        *_audit_columns(),
        sa.CheckConstraint('quantity > 0', name='ck_order_items_quantity_positive'),
        sa.CheckConstraint('unit_price >= 0', name='ck_order_items_unit_price_non_negative'),
        sa.CheckConstraint(
            'line_total = round(unit_price * quantity, 2)',
            name='ck_order_items_line_total_consistent',
        ),
        comment='Order line item snapshots',
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])
    op.create_index('ix_order_items_product_id', 'order_items', ['product_id'])

    op.create_table(
        'order_status_history',
        _id_column(),
        sa.Column(
            'order_id',
            sa.Uuid(as_uuid=True),
            sa.ForeignKey('orders.id', ondelete='RESTRICT'),
            nullable=False,
        ),
        sa.Column('previous_status', sa.String(length=32), nullable=True),
        sa.Column('new_status', sa.String(length=32), nullable=False),
        sa.Column('status_type', status_type, nullable=False),
        sa.Column('changed_by', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('changed_by_role', sa.String(length=20), nullable=False),
        sa.Column('reason', sa.String(length=255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        _created_at_column(),
        comment='Append-only order status ledger',
    )
    op.create_index(
        'ix_order_status_history_order_created',
        'order_status_history',
        ['order_id', 'created_at'],
    )


def downgrade() -> None:
    """Drop the marketplace schema, children before parents."""
    op.drop_index('ix_order_status_history_order_created', table_name='order_status_history')
    op.drop_table('order_status_history')

    op.drop_index('ix_order_items_product_id', table_name='order_items')
    op.drop_index('ix_order_items_order_id', table_name='order_items')
    op.drop_table('order_items')

    op.drop_index('ix_orders_status_created', table_name='orders')
    op.drop_index('ix_orders_user_status', table_name='orders')
    op.drop_table('orders')

    op.drop_index(
        'ix_product_approval_history_product_created',
        table_name='product_approval_history',
    )
    op.drop_table('product_approval_history')

    op.drop_index('ix_products_contractor_status', table_name='products')
    op.drop_index('ix_products_review_queue', table_name='products')
    op.drop_index('ix_products_approval_status', table_name='products')
    op.drop_index('ix_products_status', table_name='products')
    op.drop_index('ix_products_sku', table_name='products')
    op.drop_index('ix_products_contractor_id', table_name='products')
    op.drop_table('products')

    bind = op.get_bind()
    for enum_type in ENUM_TYPES:
        enum_type.drop(bind, checkfirst=True)
