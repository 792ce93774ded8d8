"""
Order, order item and order status history models.

An order is written once, atomically, together with all of its items and
its first history row. Afterwards only the four status columns (and the
timestamps their transitions stamp) change; items are immutable snapshots
of the products at ordering time.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from solar_marketplace.database.base import (
    AuditedModel,
    JSONType,
    LedgerModel,
    append_only,
)
from solar_marketplace.services.orders.enums import (
    InstallationStatus,
    OrderStatus,
    PaymentStatus,
    ShippingStatus,
    StatusType,
)


class Order(AuditedModel):
    """
    Customer order.

    Attributes:
        order_number: Human-readable unique order number
        user_id: Customer who owns the order
        customer_name: Customer display name
        customer_email: Customer email
        customer_phone: Customer phone number
        shipping_address: Shipping address document
        billing_same_as_shipping: Whether billing uses the shipping address
        billing_address: Billing address document when different
        subtotal: Sum of item line totals
        tax_amount: VAT on the subtotal
        shipping_cost: Flat shipping charge
        discount_amount: Applied discount
        total_amount: subtotal + tax_amount + shipping_cost - discount_amount
        status: Order lifecycle status
        payment_status: Payment status
        shipping_status: Shipment status
        installation_status: Installation status
        items: Line item snapshots
    """

    __tablename__ = "orders"

    order_number: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="Human-readable order number",
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        nullable=False,
        comment="Customer who owns the order",
    )

    # Customer details
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_email: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_phone: Mapped[str] = mapped_column(String(20), nullable=False)

    shipping_address: Mapped[dict[str, Any]] = mapped_column(
        JSONType,
        nullable=False,
        comment="Shipping address",
    )
    billing_same_as_shipping: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    billing_address: Mapped[Optional[dict[str, Any]]] = mapped_column(
        JSONType, nullable=True
    )

    # Amounts
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    shipping_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00")
    )
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="SAR")

    # Status dimensions
    status: Mapped[OrderStatus] = mapped_column(
        SQLEnum(OrderStatus, name="order_status", create_constraint=True),
        nullable=False,
        default=OrderStatus.PENDING,
        comment="Order lifecycle status",
    )

    payment_status: Mapped[PaymentStatus] = mapped_column(
        SQLEnum(PaymentStatus, name="payment_status", create_constraint=True),
        nullable=False,
        default=PaymentStatus.PENDING,
        comment="Payment status",
    )

    shipping_status: Mapped[ShippingStatus] = mapped_column(
        SQLEnum(ShippingStatus, name="shipping_status", create_constraint=True),
        nullable=False,
        default=ShippingStatus.NOT_SHIPPED,
        comment="Shipment status",
    )

    installation_status: Mapped[InstallationStatus] = mapped_column(
        SQLEnum(InstallationStatus, name="installation_status", create_constraint=True),
        nullable=False,
        default=InstallationStatus.NOT_REQUIRED,
        comment="Installation status",
    )

    installation_required: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    special_instructions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    payment_method: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    paid_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    actual_delivery_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
    )

    __table_args__ = (
        UniqueConstraint("order_number", name="uq_orders_order_number"),
        Index("ix_orders_user_status", "user_id", "status"),
        Index("ix_orders_status_created", "status", "created_at"),
        CheckConstraint("subtotal >= 0", name="ck_orders_subtotal_non_negative"),
        CheckConstraint("tax_amount >= 0", name="ck_orders_tax_amount_non_negative"),
        CheckConstraint(
            "shipping_cost >= 0", name="ck_orders_shipping_cost_non_negative"
        ),
        CheckConstraint(
            "discount_amount >= 0", name="ck_orders_discount_amount_non_negative"
        ),
        CheckConstraint(
            "total_amount = "
            "round(subtotal + tax_amount + shipping_cost - discount_amount, 2)",
            name="ck_orders_total_amount_consistent",
        ),
        {"comment": "Customer orders"},
    )


class OrderItem(AuditedModel):
    """
    Immutable line-item snapshot of a product at ordering time.

    Attributes:
        order_id: Parent order
        position: Zero-based position within the order
        product_id: Ordered product
        contractor_id: Product owner at ordering time
        unit_price: Product price at ordering time
        quantity: Ordered units
        line_total: unit_price * quantity
        specifications: Copy of the product specifications
    """

    __tablename__ = "order_items"

    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    contractor_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)

    # Product snapshot
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    product_name_ar: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    product_sku: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    product_brand: Mapped[str] = mapped_column(String(100), nullable=False)
    product_model: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    specifications: Mapped[dict[str, Any]] = mapped_column(
        JSONType, nullable=False, default=dict
    )

    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    line_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    installation_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    warranty_period_months: Mapped[int] = mapped_column(
        Integer, nullable=False, default=12
    )

    order: Mapped["Order"] = relationship("Order", back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_order_items_unit_price_non_negative"),
        CheckConstraint(
            "line_total = round(unit_price * quantity, 2)",
            name="ck_order_items_line_total_consistent",
        ),
        {"comment": "Order line item snapshots"},
    )


@append_only
class OrderStatusHistory(LedgerModel):
    """
    Append-only ledger of order status transitions.

    Attributes:
        order_id: Order the transition applies to
        previous_status: Status before the transition, NULL on creation
        new_status: Status after the transition
        status_type: Dimension that changed
        changed_by: Acting principal
        changed_by_role: Role of the acting principal
        reason: Short reason
        notes: Free-text notes
    """

    __tablename__ = "order_status_history"

    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("orders.id", ondelete="RESTRICT"),
        nullable=False,
    )

    previous_status: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    new_status: Mapped[str] = mapped_column(String(32), nullable=False)

    status_type: Mapped[StatusType] = mapped_column(
        SQLEnum(StatusType, name="status_type", create_constraint=True),
        nullable=False,
    )

    changed_by: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    changed_by_role: Mapped[str] = mapped_column(String(20), nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_order_status_history_order_created", "order_id", "created_at"),
        {"comment": "Append-only order status ledger"},
    )
