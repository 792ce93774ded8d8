"""
Product and product approval history models.

A product carries two independent status dimensions: its publish ``status``
and its admin review ``approval_status``. Stock is tracked as a quantity
that may never go negative plus a derived ``stock_status``.
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
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from solar_marketplace.database.base import (
    AuditedModel,
    JSONType,
    LedgerModel,
    append_only,
)
from solar_marketplace.services.products.enums import (
    ApprovalAction,
    ApprovalStatus,
    ProductCategory,
    ProductStatus,
    StockStatus,
)


class Product(AuditedModel):
    """
    Contractor-owned catalog product.

    Attributes:
        contractor_id: Owning contractor
        product_category: Category, also the specifications discriminator
        specifications: Category-specific specification document
        price: Unit price in ``currency``
        stock_quantity: Units on hand, never negative
        stock_status: Derived from stock_quantity
        status: Publish status
        approval_status: Admin review status
        approved_by: Admin who approved the product
        approved_at: Approval timestamp
        rejection_reason: Reason given on the last rejection
        admin_notes: Notes from the last admin decision
    """

    __tablename__ = "products"

    contractor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        nullable=False,
        index=True,
        comment="Owning contractor",
    )

    category_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        nullable=True,
        comment="Catalog category managed by the search subsystem",
    )

    product_category: Mapped[ProductCategory] = mapped_column(
        SQLEnum(ProductCategory, name="product_category", create_constraint=True),
        nullable=False,
        comment="Product category",
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    name_ar: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    brand: Mapped[str] = mapped_column(String(100), nullable=False)
    model: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    sku: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)

    specifications: Mapped[dict[str, Any]] = mapped_column(
        JSONType,
        nullable=False,
        default=dict,
        comment="Category-specific specifications",
    )

    price: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        comment="Unit price",
    )

    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="SAR")
    vat_included: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    stock_quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Units on hand",
    )

    stock_status: Mapped[StockStatus] = mapped_column(
        SQLEnum(StockStatus, name="stock_status", create_constraint=True),
        nullable=False,
        default=StockStatus.OUT_OF_STOCK,
        comment="Derived availability",
    )

    status: Mapped[ProductStatus] = mapped_column(
        SQLEnum(ProductStatus, name="product_status", create_constraint=True),
        nullable=False,
        default=ProductStatus.DRAFT,
        index=True,
        comment="Publish status",
    )

    approval_status: Mapped[ApprovalStatus] = mapped_column(
        SQLEnum(ApprovalStatus, name="approval_status", create_constraint=True),
        nullable=False,
        default=ApprovalStatus.PENDING,
        index=True,
        comment="Admin review status",
    )

    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True), nullable=True
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_products_review_queue", "status", "approval_status", "created_at"),
        Index("ix_products_contractor_status", "contractor_id", "status"),
        CheckConstraint(
            "stock_quantity >= 0",
            name="ck_products_stock_quantity_non_negative",
        ),
        CheckConstraint("price > 0", name="ck_products_price_positive"),
        {"comment": "Contractor catalog products"},
    )

    @property
    def is_orderable(self) -> bool:
        """Active and approved products can be ordered."""
        return (
            self.status == ProductStatus.ACTIVE
            and self.approval_status == ApprovalStatus.APPROVED
        )


@append_only
class ProductApprovalHistory(LedgerModel):
    """
    Append-only ledger of product approval transitions.

    Attributes:
        product_id: Product the transition applies to
        previous_status: Approval status before the transition
        new_status: Approval status after the transition
        action_type: Action that caused the transition
        admin_id: Acting principal (the contractor for SUBMIT)
        admin_notes: Free-text notes
        rejection_reason: Reason for REJECT
        changes_required: Requested changes for REQUEST_CHANGES
    """

    __tablename__ = "product_approval_history"

    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False,
        comment="Product the transition applies to",
    )

    previous_status: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    new_status: Mapped[str] = mapped_column(String(32), nullable=False)

    action_type: Mapped[ApprovalAction] = mapped_column(
        SQLEnum(ApprovalAction, name="approval_action", create_constraint=True),
        nullable=False,
    )

    admin_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    changes_required: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index(
            "ix_product_approval_history_product_created",
            "product_id",
            "created_at",
        ),
        {"comment": "Append-only product approval ledger"},
    )
