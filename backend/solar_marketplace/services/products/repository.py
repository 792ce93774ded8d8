"""
Product data access repository.

The repository is stateless: every method receives the session of the
caller's unit of work, so reads, locks and writes issued by different
components of one operation share a single transaction.
"""

import uuid
from typing import Any, Iterable, Mapping, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from solar_marketplace.core.logging import get_logger
from solar_marketplace.database.models.product import Product, ProductApprovalHistory
from solar_marketplace.database.update_builder import UpdateBuilder
from solar_marketplace.services.products.enums import ApprovalStatus, ProductStatus

logger = get_logger(__name__)

# Fields a contractor may edit directly
EDITABLE_FIELDS = frozenset(
    {
        "category_id",
        "name",
        "name_ar",
        "description",
        "brand",
        "model",
        "sku",
        "specifications",
        "price",
        "currency",
        "vat_included",
        "stock_quantity",
        "stock_status",
    }
)

# Fields written by the approval workflow
WORKFLOW_FIELDS = frozenset(
    {
        "status",
        "approval_status",
        "approved_by",
        "approved_at",
        "rejection_reason",
        "admin_notes",
        "updated_by",
    }
)

# Fields written by the stock decrement
STOCK_FIELDS = frozenset({"stock_quantity", "stock_status"})


class ProductRepository:
    """Repository for product rows and their approval ledger."""

    def __init__(self):
        self._editable = UpdateBuilder(Product, EDITABLE_FIELDS | {"updated_by"})
        self._workflow = UpdateBuilder(Product, WORKFLOW_FIELDS)
        self._stock = UpdateBuilder(Product, STOCK_FIELDS)

    async def add(self, session: AsyncSession, product: Product) -> Product:
        """Insert a new product and flush it."""
        session.add(product)
        await session.flush()
        logger.info(
            "Product inserted",
            product_id=str(product.id),
            contractor_id=str(product.contractor_id),
        )
        return product

    async def get(
        self,
        session: AsyncSession,
        product_id: uuid.UUID,
        refresh: bool = False,
    ) -> Optional[Product]:
        """
        Get a product by id.

        Args:
            session: Active session
            product_id: Product identifier
            refresh: Reload attributes from the database even when the
                instance is already in the identity map

        Returns:
            Product or None
        """
        return await session.get(Product, product_id, populate_existing=refresh)

    async def get_for_update(
        self, session: AsyncSession, product_id: uuid.UUID
    ) -> Optional[Product]:
        """Get a product and lock its row until the transaction ends."""
        result = await session.execute(
            select(Product)
            .where(Product.id == product_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_many_for_update(
        self, session: AsyncSession, product_ids: Iterable[uuid.UUID]
    ) -> dict[uuid.UUID, Product]:
        """
        Lock and load several products in one round trip.

        Rows are locked in primary key order so concurrent orders touching
        the same products cannot deadlock each other.
        """
        ids = sorted(set(product_ids))
        if not ids:
            return {}

        result = await session.execute(
            select(Product)
            .where(Product.id.in_(ids))
            .order_by(Product.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return {product.id: product for product in result.scalars().all()}

    async def update_fields(
        self,
        session: AsyncSession,
        product_id: uuid.UUID,
        changes: Mapping[str, Any],
    ) -> bool:
        """Apply a contractor edit. Returns False when no row matched."""
        result = await session.execute(self._editable.build(product_id, changes))
        return result.rowcount == 1

    async def transition(
        self,
        session: AsyncSession,
        product_id: uuid.UUID,
        expected: Mapping[str, Any],
        changes: Mapping[str, Any],
    ) -> bool:
        """
        Write an approval transition guarded on the observed state.

        Returns:
            True if the row still held ``expected`` and was updated
        """
        result = await session.execute(
            self._workflow.build(product_id, changes, expected=expected)
        )
        return result.rowcount == 1

    async def swap_stock(
        self,
        session: AsyncSession,
        product_id: uuid.UUID,
        observed_quantity: int,
        new_quantity: int,
        stock_status: Any,
    ) -> bool:
        """
        Compare-and-swap the stock quantity.

        Returns:
            True if the quantity was still ``observed_quantity``
        """
        result = await session.execute(
            self._stock.build(
                product_id,
                {"stock_quantity": new_quantity, "stock_status": stock_status},
                expected={"stock_quantity": observed_quantity},
            )
        )
        return result.rowcount == 1

    async def list_pending_review(
        self,
        session: AsyncSession,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[Sequence[Product], int]:
        """
        List products waiting for an admin decision, oldest first.

        Returns:
            Tuple of (products, total count)
        """
        criteria = (
            Product.status == ProductStatus.PENDING_APPROVAL,
            Product.approval_status == ApprovalStatus.PENDING,
        )
        total = await session.scalar(
            select(func.count()).select_from(Product).where(*criteria)
        )
        result = await session.execute(
            select(Product)
            .where(*criteria)
            .order_by(Product.created_at.asc(), Product.id)
            .offset(skip)
            .limit(limit)
        )
        return result.scalars().all(), int(total or 0)

    async def list_approval_history(
        self,
        session: AsyncSession,
        product_id: uuid.UUID,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[Sequence[ProductApprovalHistory], int]:
        """
        List approval ledger rows for a product, newest first.

        Returns:
            Tuple of (rows, total count)
        """
        total = await session.scalar(
            select(func.count())
            .select_from(ProductApprovalHistory)
            .where(ProductApprovalHistory.product_id == product_id)
        )
        result = await session.execute(
            select(ProductApprovalHistory)
            .where(ProductApprovalHistory.product_id == product_id)
            .order_by(ProductApprovalHistory.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return result.scalars().all(), int(total or 0)
