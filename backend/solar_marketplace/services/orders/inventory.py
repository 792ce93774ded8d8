"""
Inventory validation and stock decrement for order placement.

Both steps run on the session of the order's unit of work: products are
read once under a row lock, checked, and their stock is then decremented
with a compare-and-swap on the quantity that was observed. Splitting the
check and the decrement across transactions would allow two concurrent
orders to oversell the same product.
"""

import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Mapping, Optional, Protocol, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from solar_marketplace.core.exceptions import ValidationFailedError
from solar_marketplace.core.logging import get_logger
from solar_marketplace.database.models.product import Product
from solar_marketplace.services.products.enums import compute_stock_status
from solar_marketplace.services.products.repository import ProductRepository

logger = get_logger(__name__)


class OrderLine(Protocol):
    """Anything carrying a product id and a quantity."""

    product_id: uuid.UUID
    quantity: int


@dataclass(frozen=True)
class ProductSnapshot:
    """Immutable view of a product taken at validation time."""

    product_id: uuid.UUID
    contractor_id: uuid.UUID
    name: str
    name_ar: Optional[str]
    brand: str
    model: Optional[str]
    sku: Optional[str]
    price: Decimal
    currency: str
    stock_quantity: int
    specifications: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_product(cls, product: Product) -> "ProductSnapshot":
        return cls(
            product_id=product.id,
            contractor_id=product.contractor_id,
            name=product.name,
            name_ar=product.name_ar,
            brand=product.brand,
            model=product.model,
            sku=product.sku,
            price=Decimal(product.price),
            currency=product.currency,
            stock_quantity=product.stock_quantity,
            specifications=dict(product.specifications or {}),
        )


def aggregate_demand(lines: Sequence[OrderLine]) -> "OrderedDict[uuid.UUID, int]":
    """Sum requested quantities per product, keeping first-seen order."""
    demand: "OrderedDict[uuid.UUID, int]" = OrderedDict()
    for line in lines:
        demand[line.product_id] = demand.get(line.product_id, 0) + line.quantity
    return demand


class InventoryValidator:
    """
    Check product availability and reserve stock inside a unit of work.

    Attributes:
        repository: Product data access
        max_item_quantity: Largest quantity accepted on one line
        low_stock_threshold: Threshold used when recomputing stock status
    """

    def __init__(
        self,
        repository: Optional[ProductRepository] = None,
        max_item_quantity: int = 1000,
        low_stock_threshold: int = 10,
    ):
        self.repository = repository or ProductRepository()
        self.max_item_quantity = max_item_quantity
        self.low_stock_threshold = low_stock_threshold

    async def validate(
        self,
        session: AsyncSession,
        lines: Sequence[OrderLine],
    ) -> dict[uuid.UUID, ProductSnapshot]:
        """
        Validate requested lines against locked product rows.

        Args:
            session: Session of the order's unit of work
            lines: Requested (product_id, quantity) lines

        Returns:
            Snapshots keyed by product id

        Raises:
            ValidationFailedError: If the request is empty, a quantity is out
                of range, a product is missing or not orderable, or stock
                is insufficient
        """
        if not lines:
            raise ValidationFailedError("Order must contain at least one item")

        for line in lines:
            if not 1 <= line.quantity <= self.max_item_quantity:
                raise ValidationFailedError(
                    f"Quantity must be between 1 and {self.max_item_quantity}",
                    product_id=str(line.product_id),
                    quantity=line.quantity,
                )

        demand = aggregate_demand(lines)
        products = await self.repository.get_many_for_update(session, demand.keys())

        unavailable = [
            str(product_id)
            for product_id in demand
            if product_id not in products or not products[product_id].is_orderable
        ]
        if unavailable:
            logger.warning(
                "Order references unavailable products",
                product_ids=unavailable,
            )
            raise ValidationFailedError(
                "Some products are not available or not approved",
                product_ids=unavailable,
            )

        for product_id, requested in demand.items():
            product = products[product_id]
            if requested > product.stock_quantity:
                logger.warning(
                    "Insufficient stock",
                    product_id=str(product_id),
                    available=product.stock_quantity,
                    requested=requested,
                )
                raise ValidationFailedError(
                    f"Insufficient stock for product {product.name}. "
                    f"Available: {product.stock_quantity}, Requested: {requested}",
                    product_id=str(product_id),
                    available=product.stock_quantity,
                    requested=requested,
                )

        logger.debug("Inventory validated", product_count=len(demand))
        return {
            product_id: ProductSnapshot.from_product(products[product_id])
            for product_id in demand
        }

    async def decrement_stock(
        self,
        session: AsyncSession,
        snapshots: Mapping[uuid.UUID, ProductSnapshot],
        lines: Sequence[OrderLine],
    ) -> dict[uuid.UUID, int]:
        """
        Decrement stock for validated lines.

        Args:
            session: Same session that ran :meth:`validate`
            snapshots: Result of :meth:`validate`
            lines: The validated lines

        Returns:
            Remaining stock keyed by product id

        Raises:
            ValidationFailedError: If a product's stock changed since it was
                validated
        """
        remaining: dict[uuid.UUID, int] = {}

        for product_id, requested in aggregate_demand(lines).items():
            snapshot = snapshots[product_id]
            new_quantity = snapshot.stock_quantity - requested
            if new_quantity < 0:
                raise ValidationFailedError(
                    f"Insufficient stock for product {snapshot.name}. "
                    f"Available: {snapshot.stock_quantity}, Requested: {requested}",
                    product_id=str(product_id),
                )

            swapped = await self.repository.swap_stock(
                session,
                product_id,
                observed_quantity=snapshot.stock_quantity,
                new_quantity=new_quantity,
                stock_status=compute_stock_status(new_quantity, self.low_stock_threshold),
            )
            if not swapped:
                logger.warning(
                    "Stock changed during order placement",
                    product_id=str(product_id),
                    observed=snapshot.stock_quantity,
                )
                raise ValidationFailedError(
                    f"Stock for product {snapshot.name} changed while placing "
                    "the order, please retry",
                    product_id=str(product_id),
                )

            remaining[product_id] = new_quantity

        logger.info(
            "Stock decremented",
            products={str(k): v for k, v in remaining.items()},
        )
        return remaining
