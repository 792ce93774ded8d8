"""
Order data access repository.

This module implements the OrderRepository class providing async methods
for inserting orders with their items, probing order number uniqueness,
guarded status writes, and reading orders and their status history. The
repository holds no session; callers pass the session of their unit of
work to every method.
"""

import uuid
from typing import Any, Mapping, Optional, Sequence

from sqlalchemy import exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from solar_marketplace.core.logging import get_logger
from solar_marketplace.database.models.order import Order, OrderStatusHistory
from solar_marketplace.database.update_builder import UpdateBuilder
from solar_marketplace.services.orders.enums import OrderStatus, StatusType

logger = get_logger(__name__)

# Columns written by status transitions
STATUS_FIELDS = frozenset(
    {
        "status",
        "payment_status",
        "shipping_status",
        "installation_status",
        "paid_at",
        "actual_delivery_date",
        "updated_by",
    }
)


class OrderRepository:
    """Repository for orders and the order status ledger."""

    def __init__(self):
        self._status_update = UpdateBuilder(Order, STATUS_FIELDS)

    async def add(self, session: AsyncSession, order: Order) -> Order:
        """
        Insert an order with its items and flush.

        Raises:
            sqlalchemy.exc.IntegrityError: If the order number is taken or
                a constraint fails
        """
        session.add(order)
        await session.flush()

        logger.info(
            "Order inserted",
            order_id=str(order.id),
            order_number=order.order_number,
            item_count=len(order.items),
        )
        return order

    async def order_number_exists(self, session: AsyncSession, order_number: str) -> bool:
        """Check whether an order number is already taken."""
        result = await session.scalar(
            select(exists().where(Order.order_number == order_number))
        )
        return bool(result)

    async def get(
        self,
        session: AsyncSession,
        order_id: uuid.UUID,
        refresh: bool = False,
    ) -> Optional[Order]:
        """
        Get an order with items by id.

        Args:
            session: Active session
            order_id: Order identifier
            refresh: Reload attributes even if the order is already loaded
        """
        return await session.get(Order, order_id, populate_existing=refresh)

    async def get_for_update(
        self, session: AsyncSession, order_id: uuid.UUID
    ) -> Optional[Order]:
        """Get an order and lock its row until the transaction ends."""
        result = await session.execute(
            select(Order)
            .where(Order.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def transition_status(
        self,
        session: AsyncSession,
        order_id: uuid.UUID,
        column: str,
        expected: Any,
        changes: Mapping[str, Any],
    ) -> bool:
        """
        Write a status change guarded on the current value.

        Args:
            session: Active session
            order_id: Order identifier
            column: Status column being transitioned
            expected: Value the column must still hold
            changes: Columns to write

        Returns:
            True if the row still held ``expected`` and was updated
        """
        result = await session.execute(
            self._status_update.build(order_id, changes, expected={column: expected})
        )
        return result.rowcount == 1

    async def list_for_user(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        status: Optional[OrderStatus] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[Sequence[Order], int]:
        """
        List a customer's orders, newest first.

        Returns:
            Tuple of (orders, total count)
        """
        criteria = [Order.user_id == user_id]
        if status is not None:
            criteria.append(Order.status == status)

        total = await session.scalar(
            select(func.count()).select_from(Order).where(*criteria)
        )
        result = await session.execute(
            select(Order)
            .where(*criteria)
            .order_by(Order.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return result.scalars().all(), int(total or 0)

    async def list_status_history(
        self,
        session: AsyncSession,
        order_id: uuid.UUID,
        status_type: Optional[StatusType] = None,
    ) -> Sequence[OrderStatusHistory]:
        """List ledger rows for an order in the order they were written."""
        query = select(OrderStatusHistory).where(OrderStatusHistory.order_id == order_id)
        if status_type is not None:
            query = query.where(OrderStatusHistory.status_type == status_type)

        result = await session.execute(query.order_by(OrderStatusHistory.created_at.asc()))
        return result.scalars().all()
