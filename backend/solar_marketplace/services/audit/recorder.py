"""
Audit trail recorder for order and product transitions.

The recorder appends exactly one immutable ledger row per call to the
caller's unit of work. It never reads the database and never rejects a row
based on its content; every business rule is enforced by the calling
workflow engine before a transition reaches the ledger.
"""

import uuid
from enum import Enum
from typing import Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from solar_marketplace.core.logging import get_logger
from solar_marketplace.database.models.order import OrderStatusHistory
from solar_marketplace.database.models.product import ProductApprovalHistory
from solar_marketplace.services.orders.enums import StatusType
from solar_marketplace.services.products.enums import ApprovalAction

logger = get_logger(__name__)

StatusValue = Union[str, Enum, None]


def _status_text(value: StatusValue) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


class AuditTrailRecorder:
    """Stateless appender for the order and product ledgers."""

    async def record_order_transition(
        self,
        session: AsyncSession,
        order_id: uuid.UUID,
        previous_status: StatusValue,
        new_status: StatusValue,
        status_type: StatusType,
        actor_id: uuid.UUID,
        actor_role: Union[str, Enum],
        reason: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> OrderStatusHistory:
        """
        Append one order status history row.

        Args:
            session: Session of the unit of work performing the transition
            order_id: Order identifier
            previous_status: Status before the transition, None on creation
            new_status: Status after the transition
            status_type: Dimension that changed
            actor_id: Acting principal
            actor_role: Role of the acting principal
            reason: Short reason
            notes: Free-text notes

        Returns:
            The flushed history row
        """
        entry = OrderStatusHistory(
            id=uuid.uuid4(),
            order_id=order_id,
            previous_status=_status_text(previous_status),
            new_status=_status_text(new_status),
            status_type=status_type,
            changed_by=actor_id,
            changed_by_role=_status_text(actor_role),
            reason=reason,
            notes=notes,
        )
        session.add(entry)
        await session.flush()

        logger.info(
            "Order transition recorded",
            order_id=str(order_id),
            status_type=status_type.value,
            previous_status=entry.previous_status,
            new_status=entry.new_status,
            actor_id=str(actor_id),
        )
        return entry

    async def record_product_transition(
        self,
        session: AsyncSession,
        product_id: uuid.UUID,
        previous_status: StatusValue,
        new_status: StatusValue,
        action: ApprovalAction,
        actor_id: uuid.UUID,
        admin_notes: Optional[str] = None,
        rejection_reason: Optional[str] = None,
        changes_required: Optional[str] = None,
    ) -> ProductApprovalHistory:
        """
        Append one product approval history row.

        Returns:
            The flushed history row
        """
        entry = ProductApprovalHistory(
            id=uuid.uuid4(),
            product_id=product_id,
            previous_status=_status_text(previous_status),
            new_status=_status_text(new_status),
            action_type=action,
            admin_id=actor_id,
            admin_notes=admin_notes,
            rejection_reason=rejection_reason,
            changes_required=changes_required,
        )
        session.add(entry)
        await session.flush()

        logger.info(
            "Product transition recorded",
            product_id=str(product_id),
            action=action.value,
            previous_status=entry.previous_status,
            new_status=entry.new_status,
            actor_id=str(actor_id),
        )
        return entry
