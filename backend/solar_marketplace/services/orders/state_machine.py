"""Order state machine with transition validation and side effects.

This module implements the OrderStateMachine class, which resolves target
statuses for each status dimension, validates them against the transition
tables in :mod:`solar_marketplace.services.orders.enums`, and computes the
column values a legal transition writes. It performs no I/O; the workflow
engine persists what it returns.
"""

from datetime import datetime
from typing import Any, Callable, Dict, Optional, Union

from solar_marketplace.core.exceptions import InvalidTransitionError, ValidationFailedError
from solar_marketplace.core.logging import get_logger
from solar_marketplace.database.base import utcnow
from solar_marketplace.services.orders.enums import (
    STATUS_COLUMNS,
    STATUS_ENUMS,
    OrderStatus,
    PaymentStatus,
    StatusType,
    get_allowed_transitions,
    validate_status_transition,
)

logger = get_logger(__name__)


class OrderStateMachine:
    """State machine over the four order status dimensions.

    Side effects are keyed by (status_type, target status) and return the
    extra columns the transition stamps.
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._clock = clock
        self._side_effects: Dict[tuple, Callable[[], Dict[str, Any]]] = {
            (StatusType.ORDER, OrderStatus.DELIVERED): self._effect_delivered,
            (StatusType.PAYMENT, PaymentStatus.PAID): self._effect_paid,
        }

    @staticmethod
    def parse_status_type(value: Union[str, StatusType]) -> StatusType:
        """Resolve a status dimension from user input."""
        if isinstance(value, StatusType):
            return value
        try:
            return StatusType.from_string(value)
        except ValueError as e:
            raise ValidationFailedError(str(e), status_type=value) from e

    @staticmethod
    def parse_status(status_type: StatusType, value: Any) -> Any:
        """
        Resolve a target status within a dimension.

        Raises:
            ValidationFailedError: If the value is not a status of that
                dimension
        """
        enum_cls = STATUS_ENUMS[status_type]
        if isinstance(value, enum_cls):
            return value
        try:
            return enum_cls.from_string(str(value.value if hasattr(value, "value") else value))
        except ValueError as e:
            raise ValidationFailedError(
                str(e),
                status_type=status_type.value,
                status=str(value),
            ) from e

    @staticmethod
    def column_for(status_type: StatusType) -> str:
        """Order attribute holding a dimension."""
        return STATUS_COLUMNS[status_type]

    def current_status(self, order: Any, status_type: StatusType) -> Any:
        """Read the current value of a dimension from an order."""
        return getattr(order, self.column_for(status_type))

    def validate_transition(
        self,
        status_type: StatusType,
        current: Any,
        target: Any,
        order_id: Optional[Any] = None,
    ) -> None:
        """
        Validate ``current -> target`` within one dimension.

        Raises:
            InvalidTransitionError: If the table has no such transition;
                the error context lists the allowed targets
        """
        if not validate_status_transition(status_type, current, target):
            allowed = sorted(s.value for s in get_allowed_transitions(status_type, current))
            logger.warning(
                "Rejected status transition",
                order_id=str(order_id) if order_id else None,
                status_type=status_type.value,
                current_status=current.value,
                target_status=target.value,
            )
            raise InvalidTransitionError(
                f"Invalid {status_type.value.lower()} status transition from "
                f"{current.value} to {target.value}",
                status_type=status_type.value,
                current_status=current.value,
                target_status=target.value,
                allowed_transitions=allowed,
            )

        logger.debug(
            "Status transition validated",
            order_id=str(order_id) if order_id else None,
            transition=f"{current.value}->{target.value}",
            status_type=status_type.value,
        )

    def transition_values(self, status_type: StatusType, target: Any) -> Dict[str, Any]:
        """Columns written by a legal transition, side effects included."""
        values: Dict[str, Any] = {self.column_for(status_type): target}
        effect = self._side_effects.get((status_type, target))
        if effect is not None:
            values.update(effect())
        return values

    def _effect_delivered(self) -> Dict[str, Any]:
        return {"actual_delivery_date": self._clock()}

    def _effect_paid(self) -> Dict[str, Any]:
        return {"paid_at": self._clock()}
