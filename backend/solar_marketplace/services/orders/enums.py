"""Order status enums and legal-transition tables.

This module defines the four independently tracked status dimensions of an
order (order, payment, shipping, installation) together with the transition
table for each. The tables are plain data so the legal-transition set can be
inspected and tested without touching the database.
"""

from enum import Enum
from typing import Dict, Set, Type


class _StatusEnum(str, Enum):
    """Shared helpers for status enums."""

    @classmethod
    def from_string(cls, value: str) -> "_StatusEnum":
        """Convert string to enum member.

        Args:
            value: String representation of status (case-insensitive)

        Returns:
            Enum member

        Raises:
            ValueError: If value is not a valid status
        """
        try:
            return cls(value.strip().upper())
        except (ValueError, AttributeError):
            valid_values = ", ".join(s.value for s in cls)
            raise ValueError(
                f"Invalid {cls.__name__}: {value}. "
                f"Valid values are: {valid_values}"
            ) from None

    @property
    def display_name(self) -> str:
        """Get human-readable display name for status."""
        return self.value.replace("_", " ").title()


class OrderStatus(_StatusEnum):
    """Order lifecycle status.

    Valid transitions:
    - PENDING -> CONFIRMED, CANCELLED, REFUNDED
    - CONFIRMED -> PROCESSING, CANCELLED, REFUNDED
    - PROCESSING -> SHIPPED, CANCELLED, REFUNDED
    - SHIPPED -> DELIVERED, CANCELLED, REFUNDED
    - DELIVERED, CANCELLED, REFUNDED -> (terminal states)
    """

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"

    def is_terminal(self) -> bool:
        return not ORDER_STATUS_TRANSITIONS[self]


class PaymentStatus(_StatusEnum):
    """Payment collection status.

    Valid transitions:
    - PENDING -> PAID, PARTIALLY_PAID, FAILED
    - PARTIALLY_PAID -> PAID, FAILED, REFUNDED
    - PAID -> REFUNDED
    - FAILED -> PENDING (customer retries)
    - REFUNDED -> (terminal state)
    """

    PENDING = "PENDING"
    PAID = "PAID"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"

    def is_terminal(self) -> bool:
        return not PAYMENT_STATUS_TRANSITIONS[self]


class ShippingStatus(_StatusEnum):
    """Shipment status.

    Valid transitions:
    - NOT_SHIPPED -> PREPARING
    - PREPARING -> IN_TRANSIT, NOT_SHIPPED (preparation aborted)
    - IN_TRANSIT -> DELIVERED, RETURNED
    - DELIVERED -> RETURNED
    - RETURNED -> (terminal state)
    """

    NOT_SHIPPED = "NOT_SHIPPED"
    PREPARING = "PREPARING"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    RETURNED = "RETURNED"

    def is_terminal(self) -> bool:
        return not SHIPPING_STATUS_TRANSITIONS[self]


class InstallationStatus(_StatusEnum):
    """On-site installation status.

    Valid transitions:
    - PENDING -> SCHEDULED, CANCELLED
    - SCHEDULED -> IN_PROGRESS, CANCELLED
    - IN_PROGRESS -> COMPLETED, CANCELLED
    - NOT_REQUIRED, COMPLETED, CANCELLED -> (terminal states)
    """

    NOT_REQUIRED = "NOT_REQUIRED"
    PENDING = "PENDING"
    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    def is_terminal(self) -> bool:
        return not INSTALLATION_STATUS_TRANSITIONS[self]


class StatusType(_StatusEnum):
    """Status dimension recorded on each history row."""

    ORDER = "ORDER"
    PAYMENT = "PAYMENT"
    SHIPPING = "SHIPPING"
    INSTALLATION = "INSTALLATION"


_ORDER_EXITS = {OrderStatus.CANCELLED, OrderStatus.REFUNDED}

ORDER_STATUS_TRANSITIONS: Dict[OrderStatus, Set[OrderStatus]] = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED} | _ORDER_EXITS,
    OrderStatus.CONFIRMED: {OrderStatus.PROCESSING} | _ORDER_EXITS,
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED} | _ORDER_EXITS,
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED} | _ORDER_EXITS,
    OrderStatus.DELIVERED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
    OrderStatus.REFUNDED: set(),  # Terminal
}

PAYMENT_STATUS_TRANSITIONS: Dict[PaymentStatus, Set[PaymentStatus]] = {
    PaymentStatus.PENDING: {
        PaymentStatus.PAID,
        PaymentStatus.PARTIALLY_PAID,
        PaymentStatus.FAILED,
    },
    PaymentStatus.PARTIALLY_PAID: {
        PaymentStatus.PAID,
        PaymentStatus.FAILED,
        PaymentStatus.REFUNDED,
    },
    PaymentStatus.PAID: {PaymentStatus.REFUNDED},
    PaymentStatus.FAILED: {PaymentStatus.PENDING},
    PaymentStatus.REFUNDED: set(),  # Terminal
}

SHIPPING_STATUS_TRANSITIONS: Dict[ShippingStatus, Set[ShippingStatus]] = {
    ShippingStatus.NOT_SHIPPED: {ShippingStatus.PREPARING},
    ShippingStatus.PREPARING: {
        ShippingStatus.IN_TRANSIT,
        ShippingStatus.NOT_SHIPPED,
    },
    ShippingStatus.IN_TRANSIT: {
        ShippingStatus.DELIVERED,
        ShippingStatus.RETURNED,
    },
    ShippingStatus.DELIVERED: {ShippingStatus.RETURNED},
    ShippingStatus.RETURNED: set(),  # Terminal
}

INSTALLATION_STATUS_TRANSITIONS: Dict[InstallationStatus, Set[InstallationStatus]] = {
    InstallationStatus.NOT_REQUIRED: set(),  # Terminal
    InstallationStatus.PENDING: {
        InstallationStatus.SCHEDULED,
        InstallationStatus.CANCELLED,
    },
    InstallationStatus.SCHEDULED: {
        InstallationStatus.IN_PROGRESS,
        InstallationStatus.CANCELLED,
    },
    InstallationStatus.IN_PROGRESS: {
        InstallationStatus.COMPLETED,
        InstallationStatus.CANCELLED,
    },
    InstallationStatus.COMPLETED: set(),  # Terminal
    InstallationStatus.CANCELLED: set(),  # Terminal
}

STATUS_TRANSITIONS: Dict[StatusType, Dict] = {
    StatusType.ORDER: ORDER_STATUS_TRANSITIONS,
    StatusType.PAYMENT: PAYMENT_STATUS_TRANSITIONS,
    StatusType.SHIPPING: SHIPPING_STATUS_TRANSITIONS,
    StatusType.INSTALLATION: INSTALLATION_STATUS_TRANSITIONS,
}

STATUS_ENUMS: Dict[StatusType, Type[_StatusEnum]] = {
    StatusType.ORDER: OrderStatus,
    StatusType.PAYMENT: PaymentStatus,
    StatusType.SHIPPING: ShippingStatus,
    StatusType.INSTALLATION: InstallationStatus,
}

# Order model attribute holding each dimension
STATUS_COLUMNS: Dict[StatusType, str] = {
    StatusType.ORDER: "status",
    StatusType.PAYMENT: "payment_status",
    StatusType.SHIPPING: "shipping_status",
    StatusType.INSTALLATION: "installation_status",
}


def get_allowed_transitions(status_type: StatusType, current: _StatusEnum) -> Set:
    """Get the statuses reachable from ``current`` in one dimension."""
    return set(STATUS_TRANSITIONS[status_type].get(current, set()))


def validate_status_transition(
    status_type: StatusType, current: _StatusEnum, target: _StatusEnum
) -> bool:
    """Check whether ``current -> target`` is legal in one dimension."""
    return target in STATUS_TRANSITIONS[status_type].get(current, set())
