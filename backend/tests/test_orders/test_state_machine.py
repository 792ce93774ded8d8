"""
Test suite for the order status transition tables and OrderStateMachine.

Covers every status dimension, terminal states, side effects and error
context of rejected transitions.
"""

from datetime import datetime, timezone
from unittest.mock import Mock

import pytest

from solar_marketplace.core.exceptions import InvalidTransitionError, ValidationFailedError
from solar_marketplace.services.orders.enums import (
    INSTALLATION_STATUS_TRANSITIONS,
    ORDER_STATUS_TRANSITIONS,
    PAYMENT_STATUS_TRANSITIONS,
    SHIPPING_STATUS_TRANSITIONS,
    InstallationStatus,
    OrderStatus,
    PaymentStatus,
    ShippingStatus,
    StatusType,
    get_allowed_transitions,
    validate_status_transition,
)
from solar_marketplace.services.orders.state_machine import OrderStateMachine

FIXED_NOW = datetime(2026, 10, 17, 9, 30, tzinfo=timezone.utc)


# ============================================================================
# Test Fixtures
# ============================================================================


@pytest.fixture
def state_machine() -> OrderStateMachine:
    """Create a state machine with a fixed clock.

    Returns:
        OrderStateMachine instance for testing
    """
    return OrderStateMachine(clock=lambda: FIXED_NOW)


@pytest.fixture
def mock_order() -> Mock:
    """Create mock order in its initial state.

    Returns:
        Mock order with all four status dimensions set
    """
    order = Mock()
    order.status = OrderStatus.PENDING
    order.payment_status = PaymentStatus.PENDING
    order.shipping_status = ShippingStatus.NOT_SHIPPED
    order.installation_status = InstallationStatus.NOT_REQUIRED
    return order


# ============================================================================
# Transition Table Tests
# ============================================================================


class TestOrderTransitions:
    """Test the ORDER dimension table."""

    @pytest.mark.parametrize(
        "current,target",
        [
            (OrderStatus.PENDING, OrderStatus.CONFIRMED),
            (OrderStatus.CONFIRMED, OrderStatus.PROCESSING),
            (OrderStatus.PROCESSING, OrderStatus.SHIPPED),
            (OrderStatus.SHIPPED, OrderStatus.DELIVERED),
        ],
    )
    def test_forward_path_is_allowed(self, current, target):
        assert validate_status_transition(StatusType.ORDER, current, target)

    @pytest.mark.parametrize(
        "current",
        [
            OrderStatus.PENDING,
            OrderStatus.CONFIRMED,
            OrderStatus.PROCESSING,
            OrderStatus.SHIPPED,
        ],
    )
    def test_cancel_and_refund_reachable_from_non_terminal(self, current):
        allowed = get_allowed_transitions(StatusType.ORDER, current)
        assert OrderStatus.CANCELLED in allowed
        assert OrderStatus.REFUNDED in allowed

    @pytest.mark.parametrize(
        "terminal",
        [OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.REFUNDED],
    )
    def test_terminal_states_have_no_exits(self, terminal):
        assert ORDER_STATUS_TRANSITIONS[terminal] == set()
        assert terminal.is_terminal()

    def test_skipping_states_is_rejected(self):
        assert not validate_status_transition(
            StatusType.ORDER, OrderStatus.PENDING, OrderStatus.SHIPPED
        )
        assert not validate_status_transition(
            StatusType.ORDER, OrderStatus.CONFIRMED, OrderStatus.PENDING
        )

    def test_every_order_status_has_entry(self):
        assert set(ORDER_STATUS_TRANSITIONS) == set(OrderStatus)


class TestSubStatusTransitions:
    """Test the payment, shipping and installation tables."""

    def test_payment_table(self):
        assert PAYMENT_STATUS_TRANSITIONS[PaymentStatus.PENDING] == {
            PaymentStatus.PAID,
            PaymentStatus.PARTIALLY_PAID,
            PaymentStatus.FAILED,
        }
        assert PAYMENT_STATUS_TRANSITIONS[PaymentStatus.FAILED] == {PaymentStatus.PENDING}
        assert PAYMENT_STATUS_TRANSITIONS[PaymentStatus.PAID] == {PaymentStatus.REFUNDED}
        assert PAYMENT_STATUS_TRANSITIONS[PaymentStatus.REFUNDED] == set()

    def test_shipping_table(self):
        assert SHIPPING_STATUS_TRANSITIONS[ShippingStatus.NOT_SHIPPED] == {
            ShippingStatus.PREPARING
        }
        assert ShippingStatus.RETURNED in SHIPPING_STATUS_TRANSITIONS[ShippingStatus.DELIVERED]
        assert SHIPPING_STATUS_TRANSITIONS[ShippingStatus.RETURNED] == set()

    def test_installation_not_required_is_terminal(self):
        assert INSTALLATION_STATUS_TRANSITIONS[InstallationStatus.NOT_REQUIRED] == set()
        assert not validate_status_transition(
            StatusType.INSTALLATION,
            InstallationStatus.NOT_REQUIRED,
            InstallationStatus.SCHEDULED,
        )

    def test_installation_cancel_from_in_progress(self):
        assert validate_status_transition(
            StatusType.INSTALLATION,
            InstallationStatus.IN_PROGRESS,
            InstallationStatus.CANCELLED,
        )


# ============================================================================
# State Machine Tests
# ============================================================================


class TestParsing:
    """Test target status resolution."""

    def test_parse_status_accepts_lowercase(self, state_machine):
        assert state_machine.parse_status(StatusType.ORDER, "confirmed") is OrderStatus.CONFIRMED

    def test_parse_status_accepts_enum(self, state_machine):
        assert state_machine.parse_status(StatusType.PAYMENT, PaymentStatus.PAID) is PaymentStatus.PAID

    def test_parse_status_rejects_value_of_other_dimension(self, state_machine):
        with pytest.raises(ValidationFailedError):
            state_machine.parse_status(StatusType.ORDER, "PREPARING")

    def test_parse_status_type_rejects_unknown(self, state_machine):
        with pytest.raises(ValidationFailedError):
            state_machine.parse_status_type("WAREHOUSE")

    def test_current_status_reads_dimension_column(self, state_machine, mock_order):
        assert (
            state_machine.current_status(mock_order, StatusType.SHIPPING)
            is ShippingStatus.NOT_SHIPPED
        )


class TestValidateTransition:
    """Test transition validation errors."""

    def test_valid_transition_passes(self, state_machine):
        state_machine.validate_transition(
            StatusType.ORDER, OrderStatus.PENDING, OrderStatus.CONFIRMED
        )

    def test_invalid_transition_lists_allowed_targets(self, state_machine):
        with pytest.raises(InvalidTransitionError) as exc_info:
            state_machine.validate_transition(
                StatusType.ORDER, OrderStatus.PENDING, OrderStatus.DELIVERED
            )

        context = exc_info.value.context
        assert context["current_status"] == "PENDING"
        assert context["target_status"] == "DELIVERED"
        assert context["allowed_transitions"] == ["CANCELLED", "CONFIRMED", "REFUNDED"]

    def test_transition_out_of_terminal_state_fails(self, state_machine):
        with pytest.raises(InvalidTransitionError) as exc_info:
            state_machine.validate_transition(
                StatusType.PAYMENT, PaymentStatus.REFUNDED, PaymentStatus.PAID
            )
        assert exc_info.value.context["allowed_transitions"] == []


class TestTransitionValues:
    """Test columns written by transitions."""

    def test_delivered_stamps_delivery_date(self, state_machine):
        values = state_machine.transition_values(StatusType.ORDER, OrderStatus.DELIVERED)
        assert values == {
            "status": OrderStatus.DELIVERED,
            "actual_delivery_date": FIXED_NOW,
        }

    def test_paid_stamps_paid_at(self, state_machine):
        values = state_machine.transition_values(StatusType.PAYMENT, PaymentStatus.PAID)
        assert values == {"payment_status": PaymentStatus.PAID, "paid_at": FIXED_NOW}

    def test_plain_transition_writes_only_column(self, state_machine):
        values = state_machine.transition_values(
            StatusType.SHIPPING, ShippingStatus.PREPARING
        )
        assert values == {"shipping_status": ShippingStatus.PREPARING}
