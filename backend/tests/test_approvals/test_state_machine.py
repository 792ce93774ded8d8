"""Tests for the product approval transition table."""

import pytest

from solar_marketplace.core.exceptions import AlreadyDecidedError, InvalidTransitionError
from solar_marketplace.services.approvals.state_machine import (
    APPROVAL_TRANSITIONS,
    resolve_approval_transition,
)
from solar_marketplace.services.products.enums import (
    ApprovalAction,
    ApprovalStatus,
    ProductStatus,
)


class TestAdminActions:
    """Test approve, reject and request-changes resolution."""

    @pytest.mark.parametrize(
        "action,expected",
        [
            (ApprovalAction.APPROVE, (ApprovalStatus.APPROVED, ProductStatus.ACTIVE)),
            (ApprovalAction.REJECT, (ApprovalStatus.REJECTED, ProductStatus.INACTIVE)),
            (
                ApprovalAction.REQUEST_CHANGES,
                (ApprovalStatus.CHANGES_REQUIRED, ProductStatus.DRAFT),
            ),
        ],
    )
    def test_pending_product_can_be_decided(self, action, expected):
        result = resolve_approval_transition(
            ProductStatus.PENDING_APPROVAL, ApprovalStatus.PENDING, action
        )
        assert result == expected

    @pytest.mark.parametrize(
        "decided",
        [
            ApprovalStatus.APPROVED,
            ApprovalStatus.REJECTED,
            ApprovalStatus.CHANGES_REQUIRED,
        ],
    )
    @pytest.mark.parametrize(
        "action",
        [ApprovalAction.APPROVE, ApprovalAction.REJECT, ApprovalAction.REQUEST_CHANGES],
    )
    def test_decided_product_raises_already_decided(self, decided, action):
        with pytest.raises(AlreadyDecidedError) as exc_info:
            resolve_approval_transition(ProductStatus.ACTIVE, decided, action)

        assert exc_info.value.context["approval_status"] == decided.value

    def test_already_decided_is_invalid_transition(self):
        assert issubclass(AlreadyDecidedError, InvalidTransitionError)


class TestSubmit:
    """Test submission resolution."""

    @pytest.mark.parametrize(
        "approval", [ApprovalStatus.PENDING, ApprovalStatus.CHANGES_REQUIRED]
    )
    def test_draft_can_be_submitted(self, approval):
        result = resolve_approval_transition(
            ProductStatus.DRAFT, approval, ApprovalAction.SUBMIT
        )
        assert result == (ApprovalStatus.PENDING, ProductStatus.PENDING_APPROVAL)

    @pytest.mark.parametrize(
        "status,approval",
        [
            (ProductStatus.PENDING_APPROVAL, ApprovalStatus.PENDING),
            (ProductStatus.ACTIVE, ApprovalStatus.APPROVED),
            (ProductStatus.INACTIVE, ApprovalStatus.REJECTED),
            (ProductStatus.DRAFT, ApprovalStatus.REJECTED),
        ],
    )
    def test_illegal_submission(self, status, approval):
        with pytest.raises(InvalidTransitionError) as exc_info:
            resolve_approval_transition(status, approval, ApprovalAction.SUBMIT)

        assert not isinstance(exc_info.value, AlreadyDecidedError)


def test_table_has_five_entries():
    assert len(APPROVAL_TRANSITIONS) == 5
