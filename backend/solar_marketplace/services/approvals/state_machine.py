"""Product approval state machine."""

from typing import Dict, Tuple

from solar_marketplace.core.exceptions import AlreadyDecidedError, InvalidTransitionError
from solar_marketplace.core.logging import get_logger
from solar_marketplace.services.products.enums import (
    ApprovalAction,
    ApprovalStatus,
    ProductStatus,
)

logger = get_logger(__name__)

# (current approval status, action) -> (new approval status, new product status)
APPROVAL_TRANSITIONS: Dict[
    Tuple[ApprovalStatus, ApprovalAction], Tuple[ApprovalStatus, ProductStatus]
] = {
    (ApprovalStatus.PENDING, ApprovalAction.APPROVE): (
        ApprovalStatus.APPROVED,
        ProductStatus.ACTIVE,
    ),
    (ApprovalStatus.PENDING, ApprovalAction.REJECT): (
        ApprovalStatus.REJECTED,
        ProductStatus.INACTIVE,
    ),
    (ApprovalStatus.PENDING, ApprovalAction.REQUEST_CHANGES): (
        ApprovalStatus.CHANGES_REQUIRED,
        ProductStatus.DRAFT,
    ),
    (ApprovalStatus.PENDING, ApprovalAction.SUBMIT): (
        ApprovalStatus.PENDING,
        ProductStatus.PENDING_APPROVAL,
    ),
    (ApprovalStatus.CHANGES_REQUIRED, ApprovalAction.SUBMIT): (
        ApprovalStatus.PENDING,
        ProductStatus.PENDING_APPROVAL,
    ),
}

# A CHANGES_REQUIRED product is put back to DRAFT, so DRAFT covers both
SUBMITTABLE_PRODUCT_STATUSES = frozenset({ProductStatus.DRAFT})


def resolve_approval_transition(
    product_status: ProductStatus,
    approval_status: ApprovalStatus,
    action: ApprovalAction,
) -> Tuple[ApprovalStatus, ProductStatus]:
    """
    Resolve the target state of an approval action.

    Args:
        product_status: Current publish status
        approval_status: Current review status
        action: Requested action

    Returns:
        Tuple of (new approval status, new product status)

    Raises:
        AlreadyDecidedError: If an admin action targets a product that is
            not awaiting review
        InvalidTransitionError: If a submission is not allowed from the
            current state
    """
    target = APPROVAL_TRANSITIONS.get((approval_status, action))

    if action.is_admin_action:
        if target is None:
            raise AlreadyDecidedError(
                f"Product has already been {approval_status.value.lower()}",
                approval_status=approval_status.value,
                action=action.value,
            )
        return target

    if target is None or product_status not in SUBMITTABLE_PRODUCT_STATUSES:
        logger.debug(
            "Submission rejected",
            product_status=product_status.value,
            approval_status=approval_status.value,
        )
        raise InvalidTransitionError(
            f"Cannot submit a product with status {product_status.value} "
            f"and approval status {approval_status.value}",
            product_status=product_status.value,
            approval_status=approval_status.value,
            action=action.value,
        )
    return target
