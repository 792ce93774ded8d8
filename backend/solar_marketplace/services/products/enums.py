"""Product lifecycle, approval, stock and category enums."""

from enum import Enum


class ProductStatus(str, Enum):
    """Publish status of a product."""

    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    DISCONTINUED = "DISCONTINUED"


class ApprovalStatus(str, Enum):
    """Admin review status of a product."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CHANGES_REQUIRED = "CHANGES_REQUIRED"

    @property
    def is_decided(self) -> bool:
        return self is not ApprovalStatus.PENDING


class ApprovalAction(str, Enum):
    """Action recorded on each approval history row."""

    SUBMIT = "SUBMIT"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    REQUEST_CHANGES = "REQUEST_CHANGES"

    @property
    def is_admin_action(self) -> bool:
        return self is not ApprovalAction.SUBMIT


class StockStatus(str, Enum):
    """Derived availability of a product."""

    IN_STOCK = "IN_STOCK"
    LOW_STOCK = "LOW_STOCK"
    OUT_OF_STOCK = "OUT_OF_STOCK"


class ProductCategory(str, Enum):
    """Product category, also the specifications discriminator."""

    INVERTER = "INVERTER"
    BATTERY = "BATTERY"
    SOLAR_PANEL = "SOLAR_PANEL"
    FULL_SYSTEM = "FULL_SYSTEM"


def compute_stock_status(stock_quantity: int, low_stock_threshold: int = 10) -> StockStatus:
    """
    Derive stock status from a quantity.

    Args:
        stock_quantity: Units on hand
        low_stock_threshold: Quantity at or below which stock is low

    Returns:
        OUT_OF_STOCK at zero, LOW_STOCK at or below the threshold,
        IN_STOCK otherwise
    """
    if stock_quantity <= 0:
        return StockStatus.OUT_OF_STOCK
    if stock_quantity <= low_stock_threshold:
        return StockStatus.LOW_STOCK
    return StockStatus.IN_STOCK
