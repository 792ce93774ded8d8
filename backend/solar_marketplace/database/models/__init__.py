"""ORM models; importing this package registers every table on the metadata."""

from solar_marketplace.database.models.order import Order, OrderItem, OrderStatusHistory
from solar_marketplace.database.models.product import Product, ProductApprovalHistory

__all__ = [
    "Order",
    "OrderItem",
    "OrderStatusHistory",
    "Product",
    "ProductApprovalHistory",
]
