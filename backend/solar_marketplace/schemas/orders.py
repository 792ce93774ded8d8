"""
Order request and response schemas.

Requests are validated at the API boundary with Pydantic; responses are
built straight from ORM entities via ``from_attributes``.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from solar_marketplace.services.orders.enums import (
    InstallationStatus,
    OrderStatus,
    PaymentStatus,
    ShippingStatus,
    StatusType,
)


class AddressSchema(BaseModel):
    """Postal address."""

    model_config = ConfigDict(str_strip_whitespace=True)

    line1: str = Field(..., min_length=5, max_length=255, description="Street address")
    line2: Optional[str] = Field(None, max_length=255, description="Additional address line")
    city: str = Field(..., min_length=2, max_length=100, description="City")
    region: str = Field(..., min_length=2, max_length=100, description="Region or province")
    postal_code: Optional[str] = Field(None, max_length=20, description="Postal code")
    country: str = Field("SAU", min_length=3, max_length=3, description="ISO 3166-1 alpha-3")

    @field_validator("country")
    @classmethod
    def uppercase_country(cls, v: str) -> str:
        return v.upper()


class OrderLineRequest(BaseModel):
    """One requested product and quantity."""

    product_id: uuid.UUID = Field(..., description="Product to order")
    quantity: int = Field(..., ge=1, description="Units to order")
    installation_notes: Optional[str] = Field(None, max_length=500)


class OrderCreateRequest(BaseModel):
    """Order placement request."""

    model_config = ConfigDict(str_strip_whitespace=True)

    user_id: uuid.UUID = Field(..., description="Customer placing the order")
    customer_name: str = Field(..., min_length=2, max_length=255)
    customer_email: str = Field(..., min_length=3, max_length=255)
    customer_phone: str = Field(..., min_length=8, max_length=20)
    shipping_address: AddressSchema
    billing_same_as_shipping: bool = True
    billing_address: Optional[AddressSchema] = None
    items: list[OrderLineRequest] = Field(..., min_length=1, description="Order lines")
    special_instructions: Optional[str] = Field(None, max_length=1000)
    payment_method: Optional[str] = Field(None, max_length=50)
    installation_required: bool = False

    @field_validator("customer_email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        local, sep, domain = v.partition("@")
        if not sep or not local or "." not in domain:
            raise ValueError("Invalid email address")
        return v.lower()

    @model_validator(mode="after")
    def require_billing_address(self) -> "OrderCreateRequest":
        if not self.billing_same_as_shipping and self.billing_address is None:
            raise ValueError(
                "billing_address is required when billing_same_as_shipping is false"
            )
        return self


class OrderStatusUpdateRequest(BaseModel):
    """Status transition request for one status dimension."""

    status: str = Field(..., min_length=1, max_length=32, description="Target status")
    status_type: StatusType = Field(StatusType.ORDER, description="Status dimension")
    reason: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = Field(None, max_length=1000)


class OrderItemResponse(BaseModel):
    """Line item snapshot."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    product_id: uuid.UUID
    contractor_id: uuid.UUID
    product_name: str
    product_name_ar: Optional[str] = None
    product_sku: Optional[str] = None
    product_brand: str
    product_model: Optional[str] = None
    unit_price: Decimal
    quantity: int
    line_total: Decimal
    specifications: dict
    installation_notes: Optional[str] = None
    warranty_period_months: int


class OrderResponse(BaseModel):
    """Order with items."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    order_number: str
    user_id: uuid.UUID
    customer_name: str
    customer_email: str
    customer_phone: str
    shipping_address: dict
    billing_same_as_shipping: bool
    billing_address: Optional[dict] = None
    subtotal: Decimal
    tax_amount: Decimal
    shipping_cost: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    currency: str
    status: OrderStatus
    payment_status: PaymentStatus
    shipping_status: ShippingStatus
    installation_status: InstallationStatus
    installation_required: bool
    special_instructions: Optional[str] = None
    payment_method: Optional[str] = None
    paid_at: Optional[datetime] = None
    actual_delivery_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    items: list[OrderItemResponse]


class OrderListResponse(BaseModel):
    """Paginated orders."""

    orders: list[OrderResponse]
    total: int
    skip: int
    limit: int


class OrderStatusHistoryResponse(BaseModel):
    """Order ledger row."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    order_id: uuid.UUID
    previous_status: Optional[str] = None
    new_status: str
    status_type: StatusType
    changed_by: uuid.UUID
    changed_by_role: str
    reason: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
