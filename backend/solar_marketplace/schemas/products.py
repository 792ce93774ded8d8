"""
Product, specification and approval schemas.

Specifications are a discriminated union keyed by ``category``: each
product category has its own typed field set, and ``extensions`` is the
only place for free-form attributes.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    model_validator,
)

from solar_marketplace.services.products.enums import (
    ApprovalAction,
    ApprovalStatus,
    ProductCategory,
    ProductStatus,
    StockStatus,
)

PositiveDecimal = Annotated[Decimal, Field(gt=0)]


# ============================================================================
# Specifications
# ============================================================================


class _SpecificationsBase(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    warranty_months: Optional[int] = Field(None, ge=0, le=600)
    extensions: dict[str, str] = Field(
        default_factory=dict,
        description="Free-form attributes without a typed field",
    )


class InverterSpecifications(_SpecificationsBase):
    category: Literal["INVERTER"] = "INVERTER"
    model: Optional[str] = Field(None, max_length=100)
    inverter_type: Optional[str] = Field(None, max_length=50, description="Hybrid, grid-tie, off-grid")
    power_rating_kw: Optional[PositiveDecimal] = None
    mppt_count: Optional[int] = Field(None, ge=0, le=64)
    mppt_voltage_range: Optional[str] = Field(None, max_length=50)
    max_input_current_a: Optional[PositiveDecimal] = None
    output_phase: Optional[Literal["SINGLE", "THREE"]] = None
    communication: Optional[str] = Field(None, max_length=100)
    weight_kg: Optional[PositiveDecimal] = None


class BatterySpecifications(_SpecificationsBase):
    category: Literal["BATTERY"] = "BATTERY"
    capacity_kwh: Optional[PositiveDecimal] = None
    voltage_v: Optional[PositiveDecimal] = None
    current_ah: Optional[PositiveDecimal] = None
    cycle_life: Optional[int] = Field(None, ge=0)
    communication: Optional[str] = Field(None, max_length=100)
    weight_kg: Optional[PositiveDecimal] = None
    dimensions_mm: Optional[str] = Field(None, max_length=50)


class SolarPanelSpecifications(_SpecificationsBase):
    category: Literal["SOLAR_PANEL"] = "SOLAR_PANEL"
    max_power_w: Optional[PositiveDecimal] = None
    efficiency_percent: Optional[Decimal] = Field(None, gt=0, le=100)
    binding_specifications: Optional[str] = Field(None, max_length=100)
    operating_voltage_v: Optional[PositiveDecimal] = None
    working_current_a: Optional[PositiveDecimal] = None
    working_temperature: Optional[str] = Field(None, max_length=50)
    weight_kg: Optional[PositiveDecimal] = None
    dimensions_mm: Optional[str] = Field(None, max_length=50)


class FullSystemSpecifications(_SpecificationsBase):
    category: Literal["FULL_SYSTEM"] = "FULL_SYSTEM"
    system_power_kw: Optional[PositiveDecimal] = None
    system_peak_kw: Optional[PositiveDecimal] = None
    ac_output: Optional[str] = Field(None, max_length=50)
    battery_capacity_kwh: Optional[PositiveDecimal] = None
    charging_power_kw: Optional[PositiveDecimal] = None
    solar_configuration: Optional[str] = Field(None, max_length=100)
    daily_generation_kwh: Optional[PositiveDecimal] = None
    total_weight_kg: Optional[PositiveDecimal] = None
    dimensions: list[str] = Field(default_factory=list, max_length=4)


ProductSpecifications = Annotated[
    Union[
        InverterSpecifications,
        BatterySpecifications,
        SolarPanelSpecifications,
        FullSystemSpecifications,
    ],
    Field(discriminator="category"),
]

_specifications_adapter: TypeAdapter[ProductSpecifications] = TypeAdapter(
    ProductSpecifications
)


def parse_specifications(data: Any) -> ProductSpecifications:
    """
    Validate a raw specifications document into its category variant.

    Raises:
        pydantic.ValidationError: If the document does not match any variant
    """
    return _specifications_adapter.validate_python(data)


def dump_specifications(specifications: ProductSpecifications) -> dict[str, Any]:
    """Serialize specifications for JSON storage."""
    return specifications.model_dump(mode="json", exclude_none=True)


# ============================================================================
# Products
# ============================================================================


class ProductCreateRequest(BaseModel):
    """New product submitted by a contractor."""

    model_config = ConfigDict(str_strip_whitespace=True)

    category_id: Optional[uuid.UUID] = None
    product_category: ProductCategory
    name: str = Field(..., min_length=2, max_length=255)
    name_ar: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    brand: str = Field(..., min_length=1, max_length=100)
    model: Optional[str] = Field(None, max_length=100)
    sku: Optional[str] = Field(None, max_length=100)
    specifications: ProductSpecifications
    price: PositiveDecimal = Field(..., max_digits=12, decimal_places=2)
    currency: str = Field("SAR", min_length=3, max_length=3)
    vat_included: bool = True
    stock_quantity: int = Field(0, ge=0)

    @model_validator(mode="after")
    def specifications_match_category(self) -> "ProductCreateRequest":
        if self.specifications.category != self.product_category:
            raise ValueError(
                f"specifications category {self.specifications.category} "
                f"does not match product category {self.product_category.value}"
            )
        return self


class ProductUpdateRequest(BaseModel):
    """Partial product edit. Only fields that are set are written."""

    model_config = ConfigDict(str_strip_whitespace=True)

    category_id: Optional[uuid.UUID] = None
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    name_ar: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    brand: Optional[str] = Field(None, min_length=1, max_length=100)
    model: Optional[str] = Field(None, max_length=100)
    sku: Optional[str] = Field(None, max_length=100)
    specifications: Optional[ProductSpecifications] = None
    price: Optional[PositiveDecimal] = Field(None, max_digits=12, decimal_places=2)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    vat_included: Optional[bool] = None
    stock_quantity: Optional[int] = Field(None, ge=0)


class ProductResponse(BaseModel):
    """Product as stored."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    contractor_id: uuid.UUID
    category_id: Optional[uuid.UUID] = None
    product_category: ProductCategory
    name: str
    name_ar: Optional[str] = None
    description: Optional[str] = None
    brand: str
    model: Optional[str] = None
    sku: Optional[str] = None
    specifications: dict
    price: Decimal
    currency: str
    vat_included: bool
    stock_quantity: int
    stock_status: StockStatus
    status: ProductStatus
    approval_status: ApprovalStatus
    approved_by: Optional[uuid.UUID] = None
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    admin_notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


# ============================================================================
# Approvals
# ============================================================================


class ApproveRequest(BaseModel):
    admin_notes: Optional[str] = Field(None, max_length=1000)


class RejectRequest(BaseModel):
    rejection_reason: str = Field("", max_length=500)
    admin_notes: Optional[str] = Field(None, max_length=1000)


class RequestChangesRequest(BaseModel):
    changes_required: str = Field("", max_length=1000)
    admin_notes: Optional[str] = Field(None, max_length=1000)


class BulkApproveRequest(BaseModel):
    """Products to approve together with shared notes."""

    product_ids: list[uuid.UUID] = Field(default_factory=list)
    admin_notes: Optional[str] = Field(None, max_length=1000)


class BulkApprovalFailureResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: uuid.UUID
    kind: str
    error: str


class BulkApproveResponse(BaseModel):
    approved: list[ProductResponse]
    failures: list[BulkApprovalFailureResponse]
    total_requested: int
    approved_count: int
    failed_count: int


class ApprovalHistoryResponse(BaseModel):
    """Approval ledger row."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    product_id: uuid.UUID
    previous_status: Optional[str] = None
    new_status: str
    action_type: ApprovalAction
    admin_id: uuid.UUID
    admin_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    changes_required: Optional[str] = None
    created_at: datetime


class ProductListResponse(BaseModel):
    products: list[ProductResponse]
    total: int
    skip: int
    limit: int


class ApprovalHistoryListResponse(BaseModel):
    history: list[ApprovalHistoryResponse]
    total: int
    skip: int
    limit: int
