"""
Integration tests for ProductCatalogService.

Tests cover draft creation, ownership and review-lock checks on edits,
nullable field clearing and stock status recomputation.
"""

import uuid
from decimal import Decimal

import pytest

from solar_marketplace.core.exceptions import (
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ValidationFailedError,
)
from solar_marketplace.schemas.products import ProductCreateRequest, ProductUpdateRequest
from solar_marketplace.services.products.enums import (
    ApprovalStatus,
    ProductStatus,
    StockStatus,
)
from solar_marketplace.services.products.service import ProductCatalogService


@pytest.fixture
def catalog(session_factory, settings) -> ProductCatalogService:
    """Create catalog service bound to the test database."""
    return ProductCatalogService(session_factory=session_factory, settings=settings)


@pytest.fixture
def create_request() -> ProductCreateRequest:
    return ProductCreateRequest(
        product_category="SOLAR_PANEL",
        name="Mono PERC 550W",
        brand="Jinko",
        sku="PNL-550",
        specifications={
            "category": "SOLAR_PANEL",
            "max_power_w": "550",
            "efficiency_percent": "21.3",
        },
        price="650.00",
        currency="sar",
        stock_quantity=40,
    )


class TestCreateProduct:
    """Test product creation."""

    async def test_creates_draft(self, catalog, contractor, create_request):
        product = await catalog.create_product(contractor.id, create_request)

        assert product.status == ProductStatus.DRAFT
        assert product.approval_status == ApprovalStatus.PENDING
        assert product.contractor_id == contractor.id
        assert product.currency == "SAR"
        assert product.stock_status == StockStatus.IN_STOCK
        assert product.created_by == str(contractor.id)
        assert product.specifications["max_power_w"] == "550"
        assert not product.is_orderable

        stored = await catalog.get_product(product.id)
        assert stored.name == "Mono PERC 550W"
        assert stored.price == Decimal("650.00")

    async def test_low_stock_status(self, catalog, contractor, create_request):
        request = create_request.model_copy(update={"stock_quantity": 3})

        product = await catalog.create_product(contractor.id, request)

        assert product.stock_status == StockStatus.LOW_STOCK

    async def test_get_missing_product(self, catalog):
        with pytest.raises(NotFoundError):
            await catalog.get_product(uuid.uuid4())


class TestUpdateProduct:
    """Test contractor edits."""

    async def test_updates_set_fields_only(self, catalog, contractor, make_product):
        product = await make_product(status=ProductStatus.DRAFT)

        updated = await catalog.update_product(
            product.id, contractor.id, ProductUpdateRequest(price="1200.00")
        )

        assert updated.price == Decimal("1200.00")
        assert updated.name == "Hybrid Inverter 5kW"
        assert updated.updated_by == str(contractor.id)

    async def test_stock_change_recomputes_status(self, catalog, contractor, make_product):
        product = await make_product()

        updated = await catalog.update_product(
            product.id, contractor.id, ProductUpdateRequest(stock_quantity=0)
        )

        assert updated.stock_quantity == 0
        assert updated.stock_status == StockStatus.OUT_OF_STOCK

    async def test_explicit_null_clears_nullable_field(
        self, catalog, contractor, make_product
    ):
        product = await make_product()

        updated = await catalog.update_product(
            product.id, contractor.id, ProductUpdateRequest(sku=None, brand=None)
        )

        assert updated.sku is None
        assert updated.brand == "Growatt"

    async def test_nothing_to_update(self, catalog, contractor, make_product):
        product = await make_product()

        with pytest.raises(ValidationFailedError):
            await catalog.update_product(
                product.id, contractor.id, ProductUpdateRequest(name=None)
            )

    async def test_other_contractor_forbidden(self, catalog, make_product):
        product = await make_product()

        with pytest.raises(ForbiddenError):
            await catalog.update_product(
                product.id, uuid.uuid4(), ProductUpdateRequest(name="Renamed")
            )

    async def test_product_under_review_locked(self, catalog, contractor, make_product):
        product = await make_product(
            status=ProductStatus.PENDING_APPROVAL, approval_status=ApprovalStatus.PENDING
        )

        with pytest.raises(InvalidTransitionError):
            await catalog.update_product(
                product.id, contractor.id, ProductUpdateRequest(name="Renamed")
            )

        stored = await catalog.get_product(product.id)
        assert stored.name == "Hybrid Inverter 5kW"

    async def test_specifications_category_mismatch(
        self, catalog, contractor, make_product
    ):
        product = await make_product()

        with pytest.raises(ValidationFailedError):
            await catalog.update_product(
                product.id,
                contractor.id,
                ProductUpdateRequest(specifications={"category": "BATTERY"}),
            )

    async def test_specifications_replaced(self, catalog, contractor, make_product):
        product = await make_product()

        updated = await catalog.update_product(
            product.id,
            contractor.id,
            ProductUpdateRequest(
                specifications={"category": "INVERTER", "mppt_count": 2}
            ),
        )

        assert updated.specifications == {
            "category": "INVERTER",
            "mppt_count": 2,
            "extensions": {},
        }

    async def test_missing_product(self, catalog, contractor):
        with pytest.raises(NotFoundError):
            await catalog.update_product(
                uuid.uuid4(), contractor.id, ProductUpdateRequest(name="Renamed")
            )
