"""
Pytest configuration and shared test fixtures.

Integration fixtures run against a throwaway SQLite database per test
(through aiosqlite), created from the model metadata. Helpers seed
products directly so each test starts from a known catalog state.
"""

import uuid
from decimal import Decimal
from typing import Any, AsyncGenerator, Awaitable, Callable

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from solar_marketplace.core.config import Settings
from solar_marketplace.core.security import Principal, UserRole
from solar_marketplace.database.connection import create_schema, create_session_factory
from solar_marketplace.database.models.product import Product
from solar_marketplace.schemas.orders import AddressSchema, OrderCreateRequest, OrderLineRequest
from solar_marketplace.services.products.enums import (
    ApprovalStatus,
    ProductCategory,
    ProductStatus,
    compute_stock_status,
)

ProductFactory = Callable[..., Awaitable[Product]]


# ============================================================================
# Settings and Database
# ============================================================================


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Create settings for an isolated test database.

    Returns:
        Settings pointing at a per-test SQLite file
    """
    return Settings(
        environment="test",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'marketplace.db'}",
        order_number_prefix="RBH",
    )


@pytest.fixture
async def db_engine(settings: Settings) -> AsyncGenerator[AsyncEngine, None]:
    """Create an async engine with the full schema.

    Yields:
        Engine bound to the per-test database
    """
    engine = create_async_engine(settings.database_url)
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create the session factory used by engines under test.

    Returns:
        Session factory bound to the test engine
    """
    return create_session_factory(db_engine)


# ============================================================================
# Principals
# ============================================================================


@pytest.fixture
def customer() -> Principal:
    """Create a customer principal.

    Returns:
        Principal with USER role
    """
    return Principal(id=uuid.uuid4(), role=UserRole.USER)


@pytest.fixture
def contractor() -> Principal:
    """Create a contractor principal.

    Returns:
        Principal with CONTRACTOR role
    """
    return Principal(id=uuid.uuid4(), role=UserRole.CONTRACTOR)


@pytest.fixture
def admin() -> Principal:
    """Create an admin principal.

    Returns:
        Principal with ADMIN role
    """
    return Principal(id=uuid.uuid4(), role=UserRole.ADMIN)


# ============================================================================
# Catalog Helpers
# ============================================================================


@pytest.fixture
def make_product(
    session_factory: async_sessionmaker[AsyncSession], contractor: Principal
) -> ProductFactory:
    """Create a helper that inserts a product row.

    Returns:
        Async callable accepting Product column overrides
    """

    async def _make(**overrides: Any) -> Product:
        stock = overrides.pop("stock_quantity", 5)
        values: dict[str, Any] = {
            "id": uuid.uuid4(),
            "contractor_id": contractor.id,
            "product_category": ProductCategory.INVERTER,
            "name": "Hybrid Inverter 5kW",
            "brand": "Growatt",
            "model": "SPH5000",
            "sku": "INV-5000",
            "specifications": {"category": "INVERTER", "warranty_months": 24},
            "price": Decimal("1000.00"),
            "currency": "SAR",
            "stock_quantity": stock,
            "stock_status": compute_stock_status(stock),
            "status": ProductStatus.ACTIVE,
            "approval_status": ApprovalStatus.APPROVED,
        }
        values.update(overrides)

        async with session_factory() as session:
            async with session.begin():
                product = Product(**values)
                session.add(product)
        return product

    return _make


@pytest.fixture
def order_request_factory(customer: Principal) -> Callable[..., OrderCreateRequest]:
    """Create a helper that builds order requests for the customer.

    Returns:
        Callable taking (product_id, quantity) pairs
    """

    def _build(*lines: tuple[uuid.UUID, int], **overrides: Any) -> OrderCreateRequest:
        values: dict[str, Any] = {
            "user_id": customer.id,
            "customer_name": "Sara Al-Qahtani",
            "customer_email": "sara@example.com",
            "customer_phone": "+966500000000",
            "shipping_address": AddressSchema(
                line1="King Fahd Road 12",
                city="Riyadh",
                region="Riyadh",
            ),
            "items": [
                OrderLineRequest(product_id=product_id, quantity=quantity)
                for product_id, quantity in lines
            ],
        }
        values.update(overrides)
        return OrderCreateRequest(**values)

    return _build
