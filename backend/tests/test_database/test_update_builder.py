"""Tests for allow-listed guarded UPDATE statements."""

import uuid

import pytest

from solar_marketplace.core.exceptions import ValidationFailedError
from solar_marketplace.database.models.product import Product
from solar_marketplace.database.update_builder import UpdateBuilder


@pytest.fixture
def builder() -> UpdateBuilder:
    return UpdateBuilder(Product, {"name", "price", "stock_quantity"})


class TestUpdateBuilder:
    """Test statement construction."""

    def test_unknown_column_rejected_at_construction(self):
        with pytest.raises(ValueError, match="no columns named: colour"):
            UpdateBuilder(Product, {"name", "colour"})

    def test_values_outside_allow_list_rejected(self, builder):
        with pytest.raises(ValidationFailedError) as exc_info:
            builder.values({"name": "Renamed", "status": "ACTIVE"})

        assert exc_info.value.context["fields"] == ["status"]

    def test_empty_changes_rejected(self, builder):
        with pytest.raises(ValidationFailedError):
            builder.values({})

    def test_build_sets_values_and_guards(self, builder):
        product_id = uuid.uuid4()

        statement = builder.build(
            product_id,
            {"stock_quantity": 3},
            expected={"stock_quantity": 5},
        )
        compiled = statement.compile()

        sql = str(compiled)
        assert sql.startswith("UPDATE products SET")
        assert "WHERE products.id = " in sql
        assert "AND products.stock_quantity = " in sql
        assert statement.get_execution_options()["synchronize_session"] is False
        assert 3 in compiled.params.values()
        assert 5 in compiled.params.values()


class TestGuardedWrite:
    """Test compare-and-swap semantics against a real table."""

    async def test_guard_mismatch_matches_no_row(self, builder, session_factory, make_product):
        product = await make_product(stock_quantity=5)

        async with session_factory() as session:
            async with session.begin():
                stale = await session.execute(
                    builder.build(product.id, {"stock_quantity": 1}, expected={"stock_quantity": 4})
                )
                fresh = await session.execute(
                    builder.build(product.id, {"stock_quantity": 2}, expected={"stock_quantity": 5})
                )

        assert stale.rowcount == 0
        assert fresh.rowcount == 1

        async with session_factory() as session:
            stored = await session.get(Product, product.id)
            assert stored.stock_quantity == 2
