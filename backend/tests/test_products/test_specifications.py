"""Tests for product specification and request schemas."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from solar_marketplace.schemas.products import (
    BatterySpecifications,
    FullSystemSpecifications,
    InverterSpecifications,
    ProductCreateRequest,
    ProductUpdateRequest,
    dump_specifications,
    parse_specifications,
)
from solar_marketplace.services.products.enums import ProductCategory


class TestParseSpecifications:
    """Test discriminated union parsing."""

    def test_selects_variant_by_category(self):
        spec = parse_specifications(
            {"category": "BATTERY", "capacity_kwh": "5.12", "cycle_life": 6000}
        )

        assert isinstance(spec, BatterySpecifications)
        assert spec.capacity_kwh == Decimal("5.12")
        assert spec.cycle_life == 6000

    def test_unknown_category_rejected(self):
        with pytest.raises(ValidationError):
            parse_specifications({"category": "WIND_TURBINE"})

    def test_field_from_other_category_rejected(self):
        with pytest.raises(ValidationError):
            parse_specifications({"category": "INVERTER", "capacity_kwh": "5"})

    def test_extensions_hold_free_form_attributes(self):
        spec = parse_specifications(
            {"category": "INVERTER", "extensions": {"ip_rating": "IP65"}}
        )

        assert isinstance(spec, InverterSpecifications)
        assert spec.extensions == {"ip_rating": "IP65"}

    def test_full_system_dimensions_limited(self):
        with pytest.raises(ValidationError):
            FullSystemSpecifications(dimensions=["1", "2", "3", "4", "5"])

    def test_dump_omits_unset_fields(self):
        spec = parse_specifications(
            {"category": "INVERTER", "power_rating_kw": "5", "warranty_months": 60}
        )

        assert dump_specifications(spec) == {
            "category": "INVERTER",
            "power_rating_kw": "5",
            "warranty_months": 60,
            "extensions": {},
        }


class TestProductRequests:
    """Test product create and update requests."""

    def _payload(self, **overrides):
        payload = {
            "product_category": "INVERTER",
            "name": "Hybrid Inverter 5kW",
            "brand": "Growatt",
            "specifications": {"category": "INVERTER"},
            "price": "4500.00",
        }
        payload.update(overrides)
        return payload

    def test_valid_create_request(self):
        request = ProductCreateRequest(**self._payload())

        assert request.product_category == ProductCategory.INVERTER
        assert request.currency == "SAR"
        assert request.stock_quantity == 0

    def test_specifications_must_match_category(self):
        with pytest.raises(ValidationError) as exc_info:
            ProductCreateRequest(**self._payload(specifications={"category": "BATTERY"}))

        assert "does not match product category" in str(exc_info.value)

    @pytest.mark.parametrize("price", ["0", "-1", "12.345"])
    def test_invalid_price_rejected(self, price):
        with pytest.raises(ValidationError):
            ProductCreateRequest(**self._payload(price=price))

    def test_negative_stock_rejected(self):
        with pytest.raises(ValidationError):
            ProductCreateRequest(**self._payload(stock_quantity=-1))

    def test_update_tracks_set_fields(self):
        request = ProductUpdateRequest(price="99.50", sku=None)

        assert request.model_dump(exclude_unset=True) == {
            "price": Decimal("99.50"),
            "sku": None,
        }
