"""
Order pricing calculation.

Pure functions over validated product snapshots: no I/O and no side
effects, so the same input always produces the same breakdown. All money
is ``Decimal`` rounded half-up to two places, which keeps
``total = subtotal + tax + shipping - discount`` exact.
"""

import uuid
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Mapping, Sequence

from solar_marketplace.core.exceptions import ValidationFailedError
from solar_marketplace.services.orders.inventory import OrderLine, ProductSnapshot

TWO_PLACES = Decimal("0.01")

# Saudi VAT
DEFAULT_VAT_RATE = Decimal("0.15")
DEFAULT_SHIPPING_COST = Decimal("50.00")


def quantize_money(amount: Decimal) -> Decimal:
    """Round an amount half-up to two decimal places."""
    return Decimal(amount).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class LinePricing:
    product_id: uuid.UUID
    unit_price: Decimal
    quantity: int
    line_total: Decimal


@dataclass(frozen=True)
class PricingBreakdown:
    """Priced order lines and totals."""

    lines: tuple[LinePricing, ...]
    subtotal: Decimal
    tax_amount: Decimal
    shipping_cost: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    currency: str


class PricingCalculator:
    """
    Compute order totals from validated snapshots.

    Attributes:
        vat_rate: Tax rate applied to the subtotal
        shipping_cost: Flat shipping charge per order
        currency: Currency of all amounts
    """

    def __init__(
        self,
        vat_rate: Decimal = DEFAULT_VAT_RATE,
        shipping_cost: Decimal = DEFAULT_SHIPPING_COST,
        currency: str = "SAR",
    ):
        self.vat_rate = Decimal(vat_rate)
        self.shipping_cost = quantize_money(shipping_cost)
        self.currency = currency

    def price_line(self, snapshot: ProductSnapshot, quantity: int) -> LinePricing:
        """Price one line at the snapshot's unit price."""
        if quantity <= 0:
            raise ValidationFailedError(
                "Quantity must be positive",
                product_id=str(snapshot.product_id),
                quantity=quantity,
            )
        unit_price = quantize_money(snapshot.price)
        return LinePricing(
            product_id=snapshot.product_id,
            unit_price=unit_price,
            quantity=quantity,
            line_total=unit_price * quantity,
        )

    def calculate(
        self,
        snapshots: Mapping[uuid.UUID, ProductSnapshot],
        lines: Sequence[OrderLine],
    ) -> PricingBreakdown:
        """
        Price every requested line and compute the order totals.

        Args:
            snapshots: Validated snapshots keyed by product id
            lines: Requested lines, priced in the given order

        Returns:
            Pricing breakdown

        Raises:
            ValidationFailedError: If a line has no snapshot or a bad quantity
        """
        priced = []
        for line in lines:
            snapshot = snapshots.get(line.product_id)
            if snapshot is None:
                raise ValidationFailedError(
                    "Cannot price a product that was not validated",
                    product_id=str(line.product_id),
                )
            priced.append(self.price_line(snapshot, line.quantity))

        subtotal = quantize_money(sum((p.line_total for p in priced), Decimal("0")))
        tax_amount = quantize_money(subtotal * self.vat_rate)
        discount_amount = Decimal("0.00")
        total_amount = subtotal + tax_amount + self.shipping_cost - discount_amount

        return PricingBreakdown(
            lines=tuple(priced),
            subtotal=subtotal,
            tax_amount=tax_amount,
            shipping_cost=self.shipping_cost,
            discount_amount=discount_amount,
            total_amount=total_amount,
            currency=self.currency,
        )
