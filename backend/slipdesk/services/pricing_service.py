# Overview: Pure pricing rules for slip product lines (bulk discount, manual override).

from __future__ import annotations

from dataclasses import dataclass

from .errors import InvalidLine
from .product_attrs import ProductAttrs

# Fixed business policy: covers of these types get a flat per-unit discount
# once a line reaches the bulk quantity.
BULK_DISCOUNT_COVER_TYPES = frozenset({"Aster Cover", "Without Aster Cover", "Calendar Cover"})
BULK_DISCOUNT_MIN_QUANTITY = 10
BULK_DISCOUNT_PER_UNIT = 10.0

# Supplied unit prices within this distance of the computed price are not overrides.
PRICE_TOLERANCE = 0.01


@dataclass(frozen=True)
class PricedLine:
    unit_price: float
    discount_amount: float  # whole line: per-unit discount x quantity
    discount_type: str
    total_price: float


def bulk_discount_per_unit(product_type: str, cover_type: str, quantity: int) -> float:
    if (
        product_type == "Cover"
        and cover_type in BULK_DISCOUNT_COVER_TYPES
        and quantity >= BULK_DISCOUNT_MIN_QUANTITY
    ):
        return BULK_DISCOUNT_PER_UNIT
    return 0.0


def price_line(
    product_type: str,
    cover_type: str,
    quantity: int,
    base_price: float,
    explicit_unit_price: float | None = None,
) -> PricedLine:
    """
    Price one product line.

    - Bulk: eligible covers at BULK_DISCOUNT_MIN_QUANTITY or more units get
      BULK_DISCOUNT_PER_UNIT off each unit.
    - Manual: an explicit unit price that differs from the computed price by
      more than PRICE_TOLERANCE wins, and the difference from base_price is
      recorded as the discount.
    - Otherwise the base price applies.

    unit_price is clamped at zero and total_price is always recomputed as
    quantity x unit_price.
    """
    if quantity is None or quantity <= 0:
        raise InvalidLine("Quantity must be greater than 0", f"Received quantity: {quantity}")
    if base_price is None or base_price < 0:
        raise InvalidLine("Base price cannot be negative", f"Received basePrice: {base_price}")

    discount = bulk_discount_per_unit(product_type, cover_type, quantity)
    discount_type = "bulk" if discount > 0 else "none"
    computed = base_price - discount

    unit_price = computed
    if explicit_unit_price is not None:
        unit_price = explicit_unit_price
        if abs(explicit_unit_price - computed) > PRICE_TOLERANCE:
            discount_type = "manual"
            discount = max(0.0, base_price - explicit_unit_price)

    unit_price = max(0.0, unit_price)
    return PricedLine(
        unit_price=round(unit_price, 2),
        discount_amount=round(discount * quantity, 2),
        discount_type=discount_type,
        total_price=round(unit_price * quantity, 2),
    )


def line_name(attrs: ProductAttrs, supplied_name: str | None = None) -> str:
    """Use the supplied product name, else derive one from the type attributes."""
    if supplied_name and supplied_name.strip():
        return supplied_name.strip()
    return attrs.display_name() or attrs.product_type or "Product"
