"""
Price and inventory resolution for bundle variants.

Prices are kept as full-precision Decimals here; rounding to cents happens
only when a value is compared with or published to the catalog.

Inventory is an int, or None when no inventory-managed component
constrains it (unbounded).
"""

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal

from bundleman.protocols import Product, Variant

CENT = Decimal("0.01")


def to_cents(price: Decimal) -> Decimal:
    """Render a price with two decimal places."""
    return Decimal(price).quantize(CENT, rounding=ROUND_HALF_UP)


def floor_units(available: int, qty: Decimal) -> int:
    """Whole bundles that `available` units cover when each needs `qty`, at least 0."""
    return max(0, int((Decimal(available) / qty).to_integral_value(rounding=ROUND_FLOOR)))


def min_available(*values: int | None) -> int | None:
    """Minimum of the bounded values, None if none is bounded."""
    bounded = [v for v in values if v is not None]
    return min(bounded) if bounded else None


@dataclass(frozen=True)
class TargetVariant:
    """A bundle variant as it should be published."""

    option1: str | None
    option2: str | None = None
    option3: str | None = None
    price: Decimal = Decimal("0")
    available: int | None = None

    @property
    def selectors(self) -> tuple[str | None, str | None, str | None]:
        return (self.option1, self.option2, self.option3)

    @property
    def is_unbounded(self) -> bool:
        return self.available is None


@dataclass(frozen=True)
class Contribution:
    """Price and inventory bound contributed by a set of components."""

    price: Decimal = Decimal("0")
    available: int | None = None


def simple_contribution(components: Iterable) -> Contribution:
    """
    Sum of price x quantity over simple components, and the tightest
    floor(available / quantity) among the inventory-managed ones.

    Args:
        components: ResolvedComponent items whose product is simple
    """
    price = Decimal("0")
    available = None
    for component in components:
        variant = component.product.variants[0]
        price += variant.price * component.quantity
        if variant.inventory_managed:
            available = min_available(available, floor_units(variant.available, component.quantity))
    return Contribution(price=price, available=available)


def resolve_group(product: Product, values: dict[int, str]) -> Variant | None:
    """
    Find the component variant selected by part of a combination.

    `values` maps option positions of `product` to the chosen value. For a
    single-option component this is its per-dimension variant. A component
    with several options must sell the exact combination; variants are
    never stitched together from different rows.

    Returns:
        The first variant carrying every value, or None.
    """
    for variant in product.variants:
        if all(variant.selector(pos) == value for pos, value in values.items()):
            return variant
    return None


def combine(base: Contribution, picks: list[tuple[Product, Variant]]) -> tuple[Decimal, int | None]:
    """
    Price and available quantity of one bundle variant.

    Every pick consumes one unit of its variant; a variant picked twice
    needs two units per bundle.
    """
    price = base.price + sum((variant.price for _, variant in picks), Decimal("0"))

    uses = Counter()
    by_key = {}
    for product, variant in picks:
        key = (product.id, variant.id if variant.id is not None else variant.selectors)
        uses[key] += 1
        by_key[key] = variant

    available = base.available
    for key, count in uses.items():
        variant = by_key[key]
        if variant.inventory_managed:
            available = min_available(available, floor_units(variant.available, Decimal(count)))

    return price, available
