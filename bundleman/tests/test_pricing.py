"""Tests for price and inventory resolution."""

from decimal import Decimal

from bundleman.pricing import (
    Contribution,
    combine,
    floor_units,
    min_available,
    resolve_group,
    simple_contribution,
    to_cents,
)
from bundleman.protocols import Option, Product, Variant
from bundleman.run import ResolvedComponent
from bundleman.tests.fakes import optioned_product, simple_product


def component(product, qty="1"):
    return ResolvedComponent(product=product, quantity=Decimal(qty))


class TestRounding:
    def test_half_up_to_cents(self):
        assert to_cents(Decimal("1.005")) == Decimal("1.01")
        assert to_cents(Decimal("2.004")) == Decimal("2.00")

    def test_integer_renders_two_places(self):
        assert str(to_cents(Decimal("11"))) == "11.00"


class TestInventoryFloor:
    """Available bundles = floor(available / quantity)."""

    def test_floor(self):
        assert floor_units(7, Decimal("2")) == 3

    def test_fractional_quantity(self):
        assert floor_units(3, Decimal("0.5")) == 6

    def test_never_negative(self):
        assert floor_units(-3, Decimal("1")) == 0

    def test_min_available_ignores_unbounded(self):
        assert min_available(None, 4, None, 2) == 2
        assert min_available(None, None) is None


class TestSimpleContribution:
    def test_sums_price_times_quantity(self):
        contribution = simple_contribution(
            [component(simple_product(1, "3.00"), "2"), component(simple_product(2, "5.00"), "1")]
        )
        assert contribution.price == Decimal("11.00")

    def test_full_precision_until_published(self):
        contribution = simple_contribution([component(simple_product(1, "0.333"), "3")])
        assert contribution.price == Decimal("0.999")
        assert to_cents(contribution.price) == Decimal("1.00")

    def test_only_managed_components_bound_inventory(self):
        contribution = simple_contribution(
            [component(simple_product(1, "1.00"), "2"), component(simple_product(2, "1.00", available=7), "2")]
        )
        assert contribution.available == 3

    def test_all_unmanaged_is_unbounded(self):
        contribution = simple_contribution([component(simple_product(1, "1.00"))])
        assert contribution.available is None


class TestResolveGroup:
    """Mapping part of a combination back to component variants."""

    def _sized(self):
        return Product(
            id=5,
            title="Tee",
            options=[Option("Color", ["Red", "Blue"], 1), Option("Size", ["S", "M"], 2)],
            variants=[
                Variant(id=51, option1="Red", option2="S", price=Decimal("10")),
                Variant(id=52, option1="Red", option2="M", price=Decimal("11")),
                Variant(id=53, option1="Blue", option2="S", price=Decimal("12")),
            ],
        )

    def test_exact_match(self):
        assert resolve_group(self._sized(), {1: "Red", 2: "M"}).id == 52

    def test_missing_combination_is_not_stitched_together(self):
        """Blue/M is not sold, even though Blue and M both exist."""
        assert resolve_group(self._sized(), {1: "Blue", 2: "M"}) is None

    def test_single_position_takes_first_carrier(self):
        assert resolve_group(self._sized(), {2: "S"}).id == 51

    def test_unknown_value_is_unresolvable(self):
        assert resolve_group(self._sized(), {1: "Green"}) is None


class TestCombine:
    def test_adds_picked_variant_prices(self):
        red = optioned_product(3, "Color", ["Red"], price="20.00")
        price, available = combine(Contribution(price=Decimal("5")), [(red, red.variants[0])])
        assert price == Decimal("25.00")
        assert available is None

    def test_variant_picked_twice_needs_two_units(self):
        red = optioned_product(3, "Color", ["Red"], price="20.00", available=5)
        variant = red.variants[0]
        price, available = combine(Contribution(), [(red, variant), (red, variant)])
        assert price == Decimal("40.00")
        assert available == 2

    def test_takes_tightest_bound(self):
        red = optioned_product(3, "Color", ["Red"], available=9)
        _, available = combine(Contribution(available=4), [(red, red.variants[0])])
        assert available == 4
