"""
Inventory decrement on sales.

Selling a bundle consumes its components. The catalog only lowers the
stock of the variant that was sold, so every inventory-managed component
variant behind a sold bundle is lowered here, through any number of
nested bundles.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from decimal import ROUND_CEILING, Decimal

from bundleman.definition import ProductKind
from bundleman.exceptions import BundleError
from bundleman.matrix import MatrixRejected, expand_options, group_by_owner
from bundleman.pricing import resolve_group
from bundleman.protocols import Product, Variant
from bundleman.retry import call_with_backoff
from bundleman.run import ReconcileRun

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderLine:
    """One purchased line item."""

    product_id: int
    variant_id: int | None
    quantity: int = 1

    @classmethod
    def from_dict(cls, data: dict) -> "OrderLine":
        variant_id = data.get("variant_id")
        return cls(
            product_id=int(data["product_id"]),
            variant_id=int(variant_id) if variant_id is not None else None,
            quantity=int(data.get("quantity", 1)),
        )


@dataclass(frozen=True)
class InventoryAdjustment:
    """Inventory change applied to one component variant."""

    product_id: int
    variant_id: int
    previous: int
    new: int

    @property
    def delta(self) -> int:
        return self.previous - self.new


# {(product_id, variant_id): units to remove}
Plan = dict[tuple[int, int], Decimal]


def whole_units(units: Decimal) -> int:
    """Fractional consumption still takes a whole unit off the shelf."""
    return int(units.to_integral_value(rounding=ROUND_CEILING))


class _Planner:
    """Walks a sold bundle down to the component variants it consumes."""

    def __init__(self, run: ReconcileRun):
        self.run = run
        self.plan: Plan = defaultdict(Decimal)

    def line(self, line: OrderLine) -> None:
        if line.quantity <= 0:
            raise BundleError("INVALID_QUANTITY", product_id=line.product_id, qty=line.quantity)
        product = self.run.product(line.product_id)
        if product is None:
            logger.warning("Sold product %s not found, nothing to decrement", line.product_id)
            return
        kind = self.run.kind(product)
        if not kind.is_composite:
            return
        self.bundle(product, kind, line.variant_id, Decimal(line.quantity), frozenset())

    def consume(self, product: Product, variant: Variant, units: Decimal, path: frozenset) -> None:
        """Take units of one component variant, recursing into bundles."""
        kind = self.run.kind(product)
        if kind.is_composite:
            if product.id in path:
                logger.warning("Bundle cycle through %s, not descending again", product.id)
                return
            self.bundle(product, kind, variant.id, units, path)
        elif variant.inventory_managed and variant.id is not None:
            self.plan[(product.id, variant.id)] += units

    def bundle(
        self,
        product: Product,
        kind: ProductKind,
        variant_id: int | None,
        quantity: Decimal,
        path: frozenset,
    ) -> None:
        from bundleman.conf import bundleman_settings

        path = path | {product.id}
        components = self.run.components(kind.definition)
        simples = [c for c in components if c.is_simple]
        optioned = [c for c in components if not c.is_simple]

        for component in simples:
            self.consume(component.product, component.product.variants[0], component.quantity * quantity, path)
        if not optioned:
            return

        sold = product.get_variant(variant_id) if variant_id is not None else None
        if sold is None:
            logger.warning(
                "Variant %s of bundle %s not found, option components not decremented",
                variant_id, product.id,
            )
            return

        try:
            options = expand_options(
                optioned, bundleman_settings.MAX_OPTIONS, bundleman_settings.MAX_VARIANTS
            )
        except MatrixRejected as e:
            logger.warning("Bundle %s is invalid (%s), option components not decremented", product.id, e.code)
            return

        combination = tuple(sold.selector(o.position) for o in options)
        for (slot, _replica), values in group_by_owner(options, combination).items():
            self.owner(optioned[slot].product, values, quantity, path, product.id)

    def owner(self, product: Product, values: dict[int, str | None], quantity: Decimal, path: frozenset, bundle_id: int) -> None:
        """Consume the variant of one owning component selected by values."""
        if None in values.values():
            logger.warning("Bundle %s: sold variant has no value for component %s", bundle_id, product.id)
            return
        variant = resolve_group(product, values)
        if variant is None:
            logger.warning(
                "Bundle %s: no variant of component %s matches %s, skipped",
                bundle_id, product.id, dict(sorted(values.items())),
            )
            return
        self.consume(product, variant, quantity, path)


def plan_line(line: OrderLine, run: ReconcileRun) -> Plan:
    """Units to remove per component variant for one order line."""
    planner = _Planner(run)
    planner.line(line)
    return dict(planner.plan)


def apply_plan(plan: Plan, run: ReconcileRun) -> list[InventoryAdjustment]:
    """
    Lower inventory according to a plan.

    Levels are read fresh right before writing. A failed write is logged and
    the remaining variants are still processed.
    """
    from bundleman.signals import inventory_decremented

    by_product: dict[int, list[tuple[int, Decimal]]] = defaultdict(list)
    for (product_id, variant_id), units in plan.items():
        by_product[product_id].append((variant_id, units))

    adjustments = []
    for product_id, entries in by_product.items():
        product = run.refresh(product_id)
        if product is None:
            logger.warning("Component %s vanished before its inventory could be lowered", product_id)
            continue
        for variant_id, units in entries:
            variant = product.get_variant(variant_id)
            if variant is None or not variant.inventory_managed:
                continue
            new = variant.available - whole_units(units)
            try:
                call_with_backoff(run.backend.set_variant_inventory, variant_id, new)
            except BundleError as e:
                logger.error(
                    "Could not lower inventory of %s variant %s to %s: %s",
                    product_id, variant_id, new, e,
                )
                continue
            logger.info(
                "Lowered inventory of %s (%s) variant %s from %s to %s",
                product_id, product.title, variant_id, variant.available, new,
            )
            adjustment = InventoryAdjustment(product_id, variant_id, variant.available, new)
            adjustments.append(adjustment)
            inventory_decremented.send(
                sender=InventoryAdjustment,
                product_id=product_id,
                variant_id=variant_id,
                previous=variant.available,
                new=new,
            )
        run.invalidate(product_id)
    return adjustments


def decrement_order(lines: list[OrderLine], run: ReconcileRun) -> list[InventoryAdjustment]:
    """
    Lower component inventory for every bundle line of a completed sale.

    Lines are independent: one that cannot be processed is logged and the
    others still go through.
    """
    adjustments = []
    for line in lines:
        try:
            adjustments.extend(apply_plan(plan_line(line, run), run))
        except BundleError as e:
            logger.error("Could not process order line %s: %s", line, e)
    return adjustments
