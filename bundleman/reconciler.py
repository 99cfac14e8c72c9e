"""
Bundle state reconciliation.

Computes a bundle's target options/variants from its components and writes
to the catalog only what differs from the published product.
"""

import logging
from dataclasses import dataclass, replace

from bundleman.definition import is_simple_product
from bundleman.exceptions import BundleError
from bundleman.matrix import BundleMatrix, build_matrix
from bundleman.pricing import TargetVariant, to_cents
from bundleman.protocols import Option, Product, Variant
from bundleman.protocols.catalog import DEFAULT_OPTION_VALUE, default_options
from bundleman.retry import call_with_backoff
from bundleman.run import ReconcileRun

logger = logging.getLogger(__name__)


class Status:
    UNCHANGED = "unchanged"
    UPDATED = "updated"
    DOWNGRADED = "downgraded"
    INVALID = "invalid"
    NOT_BUNDLE = "not_bundle"
    MISSING = "missing"
    FAILED = "failed"


@dataclass
class ReconcileResult:
    """Outcome of reconciling one bundle."""

    product_id: int
    status: str
    writes: int = 0
    error: str | None = None
    matrix: BundleMatrix | None = None

    @property
    def changed(self) -> bool:
        return self.writes > 0


def compute_matrix(product: Product, run: ReconcileRun) -> BundleMatrix:
    """Target state of a bundle product from its live components."""
    kind = run.kind(product)
    if not kind.is_composite:
        return BundleMatrix.invalid("NOT_A_BUNDLE")
    return build_matrix(run.components(kind.definition))


def publishable_variant(target: TargetVariant, unbounded_policy: str) -> Variant:
    """Catalog variant for a computed one, rounding the price to cents."""
    managed = not target.is_unbounded or unbounded_policy == "zero"
    return Variant(
        id=None,
        option1=target.option1,
        option2=target.option2,
        option3=target.option3,
        price=to_cents(target.price),
        inventory_managed=managed,
        available=target.available or 0,
    )


def with_published_ids(published: list[Variant], variants: list[Variant]) -> list[Variant]:
    """Give target variants the id of the published variant with the same selectors."""
    ids = {v.selectors: v.id for v in published}
    return [replace(v, id=ids.get(v.selectors)) for v in variants]


def default_variant() -> Variant:
    return Variant(id=None, option1=DEFAULT_OPTION_VALUE, price=to_cents(0))


def options_differ(published: list[Option], target: list[Option]) -> bool:
    if len(published) != len(target):
        return True
    ordered = sorted(published, key=lambda o: o.position)
    for current, wanted in zip(ordered, target):
        if current.name != wanted.name or list(current.values) != list(wanted.values):
            return True
    return False


def _structure_differs(published: list[Variant], target: list[Variant]) -> bool:
    current = {v.selectors: v for v in published}
    if len(published) != len(target) or set(current) != {v.selectors for v in target}:
        return True
    return any(current[v.selectors].inventory_managed != v.inventory_managed for v in target)


def _price_changes(published: list[Variant], target: list[Variant]) -> list[tuple[Variant, Variant]]:
    current = {v.selectors: v for v in published}
    return [
        (current[v.selectors], v)
        for v in target
        if to_cents(current[v.selectors].price) != v.price
    ]


def is_reset_shape(product: Product) -> bool:
    """True if the product already shows the default variant priced 0.00."""
    return is_simple_product(product) and to_cents(product.variants[0].price) == to_cents(0)


def reconcile(bundle_id: int, run: ReconcileRun) -> ReconcileResult:
    """
    Bring one bundle's published state in line with its components.

    Args:
        bundle_id: Catalog id of the bundle
        run: Run holding backend access and the read cache

    Returns:
        ReconcileResult. Catalog write failures are logged and reported as
        FAILED, never raised.
    """
    from bundleman.signals import bundle_reconciled, reconciliation_failed

    product = run.product(bundle_id)
    if product is None:
        logger.warning("Bundle %s not found", bundle_id)
        return ReconcileResult(bundle_id, Status.MISSING)

    if not run.kind(product).is_composite:
        return ReconcileResult(bundle_id, Status.NOT_BUNDLE)

    matrix = compute_matrix(product, run)
    try:
        if matrix.valid:
            result = _publish(product, matrix, run)
        else:
            result = _reset(product, matrix, run)
    except BundleError as e:
        logger.error("Giving up on bundle %s (%s): %s", bundle_id, product.title, e)
        run.invalidate(bundle_id)
        reconciliation_failed.send(sender=ReconcileResult, product_id=bundle_id, error=e)
        return ReconcileResult(bundle_id, Status.FAILED, error=e.code, matrix=matrix)

    if result.changed:
        run.invalidate(bundle_id)
        bundle_reconciled.send(sender=ReconcileResult, product_id=bundle_id, result=result)
    else:
        logger.debug("Bundle %s already up to date", bundle_id)
    return result


def _publish(product: Product, matrix: BundleMatrix, run: ReconcileRun) -> ReconcileResult:
    from bundleman.conf import bundleman_settings

    policy = bundleman_settings.UNBOUNDED_INVENTORY
    options = [o.as_option() for o in matrix.options]
    variants = [publishable_variant(v, policy) for v in matrix.variants]
    writes = 0

    if options_differ(product.options, options) or _structure_differs(product.variants, variants):
        logger.info("Replacing options and variants of bundle %s (%s)", product.id, product.title)
        product = _replace(product, options, variants, run)
        writes += 1
    else:
        changes = _price_changes(product.variants, variants)
        if len(changes) == 1:
            current, wanted = changes[0]
            logger.info(
                "Updating price of bundle %s (%s) from %s to %s",
                product.id, product.title, to_cents(current.price), wanted.price,
            )
            call_with_backoff(run.backend.update_variant_price, current.id, wanted.price)
            writes += 1
        elif changes:
            logger.info("Updating %d prices of bundle %s (%s)", len(changes), product.id, product.title)
            product = _replace(product, options, with_published_ids(product.variants, variants), run)
            writes += 1

    writes += _push_inventory(product, variants, run)
    status = Status.UPDATED if writes else Status.UNCHANGED
    return ReconcileResult(product.id, status, writes=writes, matrix=matrix)


def _replace(product: Product, options: list[Option], variants: list[Variant], run: ReconcileRun) -> Product:
    """Replace options and variants, then re-read the product for new variant ids."""
    call_with_backoff(
        run.backend.update_product_options_and_variants, product.id, options, variants
    )
    refreshed = run.refresh(product.id)
    if refreshed is None:
        raise BundleError("PRODUCT_NOT_FOUND", product_id=product.id)
    return refreshed


def _push_inventory(product: Product, variants: list[Variant], run: ReconcileRun) -> int:
    """Set inventory of managed variants whose observed level differs."""
    published = {v.selectors: v for v in product.variants}
    writes = 0
    for wanted in variants:
        if not wanted.inventory_managed:
            continue
        current = published.get(wanted.selectors)
        if current is None or current.id is None:
            logger.warning(
                "Bundle %s has no published variant %s, inventory not set",
                product.id, wanted.selectors,
            )
            continue
        if current.available == wanted.available:
            continue
        logger.info(
            "Setting inventory of bundle %s variant %s from %s to %s",
            product.id, current.id, current.available, wanted.available,
        )
        call_with_backoff(run.backend.set_variant_inventory, current.id, wanted.available)
        writes += 1
    return writes


def _reset(product: Product, matrix: BundleMatrix, run: ReconcileRun) -> ReconcileResult:
    """Fall back to the default option/variant at price 0."""
    if is_reset_shape(product):
        return ReconcileResult(product.id, Status.INVALID, error=matrix.error, matrix=matrix)

    logger.warning(
        "Bundle %s (%s) is invalid (%s), resetting to default variant",
        product.id, product.title, matrix.error,
    )
    call_with_backoff(
        run.backend.update_product_options_and_variants,
        product.id,
        default_options(),
        [default_variant()],
    )
    return ReconcileResult(
        product.id, Status.DOWNGRADED, writes=1, error=matrix.error, matrix=matrix
    )
