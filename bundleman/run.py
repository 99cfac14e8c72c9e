"""
Run-scoped catalog reads.

A ReconcileRun is created for every unit of work (one queue item, one
service call). It caches what was read from the catalog during that unit
only, so two queue items never share stale products.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from decimal import Decimal

from bundleman.definition import (
    BundleDefinition,
    ProductKind,
    classify,
    is_simple_product,
    read_definition,
)
from bundleman.exceptions import BundleError
from bundleman.protocols import CatalogBackend, Product, RelationshipStore
from bundleman.retry import call_with_backoff

logger = logging.getLogger(__name__)

_MISSING = object()


@dataclass(frozen=True)
class ResolvedComponent:
    """A bundle component paired with the live catalog product."""

    product: Product
    quantity: Decimal

    @property
    def product_id(self) -> int:
        return self.product.id

    @property
    def is_simple(self) -> bool:
        return is_simple_product(self.product)


class ReconcileRun:
    """Catalog access plus an explicit read cache for one unit of work."""

    def __init__(
        self,
        backend: CatalogBackend,
        store: RelationshipStore,
        batch_size: int | None = None,
    ):
        from bundleman.conf import bundleman_settings

        self.backend = backend
        self.store = store
        self.batch_size = batch_size or bundleman_settings.READ_BATCH_SIZE
        self._products: dict[int, Product | None] = {}
        self._definitions: dict[int, BundleDefinition] = {}
        self._kinds: dict[int, ProductKind] = {}

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    def product(self, product_id: int) -> Product | None:
        """Product by id, None if missing or unreadable."""
        cached = self._products.get(product_id, _MISSING)
        if cached is not _MISSING:
            return cached
        product = self._load_product(product_id)
        self._products[product_id] = product
        return product

    def _load_product(self, product_id: int) -> Product | None:
        try:
            return call_with_backoff(self.backend.get_product, product_id)
        except BundleError as e:
            if e.code != "PRODUCT_NOT_FOUND":
                logger.warning("Could not read product %s: %s", product_id, e)
            return None

    def prefetch(self, product_ids: list[int]) -> None:
        """Load products not yet cached, batch_size reads in flight at a time."""
        pending = [pid for pid in dict.fromkeys(product_ids) if pid not in self._products]
        if not pending:
            return
        if len(pending) == 1 or self.batch_size <= 1:
            for pid in pending:
                self.product(pid)
            return
        with ThreadPoolExecutor(max_workers=self.batch_size) as pool:
            for pid, product in zip(pending, pool.map(self._load_product, pending)):
                self._products[pid] = product

    def refresh(self, product_id: int) -> Product | None:
        """Drop everything cached for a product and read it again."""
        self.invalidate(product_id)
        return self.product(product_id)

    def invalidate(self, product_id: int) -> None:
        self._products.pop(product_id, None)
        self._definitions.pop(product_id, None)
        self._kinds.pop(product_id, None)

    # ------------------------------------------------------------------
    # Definitions
    # ------------------------------------------------------------------

    def definition(self, product_id: int) -> BundleDefinition:
        """Decoded bundle definition, empty when fields cannot be read."""
        if product_id in self._definitions:
            return self._definitions[product_id]
        try:
            fields = call_with_backoff(self.backend.get_custom_fields, product_id)
        except BundleError as e:
            logger.warning("Could not read custom fields of %s: %s", product_id, e)
            fields = []
        definition = read_definition(fields)
        self._definitions[product_id] = definition
        return definition

    def kind(self, product: Product) -> ProductKind:
        """ProductKind, computed once per product load."""
        if product.id not in self._kinds:
            self._kinds[product.id] = classify(product, self.definition(product.id))
        return self._kinds[product.id]

    def components(self, definition: BundleDefinition) -> list[ResolvedComponent]:
        """
        Resolve a definition against live products.

        Components that no longer exist are left out with a warning; the
        bundle is computed around the gap.
        """
        self.prefetch(definition.component_ids)
        resolved = []
        for component_id, qty in definition.items():
            product = self.product(component_id)
            if product is None:
                logger.warning("Bundle component %s not found, skipping", component_id)
                continue
            resolved.append(ResolvedComponent(product=product, quantity=qty))
        return resolved
