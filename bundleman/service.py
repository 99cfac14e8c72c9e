"""
Bundleman public API.

EVENTS (acknowledge now, process on the queue):
    BundleService.on_product_changed(product_id) - Catalog product changed
    BundleService.on_order_placed(lines)         - Sale completed

PIPELINES (run synchronously, used by the queue):
    BundleService.process_product_change(product_id)
    BundleService.process_order(lines)

CORE:
    BundleService.definition(product_id) - Declared components of a product
    BundleService.compute(product_id)    - Target options/variants of a bundle
    BundleService.reconcile(product_id)  - Bring one bundle up to date
    BundleService.propagate(product_id)  - Reconcile every bundle containing a product

MAINTENANCE:
    BundleService.rebuild_index(product_types) - Rebuild the component index
"""

import logging
from typing import TYPE_CHECKING

from bundleman.exceptions import BundleError

if TYPE_CHECKING:
    from bundleman.definition import BundleDefinition
    from bundleman.ingestion import Event
    from bundleman.matrix import BundleMatrix
    from bundleman.orders import InventoryAdjustment, OrderLine
    from bundleman.reconciler import ReconcileResult
    from bundleman.run import ReconcileRun

logger = logging.getLogger(__name__)


class BundleService:
    """
    Bundleman public API.

    Uses @classmethod for extensibility. Every call works on a fresh
    ReconcileRun, so nothing read by one call is reused by the next.
    """

    @classmethod
    def _run(cls) -> "ReconcileRun":
        """Internal: new unit of work. Override to inject backends."""
        from bundleman.conf import get_catalog_backend, get_relationship_store
        from bundleman.run import ReconcileRun

        return ReconcileRun(get_catalog_backend(), get_relationship_store())

    # ======================================================================
    # CORE API
    # ======================================================================

    @classmethod
    def definition(cls, product_id: int) -> "BundleDefinition":
        """
        Bundle definition declared on a product.

        Returns:
            BundleDefinition, empty when the product declares no components
            or its custom fields cannot be decoded.
        """
        return cls._run().definition(product_id)

    @classmethod
    def compute(cls, product_id: int) -> "BundleMatrix":
        """
        Compute the options and variants a bundle should publish.

        Nothing is written.

        Raises:
            BundleError: PRODUCT_NOT_FOUND if the product does not exist.
        """
        from bundleman.reconciler import compute_matrix

        run = cls._run()
        product = run.product(product_id)
        if product is None:
            raise BundleError("PRODUCT_NOT_FOUND", product_id=product_id)
        return compute_matrix(product, run)

    @classmethod
    def reconcile(cls, product_id: int) -> "ReconcileResult":
        """Bring one bundle's published state in line with its components."""
        from bundleman.reconciler import reconcile

        return reconcile(product_id, cls._run())

    @classmethod
    def propagate(cls, product_id: int) -> list["ReconcileResult"]:
        """Reconcile every bundle that contains product_id, at any depth."""
        from bundleman.propagation import propagate

        return propagate(product_id, cls._run())

    # ======================================================================
    # PIPELINES
    # ======================================================================

    @classmethod
    def process_product_change(cls, product_id: int) -> list["ReconcileResult"]:
        """
        Full pipeline for one changed product.

        Updates the component index from the product's definition,
        reconciles the product itself when it is a bundle, then propagates
        to every bundle containing it.
        """
        from bundleman.index import sync_bundle_record
        from bundleman.propagation import propagate
        from bundleman.reconciler import reconcile

        run = cls._run()
        results = []
        product = run.product(product_id)
        if product is None:
            if run.store.get_record(product_id) is not None:
                logger.info("Bundle %s no longer exists, removing from index", product_id)
                run.store.delete_record(product_id)
        else:
            sync_bundle_record(product, run.definition(product_id), run.store)
            if run.kind(product).is_composite:
                results.append(reconcile(product_id, run))

        results.extend(propagate(product_id, run))
        return results

    @classmethod
    def process_order(cls, lines: "list[OrderLine | dict]") -> list["InventoryAdjustment"]:
        """
        Full pipeline for one completed sale.

        Lowers the inventory of every component consumed by bundle lines,
        then reconciles the bundles containing those components so their
        published availability follows.
        """
        from bundleman.orders import OrderLine, decrement_order
        from bundleman.propagation import propagate

        lines = [line if isinstance(line, OrderLine) else OrderLine.from_dict(line) for line in lines]
        run = cls._run()
        adjustments = decrement_order(lines, run)
        touched = list(dict.fromkeys(a.product_id for a in adjustments))
        if touched:
            propagate(touched, run)
        return adjustments

    # ======================================================================
    # EVENTS
    # ======================================================================

    @classmethod
    def on_product_changed(cls, product_id: int) -> bool:
        """
        Queue a product change and return immediately.

        Returns:
            False if an identical change was already waiting.
        """
        from bundleman.conf import get_ingestion_queue
        from bundleman.ingestion import Event

        return get_ingestion_queue().put(Event.product_changed(product_id), cls._handle_product_changed)

    @classmethod
    def on_order_placed(cls, lines: "list[OrderLine | dict]") -> bool:
        """Queue a completed sale and return immediately."""
        from bundleman.conf import get_ingestion_queue
        from bundleman.ingestion import Event

        return get_ingestion_queue().put(Event.order_placed(lines), cls._handle_order_placed)

    @classmethod
    def _handle_product_changed(cls, event: "Event") -> None:
        cls.process_product_change(event.product_id)

    @classmethod
    def _handle_order_placed(cls, event: "Event") -> None:
        cls.process_order(list(event.lines))

    # ======================================================================
    # MAINTENANCE
    # ======================================================================

    @classmethod
    def rebuild_index(cls, product_types: list[str] | None = None) -> int:
        """
        Rebuild the component index from a catalog scan.

        Returns:
            Number of bundles indexed.
        """
        from bundleman.conf import get_catalog_backend, get_relationship_store
        from bundleman.index import rebuild_index

        return rebuild_index(get_catalog_backend(), get_relationship_store(), product_types)
