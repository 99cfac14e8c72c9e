"""
Bundleman signals.

Signals:
    bundle_reconciled:
        Sent after a bundle's published state was changed by reconciliation.

        Kwargs:
            sender: ReconcileResult class
            product_id: int - the bundle product id
            result: ReconcileResult

        Example handler::

            from bundleman.signals import bundle_reconciled

            def on_reconciled(sender, product_id, result, **kwargs):
                logger.info("Bundle %s: %s", product_id, result.status)

            bundle_reconciled.connect(on_reconciled)

    reconciliation_failed:
        Sent when a bundle update was abandoned (retries exhausted or a
        non-retryable catalog error).

        Kwargs:
            sender: ReconcileResult class
            product_id: int
            error: BundleError

    inventory_decremented:
        Sent after a component variant's inventory was lowered by a sale.

        Kwargs:
            sender: InventoryAdjustment class
            product_id: int - the component product id
            variant_id: int
            previous: int - available before
            new: int - available after
"""

from django.dispatch import Signal

bundle_reconciled = Signal()
reconciliation_failed = Signal()
inventory_decremented = Signal()
