"""
Maintenance of the component -> bundle index.

The index mirrors the definitions stored on bundle products. It is kept up
to date incrementally on every product change and can be rebuilt from a
full catalog scan.
"""

import logging

from bundleman.definition import BundleDefinition, read_definition
from bundleman.exceptions import BundleError
from bundleman.protocols import CatalogBackend, Product, RelationshipStore
from bundleman.retry import call_with_backoff

logger = logging.getLogger(__name__)


def sync_bundle_record(product: Product, definition: BundleDefinition, store: RelationshipStore) -> bool:
    """
    Bring the stored record of one product in line with its definition.

    Returns:
        True if the index was changed.
    """
    record = store.get_record(product.id)

    if definition.is_empty:
        if record is None:
            return False
        logger.info("Product %s (%s) no longer declares components, removing from index", product.id, product.title)
        store.delete_record(product.id)
        return True

    if (
        record is not None
        and list(record.component_ids) == list(definition.component_ids)
        and list(record.quantities) == list(definition.quantities)
        and record.title == product.title
    ):
        return False

    logger.info(
        "Indexing bundle %s (%s) with components %s",
        product.id, product.title, definition.component_ids,
    )
    store.upsert_record(product.id, definition.component_ids, definition.quantities, title=product.title)
    return True


def rebuild_index(
    backend: CatalogBackend,
    store: RelationshipStore,
    product_types: list[str] | None = None,
) -> int:
    """
    Rebuild the index from the catalog.

    Lists every product of the bundle product types, indexes the ones that
    declare components and drops records of bundles that were not seen.

    Returns:
        Number of bundles indexed.
    """
    from bundleman.conf import bundleman_settings

    product_types = product_types or bundleman_settings.BUNDLE_PRODUCT_TYPES
    seen = set()
    unreadable = set()

    for product_type in product_types:
        products = call_with_backoff(backend.list_products_by_type, product_type)
        logger.info("Scanning %d products of type %r", len(products), product_type)
        for product in products:
            try:
                fields = call_with_backoff(backend.get_custom_fields, product.id)
            except BundleError as e:
                logger.warning("Could not read custom fields of %s, skipping: %s", product.id, e)
                unreadable.add(product.id)
                continue
            definition = read_definition(fields)
            if definition.is_empty:
                continue
            sync_bundle_record(product, definition, store)
            seen.add(product.id)

    keep = seen | unreadable
    stale = [bundle_id for bundle_id in store.all_bundle_ids() if bundle_id not in keep]
    for bundle_id in stale:
        logger.info("Removing stale bundle %s from index", bundle_id)
        store.delete_record(bundle_id)

    return len(seen)
