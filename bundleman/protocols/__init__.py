"""Bundleman protocols."""

from bundleman.protocols.catalog import (
    CatalogBackend,
    CustomField,
    Option,
    Product,
    Variant,
)
from bundleman.protocols.relationships import BundleRecordInfo, RelationshipStore

__all__ = [
    "BundleRecordInfo",
    "CatalogBackend",
    "CustomField",
    "Option",
    "Product",
    "RelationshipStore",
    "Variant",
]
