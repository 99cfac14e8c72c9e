"""Bundleman adapters."""

from bundleman.adapters.relationship_store import DjangoRelationshipStore
from bundleman.adapters.shopify import ShopifyCatalogBackend

__all__ = [
    "DjangoRelationshipStore",
    "ShopifyCatalogBackend",
]
