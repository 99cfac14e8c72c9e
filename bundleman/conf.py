"""
Bundleman configuration.

Usage in settings.py:
    BUNDLEMAN = {
        "CATALOG_BACKEND": "bundleman.adapters.shopify.ShopifyCatalogBackend",
        "SHOPIFY_SHOP": "my-store",
        "SHOPIFY_ACCESS_TOKEN": env("SHOPIFY_ACCESS_TOKEN"),
        "SHOPIFY_LOCATION_ID": 123456789,
        "BUNDLE_PRODUCT_TYPES": ["Bundle", "Gift Box"],
    }
"""

import importlib
import threading
from dataclasses import dataclass, field
from typing import Any

from django.conf import settings

from bundleman.exceptions import BundleError


@dataclass
class BundlemanSettings:
    """Bundleman configuration settings."""

    # Backends (dotted paths)
    CATALOG_BACKEND: str | None = "bundleman.adapters.shopify.ShopifyCatalogBackend"
    RELATIONSHIP_STORE: str = "bundleman.adapters.relationship_store.DjangoRelationshipStore"

    # Shopify Admin REST API
    SHOPIFY_SHOP: str = ""
    SHOPIFY_ACCESS_TOKEN: str = ""
    SHOPIFY_API_VERSION: str = "2024-10"
    SHOPIFY_LOCATION_ID: int | None = None
    REQUEST_TIMEOUT: float = 30.0

    # Where bundle definitions live in product custom fields
    DEFINITION_NAMESPACE: str = "custom"
    COMPONENTS_KEY: str = "components"
    QUANTITIES_KEY: str = "quantities"
    LEGACY_MAX_COMPONENTS: int = 20
    BUNDLE_PRODUCT_TYPES: list[str] = field(default_factory=lambda: ["Bundle"])

    # Platform ceilings
    MAX_OPTIONS: int = 3
    MAX_VARIANTS: int = 100

    # Rate limiting
    RETRY_ATTEMPTS: int = 5
    RETRY_BASE_DELAY: float = 1.0
    READ_BATCH_SIZE: int = 5

    # "unbounded": variants with no managed component are published untracked.
    # "zero": they are published as tracked with 0 available.
    UNBOUNDED_INVENTORY: str = "unbounded"

    # Run queue handlers inline instead of on the worker thread
    QUEUE_EAGER: bool = False


def get_bundleman_settings() -> BundlemanSettings:
    """Load settings from Django settings."""
    user_settings: dict[str, Any] = getattr(settings, "BUNDLEMAN", {})
    return BundlemanSettings(**user_settings)


class _LazySettings:
    """Lazy proxy that re-reads settings on every attribute access."""

    def __getattr__(self, name):
        return getattr(get_bundleman_settings(), name)


bundleman_settings = _LazySettings()


def _import_from_path(path: str):
    module_path, cls_name = path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, cls_name)


# Backend singletons
_lock = threading.Lock()
_catalog_backend_instance = None
_relationship_store_instance = None
_ingestion_queue_instance = None


def get_catalog_backend():
    """
    Return the configured CatalogBackend instance.

    Loads from BUNDLEMAN["CATALOG_BACKEND"] setting (dotted path).
    If _catalog_backend_instance was set directly (e.g. in tests), returns it as-is.

    Raises:
        BundleError: BACKEND_NOT_CONFIGURED if the setting is empty.
    """
    global _catalog_backend_instance
    if _catalog_backend_instance is not None:
        return _catalog_backend_instance
    backend_path = bundleman_settings.CATALOG_BACKEND
    if not backend_path:
        raise BundleError("BACKEND_NOT_CONFIGURED", backend="CATALOG_BACKEND")
    with _lock:
        if _catalog_backend_instance is None:
            _catalog_backend_instance = _import_from_path(backend_path)()
    return _catalog_backend_instance


def get_relationship_store():
    """Return the configured RelationshipStore instance."""
    global _relationship_store_instance
    if _relationship_store_instance is not None:
        return _relationship_store_instance
    store_path = bundleman_settings.RELATIONSHIP_STORE
    if not store_path:
        raise BundleError("BACKEND_NOT_CONFIGURED", backend="RELATIONSHIP_STORE")
    with _lock:
        if _relationship_store_instance is None:
            _relationship_store_instance = _import_from_path(store_path)()
    return _relationship_store_instance


def get_ingestion_queue():
    """Return the process-wide IngestionQueue, creating it on first use."""
    global _ingestion_queue_instance
    if _ingestion_queue_instance is None:
        from bundleman.ingestion import IngestionQueue

        with _lock:
            if _ingestion_queue_instance is None:  # double-checked
                _ingestion_queue_instance = IngestionQueue(
                    eager=bundleman_settings.QUEUE_EAGER
                )
    return _ingestion_queue_instance


def reset_backends():
    """Reset backend singletons (for tests)."""
    global _catalog_backend_instance, _relationship_store_instance, _ingestion_queue_instance
    if _ingestion_queue_instance is not None:
        _ingestion_queue_instance.stop()
    _catalog_backend_instance = None
    _relationship_store_instance = None
    _ingestion_queue_instance = None
