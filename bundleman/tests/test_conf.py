"""Tests for settings and backend loading."""

import pytest

from bundleman import conf
from bundleman.adapters.relationship_store import DjangoRelationshipStore
from bundleman.adapters.shopify import ShopifyCatalogBackend
from bundleman.conf import BundlemanSettings, bundleman_settings, get_bundleman_settings
from bundleman.ingestion import IngestionQueue


@pytest.fixture(autouse=True)
def clean_backends():
    conf.reset_backends()
    yield
    conf.reset_backends()


class TestSettings:
    def test_defaults(self):
        defaults = BundlemanSettings()
        assert defaults.MAX_OPTIONS == 3
        assert defaults.MAX_VARIANTS == 100
        assert defaults.RETRY_ATTEMPTS == 5
        assert defaults.READ_BATCH_SIZE == 5
        assert defaults.BUNDLE_PRODUCT_TYPES == ["Bundle"]
        assert defaults.UNBOUNDED_INVENTORY == "unbounded"

    def test_reads_django_settings(self, settings):
        settings.BUNDLEMAN = {"MAX_VARIANTS": 50}
        assert get_bundleman_settings().MAX_VARIANTS == 50

    def test_lazy_proxy_follows_changes(self, settings):
        settings.BUNDLEMAN = {"READ_BATCH_SIZE": 2}
        assert bundleman_settings.READ_BATCH_SIZE == 2
        settings.BUNDLEMAN = {"READ_BATCH_SIZE": 8}
        assert bundleman_settings.READ_BATCH_SIZE == 8

    def test_unknown_key_is_an_error(self, settings):
        settings.BUNDLEMAN = {"NOPE": 1}
        with pytest.raises(TypeError):
            get_bundleman_settings()


class TestBackendLoading:
    def test_catalog_backend_from_dotted_path(self, settings):
        settings.BUNDLEMAN = {"CATALOG_BACKEND": "bundleman.adapters.shopify.ShopifyCatalogBackend"}
        backend = conf.get_catalog_backend()
        assert isinstance(backend, ShopifyCatalogBackend)
        assert conf.get_catalog_backend() is backend

    def test_relationship_store_default(self):
        assert isinstance(conf.get_relationship_store(), DjangoRelationshipStore)

    def test_ingestion_queue_eager_from_settings(self):
        queue = conf.get_ingestion_queue()
        assert isinstance(queue, IngestionQueue)
        assert queue.eager
        assert conf.get_ingestion_queue() is queue

    def test_reset(self):
        conf._catalog_backend_instance = "something"
        conf.reset_backends()
        assert conf._catalog_backend_instance is None
