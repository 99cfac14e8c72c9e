"""
Tests for the BundleService facade.

Runs against the fake catalog and the ORM relationship store, with the
ingestion queue in eager mode.
"""

from decimal import Decimal
from unittest.mock import patch

import pytest

from bundleman import BundleError, BundleService, conf
from bundleman.ingestion import IngestionQueue
from bundleman.models import BundleRecord
from bundleman.reconciler import Status
from bundleman.tests.fakes import definition_fields, optioned_product, simple_product


pytestmark = pytest.mark.django_db


@pytest.fixture
def shop(backends):
    """Mug, candle and a gift box holding 2 mugs and a candle."""
    backends.add(simple_product(1, "3.00", title="Mug"))
    backends.add(simple_product(2, "5.00", available=4, title="Candle"))
    backends.add_bundle(100, [(1, 2), (2, 1)], title="Gift Box")
    return backends


class TestCoreApi:
    def test_definition(self, shop):
        definition = BundleService.definition(100)
        assert definition.component_ids == [1, 2]
        assert definition.quantities == [Decimal("2"), Decimal("1")]

    def test_compute_writes_nothing(self, shop):
        matrix = BundleService.compute(100)

        assert matrix.valid
        assert matrix.variants[0].price == Decimal("11.00")
        assert matrix.variants[0].available == 4
        assert shop.writes == []

    def test_compute_missing_product(self, shop):
        with pytest.raises(BundleError) as exc:
            BundleService.compute(404)
        assert exc.value.code == "PRODUCT_NOT_FOUND"

    def test_reconcile(self, shop):
        result = BundleService.reconcile(100)

        assert result.status == Status.UPDATED
        assert shop.products[100].variants[0].price == Decimal("11.00")

    def test_propagate_uses_index(self, shop):
        BundleService.process_product_change(100)
        shop.add(simple_product(1, "4.00", title="Mug"))

        results = BundleService.propagate(1)

        assert [(r.product_id, r.status) for r in results] == [(100, Status.UPDATED)]
        assert shop.products[100].variants[0].price == Decimal("13.00")

    def test_unconfigured_backend(self, settings):
        conf.reset_backends()
        settings.BUNDLEMAN = {"CATALOG_BACKEND": None}
        with pytest.raises(BundleError) as exc:
            BundleService.reconcile(1)
        assert exc.value.code == "BACKEND_NOT_CONFIGURED"


class TestProcessProductChange:
    def test_bundle_change_indexes_and_reconciles(self, shop):
        results = BundleService.process_product_change(100)

        assert [r.status for r in results] == [Status.UPDATED]
        assert BundleRecord.objects.get(product_id=100).component_ids == [1, 2]
        assert shop.products[100].variants[0].available == 4

    def test_leaf_change_reaches_nested_bundles(self, shop):
        shop.add_bundle(300, [(100, 2)], title="Double Box")
        BundleService.process_product_change(100)
        BundleService.process_product_change(300)

        shop.add(simple_product(2, "6.00", available=9, title="Candle"))
        results = BundleService.process_product_change(2)

        assert [r.product_id for r in results] == [100, 300]
        assert shop.products[100].variants[0].price == Decimal("12.00")
        assert shop.products[300].variants[0].price == Decimal("24.00")
        assert shop.products[300].variants[0].available == 4

    def test_definition_removed(self, shop):
        BundleService.process_product_change(100)
        shop.fields[100] = []

        BundleService.process_product_change(100)

        assert not BundleRecord.objects.filter(product_id=100).exists()

    def test_deleted_bundle_leaves_index(self, shop):
        BundleService.process_product_change(100)
        del shop.products[100]

        BundleService.process_product_change(100)

        assert not BundleRecord.objects.filter(product_id=100).exists()

    def test_repeated_change_is_idempotent(self, shop):
        BundleService.process_product_change(100)
        writes = len(shop.writes)

        BundleService.process_product_change(100)

        assert len(shop.writes) == writes


class TestProcessOrder:
    def test_sale_lowers_components_and_republishes(self, shop):
        BundleService.process_product_change(100)
        variant_id = shop.products[100].variants[0].id

        adjustments = BundleService.process_order(
            [{"product_id": 100, "variant_id": variant_id, "quantity": 2}]
        )

        assert [(a.product_id, a.previous, a.new) for a in adjustments] == [(2, 4, 2)]
        assert shop.available(20) == 2
        assert shop.products[100].variants[0].available == 2

    def test_optioned_sale(self, backends):
        backends.add(optioned_product(3, "Color", ["Red", "Blue"], price="20.00", available={"Red": 5, "Blue": 2}))
        backends.add(optioned_product(4, "Color", ["Red", "Blue"], price="10.00", available={"Red": 8, "Blue": 8}))
        backends.add_bundle(200, [(3, 1), (4, 1)])
        BundleService.process_product_change(200)
        blue_red = next(v for v in backends.products[200].variants if v.selectors == ("Blue", "Red", None))

        BundleService.process_order([{"product_id": 200, "variant_id": blue_red.id, "quantity": 2}])

        assert backends.available(32) == 0
        assert backends.available(41) == 6
        republished = next(v for v in backends.products[200].variants if v.selectors == ("Blue", "Red", None))
        assert republished.available == 0

    def test_non_bundle_sale_changes_nothing(self, shop):
        assert BundleService.process_order([{"product_id": 1, "variant_id": 10, "quantity": 1}]) == []
        assert shop.writes == []


class TestEvents:
    def test_product_changed_runs_pipeline_in_eager_mode(self, shop):
        assert BundleService.on_product_changed(100)
        assert shop.products[100].variants[0].price == Decimal("11.00")

    def test_order_placed_runs_pipeline_in_eager_mode(self, shop):
        BundleService.on_product_changed(100)

        BundleService.on_order_placed([{"product_id": 100, "variant_id": None, "quantity": 1}])

        assert shop.available(20) == 3

    def test_events_go_through_configured_queue(self, shop):
        queue = IngestionQueue(eager=True)
        with patch("bundleman.conf.get_ingestion_queue", return_value=queue), patch.object(queue, "put") as put:
            BundleService.on_product_changed(100)

        event, handler = put.call_args.args
        assert event.product_id == 100
        assert handler == BundleService._handle_product_changed


class TestRebuildIndex:
    def test_rebuild(self, shop):
        shop.add_bundle(200, [(1, 1)], product_type="Gift Box")

        assert BundleService.rebuild_index() == 1
        assert BundleService.rebuild_index(["Bundle", "Gift Box"]) == 2
        assert set(BundleRecord.objects.values_list("product_id", flat=True)) == {100, 200}

    def test_rebuild_then_propagate(self, shop):
        shop.add(simple_product(300, "0", title="Box of boxes"), definition_fields([(100, 1)]))
        BundleService.rebuild_index(["Bundle", ""])

        results = BundleService.propagate(2)

        assert [r.product_id for r in results] == [100, 300]
