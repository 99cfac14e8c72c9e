"""
Tests for Bundleman models and the ORM relationship store.
"""

from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError
from django.db import IntegrityError

from bundleman.adapters.relationship_store import DjangoRelationshipStore
from bundleman.models import BundleComponent, BundleRecord
from bundleman.protocols import BundleRecordInfo, RelationshipStore


pytestmark = pytest.mark.django_db


@pytest.fixture
def orm_store():
    return DjangoRelationshipStore()


class TestBundleRecord:
    def test_str(self):
        assert str(BundleRecord.objects.create(product_id=100, title="Gift Box")) == "100 - Gift Box"
        assert str(BundleRecord.objects.create(product_id=101)) == "101"

    def test_component_order(self):
        record = BundleRecord.objects.create(product_id=100)
        BundleComponent.objects.create(record=record, component_id=2, qty=Decimal("1"), position=1)
        BundleComponent.objects.create(record=record, component_id=1, qty=Decimal("2"), position=0)

        assert record.component_ids == [1, 2]
        assert record.quantities == [Decimal("2"), Decimal("1")]

    def test_history_is_tracked(self):
        record = BundleRecord.objects.create(product_id=100, title="Gift Box")
        record.title = "Holiday Box"
        record.save()

        assert record.history.count() == 2
        assert record.history.first().title == "Holiday Box"


class TestBundleComponent:
    def test_self_reference_rejected(self):
        record = BundleRecord.objects.create(product_id=100)
        component = BundleComponent(record=record, component_id=100, qty=Decimal("1"), position=0)

        with pytest.raises(ValidationError):
            component.clean()

    def test_quantity_must_be_positive(self):
        record = BundleRecord.objects.create(product_id=100)
        component = BundleComponent(record=record, component_id=1, qty=Decimal("0"), position=0)

        with pytest.raises(ValidationError):
            component.full_clean()

    def test_position_unique_per_bundle(self):
        record = BundleRecord.objects.create(product_id=100)
        BundleComponent.objects.create(record=record, component_id=1, position=0)

        with pytest.raises(IntegrityError):
            BundleComponent.objects.create(record=record, component_id=2, position=0)


class TestDjangoRelationshipStore:
    def test_implements_protocol(self, orm_store):
        assert isinstance(orm_store, RelationshipStore)

    def test_upsert_and_get(self, orm_store):
        orm_store.upsert_record(100, [1, 2], [Decimal("2"), Decimal("1")], title="Gift Box")

        assert orm_store.get_record(100) == BundleRecordInfo(
            bundle_id=100,
            component_ids=[1, 2],
            quantities=[Decimal("2"), Decimal("1")],
            title="Gift Box",
        )

    def test_upsert_replaces_components(self, orm_store):
        orm_store.upsert_record(100, [1, 2], [Decimal("1"), Decimal("1")])
        orm_store.upsert_record(100, [3], [Decimal("0.5")], title="Renamed")

        record = orm_store.get_record(100)
        assert record.component_ids == [3]
        assert record.quantities == [Decimal("0.5")]
        assert record.title == "Renamed"
        assert BundleComponent.objects.count() == 1

    def test_find_containers_of(self, orm_store):
        orm_store.upsert_record(100, [1, 2], [Decimal("1"), Decimal("1")])
        orm_store.upsert_record(200, [1, 1], [Decimal("1"), Decimal("1")])
        orm_store.upsert_record(300, [2], [Decimal("1")])

        assert orm_store.find_containers_of(1) == [100, 200]
        assert orm_store.find_containers_of(2) == [100, 300]
        assert orm_store.find_containers_of(9) == []

    def test_delete_record(self, orm_store):
        orm_store.upsert_record(100, [1], [Decimal("1")])
        orm_store.delete_record(100)

        assert orm_store.get_record(100) is None
        assert orm_store.find_containers_of(1) == []
        assert orm_store.all_bundle_ids() == []

    def test_missing_record(self, orm_store):
        assert orm_store.get_record(404) is None

    def test_all_bundle_ids(self, orm_store):
        orm_store.upsert_record(200, [1], [Decimal("1")])
        orm_store.upsert_record(100, [1], [Decimal("1")])

        assert orm_store.all_bundle_ids() == [100, 200]
