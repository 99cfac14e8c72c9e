"""RelationshipStore implementation backed by the Django ORM."""

from decimal import Decimal

from django.db import transaction

from bundleman.protocols import BundleRecordInfo, RelationshipStore


class DjangoRelationshipStore:
    """
    RelationshipStore using BundleRecord / BundleComponent tables.

    Reverse lookups hit the indexed BundleComponent.component_id column.
    """

    def find_containers_of(self, component_id: int) -> list[int]:
        """Return ids of bundles that directly declare component_id."""
        from bundleman.models import BundleComponent

        ids = (
            BundleComponent.objects.filter(component_id=component_id)
            .values_list("record__product_id", flat=True)
            .distinct()
            .order_by("record__product_id")
        )
        return list(ids)

    def get_record(self, bundle_id: int) -> BundleRecordInfo | None:
        """Return the stored definition of a bundle."""
        from bundleman.models import BundleRecord

        record = (
            BundleRecord.objects.filter(product_id=bundle_id)
            .prefetch_related("components")
            .first()
        )
        if record is None:
            return None
        components = sorted(record.components.all(), key=lambda c: c.position)
        return BundleRecordInfo(
            bundle_id=record.product_id,
            component_ids=[c.component_id for c in components],
            quantities=[c.qty for c in components],
            title=record.title,
        )

    def upsert_record(
        self,
        bundle_id: int,
        component_ids: list[int],
        quantities: list[Decimal],
        title: str = "",
    ) -> None:
        """Create or replace a bundle's stored definition."""
        from bundleman.models import BundleComponent, BundleRecord

        with transaction.atomic():
            record, created = BundleRecord.objects.get_or_create(
                product_id=bundle_id, defaults={"title": title}
            )
            if not created and title and record.title != title:
                record.title = title
                record.save(update_fields=["title", "updated_at"])
            record.components.all().delete()
            BundleComponent.objects.bulk_create(
                [
                    BundleComponent(
                        record=record,
                        component_id=component_id,
                        qty=Decimal(str(qty)),
                        position=position,
                    )
                    for position, (component_id, qty) in enumerate(
                        zip(component_ids, quantities)
                    )
                ]
            )

    def delete_record(self, bundle_id: int) -> None:
        """Forget a bundle."""
        from bundleman.models import BundleRecord

        BundleRecord.objects.filter(product_id=bundle_id).delete()

    def all_bundle_ids(self) -> list[int]:
        """Return ids of every stored bundle."""
        from bundleman.models import BundleRecord

        return list(BundleRecord.objects.values_list("product_id", flat=True))


# Verify implementation at import time
if not isinstance(DjangoRelationshipStore(), RelationshipStore):
    raise TypeError("DjangoRelationshipStore does not implement RelationshipStore protocol")
