"""Relationship store protocol.

The relationship store is a reverse index of bundle definitions: for every
bundle it keeps the declared component ids, so "which bundles contain
product X" is a lookup instead of a catalog scan.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class BundleRecordInfo:
    """Stored bundle definition."""

    bundle_id: int
    component_ids: list[int] = field(default_factory=list)
    quantities: list[Decimal] = field(default_factory=list)
    title: str = ""


@runtime_checkable
class RelationshipStore(Protocol):
    """Interface for the component -> bundle index."""

    def find_containers_of(self, component_id: int) -> list[int]:
        """Return ids of bundles that directly declare component_id."""
        ...

    def get_record(self, bundle_id: int) -> BundleRecordInfo | None:
        """Return the stored definition of a bundle."""
        ...

    def upsert_record(
        self,
        bundle_id: int,
        component_ids: list[int],
        quantities: list[Decimal],
        title: str = "",
    ) -> None:
        """Create or replace a bundle's stored definition."""
        ...

    def delete_record(self, bundle_id: int) -> None:
        """Forget a bundle."""
        ...

    def all_bundle_ids(self) -> list[int]:
        """Return ids of every stored bundle."""
        ...
