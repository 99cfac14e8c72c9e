"""Catalog protocols."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Protocol, runtime_checkable


DEFAULT_OPTION_NAME = "Title"
DEFAULT_OPTION_VALUE = "Default Title"


@dataclass(frozen=True)
class Option:
    """Purchasable dimension of a product (e.g. Color)."""

    name: str
    values: list[str] = field(default_factory=list)
    position: int = 1


@dataclass(frozen=True)
class Variant:
    """Concrete combination of option values.

    Inventory is only meaningful when inventory_managed is True; the catalog
    does not track stock for the other variants.
    """

    id: int | None
    option1: str | None = DEFAULT_OPTION_VALUE
    option2: str | None = None
    option3: str | None = None
    price: Decimal = Decimal("0")
    inventory_managed: bool = False
    available: int = 0
    inventory_item_id: int | None = None

    @property
    def selectors(self) -> tuple[str | None, str | None, str | None]:
        return (self.option1, self.option2, self.option3)

    def selector(self, position: int) -> str | None:
        """Option value at a 1-based position."""
        return self.selectors[position - 1]


@dataclass(frozen=True)
class Product:
    """Catalog product as published."""

    id: int
    title: str
    product_type: str = ""
    options: list[Option] = field(default_factory=list)
    variants: list[Variant] = field(default_factory=list)

    def get_variant(self, variant_id: int) -> Variant | None:
        for variant in self.variants:
            if variant.id == variant_id:
                return variant
        return None


@dataclass(frozen=True)
class CustomField:
    """Product custom field (Shopify metafield)."""

    key: str
    value: str
    namespace: str = ""


def default_options() -> list[Option]:
    """Option list of a product with no real options."""
    return [Option(name=DEFAULT_OPTION_NAME, values=[DEFAULT_OPTION_VALUE], position=1)]


@runtime_checkable
class CatalogBackend(Protocol):
    """Interface for reading and writing the external catalog.

    Every call may raise BundleError with code RATE_LIMITED or TIMEOUT
    (retryable), PRODUCT_NOT_FOUND or CATALOG_ERROR.
    """

    def get_product(self, product_id: int) -> Product | None:
        """Return product by id, None if it does not exist."""
        ...

    def list_products_by_type(self, product_type: str) -> list[Product]:
        """Return every product with the given product type."""
        ...

    def update_variant_price(self, variant_id: int, price: Decimal) -> None:
        """Set a single variant's price."""
        ...

    def update_product_options_and_variants(
        self,
        product_id: int,
        options: list[Option],
        variants: list[Variant],
    ) -> None:
        """Replace a product's options and variants in one call."""
        ...

    def set_variant_inventory(self, variant_id: int, quantity: int) -> None:
        """Set the available quantity of an inventory-managed variant."""
        ...

    def get_custom_fields(self, product_id: int) -> list[CustomField]:
        """Return the product's custom fields."""
        ...
