"""
Bundle definitions and product classification.

A bundle declares its components in two custom fields on the catalog
product: a JSON array of component references and a parallel JSON array of
quantities. References are opaque strings; the numeric id is whatever digits
they contain ("gid://shopify/Product/42" -> 42).

Older products use numbered fields instead (component_1 / quantity_1, ...),
which are read when the JSON field is absent.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from bundleman.protocols.catalog import (
    DEFAULT_OPTION_NAME,
    DEFAULT_OPTION_VALUE,
    CustomField,
    Product,
)

logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"[^0-9]")


class InvalidDefinition(ValueError):
    """Custom field contents could not be decoded."""


@dataclass(frozen=True)
class BundleDefinition:
    """Ordered (component id, quantity) pairs declared by a bundle."""

    component_ids: list[int] = field(default_factory=list)
    quantities: list[Decimal] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.component_ids

    def items(self) -> list[tuple[int, Decimal]]:
        return list(zip(self.component_ids, self.quantities))


EMPTY_DEFINITION = BundleDefinition()


class Kind:
    SIMPLE = "simple"
    COMPOSITE = "composite"
    NORMAL = "normal"


@dataclass(frozen=True)
class ProductKind:
    """
    What a product is, from the engine's point of view.

    COMPOSITE products carry their definition. SIMPLE and NORMAL products
    have none; SIMPLE ones additionally have the single default variant.
    """

    tag: str
    definition: BundleDefinition = EMPTY_DEFINITION

    @property
    def is_composite(self) -> bool:
        return self.tag == Kind.COMPOSITE


def is_simple_product(product: Product) -> bool:
    """True if the product has one default variant and no real options."""
    if len(product.variants) != 1:
        return False
    if not product.options:
        return True
    if len(product.options) != 1:
        return False
    option = product.options[0]
    return option.name == DEFAULT_OPTION_NAME and list(option.values) == [DEFAULT_OPTION_VALUE]


def classify(product: Product, definition: BundleDefinition) -> ProductKind:
    """Tag a product as composite, simple or normal."""
    if not definition.is_empty:
        return ProductKind(tag=Kind.COMPOSITE, definition=definition)
    if is_simple_product(product):
        return ProductKind(tag=Kind.SIMPLE)
    return ProductKind(tag=Kind.NORMAL)


def parse_component_id(reference) -> int:
    """Extract the numeric id from an opaque component reference."""
    digits = _NON_DIGITS.sub("", str(reference))
    if not digits:
        raise InvalidDefinition(f"Component reference {reference!r} has no id")
    return int(digits)


def parse_quantity(raw) -> Decimal:
    try:
        qty = Decimal(str(raw).strip())
    except InvalidOperation as e:
        raise InvalidDefinition(f"Quantity {raw!r} is not a number") from e
    if not qty.is_finite() or qty <= 0:
        raise InvalidDefinition(f"Quantity {raw!r} must be positive")
    return qty


def _field_map(fields: list[CustomField], namespace: str) -> dict[str, str]:
    """Custom field values by key, restricted to one namespace."""
    return {
        f.key: f.value
        for f in fields
        if not namespace or not f.namespace or f.namespace == namespace
    }


def _decode_json_list(raw: str) -> list:
    try:
        value = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise InvalidDefinition(f"Not JSON: {raw!r}") from e
    if not isinstance(value, list):
        raise InvalidDefinition(f"Expected a JSON array, got {type(value).__name__}")
    return value


def _read_json_layout(values: dict[str, str], components_key: str, quantities_key: str):
    component_ids = [parse_component_id(ref) for ref in _decode_json_list(values[components_key])]

    quantities = None
    if quantities_key in values:
        raw_quantities = _decode_json_list(values[quantities_key])
        if len(raw_quantities) == len(component_ids):
            quantities = [parse_quantity(q) for q in raw_quantities]
    if quantities is None:
        quantities = [Decimal("1")] * len(component_ids)
    return component_ids, quantities


def _read_numbered_layout(values: dict[str, str], max_components: int):
    component_ids = []
    quantities = []
    for i in range(1, max_components + 1):
        ref = values.get(f"component_{i}")
        qty = values.get(f"quantity_{i}")
        if ref is None or qty is None:
            continue
        component_ids.append(parse_component_id(ref))
        quantities.append(parse_quantity(qty))
    return component_ids, quantities


def read_definition(
    fields: list[CustomField],
    namespace: str | None = None,
    components_key: str | None = None,
    quantities_key: str | None = None,
) -> BundleDefinition:
    """
    Decode a bundle definition from a product's custom fields.

    Never raises: a malformed definition is logged and read as empty, so a
    broken bundle behaves like a normal product instead of blocking the
    pipeline.

    Args:
        fields: The product's custom fields
        namespace: Field namespace (default: DEFINITION_NAMESPACE setting)
        components_key: Key of the component reference array
        quantities_key: Key of the parallel quantity array

    Returns:
        BundleDefinition (empty if the product declares no components)
    """
    from bundleman.conf import bundleman_settings

    namespace = bundleman_settings.DEFINITION_NAMESPACE if namespace is None else namespace
    components_key = components_key or bundleman_settings.COMPONENTS_KEY
    quantities_key = quantities_key or bundleman_settings.QUANTITIES_KEY

    values = _field_map(fields, namespace)
    try:
        if components_key in values:
            component_ids, quantities = _read_json_layout(values, components_key, quantities_key)
        else:
            component_ids, quantities = _read_numbered_layout(
                values, bundleman_settings.LEGACY_MAX_COMPONENTS
            )
    except InvalidDefinition as e:
        logger.warning("Ignoring malformed bundle definition: %s", e)
        return EMPTY_DEFINITION

    return BundleDefinition(component_ids=component_ids, quantities=quantities)
