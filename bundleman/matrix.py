"""
Variant matrix of a bundle.

Simple components only add to price and inventory. Every component with
real options contributes its option list once per unit of quantity, and
the bundle's variants are the Cartesian product of all those options.
"""

import itertools
import logging
import math
from dataclasses import dataclass, field
from decimal import Decimal

from bundleman.pricing import Contribution, TargetVariant, combine, resolve_group, simple_contribution
from bundleman.protocols.catalog import DEFAULT_OPTION_NAME, DEFAULT_OPTION_VALUE, Option

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatrixOption:
    """
    Bundle option together with where it came from.

    slot identifies the owning component (index among the bundle's
    components with options), replica which unit of its quantity, and
    source_position the option's position on the component product.
    """

    name: str
    values: list[str]
    position: int
    component_id: int | None = None
    component_title: str = ""
    slot: int = 0
    replica: int = 0
    source_position: int = 1

    @property
    def owner(self) -> tuple[int, int]:
        return (self.slot, self.replica)

    def as_option(self) -> Option:
        return Option(name=self.name, values=list(self.values), position=self.position)


@dataclass(frozen=True)
class BundleMatrix:
    """Computed options and variants of a bundle, or why there are none."""

    valid: bool
    error: str | None = None
    options: list[MatrixOption] = field(default_factory=list)
    variants: list[TargetVariant] = field(default_factory=list)
    is_simple: bool = False

    @classmethod
    def invalid(cls, error: str) -> "BundleMatrix":
        return cls(valid=False, error=error)


class MatrixRejected(Exception):
    """A bundle crossed a platform ceiling while its options were expanded."""

    def __init__(self, code: str):
        self.code = code
        super().__init__(code)


def disambiguate(names: list[str]) -> list[str]:
    """Make option names unique: Color, Color 2, Color 3, ..."""
    seen = set()
    result = []
    for name in names:
        candidate = name
        n = 1
        while candidate in seen:
            n += 1
            candidate = f"{name} {n}"
        seen.add(candidate)
        result.append(candidate)
    return result


def _replica_count(quantity: Decimal) -> int:
    if quantity != quantity.to_integral_value():
        raise MatrixRejected("FRACTIONAL_OPTION_COMPONENT")
    return int(quantity)


def expand_options(optioned: list, max_options: int, max_variants: int) -> list[MatrixOption]:
    """
    Replicated, disambiguated option list of the components with options.

    Raises:
        MatrixRejected: as soon as a ceiling is crossed.
    """
    candidates = []
    combinations = 1
    for slot, component in enumerate(optioned):
        options = sorted(component.product.options, key=lambda o: o.position)
        for replica in range(_replica_count(component.quantity)):
            for option in options:
                candidates.append(
                    MatrixOption(
                        name=option.name,
                        values=list(option.values),
                        position=0,
                        component_id=component.product.id,
                        component_title=component.product.title,
                        slot=slot,
                        replica=replica,
                        source_position=option.position,
                    )
                )
                if len(candidates) > max_options:
                    raise MatrixRejected("TOO_MANY_OPTIONS")
            combinations *= max(len(component.product.variants), 1)
            if combinations > max_variants:
                raise MatrixRejected("TOO_MANY_VARIANTS")

    names = disambiguate([c.name for c in candidates])
    return [
        MatrixOption(
            name=name,
            values=c.values,
            position=position,
            component_id=c.component_id,
            component_title=c.component_title,
            slot=c.slot,
            replica=c.replica,
            source_position=c.source_position,
        )
        for position, (name, c) in enumerate(zip(names, candidates), start=1)
    ]


def group_by_owner(options: list[MatrixOption], combination: tuple) -> dict[tuple[int, int], dict[int, str]]:
    """Split a combination into {owner: {source_position: value}}."""
    groups: dict[tuple[int, int], dict[int, str]] = {}
    for option, value in zip(options, combination):
        groups.setdefault(option.owner, {})[option.source_position] = value
    return groups


def resolve_combination(
    combination: tuple,
    options: list[MatrixOption],
    optioned: list,
    base: Contribution,
) -> TargetVariant | None:
    """Price and inventory of one combination, None if it cannot be resolved."""
    picks = []
    for (slot, _replica), values in group_by_owner(options, combination).items():
        product = optioned[slot].product
        variant = resolve_group(product, values)
        if variant is None:
            return None
        picks.append((product, variant))

    price, available = combine(base, picks)
    selectors = list(combination) + [None] * (3 - len(combination))
    return TargetVariant(
        option1=selectors[0],
        option2=selectors[1],
        option3=selectors[2],
        price=price,
        available=available,
    )


def build_matrix(
    components: list,
    max_options: int | None = None,
    max_variants: int | None = None,
) -> BundleMatrix:
    """
    Build the option/variant matrix of a bundle.

    Args:
        components: ResolvedComponent list (live products with quantities)
        max_options: Option ceiling (default: MAX_OPTIONS setting)
        max_variants: Variant ceiling (default: MAX_VARIANTS setting)

    Returns:
        BundleMatrix; invalid with an error code when limits are exceeded or
        nothing could be resolved. Never partially expanded.
    """
    from bundleman.conf import bundleman_settings

    max_options = max_options or bundleman_settings.MAX_OPTIONS
    max_variants = max_variants or bundleman_settings.MAX_VARIANTS

    if not components:
        return BundleMatrix.invalid("NO_COMPONENTS")

    simples = [c for c in components if c.is_simple]
    optioned = [c for c in components if not c.is_simple]
    base = simple_contribution(simples)

    if not optioned:
        return BundleMatrix(
            valid=True,
            options=[MatrixOption(name=DEFAULT_OPTION_NAME, values=[DEFAULT_OPTION_VALUE], position=1)],
            variants=[TargetVariant(option1=DEFAULT_OPTION_VALUE, price=base.price, available=base.available)],
            is_simple=True,
        )

    try:
        options = expand_options(optioned, max_options, max_variants)
    except MatrixRejected as e:
        logger.info("Bundle rejected: %s", e.code)
        return BundleMatrix.invalid(e.code)

    if math.prod(len(o.values) for o in options) > max_variants:
        return BundleMatrix.invalid("TOO_MANY_VARIANTS")

    variants = []
    for combination in itertools.product(*(o.values for o in options)):
        variant = resolve_combination(combination, options, optioned, base)
        if variant is None:
            logger.debug("Dropping unresolvable combination %s", combination)
            continue
        variants.append(variant)

    if not variants:
        return BundleMatrix.invalid("EMPTY_MATRIX")
    return BundleMatrix(valid=True, options=options, variants=variants)
