"""
Upward propagation through nested bundles.

When a product changes, every bundle that contains it, directly or through
other bundles, has to be reconciled again, components before containers.
"""

import logging
from collections import deque
from collections.abc import Callable, Iterable

from bundleman.reconciler import ReconcileResult, reconcile
from bundleman.run import ReconcileRun

logger = logging.getLogger(__name__)


def collect_ancestors(
    product_ids: int | Iterable[int], run: ReconcileRun
) -> tuple[list[int], dict[int, list[int]]]:
    """
    Walk the reverse index breadth-first from one or more changed products.

    Returns:
        (ancestors in discovery order, {node: direct containers}) where the
        edge map covers the starting products and every ancestor. Each node
        is visited once, so the walk terminates even on a cyclic index.
    """
    starts = _as_list(product_ids)
    visited = set(starts)
    order = []
    edges: dict[int, list[int]] = {}
    frontier = deque(starts)
    while frontier:
        node = frontier.popleft()
        containers = list(dict.fromkeys(run.store.find_containers_of(node)))
        edges[node] = containers
        for container in containers:
            if container in visited:
                continue
            visited.add(container)
            order.append(container)
            frontier.append(container)
    return order, edges


def topological_order(
    product_ids: int | Iterable[int], ancestors: list[int], edges: dict[int, list[int]]
) -> list[int]:
    """
    Order ancestors so that every bundle comes after the bundles it contains.

    Nodes caught in a cycle cannot be ordered; they are logged and appended
    in discovery order.
    """
    starts = set(_as_list(product_ids))
    members = set(ancestors)
    indegree = {node: 0 for node in ancestors}
    for node in ancestors:
        for container in edges.get(node, []):
            if container in members:
                indegree[container] += 1

    for node in ancestors:
        looped = starts.intersection(edges.get(node, []))
        if looped:
            logger.warning("Bundle cycle: %s contained again by its container %s", sorted(looped), node)

    ready = deque(node for node in ancestors if indegree[node] == 0)
    ordered = []
    while ready:
        node = ready.popleft()
        ordered.append(node)
        for container in edges.get(node, []):
            if container not in members:
                continue
            indegree[container] -= 1
            if indegree[container] == 0:
                ready.append(container)

    if len(ordered) < len(ancestors):
        done = set(ordered)
        stuck = [node for node in ancestors if node not in done]
        logger.warning("Bundle cycle detected among %s, reconciling each once", stuck)
        ordered.extend(stuck)
    return ordered


def propagate(
    product_ids: int | Iterable[int],
    run: ReconcileRun,
    reconcile_fn: Callable[[int, ReconcileRun], ReconcileResult] = reconcile,
) -> list[ReconcileResult]:
    """
    Reconcile every transitive container of the changed product(s) exactly once.

    Bundles are reconciled after all of their components. The reconciler
    drops every bundle it writes from the run cache, so containers read the
    state written a moment earlier. Several products changed together (the
    lines of one order) share a single ordering, so a bundle reached from
    more than one of them is still reconciled once, after all its parts.
    """
    product_ids = _as_list(product_ids)
    ancestors, edges = collect_ancestors(product_ids, run)
    if not ancestors:
        logger.debug("Product(s) %s not part of any bundle", product_ids)
        return []

    return [reconcile_fn(bundle_id, run) for bundle_id in topological_order(product_ids, ancestors, edges)]


def _as_list(product_ids: int | Iterable[int]) -> list[int]:
    if isinstance(product_ids, int):
        return [product_ids]
    return list(dict.fromkeys(product_ids))
