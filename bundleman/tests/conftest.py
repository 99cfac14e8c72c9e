"""Pytest fixtures for Bundleman tests."""

import pytest

from bundleman.run import ReconcileRun
from bundleman.tests.fakes import FakeCatalog, MemoryRelationshipStore, optioned_product, simple_product, sized_product


@pytest.fixture
def catalog():
    """Empty in-memory catalog."""
    return FakeCatalog()


@pytest.fixture
def store():
    """Empty in-memory relationship store."""
    return MemoryRelationshipStore()


@pytest.fixture
def run(catalog, store):
    """Unit of work over the fake catalog."""
    return ReconcileRun(catalog, store)


@pytest.fixture
def backends(catalog):
    """Install the fake catalog as the configured backend."""
    from bundleman import conf

    conf.reset_backends()
    conf._catalog_backend_instance = catalog
    yield catalog
    conf.reset_backends()


@pytest.fixture
def gift_box(catalog, store):
    """
    Bundle 100 = 2 x mug (3.00, untracked) + 1 x candle (5.00, 4 in stock).
    """
    catalog.add(simple_product(1, "3.00", title="Mug"))
    catalog.add(simple_product(2, "5.00", available=4, title="Candle"))
    catalog.add_bundle(100, [(1, 2), (2, 1)], title="Gift Box")
    store.index(100, [(1, 2), (2, 1)], title="Gift Box")
    return catalog.products[100]


@pytest.fixture
def shirt_pair(catalog, store):
    """
    Bundle 200 = one shirt + one cap, both in Red and Blue.
    """
    catalog.add(optioned_product(3, "Color", ["Red", "Blue"], price="20.00", available={"Red": 5, "Blue": 2}, title="Shirt"))
    catalog.add(optioned_product(4, "Color", ["Red", "Blue"], price="10.00", available={"Red": 8, "Blue": 8}, title="Cap"))
    catalog.add_bundle(200, [(3, 1), (4, 1)], title="Shirt and Cap")
    store.index(200, [(3, 1), (4, 1)], title="Shirt and Cap")
    return catalog.products[200]


@pytest.fixture
def tee_and_cap(catalog, store):
    """
    Bundle 500 = one tee (Color x Size, no Blue/M) + one cap (Red/Blue).

    Tee: Red/S 10.00 (3), Red/M 11.00 (4), Blue/S 12.00 (6).
    Cap: Red and Blue at 10.00, 8 each.
    """
    catalog.add(
        sized_product(
            5,
            [(51, "Red", "S", "10.00", 3), (52, "Red", "M", "11.00", 4), (53, "Blue", "S", "12.00", 6)],
            title="Tee",
        )
    )
    catalog.add(optioned_product(4, "Color", ["Red", "Blue"], price="10.00", available={"Red": 8, "Blue": 8}, title="Cap"))
    catalog.add_bundle(500, [(5, 1), (4, 1)], title="Tee and Cap")
    store.index(500, [(5, 1), (4, 1)], title="Tee and Cap")
    return catalog.products[500]
