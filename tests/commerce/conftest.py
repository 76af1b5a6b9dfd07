import pytest
from commerce.catalogue import FakeCatalogue, set_catalogue
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def commerce_bed():
    from commerce.domain import commerce

    bed = DomainFixture(commerce)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(commerce_bed):
    with commerce_bed.domain_context():
        yield

        from protean import current_domain

        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()


@pytest.fixture()
def catalogue():
    """A fresh in-memory catalogue with a few priced products."""
    fake = FakeCatalogue()
    fake.add_product("prod-001", sku="TSHIRT-BLK-M", name="Black T-Shirt", price=20.00)
    fake.add_product("prod-002", sku="MUG-WHT", name="White Mug", price=12.50)
    fake.add_product("prod-003", sku="POSTER-A2", name="Poster", price=5.00)
    set_catalogue(fake)
    return fake


@pytest.fixture()
def stocked(catalogue):
    """Ledger records for the catalogue products: 50, 10 and 3 units available."""
    from commerce.inventory.ledger import inventory_ledger

    inventory_ledger.initialize("prod-001", initial_quantity=50, reorder_level=10)
    inventory_ledger.initialize("prod-002", initial_quantity=10, reorder_level=2)
    inventory_ledger.initialize("prod-003", initial_quantity=3, reorder_level=1)
    return inventory_ledger
