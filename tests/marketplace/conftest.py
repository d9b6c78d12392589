import pytest
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def marketplace_bed():
    from marketplace.domain import marketplace

    bed = DomainFixture(marketplace)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(scope="session", autouse=True)
def setup_db(marketplace_bed):
    from marketplace.domain import marketplace
    from marketplace.utils.db import drop_db, setup_db

    setup_db(marketplace)

    yield

    drop_db(marketplace)


@pytest.fixture(autouse=True)
def _ctx(marketplace_bed):
    from protean import current_domain

    from marketplace.notifications import reset_notification_sink
    from marketplace.shops import reset_shop_directory

    with marketplace_bed.domain_context():
        yield

        for _, provider in current_domain.providers.items():
            provider._data_reset()

        for _, broker in current_domain.brokers.items():
            broker._data_reset()

        current_domain.event_store.store._data_reset()

    reset_notification_sink()
    reset_shop_directory()


# ---------------------------------------------------------------------------
# Scenario builders
# ---------------------------------------------------------------------------
@pytest.fixture()
def list_product():
    """Return a helper that lists a seller-owned product and returns its id."""
    from protean import current_domain

    from marketplace.catalogue.listing import ListProduct

    def _list(seller_id="wholesaler-001", name="Basmati Rice 5kg", price=100.0, stock_quantity=10):
        return current_domain.process(
            ListProduct(seller_id=seller_id, name=name, price=price, stock_quantity=stock_quantity),
            asynchronous=False,
        )

    return _list


@pytest.fixture()
def import_product():
    """Return a helper that imports a wholesaler product as a retailer's proxy listing."""
    from protean import current_domain

    from marketplace.catalogue.listing import ImportWholesalerProduct

    def _import(source_product_id, retailer_id="retailer-001"):
        return current_domain.process(
            ImportWholesalerProduct(retailer_id=retailer_id, source_product_id=source_product_id),
            asynchronous=False,
        )

    return _import


@pytest.fixture()
def add_to_cart():
    from protean import current_domain

    from marketplace.ordering.cart_items import AddToCart

    def _add(product_id, quantity=1, user_id="customer-001"):
        return current_domain.process(
            AddToCart(user_id=user_id, product_id=product_id, quantity=quantity),
            asynchronous=False,
        )

    return _add


@pytest.fixture()
def shipping_address():
    return {
        "recipient": "Asha Rao",
        "street": "12 MG Road",
        "city": "Bengaluru",
        "state": "KA",
        "postal_code": "560001",
        "country": "IN",
    }


@pytest.fixture()
def shop_address():
    return {
        "recipient": "Corner Store",
        "street": "4 Brigade Road",
        "city": "Bengaluru",
        "state": "KA",
        "postal_code": "560025",
        "country": "IN",
    }


@pytest.fixture()
def checkout(shipping_address):
    """Return a helper that checks out a customer's cart as a shipped order."""
    import json

    from protean import current_domain

    from marketplace.ordering.checkout import Checkout

    def _checkout(user_id="customer-001", address=None):
        return current_domain.process(
            Checkout(user_id=user_id, shipping_address=json.dumps(address or shipping_address)),
            asynchronous=False,
        )

    return _checkout
