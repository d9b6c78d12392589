"""Integration tests for the Marketplace FastAPI endpoints."""

from datetime import UTC, datetime, time, timedelta
from zoneinfo import ZoneInfo

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from marketplace.api import (
    cart_router,
    inventory_router,
    maintenance_router,
    order_router,
    product_router,
    shop_router,
)
from marketplace.catalogue.product import Product
from marketplace.notifications import get_notification_sink
from marketplace.ordering.order import Order
from protean import current_domain
from protean.integrations.fastapi import register_exception_handlers

STORE_TZ = ZoneInfo("Asia/Kolkata")

ADDRESS = {
    "recipient": "Asha Rao",
    "street": "12 MG Road",
    "city": "Bengaluru",
    "state": "KA",
    "postal_code": "560001",
    "country": "IN",
}
SHOP = {
    "recipient": "Corner Store",
    "street": "4 Brigade Road",
    "city": "Bengaluru",
    "postal_code": "560025",
    "country": "IN",
}


@pytest.fixture()
def client():
    app = FastAPI()
    for router in (product_router, shop_router, inventory_router, cart_router, order_router, maintenance_router):
        app.include_router(router)
    register_exception_handlers(app)
    return TestClient(app)


def _next_open_slot():
    """The first 10:00 store-local slot at least a day away that isn't a Sunday."""
    day = datetime.now(STORE_TZ).date() + timedelta(days=1)
    while day.weekday() == 6:
        day += timedelta(days=1)
    return datetime.combine(day, time(10, 0), tzinfo=STORE_TZ)


def _list(client, seller_id="wholesaler-001", price=100.0, stock=10):
    response = client.post(
        "/products",
        json={"seller_id": seller_id, "name": "Basmati Rice 5kg", "price": price, "stock_quantity": stock},
    )
    assert response.status_code == 201
    return response.json()["product_id"]


def _add(client, product_id, quantity=1, user_id="customer-001"):
    response = client.post(f"/carts/{user_id}/items", json={"product_id": product_id, "quantity": quantity})
    assert response.status_code == 201
    return response.json()["cart_id"]


def _checkout(client, user_id="customer-001"):
    response = client.post("/orders/checkout", json={"user_id": user_id, "shipping_address": ADDRESS})
    assert response.status_code == 201
    return response.json()["order_id"]


def _stock(product_id):
    return current_domain.repository_for(Product).get(product_id).stock_quantity


class TestCatalogueEndpoints:
    def test_list_product(self, client):
        product_id = _list(client, seller_id="retailer-001", price=40.0, stock=3)
        product = current_domain.repository_for(Product).get(product_id)
        assert product.seller_id == "retailer-001"
        assert product.stock_quantity == 3

    def test_import_product(self, client):
        source_id = _list(client, price=100.0)
        response = client.post(
            "/products/import", json={"retailer_id": "retailer-001", "source_product_id": source_id}
        )
        assert response.status_code == 201
        proxy = current_domain.repository_for(Product).get(response.json()["product_id"])
        assert proxy.is_proxy is True
        assert proxy.price == 115.0

    def test_import_unknown_source(self, client):
        response = client.post(
            "/products/import", json={"retailer_id": "retailer-001", "source_product_id": "missing"}
        )
        assert response.status_code == 400

    def test_negative_price_rejected_by_schema(self, client):
        response = client.post("/products", json={"seller_id": "s", "name": "n", "price": -1})
        assert response.status_code == 422


class TestInventoryEndpoints:
    def test_reserve_success(self, client):
        product_id = _list(client, stock=5)
        response = client.post("/inventory/reserve", json={"items": [{"product_id": product_id, "quantity": 2}]})
        assert response.status_code == 200
        assert response.json() == {"success": True, "error": None}
        assert _stock(product_id) == 3

    def test_reserve_failure_reports_error(self, client):
        enough = _list(client, stock=5)
        short = _list(client, stock=1)
        response = client.post(
            "/inventory/reserve",
            json={"items": [{"product_id": enough, "quantity": 2}, {"product_id": short, "quantity": 2}]},
        )
        data = response.json()
        assert response.status_code == 200
        assert data["success"] is False
        assert data["error"]
        assert _stock(enough) == 5
        assert _stock(short) == 1

    def test_adjust_stock(self, client):
        product_id = _list(client, stock=5)
        response = client.put(f"/inventory/{product_id}/adjust", json={"quantity": 3, "mode": "add"})
        assert response.status_code == 200
        assert response.json()["stock_quantity"] == 8

    def test_adjust_unknown_mode(self, client):
        product_id = _list(client, stock=5)
        response = client.put(f"/inventory/{product_id}/adjust", json={"quantity": 3, "mode": "double"})
        assert response.status_code == 400

    def test_adjust_unknown_product(self, client):
        response = client.put("/inventory/missing/adjust", json={"quantity": 3, "mode": "add"})
        assert response.status_code == 404


class TestOrderEndpoints:
    def test_checkout_and_cancel(self, client):
        product_id = _list(client, seller_id="retailer-001", stock=5)
        _add(client, product_id, quantity=2)
        order_id = _checkout(client)
        assert _stock(product_id) == 3

        response = client.put(f"/orders/{order_id}/cancel", json={"reason": "Changed my mind"})
        assert response.status_code == 200
        assert _stock(product_id) == 5

    def test_checkout_with_empty_cart(self, client):
        response = client.post("/orders/checkout", json={"user_id": "customer-404", "shipping_address": ADDRESS})
        assert response.status_code == 400

    def test_checkout_with_insufficient_stock(self, client):
        product_id = _list(client, seller_id="retailer-001", stock=1)
        _add(client, product_id, quantity=3)
        response = client.post("/orders/checkout", json={"user_id": "customer-001", "shipping_address": ADDRESS})
        assert response.status_code == 400
        assert _stock(product_id) == 1

    def test_remove_from_cart(self, client):
        product_id = _list(client)
        _add(client, product_id)
        response = client.delete(f"/carts/customer-001/items/{product_id}")
        assert response.status_code == 200

    def test_dispatch_and_complete_delivery(self, client):
        product_id = _list(client, seller_id="retailer-001")
        _add(client, product_id)
        order_id = _checkout(client)

        response = client.put(f"/orders/{order_id}/processing")
        assert response.status_code == 200

        response = client.put(
            f"/orders/{order_id}/dispatch", json={"actor_id": "retailer-001", "actor_role": "retailer"}
        )
        assert response.status_code == 200
        assert response.json()["branch"] == "direct"
        assert response.json()["destination"]["street"] == ADDRESS["street"]

        as_of = (datetime.now(UTC) + timedelta(days=1)).isoformat()
        response = client.post("/maintenance/deliveries/complete", json={"as_of": as_of})
        assert response.status_code == 200
        assert response.json() == {"delivered": 1}
        assert current_domain.repository_for(Order).get(order_id).status == "delivered"

    def test_customer_cannot_dispatch(self, client):
        product_id = _list(client, seller_id="retailer-001")
        _add(client, product_id)
        order_id = _checkout(client)
        response = client.put(
            f"/orders/{order_id}/dispatch", json={"actor_id": "customer-001", "actor_role": "customer"}
        )
        assert response.status_code == 400

    def test_unknown_order(self, client):
        response = client.put("/orders/missing/processing")
        assert response.status_code == 404


class TestPickupEndpoints:
    def test_schedule_and_collect(self, client):
        client.put("/shops/retailer-001", json={"address": SHOP})
        product_id = _list(client, seller_id="retailer-001")
        _add(client, product_id)

        response = client.post(
            "/orders/pickup", json={"user_id": "customer-001", "scheduled_at": _next_open_slot().isoformat()}
        )
        assert response.status_code == 201
        order_id = response.json()["order_id"]

        response = client.put(
            f"/orders/{order_id}/dispatch", json={"actor_id": "retailer-001", "actor_role": "retailer"}
        )
        assert response.json()["branch"] == "pickup_ready"
        assert response.json()["destination"]["street"] == SHOP["street"]

        response = client.put(f"/orders/{order_id}/pickup/confirm", json={"user_id": "customer-001"})
        assert response.status_code == 200
        assert current_domain.repository_for(Order).get(order_id).status == "delivered"
        assert get_notification_sink().sent[0]["order_id"] == order_id

    def test_sunday_slot_rejected(self, client):
        product_id = _list(client, seller_id="retailer-001")
        _add(client, product_id)
        slot = _next_open_slot()
        sunday = slot + timedelta(days=(6 - slot.weekday()) % 7 or 7)

        response = client.post("/orders/pickup", json={"user_id": "customer-001", "scheduled_at": sunday.isoformat()})
        assert response.status_code == 400
        assert _stock(product_id) == 10

    def test_past_slot_rejected(self, client):
        product_id = _list(client, seller_id="retailer-001")
        _add(client, product_id)
        past = datetime.now(STORE_TZ) - timedelta(days=1)

        response = client.post("/orders/pickup", json={"user_id": "customer-001", "scheduled_at": past.isoformat()})
        assert response.status_code == 400


class TestProxyFulfillmentEndpoints:
    def test_full_dropship_flow(self, client):
        source_id = _list(client, seller_id="wholesaler-001", price=100.0, stock=10)
        proxy_id = client.post(
            "/products/import", json={"retailer_id": "retailer-001", "source_product_id": source_id}
        ).json()["product_id"]
        _add(client, proxy_id, quantity=2)
        order_id = _checkout(client)

        response = client.post(
            f"/orders/{order_id}/wholesaler-payment",
            json={"retailer_id": "retailer-001", "payment_captured": True, "actor_role": "retailer"},
        )
        assert response.status_code == 200
        fulfillment_ids = response.json()["fulfillment_order_ids"]
        assert len(fulfillment_ids) == 1
        assert _stock(source_id) == 8

        response = client.put(
            f"/orders/{fulfillment_ids[0]}/dispatch",
            json={"actor_id": "wholesaler-001", "actor_role": "wholesaler"},
        )
        assert response.status_code == 200
        assert response.json()["branch"] == "proxy"
        assert current_domain.repository_for(Order).get(order_id).shipped_at is not None

    def test_payment_not_captured(self, client):
        source_id = _list(client, seller_id="wholesaler-001")
        proxy_id = client.post(
            "/products/import", json={"retailer_id": "retailer-001", "source_product_id": source_id}
        ).json()["product_id"]
        _add(client, proxy_id)
        order_id = _checkout(client)

        response = client.post(
            f"/orders/{order_id}/wholesaler-payment",
            json={"retailer_id": "retailer-001", "payment_captured": False, "actor_role": "retailer"},
        )
        assert response.status_code == 400
        assert current_domain.repository_for(Order).get(order_id).wholesaler_payment_made is False

    def test_payment_requires_actor_role(self, client):
        source_id = _list(client, seller_id="wholesaler-001")
        proxy_id = client.post(
            "/products/import", json={"retailer_id": "retailer-001", "source_product_id": source_id}
        ).json()["product_id"]
        _add(client, proxy_id)
        order_id = _checkout(client)

        response = client.post(
            f"/orders/{order_id}/wholesaler-payment",
            json={"retailer_id": "retailer-001", "payment_captured": True},
        )
        assert response.status_code == 422
        assert current_domain.repository_for(Order).get(order_id).wholesaler_payment_made is False
