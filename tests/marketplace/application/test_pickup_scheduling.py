"""Tests for offline pickup scheduling — slot validation, reservation and order creation."""

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest
from marketplace.catalogue.product import Product
from marketplace.ordering.cart import cart_for
from marketplace.ordering.order import FulfillmentType, Order, OrderStatus, PickupStatus
from marketplace.pickup.scheduling import PickupScheduler, SchedulePickup
from marketplace.pickup.window import RULE_CLOSED_DAY, RULE_MIN_LEAD_TIME, PickupWindow
from marketplace.shared.errors import InsufficientStock, InvalidSchedulingWindow
from protean import current_domain

STORE_TZ = ZoneInfo("Asia/Kolkata")
TUESDAY_8AM = datetime(2026, 10, 20, 8, 0, tzinfo=STORE_TZ)


def _stock(product_id):
    return current_domain.repository_for(Product).get(product_id).stock_quantity


def _scheduler():
    return PickupScheduler(window=PickupWindow())


def _next_open_slot():
    slot = (datetime.now(STORE_TZ) + timedelta(days=1)).replace(hour=11, minute=0, second=0, microsecond=0)
    if slot.weekday() == 6:
        slot += timedelta(days=1)
    return slot


class TestSchedule:
    def test_creates_pending_pickup_order(self, list_product, add_to_cart):
        product_id = list_product(price=20.0, stock_quantity=5)
        add_to_cart(product_id, quantity=2)

        order_id = _scheduler().schedule("customer-001", TUESDAY_8AM + timedelta(hours=3), now=TUESDAY_8AM)

        order = current_domain.repository_for(Order).get(order_id)
        assert order.status == OrderStatus.PENDING.value
        assert order.fulfillment_type == FulfillmentType.OFFLINE_PICKUP.value
        assert order.pickup_status == PickupStatus.PENDING.value
        assert order.total_amount == 40.0
        assert order.shipping_address is None

    def test_reserves_at_scheduling_time(self, list_product, add_to_cart):
        product_id = list_product(stock_quantity=5)
        add_to_cart(product_id, quantity=2)
        _scheduler().schedule("customer-001", TUESDAY_8AM + timedelta(hours=3), now=TUESDAY_8AM)
        assert _stock(product_id) == 3

    def test_clears_cart(self, list_product, add_to_cart):
        product_id = list_product()
        add_to_cart(product_id)
        _scheduler().schedule("customer-001", TUESDAY_8AM + timedelta(hours=3), now=TUESDAY_8AM)
        assert len(cart_for("customer-001").items) == 0

    def test_command_uses_current_time(self, list_product, add_to_cart):
        product_id = list_product()
        add_to_cart(product_id)
        order_id = current_domain.process(
            SchedulePickup(user_id="customer-001", scheduled_at=_next_open_slot()),
            asynchronous=False,
        )
        assert current_domain.repository_for(Order).get(order_id).is_pickup


class TestRejectedSlots:
    def test_invalid_slot_reserves_nothing(self, list_product, add_to_cart):
        product_id = list_product(stock_quantity=5)
        add_to_cart(product_id, quantity=2)

        with pytest.raises(InvalidSchedulingWindow) as exc_info:
            _scheduler().schedule("customer-001", TUESDAY_8AM + timedelta(hours=1), now=TUESDAY_8AM)

        assert exc_info.value.rule == RULE_MIN_LEAD_TIME
        assert _stock(product_id) == 5
        assert current_domain.repository_for(Order)._dao.query.all().items == []

    def test_sunday_is_rejected(self, list_product, add_to_cart):
        product_id = list_product()
        add_to_cart(product_id)
        sunday = datetime(2026, 10, 25, 8, 0, tzinfo=STORE_TZ)
        with pytest.raises(InvalidSchedulingWindow) as exc_info:
            _scheduler().schedule("customer-001", sunday + timedelta(hours=3), now=sunday)
        assert exc_info.value.rule == RULE_CLOSED_DAY

    def test_insufficient_stock_creates_no_order(self, list_product, add_to_cart):
        product_id = list_product(stock_quantity=1)
        add_to_cart(product_id, quantity=2)

        with pytest.raises(InsufficientStock):
            _scheduler().schedule("customer-001", TUESDAY_8AM + timedelta(hours=3), now=TUESDAY_8AM)

        assert _stock(product_id) == 1
        assert current_domain.repository_for(Order)._dao.query.all().items == []
