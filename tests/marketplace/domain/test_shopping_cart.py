"""Tests for the ShoppingCart aggregate."""

import pytest
from marketplace.ordering.cart import ShoppingCart
from marketplace.ordering.events import CartCleared, CartItemAdded, CartItemRemoved
from protean.exceptions import ValidationError


def _make_cart():
    return ShoppingCart.create(user_id="customer-001")


class TestCartItems:
    def test_add_item(self):
        cart = _make_cart()
        cart.add_item("prod-001", 2)
        assert len(cart.items) == 1
        assert cart.items[0].quantity == 2
        assert isinstance(cart._events[-1], CartItemAdded)

    def test_adding_same_product_merges_quantity(self):
        cart = _make_cart()
        cart.add_item("prod-001", 2)
        cart.add_item("prod-001", 3)
        assert len(cart.items) == 1
        assert cart.items[0].quantity == 5

    def test_quantity_must_be_positive(self):
        cart = _make_cart()
        with pytest.raises(ValidationError) as exc_info:
            cart.add_item("prod-001", 0)
        assert "quantity" in exc_info.value.messages

    def test_remove_item(self):
        cart = _make_cart()
        cart.add_item("prod-001", 1)
        cart.remove_item("prod-001")
        assert len(cart.items) == 0
        assert isinstance(cart._events[-1], CartItemRemoved)

    def test_remove_missing_item(self):
        cart = _make_cart()
        with pytest.raises(ValidationError) as exc_info:
            cart.remove_item("prod-404")
        assert "product_id" in exc_info.value.messages

    def test_lines(self):
        cart = _make_cart()
        cart.add_item("prod-001", 2)
        cart.add_item("prod-002", 1)
        assert cart.lines() == [
            {"product_id": "prod-001", "quantity": 2},
            {"product_id": "prod-002", "quantity": 1},
        ]


class TestClear:
    def test_clear_empties_cart(self):
        cart = _make_cart()
        cart.add_item("prod-001", 2)
        cart.add_item("prod-002", 1)
        cart.clear()
        assert len(cart.items) == 0
        assert isinstance(cart._events[-1], CartCleared)

    def test_clearing_empty_cart_raises_nothing(self):
        cart = _make_cart()
        cart.clear()
        assert cart._events == []
