"""Shared BDD fixtures and step definitions for the Marketplace."""

import pytest
from marketplace.catalogue.product import Product
from marketplace.inventory.adjustment import AdjustStock
from marketplace.ordering.order import Order, OrderStatus
from protean import current_domain
from pytest_bdd import given, parsers, then


# ---------------------------------------------------------------------------
# Scenario state
# ---------------------------------------------------------------------------
@pytest.fixture()
def products():
    """Product ids keyed by the name used in the feature file."""
    return {}


@pytest.fixture()
def context():
    """Ids and outcomes carried between steps."""
    return {"order_id": None, "result": None, "error": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.parse('"{seller}" lists "{name}" at {price:f} with {stock:d} in stock'))
def _(list_product, products, seller, name, price, stock):
    products[name] = list_product(seller_id=seller, name=name, price=price, stock_quantity=stock)


@given(parsers.parse('"{retailer}" imports "{source}" as "{name}"'))
def _(import_product, products, retailer, source, name):
    products[name] = import_product(products[source], retailer_id=retailer)


@given(parsers.parse('the customer has {quantity:d} of "{name}" in their cart'))
def _(add_to_cart, products, quantity, name):
    add_to_cart(products[name], quantity=quantity)


@given(parsers.parse('the stock of "{name}" is set to {stock:d}'))
def _(products, name, stock):
    current_domain.process(AdjustStock(product_id=products[name], quantity=stock, mode="set"), asynchronous=False)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.parse('"{name}" has {stock:d} in stock'))
def _(products, name, stock):
    assert current_domain.repository_for(Product).get(products[name]).stock_quantity == stock


@then(parsers.parse("the order is {status}"))
def _(context, status):
    order = current_domain.repository_for(Order).get(context["order_id"])
    assert order.status == OrderStatus(status.replace(" ", "_")).value


@then(parsers.parse('the request is rejected on "{field}"'))
def _(context, field):
    assert context["error"] is not None
    assert field in context["error"].messages


@then(parsers.parse('the request is rejected with "{message}"'))
def _(context, message):
    assert context["error"] is not None
    assert message in [m for messages in context["error"].messages.values() for m in messages]
