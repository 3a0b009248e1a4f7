"""Shared BDD fixtures and step definitions for checkout and payments."""

import pytest
from ordering.checkout.placement import place_order
from ordering.checkout.snapshot import CheckoutRequest, RequestedLine
from ordering.order.order import CheckoutSource, Order
from protean import current_domain
from pytest_bdd import given, parsers, then


@pytest.fixture
def outcome():
    """Mutable holder for what the last When step produced."""
    return {}


@given(parsers.cfparse('the catalog has "{product_id}" "{name}" priced {price:d} with {stock:d} in stock'))
def _(catalog, product_id, name, price, stock):
    catalog.add_product(product_id, name, price=price, stock=stock)


@given(
    parsers.cfparse('customer "{customer_id}" bought {quantity:d} of "{product_id}" paying "{method}"'),
    target_fixture="order",
)
def _(address, customer_id, quantity, product_id, method):
    request = CheckoutRequest(
        source=CheckoutSource.BUY_NOW.value,
        lines=(RequestedLine(product_id=product_id, quantity=quantity),),
    )
    return place_order(customer_id, request, method, shipping_address=address)


@then(parsers.cfparse('the order is "{status}" and "{payment_status}"'))
def _(order, status, payment_status):
    persisted = current_domain.repository_for(Order).get(order.id)
    assert persisted.status == status
    assert persisted.payment_status == payment_status


@then(parsers.cfparse('"{product_id}" has {stock:d} in stock'))
def _(catalog, product_id, stock):
    assert catalog.get_product(product_id).stock == stock


@then(parsers.cfparse("the order total is {total:d}"))
def _(order, total):
    persisted = current_domain.repository_for(Order).get(order.id)
    assert persisted.total == total
    assert sum(item.line_total for item in persisted.items) == total
