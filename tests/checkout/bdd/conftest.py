"""Shared BDD fixtures and step definitions for checkout scenarios."""

import pytest
from protean import current_domain
from pytest_bdd import given, parsers, then, when

from checkout.cart.management import AddToCart, cart_contents
from checkout.coupon.coupon import Coupon
from checkout.errors import CheckoutError


@pytest.fixture()
def order():
    """No order until a step places one."""
    return None


@pytest.fixture()
def failure():
    """Container for the error raised by the last failing step."""
    return {"exc": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a coupon "{code}" worth {value:d} percent with a usage limit of {limit:d}'))
def _(add_coupon, code, value, limit):
    add_coupon(code=code, discount_type="percent", value=value, usage_limit=limit)


@given(parsers.cfparse('"{customer_id}" has {quantity:d} of "{product_id}" in size "{size}" in the cart'))
def _(customer_id, quantity, product_id, size):
    current_domain.process(
        AddToCart(customer_id=customer_id, product_id=product_id, size=size, quantity=quantity),
        asynchronous=False,
    )


@given(
    parsers.cfparse('a pay-on-delivery order worth {amount:d} placed by "{customer_id}"'),
    target_fixture="order",
)
def _(place_cod, amount, customer_id):
    return place_cod(customer_id=customer_id, amount=amount)


@given(parsers.cfparse('the order has been moved to "{status}"'), target_fixture="order")
def _(lifecycle, order, status):
    return lifecycle.update_status(order.id, status)


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(
    parsers.cfparse('"{customer_id}" places a pay-on-delivery order worth {amount:d} with coupon "{code}"'),
    target_fixture="order",
)
def _(place_cod, order, failure, customer_id, amount, code):
    try:
        return place_cod(customer_id=customer_id, amount=amount, coupon_code=code)
    except CheckoutError as exc:
        failure["exc"] = exc
        return order


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the request fails with "{reason}"'))
def _(failure, reason):
    assert failure["exc"] is not None
    assert failure["exc"].reason == reason


@then(parsers.cfparse('the order status is "{status}"'))
def _(lifecycle, order, status):
    assert lifecycle.get(order.id).status == status


@then(parsers.re(r'the coupon "(?P<code>[^"]+)" has been used (?P<count>\d+) times?'), converters={"count": int})
def _(code, count):
    assert current_domain.repository_for(Coupon).find_by_code(code).used_count == count


@then(parsers.cfparse('the cart of "{customer_id}" is empty'))
def _(customer_id):
    assert cart_contents(customer_id) == {}


@then(parsers.cfparse('the cart of "{customer_id}" is not empty'))
def _(customer_id):
    assert cart_contents(customer_id) != {}
