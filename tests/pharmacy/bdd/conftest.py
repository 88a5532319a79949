"""Shared BDD fixtures and step definitions for the pharmacy domain."""

import json

import pytest
from protean import current_domain
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then, when

from pharmacy.cart.items import AddToCart
from pharmacy.cart.management import CreateCart
from pharmacy.order.creation import PlaceOrder
from pharmacy.order.lifecycle import TransitionOrderStatus
from pharmacy.order.order import Order
from pharmacy.stock.product import Product
from pharmacy.stock.registration import RegisterProduct

KATHMANDU = {"address_line1": "Thamel Marg 12", "city": "Kathmandu"}


# ---------------------------------------------------------------------------
# Scenario state
# ---------------------------------------------------------------------------
@pytest.fixture()
def products():
    """Product ids by name."""
    return {}


@pytest.fixture()
def carts():
    """Cart ids by owner."""
    return {}


@pytest.fixture()
def placed():
    """The order placed in the scenario, if any."""
    return {"order_id": None}


@pytest.fixture()
def error():
    """Container for the error raised by the last When step."""
    return {"exc": None}


def _product(products, name):
    return current_domain.repository_for(Product).get(products[name])


def _order(placed):
    return current_domain.repository_for(Order).get(placed["order_id"])


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a product "{name}" priced {price:g} with {stock:d} packages in stock'))
def product_in_stock(products, name, price, stock):
    products[name] = current_domain.process(RegisterProduct(name=name, price=price, stock=stock), asynchronous=False)


@given(parsers.cfparse('a product "{name}" sold loose in packs of {units:d} with {stock:d} packages in stock'))
def product_sold_loose(products, name, units, stock):
    products[name] = current_domain.process(
        RegisterProduct(
            name=name,
            price=float(units * 10),
            stock=stock,
            units_per_base_package=units,
            allows_unit_sale=True,
        ),
        asynchronous=False,
    )


@given(parsers.cfparse('a prescription-only product "{name}" with {stock:d} packages in stock'))
def prescription_product(products, name, stock):
    products[name] = current_domain.process(
        RegisterProduct(name=name, price=80.0, stock=stock, requires_prescription=True),
        asynchronous=False,
    )


@given(parsers.cfparse('customer "{owner}" has an open cart'))
def open_cart(carts, owner):
    carts[owner] = current_domain.process(CreateCart(customer_id=owner), asynchronous=False)


@given(parsers.cfparse('customer "{owner}" has {quantity:d} packages of "{name}" in the cart'))
def cart_with_packages(carts, products, owner, quantity, name):
    if owner not in carts:
        open_cart(carts, owner)
    current_domain.process(
        AddToCart(cart_id=carts[owner], product_id=products[name], quantity=quantity),
        asynchronous=False,
    )


@given(parsers.cfparse('customer "{owner}" has placed the order'))
def order_already_placed(carts, placed, owner):
    placed["order_id"] = current_domain.process(
        PlaceOrder(cart_id=carts[owner], delivery_address=json.dumps(KATHMANDU), contact_phone="9841000000"),
        asynchronous=False,
    )


@given(parsers.cfparse('the order has moved to "{status}"'))
def order_moved_to(placed, status):
    current_domain.process(
        TransitionOrderStatus(order_id=placed["order_id"], status=status, actor="admin"),
        asynchronous=False,
    )


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('customer "{owner}" adds {quantity:d} packages of "{name}" to the cart'))
def add_packages(carts, products, error, owner, quantity, name):
    if owner not in carts:
        open_cart(carts, owner)
    try:
        current_domain.process(
            AddToCart(cart_id=carts[owner], product_id=products[name], quantity=quantity),
            asynchronous=False,
        )
    except ValidationError as exc:
        error["exc"] = exc


@when(parsers.cfparse('customer "{owner}" checks out'))
def check_out(carts, placed, error, owner):
    try:
        placed["order_id"] = current_domain.process(
            PlaceOrder(cart_id=carts[owner], delivery_address=json.dumps(KATHMANDU), contact_phone="9841000000"),
            asynchronous=False,
        )
    except ValidationError as exc:
        error["exc"] = exc


@when(parsers.cfparse('the order is moved to "{status}"'))
def move_order(placed, error, status):
    try:
        current_domain.process(
            TransitionOrderStatus(order_id=placed["order_id"], status=status, actor="admin"),
            asynchronous=False,
        )
    except ValidationError as exc:
        error["exc"] = exc


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('"{name}" has {count:d} reserved and {available:d} available'))
def stock_levels(products, name, count, available):
    product = _product(products, name)
    assert product.reserved_stock == count
    assert product.available_stock == available


@then(parsers.cfparse('"{name}" has {count:d} packages on the shelf'))
def shelf_stock(products, name, count):
    assert _product(products, name).stock == count


@then(parsers.cfparse("the request fails with {error_type}"))
def request_failed(error, error_type):
    assert error["exc"] is not None
    assert type(error["exc"]).__name__ == error_type


@then("the request succeeds")
def request_succeeded(error):
    assert error["exc"] is None


@then(parsers.cfparse('the order status is "{status}"'))
def order_status_is(placed, status):
    assert _order(placed).status == status
