"""Tests for the Cart aggregate — ownership, lines, expiry and terminal states."""

from datetime import timedelta

import pytest
from protean.exceptions import ValidationError

from pharmacy.cart.cart import SESSION_TTL, Cart, CartStatus
from pharmacy.cart.events import (
    CartCleared,
    CartConverted,
    CartCreated,
    CartExpired,
    CartItemAdded,
    CartItemRemoved,
    CartItemUpdated,
)
from pharmacy.exceptions import SessionConverted, SessionExpired
from pharmacy.utils.clock import utcnow


def _make_cart(**overrides):
    defaults = {"customer_id": "cust-001"}
    defaults.update(overrides)
    cart = Cart.create(**defaults)
    cart._events.clear()
    return cart


def _add(cart, product_id="prod-001", quantity=2, purchase_type="package", unit_price=50.0, reserved=2):
    cart.add_item(
        product_id=product_id,
        quantity=quantity,
        purchase_type=purchase_type,
        unit_price=unit_price,
        reserved_base_units=reserved,
    )


class TestCartCreation:
    def test_account_cart(self):
        cart = Cart.create(customer_id="cust-001")
        assert cart.status == CartStatus.ACTIVE.value
        assert cart.expires_at is not None
        assert isinstance(cart._events[0], CartCreated)

    def test_anonymous_cart(self):
        cart = Cart.create(session_id="sess-abc")
        assert cart.session_id == "sess-abc"
        assert cart.customer_id is None

    def test_cart_needs_an_owner(self):
        with pytest.raises(ValidationError):
            Cart.create()

    def test_cart_cannot_have_two_owners(self):
        with pytest.raises(ValidationError):
            Cart.create(customer_id="cust-001", session_id="sess-abc")

    def test_expiry_is_thirty_minutes_out(self):
        before = utcnow()
        cart = Cart.create(customer_id="cust-001")
        assert before + SESSION_TTL <= cart.expires_at <= utcnow() + SESSION_TTL


class TestCartLines:
    def test_add_item(self):
        cart = _make_cart()
        _add(cart)
        assert len(cart.items) == 1
        assert cart.subtotal == 100.0
        assert cart.total_items == 2
        event = cart._events[0]
        assert isinstance(event, CartItemAdded)
        assert event.line_quantity == 2

    def test_same_product_and_granularity_merge(self):
        cart = _make_cart()
        _add(cart, quantity=2, reserved=2)
        _add(cart, quantity=3, reserved=5)
        assert len(cart.items) == 1
        assert cart.items[0].quantity == 5
        assert cart.items[0].reserved_base_units == 5
        assert cart.subtotal == 250.0

    def test_different_granularity_is_a_separate_line(self):
        cart = _make_cart()
        _add(cart, purchase_type="package")
        _add(cart, purchase_type="unit", quantity=4, unit_price=5.0, reserved=1)
        assert len(cart.items) == 2

    def test_update_quantity(self):
        cart = _make_cart()
        _add(cart)
        cart._events.clear()
        cart.update_item_quantity("prod-001", "package", 4, reserved_base_units=4)
        assert cart.items[0].quantity == 4
        assert cart.subtotal == 200.0
        event = cart._events[0]
        assert isinstance(event, CartItemUpdated)
        assert event.previous_quantity == 2

    def test_remove_item(self):
        cart = _make_cart()
        _add(cart)
        cart._events.clear()
        cart.remove_item("prod-001", "package")
        assert len(cart.items) == 0
        assert cart.subtotal == 0.0
        event = cart._events[0]
        assert isinstance(event, CartItemRemoved)
        assert event.released_base_units == 2

    def test_remove_missing_item_fails(self):
        cart = _make_cart()
        with pytest.raises(ValidationError):
            cart.remove_item("prod-404", "package")

    def test_clear(self):
        cart = _make_cart()
        _add(cart, product_id="prod-001")
        _add(cart, product_id="prod-002", reserved=3, quantity=3)
        cart._events.clear()
        cart.clear()
        assert len(cart.items) == 0
        event = cart._events[0]
        assert isinstance(event, CartCleared)
        assert event.released_base_units == 5

    def test_held_base_units_per_product(self):
        cart = _make_cart()
        _add(cart, product_id="prod-001", purchase_type="package", reserved=2)
        _add(cart, product_id="prod-001", purchase_type="unit", quantity=5, unit_price=5.0, reserved=1)
        assert cart.held_base_units() == {"prod-001": 3}

    def test_mutation_slides_expiry(self):
        cart = _make_cart()
        cart.expires_at = utcnow() + timedelta(minutes=1)
        _add(cart)
        assert cart.expires_at > utcnow() + timedelta(minutes=29)


class TestCartExpiry:
    def test_is_expired_against_clock(self):
        cart = _make_cart()
        assert not cart.is_expired()
        assert cart.is_expired(utcnow() + timedelta(minutes=31))

    def test_mutating_expired_cart_fails(self):
        cart = _make_cart()
        cart.expires_at = utcnow() - timedelta(seconds=1)
        with pytest.raises(SessionExpired):
            _add(cart)

    def test_expire_requires_released_lines(self):
        cart = _make_cart()
        _add(cart)
        with pytest.raises(ValidationError):
            cart.expire()

    def test_expire_after_lines_released(self):
        cart = _make_cart()
        _add(cart)
        cart.mark_line_released("prod-001", "package")
        cart._events.clear()
        cart.expire()
        assert cart.status == CartStatus.EXPIRED.value
        assert isinstance(cart._events[0], CartExpired)

    def test_expired_cart_rejects_mutation(self):
        cart = _make_cart()
        cart.expire()
        with pytest.raises(SessionExpired):
            _add(cart)


class TestCartConversion:
    def test_convert(self):
        cart = _make_cart()
        _add(cart)
        cart._events.clear()
        cart.convert("ord-001")
        assert cart.status == CartStatus.CONVERTED.value
        assert isinstance(cart._events[0], CartConverted)
        # Holds travel with the order
        assert cart.items[0].reserved_base_units == 2

    def test_convert_empty_cart_fails(self):
        cart = _make_cart()
        with pytest.raises(ValidationError):
            cart.convert("ord-001")

    def test_converted_cart_rejects_mutation(self):
        cart = _make_cart()
        _add(cart)
        cart.convert("ord-001")
        with pytest.raises(SessionConverted):
            _add(cart, product_id="prod-002")

    def test_converted_cart_cannot_expire(self):
        cart = _make_cart()
        _add(cart)
        cart.convert("ord-001")
        with pytest.raises(ValidationError):
            cart.expire()
