"""Application tests for cart item commands and the holds they take in the ledger."""

import pytest
from protean import current_domain
from protean.exceptions import ValidationError

from pharmacy.cart.cart import Cart
from pharmacy.cart.items import ClearCart, RemoveFromCart, UpdateCartItem
from pharmacy.exceptions import (
    InsufficientStock,
    ProductUnavailable,
    QuantityOutOfRange,
    SessionConverted,
    UnitSaleNotAllowed,
)
from pharmacy.stock.registration import DiscontinueProduct


def _cart(cart_id):
    return current_domain.repository_for(Cart).get(cart_id)


class TestAddToCartCommand:
    def test_add_reserves_stock(self, make_product, make_cart, add_to_cart, product_state):
        product_id = make_product(stock=10)
        cart_id = make_cart()

        add_to_cart(cart_id, product_id, 3)

        cart = _cart(cart_id)
        assert len(cart.items) == 1
        assert cart.items[0].reserved_base_units == 3
        assert cart.subtotal == 60.0
        product = product_state(product_id)
        assert product.reserved_stock == 3
        assert product.available_stock == 7

    def test_last_units_go_to_first_cart(self, make_product, make_cart, add_to_cart, product_state):
        product_id = make_product(stock=10)
        first = make_cart(customer_id="cust-001")
        second = make_cart(customer_id="cust-002")

        add_to_cart(first, product_id, 10)
        product = product_state(product_id)
        assert product.reserved_stock == 10
        assert product.available_stock == 0

        with pytest.raises(InsufficientStock):
            add_to_cart(second, product_id, 1)
        assert len(_cart(second).items) == 0
        assert product_state(product_id).reserved_stock == 10

    def test_unit_purchase_reserves_whole_packages(self, make_product, make_cart, add_to_cart, product_state):
        product_id = make_product(stock=5, price=100.0, units_per_base_package=10, allows_unit_sale=True)
        cart_id = make_cart()

        add_to_cart(cart_id, product_id, 12, purchase_type="unit")

        cart = _cart(cart_id)
        assert cart.items[0].reserved_base_units == 2
        assert cart.items[0].unit_price == 10.0
        product = product_state(product_id)
        assert product.reserved_stock == 2
        assert product.available_stock == 3

    def test_merge_reserves_only_the_difference(self, make_product, make_cart, add_to_cart, product_state):
        product_id = make_product(stock=5, units_per_base_package=10, allows_unit_sale=True)
        cart_id = make_cart()

        add_to_cart(cart_id, product_id, 4, purchase_type="unit")
        assert product_state(product_id).reserved_stock == 1

        add_to_cart(cart_id, product_id, 4, purchase_type="unit")
        assert product_state(product_id).reserved_stock == 1

        add_to_cart(cart_id, product_id, 4, purchase_type="unit")
        cart = _cart(cart_id)
        assert cart.items[0].quantity == 12
        assert cart.items[0].reserved_base_units == 2
        assert product_state(product_id).reserved_stock == 2

    def test_unit_sale_not_allowed(self, make_product, make_cart, add_to_cart, product_state):
        product_id = make_product(stock=5, units_per_base_package=10)
        cart_id = make_cart()
        with pytest.raises(UnitSaleNotAllowed):
            add_to_cart(cart_id, product_id, 3, purchase_type="unit")
        assert product_state(product_id).reserved_stock == 0

    def test_discontinued_product_rejected(self, make_product, make_cart, add_to_cart, product_state):
        product_id = make_product(stock=5)
        current_domain.process(DiscontinueProduct(product_id=product_id), asynchronous=False)
        cart_id = make_cart()
        with pytest.raises(ProductUnavailable):
            add_to_cart(cart_id, product_id, 1)
        assert product_state(product_id).reserved_stock == 0

    def test_quantity_range_checked_against_merged_line(self, make_product, make_cart, add_to_cart, product_state):
        product_id = make_product(stock=20, max_order_quantity=5)
        cart_id = make_cart()
        add_to_cart(cart_id, product_id, 4)
        with pytest.raises(QuantityOutOfRange):
            add_to_cart(cart_id, product_id, 2)
        assert _cart(cart_id).items[0].quantity == 4
        assert product_state(product_id).reserved_stock == 4

    def test_below_minimum_quantity(self, make_product, make_cart, add_to_cart):
        product_id = make_product(stock=20, min_order_quantity=2)
        cart_id = make_cart()
        with pytest.raises(QuantityOutOfRange):
            add_to_cart(cart_id, product_id, 1)

    def test_zero_quantity_rejected(self, make_product, make_cart, add_to_cart):
        product_id = make_product(stock=20)
        cart_id = make_cart()
        with pytest.raises(QuantityOutOfRange):
            add_to_cart(cart_id, product_id, 0)

    def test_failed_cart_update_releases_new_hold(
        self, make_product, make_cart, add_to_cart, product_state, monkeypatch
    ):
        product_id = make_product(stock=10)
        cart_id = make_cart()

        def _broken_add_item(self, **kwargs):
            raise ValidationError({"cart": ["Simulated failure"]})

        monkeypatch.setattr(Cart, "add_item", _broken_add_item)
        with pytest.raises(ValidationError):
            add_to_cart(cart_id, product_id, 3)

        assert product_state(product_id).reserved_stock == 0

    def test_converted_cart_rejects_items(self, make_product, make_cart, add_to_cart, place_order):
        product_id = make_product(stock=10)
        cart_id = make_cart()
        add_to_cart(cart_id, product_id, 1)
        place_order(cart_id)
        with pytest.raises(SessionConverted):
            add_to_cart(cart_id, product_id, 1)


class TestUpdateCartItemCommand:
    def test_increase_reserves_more(self, make_product, make_cart, add_to_cart, product_state):
        product_id = make_product(stock=10)
        cart_id = make_cart()
        add_to_cart(cart_id, product_id, 2)

        current_domain.process(
            UpdateCartItem(cart_id=cart_id, product_id=product_id, new_quantity=6),
            asynchronous=False,
        )

        assert _cart(cart_id).items[0].quantity == 6
        assert product_state(product_id).reserved_stock == 6

    def test_decrease_releases_difference(self, make_product, make_cart, add_to_cart, product_state):
        product_id = make_product(stock=10)
        cart_id = make_cart()
        add_to_cart(cart_id, product_id, 6)

        current_domain.process(
            UpdateCartItem(cart_id=cart_id, product_id=product_id, new_quantity=2),
            asynchronous=False,
        )

        assert _cart(cart_id).items[0].reserved_base_units == 2
        assert product_state(product_id).reserved_stock == 2

    def test_increase_beyond_stock_keeps_old_hold(self, make_product, make_cart, add_to_cart, product_state):
        product_id = make_product(stock=5)
        cart_id = make_cart()
        add_to_cart(cart_id, product_id, 2)

        with pytest.raises(InsufficientStock):
            current_domain.process(
                UpdateCartItem(cart_id=cart_id, product_id=product_id, new_quantity=6),
                asynchronous=False,
            )

        assert _cart(cart_id).items[0].quantity == 2
        assert product_state(product_id).reserved_stock == 2

    def test_zero_quantity_removes_line(self, make_product, make_cart, add_to_cart, product_state):
        product_id = make_product(stock=10)
        cart_id = make_cart()
        add_to_cart(cart_id, product_id, 3)

        current_domain.process(
            UpdateCartItem(cart_id=cart_id, product_id=product_id, new_quantity=0),
            asynchronous=False,
        )

        assert len(_cart(cart_id).items) == 0
        assert product_state(product_id).reserved_stock == 0

    def test_missing_line(self, make_product, make_cart):
        product_id = make_product(stock=10)
        cart_id = make_cart()
        with pytest.raises(ValidationError):
            current_domain.process(
                UpdateCartItem(cart_id=cart_id, product_id=product_id, new_quantity=2),
                asynchronous=False,
            )


class TestRemoveAndClearCommands:
    def test_remove_releases_hold(self, make_product, make_cart, add_to_cart, product_state):
        product_id = make_product(stock=10)
        cart_id = make_cart()
        add_to_cart(cart_id, product_id, 4)

        current_domain.process(RemoveFromCart(cart_id=cart_id, product_id=product_id), asynchronous=False)

        assert len(_cart(cart_id).items) == 0
        assert product_state(product_id).reserved_stock == 0

    def test_remove_only_the_matching_granularity(self, make_product, make_cart, add_to_cart, product_state):
        product_id = make_product(stock=10, units_per_base_package=10, allows_unit_sale=True)
        cart_id = make_cart()
        add_to_cart(cart_id, product_id, 2)
        add_to_cart(cart_id, product_id, 5, purchase_type="unit")
        assert product_state(product_id).reserved_stock == 3

        current_domain.process(
            RemoveFromCart(cart_id=cart_id, product_id=product_id, purchase_type="unit"),
            asynchronous=False,
        )

        cart = _cart(cart_id)
        assert len(cart.items) == 1
        assert cart.items[0].purchase_type == "package"
        assert product_state(product_id).reserved_stock == 2

    def test_clear_releases_every_hold(self, make_product, make_cart, add_to_cart, product_state):
        first = make_product(name="Paracetamol 500mg", stock=10)
        second = make_product(name="Cetirizine 10mg", stock=10)
        cart_id = make_cart()
        add_to_cart(cart_id, first, 2)
        add_to_cart(cart_id, second, 3)

        current_domain.process(ClearCart(cart_id=cart_id), asynchronous=False)

        assert len(_cart(cart_id).items) == 0
        assert product_state(first).reserved_stock == 0
        assert product_state(second).reserved_stock == 0
