"""Concurrent shoppers racing for the same product.

Every shopper thread starts at the same barrier and asks for one package of a
product with ten in stock. Exactly ten must succeed, the rest must be refused
for lack of stock, and no version conflict may leak out to a shopper.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

from protean.exceptions import ExpectedVersionError

from pharmacy.cart.cart import Cart
from pharmacy.cart.items import AddToCart
from pharmacy.domain import pharmacy
from pharmacy.exceptions import InsufficientStock
from pharmacy.stock import ledger
from pharmacy.utils.concurrency import dispatch

SHOPPERS = 20
STOCK = 10


def _race(action):
    """Run ``action(index)`` on SHOPPERS threads at once and collect outcomes."""
    barrier = threading.Barrier(SHOPPERS)

    def _attempt(index):
        with pharmacy.domain_context():
            barrier.wait()
            try:
                action(index)
            except InsufficientStock:
                return "insufficient"
            except ExpectedVersionError:
                return "conflict"
        return "ok"

    with ThreadPoolExecutor(max_workers=SHOPPERS) as pool:
        return list(pool.map(_attempt, range(SHOPPERS)))


class TestConcurrentReservations:
    def test_direct_reservations_never_oversell(self, make_product, product_state):
        product_id = make_product(stock=STOCK)

        outcomes = _race(lambda _: ledger.reserve(product_id, 1))

        assert outcomes.count("conflict") == 0
        assert outcomes.count("ok") + outcomes.count("insufficient") == SHOPPERS
        assert outcomes.count("ok") == STOCK
        assert product_state(product_id).reserved_stock == STOCK

    def test_concurrent_add_to_cart_is_retried_until_stock_runs_out(self, make_product, make_cart, product_state):
        product_id = make_product(stock=STOCK)
        cart_ids = [make_cart(customer_id=f"cust-{index:03d}") for index in range(SHOPPERS)]

        outcomes = _race(lambda index: dispatch(AddToCart(cart_id=cart_ids[index], product_id=product_id, quantity=1)))

        assert outcomes.count("conflict") == 0
        assert outcomes.count("ok") == STOCK
        assert outcomes.count("insufficient") == SHOPPERS - STOCK

        product = product_state(product_id)
        assert product.reserved_stock == STOCK
        assert product.stock - product.reserved_stock == 0

        carts = pharmacy.repository_for(Cart)
        held = sum(carts.get(cart_id).held_base_units().get(str(product_id), 0) for cart_id in cart_ids)
        assert held == STOCK
