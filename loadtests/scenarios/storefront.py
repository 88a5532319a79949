"""Storefront load test scenarios.

Stateful SequentialTaskSet journeys covering the browse-and-abandon cart,
the full checkout through delivery, prescription review, cancellation with
refund, plus a contention user that fights over a handful of scarce packages.
"""

import random
from threading import Lock

from locust import HttpUser, SequentialTaskSet, between, constant_pacing, task

from loadtests.data_generators import (
    cart_item_data,
    cart_owner,
    checkout_data,
    product_data,
    scarce_product_data,
)
from loadtests.helpers.response import extract_error_detail, is_expected_rejection
from loadtests.helpers.state import CartState, CheckoutState, OrderState, ProductState

FULFILLMENT_PATH = ["confirmed", "packed", "out_for_delivery", "delivered"]


def _register_product(client, state_list, **kwargs):
    payload = product_data(**kwargs)
    with client.post("/products", json=payload, catch_response=True, name="POST /products") as resp:
        if resp.status_code == 201:
            state_list.append(
                ProductState(
                    product_id=resp.json()["product_id"],
                    allows_unit_sale=payload["allows_unit_sale"],
                    requires_prescription=payload["requires_prescription"],
                )
            )
            return True
        resp.failure(f"Register product failed: {resp.status_code} — {extract_error_detail(resp)}")
        return False


def _open_cart(client, cart: CartState):
    owner = cart_owner()
    cart.guest = "session_id" in owner
    with client.post("/carts", json=owner, catch_response=True, name="POST /carts") as resp:
        if resp.status_code == 200:
            cart.cart_id = resp.json()["cart_id"]
            return True
        resp.failure(f"Open cart failed: {resp.status_code} — {extract_error_detail(resp)}")
        return False


def _add_item(client, cart: CartState, product: ProductState):
    payload = cart_item_data(product.product_id, allows_unit_sale=product.allows_unit_sale)
    with client.post(
        f"/carts/{cart.cart_id}/items",
        json=payload,
        catch_response=True,
        name="POST /carts/{id}/items",
    ) as resp:
        if resp.status_code == 200:
            cart.lines.append((product.product_id, payload["purchase_type"]))
        elif is_expected_rejection(resp):
            resp.success()
        else:
            resp.failure(f"Add item failed: {resp.status_code} — {extract_error_detail(resp)}")


class AbandonedCartJourney(SequentialTaskSet):
    """Register Product -> Open Cart -> Add Items -> Update -> Remove -> Walk away.

    The cart is left active with its holds in place; the cart sweep
    reclaims them once the session window has passed.
    """

    def on_start(self):
        self.products = []
        self.cart = CartState()

    @task
    def register_products(self):
        for _ in range(2):
            if not _register_product(self.client, self.products):
                self.interrupt()

    @task
    def open_cart(self):
        if not _open_cart(self.client, self.cart):
            self.interrupt()

    @task
    def add_items(self):
        for product in self.products:
            _add_item(self.client, self.cart, product)

    @task
    def update_quantity(self):
        if not self.cart.lines:
            return
        product_id, purchase_type = self.cart.lines[0]
        with self.client.put(
            f"/carts/{self.cart.cart_id}/items/{product_id}",
            json={"purchase_type": purchase_type, "new_quantity": random.randint(1, 5)},
            catch_response=True,
            name="PUT /carts/{id}/items/{product_id}",
        ) as resp:
            if resp.status_code != 200 and not is_expected_rejection(resp):
                resp.failure(f"Update item failed: {resp.status_code} — {extract_error_detail(resp)}")

    @task
    def remove_item(self):
        if len(self.cart.lines) < 2:
            return
        product_id, purchase_type = self.cart.lines.pop()
        with self.client.delete(
            f"/carts/{self.cart.cart_id}/items/{product_id}",
            params={"purchase_type": purchase_type},
            catch_response=True,
            name="DELETE /carts/{id}/items/{product_id}",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Remove item failed: {resp.status_code} — {extract_error_detail(resp)}")

    @task
    def done(self):
        self.interrupt()


class CheckoutJourney(SequentialTaskSet):
    """Register Product -> Open Cart -> Add Item -> Checkout -> Fulfil -> Track.

    The happy path: stock is reserved in the cart, deducted on confirmation,
    and revenue is recorded on delivery.
    """

    def on_start(self):
        self.state = CheckoutState()

    @task
    def register_product(self):
        if not _register_product(self.client, self.state.products):
            self.interrupt()

    @task
    def open_cart(self):
        if not _open_cart(self.client, self.state.cart):
            self.interrupt()

    @task
    def add_item(self):
        _add_item(self.client, self.state.cart, self.state.products[0])
        if not self.state.cart.lines:
            self.interrupt()

    @task
    def checkout(self):
        payload = checkout_data(guest=self.state.cart.guest)
        with self.client.post(
            f"/carts/{self.state.cart.cart_id}/checkout",
            json=payload,
            catch_response=True,
            name="POST /carts/{id}/checkout",
        ) as resp:
            if resp.status_code == 201:
                self.state.order = OrderState(
                    order_id=resp.json()["order_id"],
                    contact_phone=payload["contact_phone"],
                    payment_method=payload["payment_method"],
                )
            else:
                resp.failure(f"Checkout failed: {resp.status_code} — {extract_error_detail(resp)}")
                self.interrupt()

    @task
    def record_transfer(self):
        order = self.state.order
        if order.payment_method != "online_transfer":
            return
        with self.client.post(
            f"/orders/{order.order_id}/payments",
            json={"amount": 1.0},
            catch_response=True,
            name="POST /orders/{id}/payments",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Record payment failed: {resp.status_code} — {extract_error_detail(resp)}")

    @task
    def fulfil(self):
        order = self.state.order
        for status in FULFILLMENT_PATH:
            with self.client.put(
                f"/orders/{order.order_id}/status",
                json={"status": status, "actor": "loadtest"},
                catch_response=True,
                name=f"PUT /orders/{{id}}/status [{status}]",
            ) as resp:
                if resp.status_code == 200:
                    order.current_status = status
                else:
                    resp.failure(f"Transition to {status} failed: {resp.status_code} — {extract_error_detail(resp)}")
                    self.interrupt()

    @task
    def done(self):
        self.interrupt()


class PrescriptionJourney(SequentialTaskSet):
    """Prescription product -> Checkout with upload -> Review -> Confirm or cancel."""

    def on_start(self):
        self.state = CheckoutState()

    @task
    def register_product(self):
        if not _register_product(self.client, self.state.products, requires_prescription=True):
            self.interrupt()

    @task
    def open_cart_and_add(self):
        if not _open_cart(self.client, self.state.cart):
            self.interrupt()
        _add_item(self.client, self.state.cart, self.state.products[0])
        if not self.state.cart.lines:
            self.interrupt()

    @task
    def checkout(self):
        payload = checkout_data(guest=self.state.cart.guest, prescriptions=1)
        with self.client.post(
            f"/carts/{self.state.cart.cart_id}/checkout",
            json=payload,
            catch_response=True,
            name="POST /carts/{id}/checkout [rx]",
        ) as resp:
            if resp.status_code == 201:
                self.state.order = OrderState(order_id=resp.json()["order_id"])
            else:
                resp.failure(f"Checkout failed: {resp.status_code} — {extract_error_detail(resp)}")
                self.interrupt()

    @task
    def confirm_without_review(self):
        # Must be refused until the prescription is reviewed
        with self.client.put(
            f"/orders/{self.state.order.order_id}/status",
            json={"status": "confirmed"},
            catch_response=True,
            name="PUT /orders/{id}/status [unreviewed]",
        ) as resp:
            if resp.status_code == 400:
                resp.success()
            else:
                resp.failure(f"Unreviewed order was not gated: {resp.status_code}")

    @task
    def cancel(self):
        with self.client.put(
            f"/orders/{self.state.order.order_id}/status",
            json={"status": "cancelled", "actor": "pharmacist", "notes": "Prescription not provided"},
            catch_response=True,
            name="PUT /orders/{id}/status [cancelled]",
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Cancel failed: {resp.status_code} — {extract_error_detail(resp)}")

    @task
    def done(self):
        self.interrupt()


class StorefrontUser(HttpUser):
    """Realistic storefront traffic: mostly browsing, some checkouts."""

    wait_time = between(0.5, 3.0)
    tasks = {
        AbandonedCartJourney: 6,
        CheckoutJourney: 4,
        PrescriptionJourney: 1,
    }


class ScarceStockUser(HttpUser):
    """Contention test: every user competes for the same few packages.

    One product with five packages is registered for the whole run. Users add
    a package and immediately release it again, so at any moment only five
    holds may succeed; the rest must be refused with "Insufficient stock".
    A 400 of that kind counts as a success, anything else is a failure.
    """

    wait_time = constant_pacing(0.1)

    _product_id = None
    _lock = Lock()

    def on_start(self):
        with ScarceStockUser._lock:
            if ScarceStockUser._product_id is None:
                resp = self.client.post("/products", json=scarce_product_data(), name="[SCARCE] POST /products")
                ScarceStockUser._product_id = resp.json()["product_id"]
        self.cart = CartState()
        _open_cart(self.client, self.cart)

    @task
    def grab_and_release(self):
        product = ProductState(product_id=ScarceStockUser._product_id)
        with self.client.post(
            f"/carts/{self.cart.cart_id}/items",
            json={"product_id": product.product_id, "quantity": 1},
            catch_response=True,
            name="[SCARCE] POST /carts/{id}/items",
        ) as resp:
            if resp.status_code == 200:
                self.client.delete(f"/carts/{self.cart.cart_id}/items", name="[SCARCE] DELETE /carts/{id}/items")
            elif is_expected_rejection(resp):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code} — {extract_error_detail(resp)}")

    @task
    def check_stock(self):
        with self.client.get(
            f"/products/{ScarceStockUser._product_id}/stock",
            catch_response=True,
            name="[SCARCE] GET /products/{id}/stock",
        ) as resp:
            if resp.status_code == 200 and resp.json()["available_stock"] < 0:
                resp.failure("Available stock went negative")


class OperatorUser(HttpUser):
    """Back-office polling: health checks, sweeps and low-stock reports."""

    wait_time = between(5.0, 15.0)

    @task(3)
    def health(self):
        self.client.get("/maintenance/health", name="GET /maintenance/health")

    @task(1)
    def low_stock(self):
        self.client.get("/maintenance/low-stock", name="GET /maintenance/low-stock")

    @task(1)
    def sweep(self):
        self.client.post("/maintenance/sweep-carts", name="POST /maintenance/sweep-carts")
