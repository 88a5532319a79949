import json

import pytest
from protean import current_domain
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def pharmacy_bed():
    from pharmacy.domain import pharmacy

    bed = DomainFixture(pharmacy)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(pharmacy_bed):
    with pharmacy_bed.domain_context():
        yield


# ---------------------------------------------------------------------------
# Builders shared by application, integration and BDD tests
# ---------------------------------------------------------------------------
KATHMANDU = {
    "address_line1": "Thamel Marg 12",
    "city": "Kathmandu",
    "state": "Bagmati",
    "postal_code": "44600",
    "country": "Nepal",
}


@pytest.fixture()
def make_product():
    from pharmacy.stock.registration import RegisterProduct

    def _make(**overrides):
        defaults = {
            "name": "Paracetamol 500mg",
            "brand": "Nepal Pharma",
            "category": "Pain Relief",
            "price": 20.0,
            "stock": 10,
        }
        defaults.update(overrides)
        return current_domain.process(RegisterProduct(**defaults), asynchronous=False)

    return _make


@pytest.fixture()
def make_cart():
    from pharmacy.cart.management import CreateCart

    def _make(**overrides):
        defaults = {"customer_id": "cust-001"}
        defaults.update(overrides)
        return current_domain.process(CreateCart(**defaults), asynchronous=False)

    return _make


@pytest.fixture()
def add_to_cart():
    from pharmacy.cart.items import AddToCart

    def _add(cart_id, product_id, quantity, purchase_type="package"):
        current_domain.process(
            AddToCart(cart_id=cart_id, product_id=product_id, quantity=quantity, purchase_type=purchase_type),
            asynchronous=False,
        )

    return _add


@pytest.fixture()
def place_order():
    from pharmacy.order.creation import PlaceOrder

    def _place(cart_id, address=None, **overrides):
        fields = {
            "cart_id": cart_id,
            "delivery_address": json.dumps(address or KATHMANDU),
            "contact_phone": "+977-9841000000",
        }
        fields.update(overrides)
        return current_domain.process(PlaceOrder(**fields), asynchronous=False)

    return _place


@pytest.fixture()
def transition():
    from pharmacy.order.lifecycle import TransitionOrderStatus

    def _transition(order_id, status, actor="admin", notes=None):
        return current_domain.process(
            TransitionOrderStatus(order_id=order_id, status=status, actor=actor, notes=notes),
            asynchronous=False,
        )

    return _transition


@pytest.fixture()
def product_state():
    from pharmacy.stock.product import Product

    def _get(product_id):
        return current_domain.repository_for(Product).get(product_id)

    return _get
