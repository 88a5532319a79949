"""Application tests for prescription review and its automatic transitions."""

import json

import pytest
from protean import current_domain
from protean.exceptions import ValidationError

from pharmacy.exceptions import InvalidTransition
from pharmacy.order.order import Order, OrderStatus, PrescriptionStatus, StockState
from pharmacy.order.prescriptions import VerifyPrescription


def _order(order_id):
    return current_domain.repository_for(Order).get(order_id)


def _verify(order_id, prescription_id, approved, notes=None):
    return current_domain.process(
        VerifyPrescription(
            order_id=order_id,
            prescription_id=prescription_id,
            approved=approved,
            notes=notes,
            actor="pharmacist",
        ),
        asynchronous=False,
    )


@pytest.fixture()
def rx_order(make_product, make_cart, add_to_cart, place_order):
    """A pending order for a prescription-only product with ``documents`` uploads."""

    def _rx_order(documents=1, quantity=2):
        product_id = make_product(name="Amoxicillin 500mg", requires_prescription=True, stock=10)
        cart_id = make_cart()
        add_to_cart(cart_id, product_id, quantity)
        urls = [f"https://docs.example/rx-{i}.pdf" for i in range(documents)]
        order_id = place_order(cart_id, prescriptions=json.dumps(urls))
        return product_id, order_id

    return _rx_order


class TestPrescriptionApproval:
    def test_approval_moves_to_prescription_verified(self, rx_order):
        _, order_id = rx_order()
        prescription_id = str(_order(order_id).prescriptions[0].id)

        assert _verify(order_id, prescription_id, approved=True) == PrescriptionStatus.VERIFIED.value

        order = _order(order_id)
        assert order.status == OrderStatus.PRESCRIPTION_VERIFIED.value
        assert order.prescription_status == PrescriptionStatus.VERIFIED.value
        assert order.prescriptions[0].verified_by == "pharmacist"

    def test_partial_approval_keeps_order_pending(self, rx_order):
        _, order_id = rx_order(documents=2)
        prescription_id = str(_order(order_id).prescriptions[0].id)

        outcome = _verify(order_id, prescription_id, approved=True)

        assert outcome == PrescriptionStatus.PENDING_VERIFICATION.value
        assert _order(order_id).status == OrderStatus.PENDING.value

    def test_verified_order_can_be_confirmed(self, rx_order, transition, product_state):
        product_id, order_id = rx_order(quantity=2)
        _verify(order_id, str(_order(order_id).prescriptions[0].id), approved=True)

        transition(order_id, "confirmed")

        assert _order(order_id).status == OrderStatus.CONFIRMED.value
        assert product_state(product_id).stock == 8

    def test_unverified_order_cannot_be_confirmed(self, rx_order, transition):
        _, order_id = rx_order()
        with pytest.raises(InvalidTransition):
            transition(order_id, "confirmed")


class TestPrescriptionRejection:
    def test_rejection_cancels_and_releases(self, rx_order, product_state):
        product_id, order_id = rx_order(quantity=2)
        prescription_id = str(_order(order_id).prescriptions[0].id)

        outcome = _verify(order_id, prescription_id, approved=False, notes="Expired prescription")

        assert outcome == PrescriptionStatus.REJECTED.value
        order = _order(order_id)
        assert order.status == OrderStatus.CANCELLED.value
        assert "Expired prescription" in order.cancellation.reason
        assert order.items[0].stock_state == StockState.RELEASED.value
        assert product_state(product_id).reserved_stock == 0

    def test_review_after_cancellation_rejected(self, rx_order):
        _, order_id = rx_order(documents=2)
        order = _order(order_id)
        first, second = (str(p.id) for p in order.prescriptions)
        _verify(order_id, first, approved=False)

        with pytest.raises(ValidationError):
            _verify(order_id, second, approved=True)
