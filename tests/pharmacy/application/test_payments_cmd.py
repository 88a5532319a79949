"""Application tests for online transfer payments and refunds."""

import pytest
from protean import current_domain
from protean.exceptions import ValidationError

from pharmacy.order.order import Order, PaymentStatus
from pharmacy.order.payments import ProcessRefund, RecordPayment


def _order(order_id):
    return current_domain.repository_for(Order).get(order_id)


@pytest.fixture()
def transfer_order(make_product, make_cart, add_to_cart, place_order):
    product_id = make_product(price=100.0, stock=10)
    cart_id = make_cart()
    add_to_cart(cart_id, product_id, 2)
    return place_order(cart_id, payment_method="online_transfer")


class TestRecordPayment:
    def test_record_payment(self, transfer_order):
        current_domain.process(RecordPayment(order_id=transfer_order, amount=250.0), asynchronous=False)
        order = _order(transfer_order)
        assert order.payment_status == PaymentStatus.PAID.value
        assert order.amount_paid == 250.0

    def test_payment_recorded_once(self, transfer_order):
        current_domain.process(RecordPayment(order_id=transfer_order, amount=250.0), asynchronous=False)
        with pytest.raises(ValidationError):
            current_domain.process(RecordPayment(order_id=transfer_order, amount=250.0), asynchronous=False)

    def test_delivery_does_not_collect_cash_for_transfers(self, transfer_order, transition):
        for status in ("confirmed", "packed", "out_for_delivery", "delivered"):
            transition(transfer_order, status)
        assert _order(transfer_order).payment_status == PaymentStatus.PENDING.value


class TestRefunds:
    def test_cancelled_paid_order_is_refunded(self, transfer_order, transition):
        current_domain.process(RecordPayment(order_id=transfer_order, amount=250.0), asynchronous=False)
        transition(transfer_order, "cancelled", notes="Out of delivery area")

        current_domain.process(ProcessRefund(order_id=transfer_order, actor="accounts"), asynchronous=False)

        order = _order(transfer_order)
        assert order.payment_status == PaymentStatus.REFUNDED.value
        assert order.refund.processed
        assert order.refund.processed_by == "accounts"
        assert order.cancellation.refund_processed

    def test_refund_without_payment(self, transfer_order, transition):
        transition(transfer_order, "cancelled")
        with pytest.raises(ValidationError):
            current_domain.process(ProcessRefund(order_id=transfer_order), asynchronous=False)
