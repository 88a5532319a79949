"""Order status transitions and their stock side effects.

``transition_order`` is the one path through which an order changes status.
It validates the move against the transition table first, then moves stock in
the ledger, then records the new status:

- ``confirmed``: every held line is deducted. If a line fails, the lines already
  deducted are put back (restock + re-reserve) and the transition aborts.
- ``cancelled``: lines still reserved are released, lines already deducted are
  restocked; the cancellation is recorded with a refund of what was paid.
- ``returned``: deducted lines are restocked and a refund is opened.
- ``delivered``: cash-on-delivery is marked paid and revenue is recorded once.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from pharmacy.domain import pharmacy
from pharmacy.order.order import Order, OrderStatus, StockState
from pharmacy.stock import ledger

logger = structlog.get_logger(__name__)


@pharmacy.command(part_of="Order")
class TransitionOrderStatus:
    order_id = Identifier(required=True)
    status = String(choices=OrderStatus, required=True)
    actor = String(max_length=100)
    notes = Text()


def _deduct_lines(order):
    deducted = []
    try:
        for item in order.lines_in_state(StockState.RESERVED):
            ledger.deduct(item.product_id, item.reserved_base_units)
            deducted.append(item)
    except Exception:
        logger.error(
            "Stock deduction failed, restoring deducted lines",
            order_id=str(order.id),
            restored=len(deducted),
        )
        for item in deducted:
            ledger.restock(item.product_id, item.reserved_base_units)
            ledger.reserve(item.product_id, item.reserved_base_units)
        raise

    for item in deducted:
        order.mark_stock_state(item, StockState.DEDUCTED)


def _return_stock(order):
    for item in order.lines_in_state(StockState.RESERVED):
        ledger.release(item.product_id, item.reserved_base_units)
        order.mark_stock_state(item, StockState.RELEASED)

    for item in order.lines_in_state(StockState.DEDUCTED):
        ledger.restock(item.product_id, item.reserved_base_units)
        order.mark_stock_state(item, StockState.RESTOCKED)


def transition_order(order, target, actor=None, notes=None):
    """Move ``order`` to ``target``, applying the stock side effects.

    The caller persists the order afterwards.
    """
    target = OrderStatus(target)
    order.assert_can_transition(target)
    previous = order.status

    if target == OrderStatus.CONFIRMED:
        _deduct_lines(order)
    elif target == OrderStatus.CANCELLED:
        _return_stock(order)
        order.record_cancellation(reason=notes, actor=actor)
    elif target == OrderStatus.RETURNED:
        _return_stock(order)
        order.record_return()

    order.change_status(target, actor=actor, notes=notes)

    if target == OrderStatus.DELIVERED:
        order.collect_cash_payment()
        order.record_revenue()

    logger.info(
        "Order status changed",
        order_id=str(order.id),
        order_number=order.order_number,
        previous_status=previous,
        status=target.value,
        actor=actor,
    )


@pharmacy.command_handler(part_of=Order)
class OrderLifecycleHandler:
    @handle(TransitionOrderStatus)
    def transition_order_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        transition_order(order, command.status, actor=command.actor, notes=command.notes)
        repo.add(order)
        return order.status
