"""Payment bookkeeping — online transfer receipts and refunds.

No gateway is involved: staff record a transfer once it shows up in the
account, and mark a refund processed once the money has gone back.
"""

import structlog
from protean import handle
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from pharmacy.domain import pharmacy
from pharmacy.order.order import Order

logger = structlog.get_logger(__name__)


@pharmacy.command(part_of="Order")
class RecordPayment:
    order_id = Identifier(required=True)
    amount = Float(required=True, min_value=0.0)


@pharmacy.command(part_of="Order")
class ProcessRefund:
    order_id = Identifier(required=True)
    actor = String(max_length=100)


@pharmacy.command_handler(part_of=Order)
class PaymentHandler:
    @handle(RecordPayment)
    def record_payment(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.mark_paid(command.amount)
        repo.add(order)
        logger.info("Payment recorded", order_id=str(order.id), amount=order.amount_paid)

    @handle(ProcessRefund)
    def process_refund(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.process_refund(actor=command.actor)
        repo.add(order)
        logger.info("Refund processed", order_id=str(order.id), amount=order.refund.amount)
