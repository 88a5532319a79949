"""Prescription review — command and handler.

Approving the last pending prescription moves the order to
``prescription_verified``. A single rejection cancels the order, which
releases its held stock.
"""

from protean import handle
from protean.fields import Boolean, Identifier, String, Text
from protean.utils.globals import current_domain

from pharmacy.domain import pharmacy
from pharmacy.order.lifecycle import transition_order
from pharmacy.order.order import Order, OrderStatus, PrescriptionStatus


@pharmacy.command(part_of="Order")
class VerifyPrescription:
    order_id = Identifier(required=True)
    prescription_id = Identifier(required=True)
    approved = Boolean(required=True)
    notes = Text()
    actor = String(max_length=100)


@pharmacy.command_handler(part_of=Order)
class PrescriptionReviewHandler:
    @handle(VerifyPrescription)
    def verify_prescription(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        outcome = order.review_prescription(
            prescription_id=command.prescription_id,
            approved=command.approved,
            notes=command.notes,
            actor=command.actor,
        )

        if outcome == PrescriptionStatus.VERIFIED:
            transition_order(
                order,
                OrderStatus.PRESCRIPTION_VERIFIED,
                actor=command.actor,
                notes="All prescriptions approved",
            )
        elif outcome == PrescriptionStatus.REJECTED:
            reason = "Prescription rejected"
            if command.notes:
                reason = f"{reason}: {command.notes}"
            transition_order(order, OrderStatus.CANCELLED, actor=command.actor, notes=reason)

        repo.add(order)
        return outcome.value
