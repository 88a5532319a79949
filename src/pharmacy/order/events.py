"""Domain events for the Order aggregate.

Events are the notification hook of the order lifecycle: the tracking
projection is built from them, and outbound messaging (email, SMS) subscribes
to them outside this service.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from pharmacy.domain import pharmacy


@pharmacy.event(part_of="Order")
class OrderPlaced:
    """A cart was converted into an order."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    cart_id = Identifier(required=True)
    customer_id = Identifier()
    customer_name = String()
    contact_phone = String()
    contact_email = String()
    items = Text(required=True)  # JSON: list of line snapshots
    delivery_address = Text(required=True)  # JSON: address dict
    payment_method = String(required=True)
    prescription_status = String(required=True)
    subtotal = Float(required=True)
    delivery_fee = Float(required=True)
    total = Float(required=True)
    placed_at = DateTime(required=True)


@pharmacy.event(part_of="Order")
class OrderStatusChanged:
    """The order moved along its fulfillment state machine."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    previous_status = String(required=True)
    status = String(required=True)
    actor = String()
    notes = Text()
    changed_at = DateTime(required=True)


@pharmacy.event(part_of="Order")
class PrescriptionReviewed:
    """A pharmacist approved or rejected one prescription on an order."""

    __version__ = 1

    order_id = Identifier(required=True)
    prescription_id = Identifier(required=True)
    decision = String(required=True)  # "approved" | "rejected"
    prescription_status = String(required=True)  # Order-level status after review
    verified_by = String()
    notes = Text()
    reviewed_at = DateTime(required=True)


@pharmacy.event(part_of="Order")
class RevenueRecorded:
    """Revenue for a delivered order was recognised (exactly once)."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    gross_revenue = Float(required=True)
    net_revenue = Float(required=True)
    profit = Float(required=True)
    recorded_at = DateTime(required=True)


@pharmacy.event(part_of="Order")
class RefundProcessed:
    """An open refund on a cancelled or returned order was paid out."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    amount = Float(required=True)
    processed_by = String()
    processed_at = DateTime(required=True)


@pharmacy.event(part_of="Order")
class StatusHistoryPruned:
    """Old status history entries were trimmed from an order."""

    __version__ = 1

    order_id = Identifier(required=True)
    removed = Integer(required=True)
    kept = Integer(required=True)
    pruned_at = DateTime(required=True)
