"""Order aggregate (CQRS) — a committed purchase and its fulfillment lifecycle.

The order owns the stock its cart held at checkout. Each line remembers how
many base units it holds and in what state (``reserved`` until confirmation,
``deducted`` afterwards, ``released``/``restocked`` once returned to the
ledger). The aggregate itself never calls the ledger: the lifecycle service
moves the stock and then records the outcome here.

State Machine:
    PENDING → PRESCRIPTION_VERIFIED → CONFIRMED → PACKED →
    OUT_FOR_DELIVERY → DELIVERED → RETURNED
    PENDING → CONFIRMED (orders without prescription items)
    CANCELLED (from any state before DELIVERED)

``status_history`` is the order's audit trail. Every transition, including the
initial ``pending``, appends one entry.
"""

import json
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from pharmacy.domain import pharmacy
from pharmacy.exceptions import InvalidTransition
from pharmacy.order.events import (
    OrderPlaced,
    OrderStatusChanged,
    PrescriptionReviewed,
    RefundProcessed,
    RevenueRecorded,
    StatusHistoryPruned,
)
from pharmacy.stock.product import PurchaseType
from pharmacy.utils.clock import as_utc, utcnow

COST_RATIO = 0.7  # Assumed cost of goods as a share of the line total
HISTORY_RETENTION = 50


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    PRESCRIPTION_VERIFIED = "prescription_verified"
    CONFIRMED = "confirmed"
    PACKED = "packed"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"


class PrescriptionStatus(Enum):
    NOT_REQUIRED = "not_required"
    PENDING_VERIFICATION = "pending_verification"
    VERIFIED = "verified"
    REJECTED = "rejected"


class PrescriptionReview(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PaymentMethod(Enum):
    CASH_ON_DELIVERY = "cash_on_delivery"
    ONLINE_TRANSFER = "online_transfer"


class PaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


class StockState(Enum):
    RESERVED = "reserved"
    DEDUCTED = "deducted"
    RELEASED = "released"
    RESTOCKED = "restocked"


# State machine transition map
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {
        OrderStatus.PRESCRIPTION_VERIFIED,
        OrderStatus.CONFIRMED,
        OrderStatus.CANCELLED,
    },
    OrderStatus.PRESCRIPTION_VERIFIED: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PACKED, OrderStatus.CANCELLED},
    OrderStatus.PACKED: {OrderStatus.OUT_FOR_DELIVERY, OrderStatus.CANCELLED},
    OrderStatus.OUT_FOR_DELIVERY: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: {OrderStatus.RETURNED},
    OrderStatus.CANCELLED: set(),  # Terminal
    OrderStatus.RETURNED: set(),  # Terminal
}

# Orders in these states still expect to be delivered
ACTIVE_STATES = {
    OrderStatus.PENDING,
    OrderStatus.PRESCRIPTION_VERIFIED,
    OrderStatus.CONFIRMED,
    OrderStatus.PACKED,
    OrderStatus.OUT_FOR_DELIVERY,
}


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@pharmacy.value_object(part_of="Order")
class DeliveryAddress:
    """Where the order is delivered. Captured at checkout and never edited."""

    address_line1 = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    postal_code = String(max_length=20)
    country = String(max_length=100, default="Nepal")


@pharmacy.value_object(part_of="Order")
class Pricing:
    subtotal = Float(default=0.0)
    delivery_fee = Float(default=0.0)
    tax = Float(default=0.0)
    discount = Float(default=0.0)
    total = Float(default=0.0)


@pharmacy.value_object(part_of="Order")
class Revenue:
    """Revenue recognised on delivery. ``recorded`` flips once and stays set."""

    recorded = Boolean(default=False)
    gross_revenue = Float(default=0.0)
    net_revenue = Float(default=0.0)
    profit = Float(default=0.0)
    recorded_at = DateTime()


@pharmacy.value_object(part_of="Order")
class Cancellation:
    reason = String(max_length=500)
    actor = String(max_length=100)
    cancelled_at = DateTime()
    refund_amount = Float(default=0.0)
    refund_processed = Boolean(default=False)


@pharmacy.value_object(part_of="Order")
class Refund:
    """Money owed back to the customer after a cancellation or return."""

    amount = Float(default=0.0)
    processed = Boolean(default=False)
    opened_at = DateTime()
    processed_at = DateTime()
    processed_by = String(max_length=100)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@pharmacy.entity(part_of="Order")
class OrderItem:
    """A line of the order, snapshotting the catalog data at checkout time."""

    product_id = Identifier(required=True)
    product_name = String(required=True, max_length=255)
    brand = String(max_length=255)
    category = String(max_length=100)
    unit_price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    purchase_type = String(choices=PurchaseType, required=True)
    line_total = Float(required=True, min_value=0.0)
    requires_prescription = Boolean(default=False)
    reserved_base_units = Integer(required=True, min_value=0)
    stock_state = String(choices=StockState, default=StockState.RESERVED.value)


@pharmacy.entity(part_of="Order")
class Prescription:
    document_url = String(required=True, max_length=1000)
    status = String(choices=PrescriptionReview, default=PrescriptionReview.PENDING.value)
    notes = Text()
    verified_by = String(max_length=100)
    verified_at = DateTime()


@pharmacy.entity(part_of="Order")
class StatusHistoryEntry:
    status = String(choices=OrderStatus, required=True)
    actor = String(max_length=100)
    changed_at = DateTime(required=True)
    notes = Text()


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@pharmacy.aggregate
class Order:
    order_number = String(required=True, max_length=20)
    cart_id = Identifier(required=True)
    customer_id = Identifier()  # Account orders
    customer_name = String(max_length=255)  # Guest orders
    contact_phone = String(max_length=30)
    contact_email = String(max_length=255)
    items = HasMany(OrderItem)
    delivery_address = ValueObject(DeliveryAddress)
    pricing = ValueObject(Pricing)
    payment_method = String(choices=PaymentMethod, default=PaymentMethod.CASH_ON_DELIVERY.value)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    amount_paid = Float(default=0.0)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    has_prescription_items = Boolean(default=False)
    prescription_status = String(choices=PrescriptionStatus, default=PrescriptionStatus.NOT_REQUIRED.value)
    prescriptions = HasMany(Prescription)
    status_history = HasMany(StatusHistoryEntry)
    revenue = ValueObject(Revenue)
    cancellation = ValueObject(Cancellation)
    refund = ValueObject(Refund)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def total_must_match_pricing_components(self):
        if self.pricing is None:
            return
        p = self.pricing
        expected = (p.subtotal or 0.0) + (p.delivery_fee or 0.0) + (p.tax or 0.0) - (p.discount or 0.0)
        if abs((p.total or 0.0) - expected) > 0.005:
            raise ValidationError({"pricing": ["Total must equal subtotal + delivery fee + tax - discount"]})

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        order_number,
        cart_id,
        items_data,
        delivery_address,
        delivery_fee,
        payment_method,
        customer_id=None,
        customer_name=None,
        contact_phone=None,
        contact_email=None,
        prescription_urls=None,
    ):
        """Create a pending order from a converted cart's lines.

        Args:
            items_data: List of dicts with product_id, product_name, brand,
                        category, unit_price, quantity, purchase_type,
                        requires_prescription, reserved_base_units.
            delivery_address: Dict with address_line1, city, state,
                              postal_code, country.
            prescription_urls: Documents uploaded at checkout.
        """
        now = utcnow()
        has_prescription_items = any(item.get("requires_prescription") for item in items_data)

        order = cls(
            order_number=order_number,
            cart_id=cart_id,
            customer_id=customer_id,
            customer_name=customer_name,
            contact_phone=contact_phone,
            contact_email=contact_email,
            delivery_address=DeliveryAddress(**delivery_address),
            payment_method=PaymentMethod(payment_method).value,
            payment_status=PaymentStatus.PENDING.value,
            amount_paid=0.0,
            status=OrderStatus.PENDING.value,
            has_prescription_items=has_prescription_items,
            prescription_status=(
                PrescriptionStatus.PENDING_VERIFICATION.value
                if has_prescription_items
                else PrescriptionStatus.NOT_REQUIRED.value
            ),
            revenue=Revenue(recorded=False),
            created_at=now,
            updated_at=now,
        )

        for item in items_data:
            order.add_items(
                OrderItem(
                    line_total=round(item["unit_price"] * item["quantity"], 2),
                    stock_state=StockState.RESERVED.value,
                    **item,
                )
            )
        for url in prescription_urls or []:
            order.add_prescriptions(Prescription(document_url=url))

        subtotal = round(sum(item.line_total for item in order.items), 2)
        order.pricing = Pricing(
            subtotal=subtotal,
            delivery_fee=delivery_fee,
            tax=0.0,
            discount=0.0,
            total=round(subtotal + delivery_fee, 2),
        )
        order._append_history(OrderStatus.PENDING, actor="customer", notes="Order placed", now=now)

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                cart_id=str(cart_id),
                customer_id=str(customer_id) if customer_id else None,
                customer_name=customer_name,
                contact_phone=contact_phone,
                contact_email=contact_email,
                items=json.dumps([order._line_snapshot(item) for item in order.items]),
                delivery_address=json.dumps(delivery_address),
                payment_method=order.payment_method,
                prescription_status=order.prescription_status,
                subtotal=order.pricing.subtotal,
                delivery_fee=order.pricing.delivery_fee,
                total=order.pricing.total,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    @staticmethod
    def _line_snapshot(item):
        return {
            "product_id": str(item.product_id),
            "product_name": item.product_name,
            "quantity": item.quantity,
            "purchase_type": item.purchase_type,
            "unit_price": item.unit_price,
            "line_total": item.line_total,
        }

    def _append_history(self, status, actor=None, notes=None, now=None):
        self.add_status_history(
            StatusHistoryEntry(
                status=status.value,
                actor=actor,
                changed_at=now or utcnow(),
                notes=notes,
            )
        )

    def sorted_history(self):
        """Status history, oldest first."""
        return sorted(self.status_history, key=lambda entry: as_utc(entry.changed_at))

    @property
    def is_terminal(self):
        return not _VALID_TRANSITIONS[OrderStatus(self.status)]

    def lines_in_state(self, state):
        return [item for item in self.items if item.stock_state == state.value]

    def mark_stock_state(self, item, state):
        item.stock_state = state.value

    # -------------------------------------------------------------------
    # State transition
    # -------------------------------------------------------------------
    def assert_can_transition(self, target):
        """Validate the transition table and the prescription gate."""
        current = OrderStatus(self.status)
        target = OrderStatus(target)

        if target not in _VALID_TRANSITIONS[current]:
            raise InvalidTransition(current.value, target.value)

        prescriptions = PrescriptionStatus(self.prescription_status)
        verified = prescriptions == PrescriptionStatus.VERIFIED
        cleared = verified or prescriptions == PrescriptionStatus.NOT_REQUIRED
        if target == OrderStatus.PRESCRIPTION_VERIFIED and not cleared:
            raise InvalidTransition(current.value, target.value, reason="prescriptions are not verified")
        if (
            current == OrderStatus.PENDING
            and target != OrderStatus.CANCELLED
            and self.has_prescription_items
            and not verified
        ):
            raise InvalidTransition(current.value, target.value, reason="prescription verification is required")

    def change_status(self, target, actor=None, notes=None):
        """Move to ``target`` and append the audit entry.

        Stock side effects are performed by the caller before this is invoked.
        """
        target = OrderStatus(target)
        self.assert_can_transition(target)

        now = utcnow()
        previous = self.status
        self.status = target.value
        self.updated_at = now
        self._append_history(target, actor=actor, notes=notes, now=now)

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                order_number=self.order_number,
                previous_status=previous,
                status=target.value,
                actor=actor,
                notes=notes,
                changed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Prescriptions
    # -------------------------------------------------------------------
    def review_prescription(self, prescription_id, approved, notes=None, actor=None):
        """Approve or reject one prescription and return the order-level status."""
        if OrderStatus(self.status) != OrderStatus.PENDING:
            raise ValidationError({"status": ["Prescriptions can only be reviewed on pending orders"]})

        prescription = next((p for p in self.prescriptions if str(p.id) == str(prescription_id)), None)
        if prescription is None:
            raise ValidationError({"prescription_id": ["Prescription not found"]})
        if PrescriptionReview(prescription.status) != PrescriptionReview.PENDING:
            raise ValidationError({"prescription_id": ["Prescription has already been reviewed"]})

        now = utcnow()
        decision = PrescriptionReview.APPROVED if approved else PrescriptionReview.REJECTED
        prescription.status = decision.value
        prescription.notes = notes
        prescription.verified_by = actor
        prescription.verified_at = now

        reviews = [PrescriptionReview(p.status) for p in self.prescriptions]
        if PrescriptionReview.REJECTED in reviews:
            self.prescription_status = PrescriptionStatus.REJECTED.value
        elif all(review == PrescriptionReview.APPROVED for review in reviews):
            self.prescription_status = PrescriptionStatus.VERIFIED.value
        self.updated_at = now

        self.raise_(
            PrescriptionReviewed(
                order_id=str(self.id),
                prescription_id=str(prescription.id),
                decision=decision.value,
                prescription_status=self.prescription_status,
                verified_by=actor,
                notes=notes,
                reviewed_at=now,
            )
        )
        return PrescriptionStatus(self.prescription_status)

    # -------------------------------------------------------------------
    # Money
    # -------------------------------------------------------------------
    def record_revenue(self, now=None):
        """Recognise revenue once. Returns False when it was already recorded."""
        if self.revenue and self.revenue.recorded:
            return False
        if OrderStatus(self.status) != OrderStatus.DELIVERED:
            raise ValidationError({"revenue": ["Revenue is recorded only for delivered orders"]})

        now = now or utcnow()
        gross = self.pricing.total
        net = round(gross - (self.pricing.delivery_fee or 0.0), 2)
        cost = sum(item.line_total * COST_RATIO for item in self.items)
        profit = round(net - cost, 2)

        self.revenue = Revenue(
            recorded=True,
            gross_revenue=gross,
            net_revenue=net,
            profit=profit,
            recorded_at=now,
        )
        self.updated_at = now

        self.raise_(
            RevenueRecorded(
                order_id=str(self.id),
                order_number=self.order_number,
                gross_revenue=gross,
                net_revenue=net,
                profit=profit,
                recorded_at=now,
            )
        )
        return True

    def collect_cash_payment(self):
        """Cash-on-delivery orders are paid in full at the door."""
        if PaymentMethod(self.payment_method) != PaymentMethod.CASH_ON_DELIVERY:
            return
        if PaymentStatus(self.payment_status) == PaymentStatus.PENDING:
            self.payment_status = PaymentStatus.PAID.value
            self.amount_paid = self.pricing.total

    def mark_paid(self, amount):
        """Record a confirmed online transfer."""
        if PaymentStatus(self.payment_status) != PaymentStatus.PENDING:
            raise ValidationError({"payment_status": ["Order payment is not pending"]})
        if self.is_terminal:
            raise ValidationError({"status": [f"Cannot take payment on a {self.status} order"]})

        self.payment_status = PaymentStatus.PAID.value
        self.amount_paid = round(amount, 2)
        self.updated_at = utcnow()

    def _open_refund(self, now):
        if (self.amount_paid or 0.0) > 0:
            self.refund = Refund(amount=self.amount_paid, processed=False, opened_at=now)

    def record_cancellation(self, reason=None, actor=None):
        now = utcnow()
        self.cancellation = Cancellation(
            reason=reason,
            actor=actor,
            cancelled_at=now,
            refund_amount=self.amount_paid or 0.0,
            refund_processed=False,
        )
        self._open_refund(now)

    def record_return(self):
        self._open_refund(utcnow())

    def process_refund(self, actor=None):
        if self.refund is None or self.refund.processed:
            raise ValidationError({"refund": ["Order has no open refund"]})

        now = utcnow()
        self.refund = Refund(
            amount=self.refund.amount,
            processed=True,
            opened_at=self.refund.opened_at,
            processed_at=now,
            processed_by=actor,
        )
        if self.cancellation is not None:
            self.cancellation = Cancellation(
                reason=self.cancellation.reason,
                actor=self.cancellation.actor,
                cancelled_at=self.cancellation.cancelled_at,
                refund_amount=self.cancellation.refund_amount,
                refund_processed=True,
            )
        self.payment_status = PaymentStatus.REFUNDED.value
        self.updated_at = now

        self.raise_(
            RefundProcessed(
                order_id=str(self.id),
                order_number=self.order_number,
                amount=self.refund.amount,
                processed_by=actor,
                processed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Housekeeping
    # -------------------------------------------------------------------
    def prune_status_history(self, keep=HISTORY_RETENTION):
        """Drop the oldest audit entries beyond ``keep``. Returns the number removed."""
        history = self.sorted_history()
        stale = history[:-keep] if keep else history
        if not stale:
            return 0

        for entry in stale:
            self.remove_status_history(entry)

        now = utcnow()
        self.raise_(
            StatusHistoryPruned(
                order_id=str(self.id),
                removed=len(stale),
                kept=len(self.status_history),
                pruned_at=now,
            )
        )
        return len(stale)
