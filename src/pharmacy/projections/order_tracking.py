"""Order tracking — public, read-only order lookup by order number.

Anyone holding an order number can ask where the order is, but the view is
only returned when the caller also proves possession: the contact phone given
at checkout, or the account that placed the order.
"""

import json
import re

from protean.core.projector import on
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Float, Identifier, String, Text
from protean.utils.globals import current_domain

from pharmacy.domain import pharmacy
from pharmacy.order.events import OrderPlaced, OrderStatusChanged, StatusHistoryPruned
from pharmacy.order.order import Order


@pharmacy.projection
class OrderTracking:
    order_id = Identifier(identifier=True, required=True)
    order_number = String(required=True, max_length=20)
    customer_id = Identifier()
    contact_phone = String(max_length=30)
    status = String(required=True)
    items = Text()  # JSON: list of line summaries
    delivery_address = Text()  # JSON: address dict
    total = Float(default=0.0)
    history = Text()  # JSON: list of {status, changed_at, notes}
    placed_at = DateTime()
    updated_at = DateTime()


@pharmacy.projector(projector_for=OrderTracking, aggregates=[Order])
class OrderTrackingProjector:
    @on(OrderPlaced)
    def on_order_placed(self, event):
        view = OrderTracking(
            order_id=event.order_id,
            order_number=event.order_number,
            customer_id=event.customer_id,
            contact_phone=event.contact_phone,
            status="pending",
            items=event.items,
            delivery_address=event.delivery_address,
            total=event.total,
            history=json.dumps(
                [{"status": "pending", "changed_at": event.placed_at.isoformat(), "notes": "Order placed"}]
            ),
            placed_at=event.placed_at,
            updated_at=event.placed_at,
        )
        current_domain.repository_for(OrderTracking).add(view)

    @on(OrderStatusChanged)
    def on_status_changed(self, event):
        repo = current_domain.repository_for(OrderTracking)
        view = repo.get(event.order_id)

        history = json.loads(view.history) if view.history else []
        history.append(
            {
                "status": event.status,
                "changed_at": event.changed_at.isoformat(),
                "notes": event.notes,
            }
        )
        view.history = json.dumps(history)
        view.status = event.status
        view.updated_at = event.changed_at
        repo.add(view)

    @on(StatusHistoryPruned)
    def on_history_pruned(self, event):
        repo = current_domain.repository_for(OrderTracking)
        view = repo.get(event.order_id)
        history = json.loads(view.history) if view.history else []
        view.history = json.dumps(history[-event.kept :] if event.kept else [])
        repo.add(view)


def _digits(phone):
    return re.sub(r"\D", "", phone or "")


def track_order(order_number, phone=None, customer_id=None):
    """Return the tracking view for ``order_number`` if the caller may see it.

    Raises ObjectNotFoundError both for unknown numbers and failed possession
    checks, so the response does not reveal which order numbers exist.
    """
    views = (
        current_domain.repository_for(OrderTracking)
        ._dao.query.filter(order_number=order_number)
        .all()
        .items
    )
    view = views[0] if views else None

    if view is not None:
        owns_account = bool(customer_id) and bool(view.customer_id) and str(view.customer_id) == str(customer_id)
        knows_phone = bool(_digits(phone)) and _digits(phone) == _digits(view.contact_phone)
        if owns_account or knows_phone:
            return view

    raise ObjectNotFoundError(f"Order {order_number} not found")
