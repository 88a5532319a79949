"""Order placement — converts an active cart into a pending order.

The cart's holds are transferred to the order, not released: each order line
carries the base units its cart line held. Everything is checked before the
order is written, so a rejected checkout leaves the cart active and its
reservation intact.
"""

import json

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from pharmacy.cart.cart import Cart
from pharmacy.domain import pharmacy
from pharmacy.exceptions import PrescriptionRequired, ProductUnavailable, ReservationMismatch, SessionEmpty
from pharmacy.order.numbering import next_order_number
from pharmacy.order.order import Order, PaymentMethod
from pharmacy.order.pricing import delivery_fee_for
from pharmacy.stock import ledger

logger = structlog.get_logger(__name__)


@pharmacy.command(part_of="Order")
class PlaceOrder:
    cart_id = Identifier(required=True)
    delivery_address = Text(required=True)  # JSON: address dict
    payment_method = String(choices=PaymentMethod, default=PaymentMethod.CASH_ON_DELIVERY.value)
    customer_id = Identifier()  # Account orders; defaults to the cart owner
    customer_name = String(max_length=255)  # Guest orders
    contact_phone = String(max_length=30)
    contact_email = String(max_length=255)
    prescriptions = Text()  # JSON: list of document URLs


def _snapshot_lines(cart):
    """Check every cart line against the ledger and snapshot the catalog data."""
    lines = []
    prescription_products = []
    for item in cart.items:
        product = ledger.get_product(item.product_id)
        if not product.is_active:
            raise ProductUnavailable(product.id)

        required = product.base_units_for(item.quantity, item.purchase_type)
        if required != item.reserved_base_units:
            raise ReservationMismatch(product.id, held=item.reserved_base_units, required=required)

        if product.requires_prescription:
            prescription_products.append(str(product.id))

        lines.append(
            {
                "product_id": str(product.id),
                "product_name": product.name,
                "brand": product.brand,
                "category": product.category,
                "unit_price": item.unit_price,
                "quantity": item.quantity,
                "purchase_type": item.purchase_type,
                "requires_prescription": bool(product.requires_prescription),
                "reserved_base_units": item.reserved_base_units,
            }
        )
    return lines, prescription_products


@pharmacy.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        cart_repo = current_domain.repository_for(Cart)
        cart = cart_repo.get(command.cart_id)
        cart.assert_active()
        if not cart.items:
            raise SessionEmpty(cart.id)

        customer_id = command.customer_id or cart.customer_id
        if not customer_id and not (command.customer_name and command.contact_phone):
            raise ValidationError({"customer": ["Guest orders need a name and a contact phone"]})

        delivery_address = (
            json.loads(command.delivery_address)
            if isinstance(command.delivery_address, str)
            else command.delivery_address
        )
        prescription_urls = (
            json.loads(command.prescriptions) if isinstance(command.prescriptions, str) else command.prescriptions
        ) or []

        lines, prescription_products = _snapshot_lines(cart)
        if prescription_products and not prescription_urls:
            raise PrescriptionRequired(prescription_products)

        order = Order.place(
            order_number=next_order_number(),
            cart_id=str(cart.id),
            items_data=lines,
            delivery_address=delivery_address,
            delivery_fee=delivery_fee_for(delivery_address),
            payment_method=command.payment_method or PaymentMethod.CASH_ON_DELIVERY.value,
            customer_id=customer_id,
            customer_name=command.customer_name,
            contact_phone=command.contact_phone,
            contact_email=command.contact_email,
            prescription_urls=prescription_urls,
        )
        cart.convert(order.id)

        current_domain.repository_for(Order).add(order)
        cart_repo.add(cart)

        logger.info(
            "Order placed",
            order_id=str(order.id),
            order_number=order.order_number,
            cart_id=str(cart.id),
            total=order.pricing.total,
            prescription_status=order.prescription_status,
        )
        return str(order.id)
