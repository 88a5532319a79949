"""Cart management — creation and owner lookup.

A shopper has at most one active cart. ``get_or_create_cart`` is the entry
point the storefront uses: it returns the owner's active cart, or opens a new
one. A cart that is still ``active`` but already past its expiry is reconciled
on the spot rather than handed back.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from pharmacy.cart.cart import Cart
from pharmacy.domain import pharmacy
from pharmacy.utils.concurrency import dispatch

logger = structlog.get_logger(__name__)


@pharmacy.command(part_of="Cart")
class CreateCart:
    """Open a cart for an account or an anonymous session."""

    customer_id = Identifier()
    session_id = String(max_length=255)


@pharmacy.command_handler(part_of=Cart)
class ManageCartHandler:
    @handle(CreateCart)
    def create_cart(self, command):
        cart = Cart.create(
            customer_id=command.customer_id,
            session_id=command.session_id,
        )
        current_domain.repository_for(Cart).add(cart)
        return str(cart.id)


def find_active_cart(customer_id=None, session_id=None):
    """Return the owner's most recently updated active cart, if any."""
    if customer_id:
        owner = {"customer_id": customer_id}
    elif session_id:
        owner = {"session_id": session_id}
    else:
        raise ValidationError({"owner": ["Either customer_id or session_id is required"]})

    return current_domain.repository_for(Cart).find_active_for_owner(**owner)


def get_or_create_cart(customer_id=None, session_id=None):
    """Return the owner's active cart, creating one when there is none."""
    cart = find_active_cart(customer_id=customer_id, session_id=session_id)

    if cart is not None and cart.is_expired():
        from pharmacy.cart.reconciliation import ReconcileCart

        logger.info("Reconciling stale cart before reuse", cart_id=str(cart.id))
        dispatch(ReconcileCart(cart_id=str(cart.id)))
        cart = None

    if cart is None:
        cart_id = dispatch(CreateCart(customer_id=customer_id, session_id=session_id))
        cart = current_domain.repository_for(Cart).get(cart_id)

    return cart
