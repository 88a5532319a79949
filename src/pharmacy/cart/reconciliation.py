"""Reconciliation sweeper — reclaims stock held by abandoned carts.

Triggered every 10 minutes by the maintenance scheduler and whenever system
health is queried. ``sweep`` dispatches one ReconcileCart command per expired
cart, so each cart commits or rolls back in its own unit of work. Every line's
hold is released through the ledger individually, and the cart only becomes
``expired`` once all of its lines have been released. A cart with a failing
line stays ``active`` and is picked up again on the next sweep; lines already
released are not released a second time. A cart that cannot be reconciled at
all is logged and left for the next sweep.
"""

import structlog
from protean import handle
from protean.exceptions import InvalidOperationError, ObjectNotFoundError, ProteanException, ValidationError
from protean.fields import DateTime, Identifier
from protean.utils.globals import current_domain

from pharmacy.cart.cart import Cart, CartStatus
from pharmacy.domain import pharmacy
from pharmacy.stock import ledger
from pharmacy.utils.clock import as_utc, utcnow
from pharmacy.utils.concurrency import dispatch

logger = structlog.get_logger(__name__)


@pharmacy.command(part_of="Cart")
class ReconcileCart:
    """Release one expired cart's holds and mark it expired."""

    cart_id = Identifier(required=True)
    as_of = DateTime()


@pharmacy.command_handler(part_of=Cart)
class CartReconciliationHandler:
    @handle(ReconcileCart)
    def reconcile_cart(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get(command.cart_id)

        if CartStatus(cart.status) != CartStatus.ACTIVE:
            return False

        failures = 0
        for item in list(cart.items):
            held = item.reserved_base_units or 0
            if not held:
                continue
            try:
                ledger.release(item.product_id, held)
            except (ValidationError, InvalidOperationError, ObjectNotFoundError) as exc:
                failures += 1
                logger.warning(
                    "Failed to release cart line",
                    cart_id=str(cart.id),
                    product_id=str(item.product_id),
                    held=held,
                    error=str(exc),
                )
                continue
            cart.mark_line_released(item.product_id, item.purchase_type)

        if failures == 0:
            cart.expire(as_of=command.as_of)
        repo.add(cart)
        return failures == 0


def sweep(as_of=None):
    """Reconcile every expired cart. Returns the number of carts reconciled."""
    as_of = as_utc(as_of) if as_of else utcnow()

    expired = current_domain.repository_for(Cart).find_expired(as_of)

    if not expired:
        logger.debug("No expired carts to reconcile")
        return 0

    reconciled = 0
    for cart in expired:
        try:
            done = dispatch(ReconcileCart(cart_id=str(cart.id), as_of=as_of))
        except ProteanException as exc:
            logger.warning(
                "Failed to reconcile cart",
                cart_id=str(cart.id),
                error_type=type(exc).__name__,
                error=str(exc),
            )
            continue

        if done:
            reconciled += 1
            logger.info(
                "Reconciled expired cart",
                cart_id=str(cart.id),
                item_count=len(cart.items),
                expired_at=str(cart.expires_at),
            )

    logger.info("Cart sweep complete", candidates=len(expired), reconciled=reconciled)
    return reconciled
