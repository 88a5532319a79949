"""Stock Ledger — the only legal way to move a product's stock counters.

Each operation loads the Product, applies the mutation and saves it. The save
is conditional on the version that was loaded, so two concurrent reservations
cannot both observe the same available stock: the loser gets a version
conflict and is re-evaluated against the winner's counters. Called on their
own, these functions retry the cycle themselves; called from a command
handler, the conflict surfaces when the handler's unit of work commits and the
whole command is re-run by ``dispatch``.

Carts and orders call these functions; they never touch the counters directly.
"""

import structlog
from protean.utils.globals import current_domain

from pharmacy.stock.product import Product
from pharmacy.utils.concurrency import run_with_retry

logger = structlog.get_logger(__name__)


def _apply(product_id, mutation):
    def _cycle():
        repo = current_domain.repository_for(Product)
        product = repo.get(str(product_id))
        result = mutation(product)
        repo.add(product)
        return result

    return run_with_retry(_cycle)


def reserve(product_id, amount):
    """Hold ``amount`` base units. Raises InsufficientStock when short."""
    _apply(product_id, lambda product: product.reserve(amount))
    logger.debug("Stock reserved", product_id=str(product_id), amount=amount)


def release(product_id, amount):
    """Release up to ``amount`` held base units. Returns the units released."""
    released = _apply(product_id, lambda product: product.release(amount))
    logger.debug("Stock released", product_id=str(product_id), requested=amount, released=released)
    return released


def deduct(product_id, amount):
    """Convert a hold into a permanent decrement. Raises ReservationUnderrun."""
    _apply(product_id, lambda product: product.deduct(amount))
    logger.debug("Stock deducted", product_id=str(product_id), amount=amount)


def restock(product_id, amount):
    """Return previously deducted base units to stock."""
    _apply(product_id, lambda product: product.restock(amount))
    logger.info("Stock restocked", product_id=str(product_id), amount=amount)


def get_product(product_id):
    return current_domain.repository_for(Product).get(str(product_id))
