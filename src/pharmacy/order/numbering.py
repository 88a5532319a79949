"""Human-readable order numbers (``#FIX001``, ``#FIX002``, ...).

A single OrderSequence aggregate holds the last issued value. Issuing a number
is a load/increment/save cycle guarded by the aggregate version, so two
checkouts racing for the same value cannot both win.
"""

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.fields import Integer, String
from protean.utils.globals import current_domain

from pharmacy.domain import pharmacy
from pharmacy.utils.concurrency import run_with_retry

logger = structlog.get_logger(__name__)

ORDER_SEQUENCE = "orders"
ORDER_PREFIX = "#FIX"


@pharmacy.aggregate
class OrderSequence:
    name = String(identifier=True, max_length=50)
    last_value = Integer(default=0, min_value=0)

    def advance(self):
        self.last_value = (self.last_value or 0) + 1
        return self.last_value


def format_order_number(value):
    return f"{ORDER_PREFIX}{value:03d}"


def next_order_number(sequence=ORDER_SEQUENCE):
    """Issue the next order number."""

    def _cycle():
        repo = current_domain.repository_for(OrderSequence)
        try:
            counter = repo.get(sequence)
        except ObjectNotFoundError:
            counter = OrderSequence(name=sequence, last_value=0)
        value = counter.advance()
        repo.add(counter)
        return value

    number = format_order_number(run_with_retry(_cycle))
    logger.debug("Issued order number", order_number=number)
    return number
