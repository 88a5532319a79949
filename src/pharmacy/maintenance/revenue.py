"""Revenue safety net — records revenue for delivered orders that missed it.

Delivery records revenue as part of the transition; this job catches orders
where that did not happen (for example, orders delivered before revenue
tracking existed). Runs hourly.
"""

import structlog
from protean import handle
from protean.exceptions import InvalidOperationError, ValidationError
from protean.utils.globals import current_domain

from pharmacy.domain import pharmacy
from pharmacy.order.order import Order

logger = structlog.get_logger(__name__)


@pharmacy.command(part_of="Order")
class RecordPendingRevenue:
    """Record revenue for every delivered order that has none yet."""


@pharmacy.command_handler(part_of=Order)
class RecordPendingRevenueHandler:
    @handle(RecordPendingRevenue)
    def record_pending_revenue(self, command):
        repo = current_domain.repository_for(Order)
        pending = repo.find_pending_revenue()

        if not pending:
            logger.debug("No delivered orders pending revenue")
            return 0

        recorded = 0
        for order in pending:
            try:
                if order.record_revenue():
                    repo.add(order)
                    recorded += 1
            except (ValidationError, InvalidOperationError) as exc:
                logger.warning("Failed to record revenue", order_id=str(order.id), error=str(exc))

        logger.info("Pending revenue recorded", candidates=len(pending), recorded=recorded)
        return recorded
