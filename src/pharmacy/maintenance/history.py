"""Status history pruning — keeps each order's audit trail bounded. Runs weekly."""

import structlog
from protean import handle
from protean.fields import Integer
from protean.utils.globals import current_domain

from pharmacy.domain import pharmacy
from pharmacy.order.order import HISTORY_RETENTION, Order

logger = structlog.get_logger(__name__)


@pharmacy.command(part_of="Order")
class PruneStatusHistory:
    keep = Integer(default=HISTORY_RETENTION, min_value=1)


@pharmacy.command_handler(part_of=Order)
class PruneStatusHistoryHandler:
    @handle(PruneStatusHistory)
    def prune_status_history(self, command):
        keep = command.keep or HISTORY_RETENTION
        repo = current_domain.repository_for(Order)

        pruned_orders = 0
        removed_total = 0
        for order in repo.find_all():
            if len(order.status_history) <= keep:
                continue
            removed_total += order.prune_status_history(keep=keep)
            repo.add(order)
            pruned_orders += 1

        logger.info("Status history pruned", orders=pruned_orders, entries_removed=removed_total, keep=keep)
        return pruned_orders
