"""Repository for the Order aggregate."""

from pharmacy.domain import pharmacy
from pharmacy.order.order import ACTIVE_STATES, Order, OrderStatus
from pharmacy.utils.paging import fetch_all


@pharmacy.repository(part_of=Order)
class OrderRepository:
    def find_by_number(self, order_number: str) -> Order | None:
        return self._dao.query.filter(order_number=order_number).all().first

    def find_all(self) -> list[Order]:
        return fetch_all(self._dao.query.order_by("created_at"))

    def find_pending_revenue(self) -> list[Order]:
        """Delivered orders whose revenue has not been recognised yet."""
        delivered = fetch_all(self._dao.query.filter(status=OrderStatus.DELIVERED.value))
        return [order for order in delivered if not (order.revenue and order.revenue.recorded)]

    def count_active(self) -> int:
        return sum(self._dao.query.filter(status=status.value).all().total for status in ACTIVE_STATES)
