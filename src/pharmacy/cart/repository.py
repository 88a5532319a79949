"""Repository for the Cart aggregate."""

from pharmacy.cart.cart import Cart, CartStatus
from pharmacy.domain import pharmacy
from pharmacy.utils.paging import fetch_all


@pharmacy.repository(part_of=Cart)
class CartRepository:
    def find_active_for_owner(self, customer_id=None, session_id=None) -> Cart | None:
        """The owner's most recently touched active cart."""
        owner = {"customer_id": str(customer_id)} if customer_id else {"session_id": session_id}
        return (
            self._dao.query.filter(status=CartStatus.ACTIVE.value, **owner)
            .order_by("-updated_at")
            .all()
            .first
        )

    def find_expired(self, as_of) -> list[Cart]:
        """Active carts whose expiry lies before ``as_of``."""
        active = fetch_all(self._dao.query.filter(status=CartStatus.ACTIVE.value).order_by("expires_at"))
        return [cart for cart in active if cart.is_expired(as_of)]

    def count_active(self) -> int:
        return self._dao.query.filter(status=CartStatus.ACTIVE.value).all().total
