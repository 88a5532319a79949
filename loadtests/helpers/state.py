"""Per-user state tracking for Locust load test scenarios.

Each Locust user instance maintains its own state — no cross-user sharing.
State tracks entity IDs returned by creation endpoints so follow-up
operations can reference them.
"""

from dataclasses import dataclass, field


@dataclass
class ProductState:
    """A product registered by the simulated user."""

    product_id: str | None = None
    allows_unit_sale: bool = False
    requires_prescription: bool = False


@dataclass
class CartState:
    """Tracks state for a shopping cart lifecycle."""

    cart_id: str | None = None
    guest: bool = False
    lines: list[tuple[str, str]] = field(default_factory=list)  # (product_id, purchase_type)


@dataclass
class OrderState:
    """Tracks state for a single order lifecycle."""

    order_id: str | None = None
    order_number: str | None = None
    contact_phone: str | None = None
    payment_method: str = "cash_on_delivery"
    current_status: str = "pending"
    prescription_ids: list[str] = field(default_factory=list)


@dataclass
class CheckoutState:
    """Threads one shopper's product, cart and order together."""

    products: list[ProductState] = field(default_factory=list)
    cart: CartState = field(default_factory=CartState)
    order: OrderState = field(default_factory=OrderState)
