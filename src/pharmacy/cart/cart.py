"""Cart aggregate (CQRS) — a shopper's time-bounded hold on inventory.

A cart belongs to exactly one owner: an account (``customer_id``) or an
anonymous session token (``session_id``). Each line caches how many base units
it holds in the Stock Ledger (``reserved_base_units``) so that exactly that
amount can be released later; the ledger itself stays the source of truth.

Every mutation slides ``expires_at`` to now + 30 minutes. Carts are never
deleted: they end as ``expired`` (reclaimed by the sweeper) or ``converted``
(promoted to an order, holds transferred).
"""

from datetime import timedelta
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String

from pharmacy.cart.events import (
    CartCleared,
    CartConverted,
    CartCreated,
    CartExpired,
    CartItemAdded,
    CartItemRemoved,
    CartItemUpdated,
)
from pharmacy.domain import pharmacy
from pharmacy.exceptions import SessionConverted, SessionExpired
from pharmacy.stock.product import PurchaseType
from pharmacy.utils.clock import as_utc, utcnow

SESSION_TTL = timedelta(minutes=30)


class CartStatus(Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    CONVERTED = "converted"


@pharmacy.entity(part_of="Cart")
class CartItem:
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    purchase_type = String(choices=PurchaseType, required=True)
    unit_price = Float(required=True, min_value=0.0)
    line_total = Float(required=True, min_value=0.0)
    reserved_base_units = Integer(required=True, min_value=0)
    added_at = DateTime()


@pharmacy.aggregate
class Cart:
    customer_id = Identifier()  # Account carts
    session_id = String(max_length=255)  # Anonymous carts
    items = HasMany(CartItem)
    subtotal = Float(default=0.0)
    total_items = Integer(default=0)
    status = String(choices=CartStatus, default=CartStatus.ACTIVE.value)
    expires_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def cart_must_have_exactly_one_owner(self):
        if bool(self.customer_id) == bool(self.session_id):
            raise ValidationError({"owner": ["A cart belongs to either an account or an anonymous session"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, customer_id=None, session_id=None):
        now = utcnow()
        cart = cls(
            customer_id=customer_id,
            session_id=session_id,
            status=CartStatus.ACTIVE.value,
            expires_at=now + SESSION_TTL,
            created_at=now,
            updated_at=now,
        )
        cart.raise_(
            CartCreated(
                cart_id=str(cart.id),
                customer_id=str(customer_id) if customer_id else None,
                session_id=session_id,
                expires_at=cart.expires_at,
            )
        )
        return cart

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def is_expired(self, as_of=None):
        as_of = as_utc(as_of) if as_of else utcnow()
        return self.expires_at is not None and as_utc(self.expires_at) < as_of

    def find_item(self, product_id, purchase_type):
        return next(
            (
                i
                for i in self.items
                if str(i.product_id) == str(product_id) and i.purchase_type == PurchaseType(purchase_type).value
            ),
            None,
        )

    def held_base_units(self):
        """Base units held per product across all lines."""
        held = {}
        for item in self.items:
            held[str(item.product_id)] = held.get(str(item.product_id), 0) + (item.reserved_base_units or 0)
        return held

    def assert_active(self, as_of=None):
        """Raise unless the cart can still be mutated or checked out."""
        status = CartStatus(self.status)
        if status == CartStatus.CONVERTED:
            raise SessionConverted(self.id)
        if status == CartStatus.EXPIRED or self.is_expired(as_of):
            raise SessionExpired(self.id)

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _touch(self):
        """Recompute totals and slide the expiry window."""
        now = utcnow()
        self.subtotal = round(sum(item.line_total for item in self.items), 2)
        self.total_items = sum(item.quantity for item in self.items)
        self.expires_at = now + SESSION_TTL
        self.updated_at = now

    def _require_item(self, product_id, purchase_type):
        item = self.find_item(product_id, purchase_type)
        if item is None:
            raise ValidationError({"product_id": ["Item not found in cart"]})
        return item

    # -------------------------------------------------------------------
    # Item management
    # -------------------------------------------------------------------
    def add_item(self, product_id, quantity, purchase_type, unit_price, reserved_base_units):
        """Add ``quantity`` items, merging into an existing (product, purchase type) line.

        ``reserved_base_units`` is the hold for the whole line after the merge,
        which the caller has already secured in the ledger.
        """
        self.assert_active()

        purchase_type = PurchaseType(purchase_type).value
        existing = self.find_item(product_id, purchase_type)
        now = utcnow()

        if existing:
            existing.quantity += quantity
            existing.unit_price = unit_price
            existing.line_total = round(existing.quantity * unit_price, 2)
            existing.reserved_base_units = reserved_base_units
            line_quantity = existing.quantity
        else:
            self.add_items(
                CartItem(
                    product_id=product_id,
                    quantity=quantity,
                    purchase_type=purchase_type,
                    unit_price=unit_price,
                    line_total=round(quantity * unit_price, 2),
                    reserved_base_units=reserved_base_units,
                    added_at=now,
                )
            )
            line_quantity = quantity

        self._touch()

        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                product_id=str(product_id),
                purchase_type=purchase_type,
                quantity=quantity,
                line_quantity=line_quantity,
                reserved_base_units=reserved_base_units,
                subtotal=self.subtotal,
                expires_at=self.expires_at,
            )
        )

    def update_item_quantity(self, product_id, purchase_type, new_quantity, reserved_base_units):
        """Set a line's quantity. The caller has already adjusted the ledger hold."""
        self.assert_active()

        item = self._require_item(product_id, purchase_type)
        previous_quantity = item.quantity
        item.quantity = new_quantity
        item.line_total = round(new_quantity * item.unit_price, 2)
        item.reserved_base_units = reserved_base_units

        self._touch()

        self.raise_(
            CartItemUpdated(
                cart_id=str(self.id),
                product_id=str(product_id),
                purchase_type=item.purchase_type,
                previous_quantity=previous_quantity,
                new_quantity=new_quantity,
                reserved_base_units=reserved_base_units,
                subtotal=self.subtotal,
                expires_at=self.expires_at,
            )
        )

    def remove_item(self, product_id, purchase_type):
        """Drop a line whose hold the caller has released."""
        self.assert_active()

        item = self._require_item(product_id, purchase_type)
        released = item.reserved_base_units or 0
        self.remove_items(item)

        self._touch()

        self.raise_(
            CartItemRemoved(
                cart_id=str(self.id),
                product_id=str(product_id),
                purchase_type=item.purchase_type,
                released_base_units=released,
                subtotal=self.subtotal,
            )
        )

    def clear(self):
        """Drop every line whose hold the caller has released."""
        self.assert_active()

        items = list(self.items)
        released = sum(item.reserved_base_units or 0 for item in items)
        for item in items:
            self.remove_items(item)

        self._touch()

        self.raise_(
            CartCleared(
                cart_id=str(self.id),
                items_removed=len(items),
                released_base_units=released,
            )
        )

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def mark_line_released(self, product_id, purchase_type):
        """Record that the sweeper returned a line's hold to the ledger.

        Zeroing the cached amount keeps a retried sweep from releasing the
        same units twice. Does not slide the expiry window.
        """
        item = self._require_item(product_id, purchase_type)
        item.reserved_base_units = 0

    def expire(self, as_of=None):
        """Mark an abandoned cart as expired once all its holds are released."""
        if CartStatus(self.status) != CartStatus.ACTIVE:
            raise ValidationError({"status": ["Only active carts can expire"]})
        if any(item.reserved_base_units for item in self.items):
            raise ValidationError({"items": ["Cart still holds reserved stock"]})

        now = as_utc(as_of) if as_of else utcnow()
        self.status = CartStatus.EXPIRED.value
        self.updated_at = now

        self.raise_(
            CartExpired(
                cart_id=str(self.id),
                customer_id=str(self.customer_id) if self.customer_id else None,
                session_id=self.session_id,
                item_count=len(self.items),
                expired_at=now,
            )
        )

    def convert(self, order_id):
        """Hand the cart's holds over to an order. Stock is not released."""
        self.assert_active()
        if not self.items:
            raise ValidationError({"cart": ["Cannot convert an empty cart"]})

        now = utcnow()
        self.status = CartStatus.CONVERTED.value
        self.updated_at = now

        self.raise_(
            CartConverted(
                cart_id=str(self.id),
                order_id=str(order_id),
                converted_at=now,
            )
        )
