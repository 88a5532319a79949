"""Product stock record (CQRS aggregate) — the Stock Ledger's unit of consistency.

Catalog data (name, brand, price, order limits) is owned by catalog
management and only read here. The two counters are mutated exclusively
through ``reserve``, ``release``, ``deduct`` and ``restock``, which the
ledger module drives under optimistic concurrency.

Stock Level Model:
    stock:           Physical base packages owned
    reserved_stock:  Held by active carts and unconfirmed orders
    available_stock: stock - reserved_stock (what can still be sold)
"""

import math
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Integer, String

from pharmacy.domain import pharmacy
from pharmacy.exceptions import InsufficientStock, ReservationUnderrun
from pharmacy.stock.events import (
    LowStockDetected,
    ProductDiscontinued,
    ProductRegistered,
    StockDeducted,
    StockReleased,
    StockReserved,
    StockRestocked,
)
from pharmacy.utils.clock import utcnow


class ProductStatus(Enum):
    ACTIVE = "active"
    DISCONTINUED = "discontinued"


class PurchaseType(Enum):
    UNIT = "unit"
    PACKAGE = "package"


DEFAULT_LOW_STOCK_THRESHOLD = 5


def _require_positive(amount):
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise ValidationError({"amount": ["Amount must be a positive whole number"]})


@pharmacy.aggregate
class Product:
    name = String(required=True, max_length=255)
    brand = String(max_length=255)
    category = String(max_length=100)
    price = Float(required=True, min_value=0.0)  # Per base package
    unit_price = Float(min_value=0.0)  # Per individual unit, when sold loose
    stock = Integer(default=0, min_value=0)
    reserved_stock = Integer(default=0, min_value=0)
    units_per_base_package = Integer(default=1, min_value=1)
    allows_unit_sale = Boolean(default=False)
    min_order_quantity = Integer(default=1, min_value=1)
    max_order_quantity = Integer(min_value=1)
    requires_prescription = Boolean(default=False)
    low_stock_threshold = Integer(default=DEFAULT_LOW_STOCK_THRESHOLD, min_value=0)
    status = String(choices=ProductStatus, default=ProductStatus.ACTIVE.value)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def reserved_stock_cannot_exceed_stock(self):
        if (self.reserved_stock or 0) > (self.stock or 0):
            raise ValidationError({"reserved_stock": ["Reserved stock cannot exceed stock"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def register(cls, name, price, stock=0, **catalog_fields):
        """Register a product with its initial stock."""
        now = utcnow()
        product = cls(
            name=name,
            price=price,
            stock=stock,
            reserved_stock=0,
            status=ProductStatus.ACTIVE.value,
            created_at=now,
            updated_at=now,
            **catalog_fields,
        )
        product.raise_(
            ProductRegistered(
                product_id=str(product.id),
                name=name,
                stock=stock,
                registered_at=now,
            )
        )
        return product

    # -------------------------------------------------------------------
    # Read helpers
    # -------------------------------------------------------------------
    @property
    def available_stock(self):
        return max((self.stock or 0) - (self.reserved_stock or 0), 0)

    @property
    def is_active(self):
        return ProductStatus(self.status) == ProductStatus.ACTIVE

    def base_units_for(self, quantity, purchase_type):
        """Base packages consumed by ``quantity`` items of the given granularity."""
        if PurchaseType(purchase_type) == PurchaseType.UNIT:
            return math.ceil(quantity / (self.units_per_base_package or 1))
        return quantity

    def price_for(self, purchase_type):
        """Price of one item of the given granularity."""
        if PurchaseType(purchase_type) == PurchaseType.UNIT:
            if self.unit_price is not None:
                return self.unit_price
            return round(self.price / (self.units_per_base_package or 1), 2)
        return self.price

    def _check_low_stock(self, now):
        """Raise LowStockDetected if available is at or below the threshold."""
        threshold = self.low_stock_threshold if self.low_stock_threshold is not None else DEFAULT_LOW_STOCK_THRESHOLD
        if self.available_stock <= threshold:
            self.raise_(
                LowStockDetected(
                    product_id=str(self.id),
                    name=self.name,
                    available_stock=self.available_stock,
                    threshold=threshold,
                    detected_at=now,
                )
            )

    # -------------------------------------------------------------------
    # Counter mutations
    # -------------------------------------------------------------------
    def reserve(self, amount):
        """Hold ``amount`` base units. Fails when not enough stock is available."""
        _require_positive(amount)

        available = self.available_stock
        if available < amount:
            raise InsufficientStock(self.id, available=available, requested=amount)

        now = utcnow()
        self.reserved_stock = (self.reserved_stock or 0) + amount
        self.updated_at = now

        self.raise_(
            StockReserved(
                product_id=str(self.id),
                quantity=amount,
                stock=self.stock,
                reserved_stock=self.reserved_stock,
                available_stock=self.available_stock,
                reserved_at=now,
            )
        )
        self._check_low_stock(now)

    def release(self, amount):
        """Return up to ``amount`` held units to available stock.

        The release is clamped at the current reservation, so releasing the
        same hold twice never drives the counter negative. Returns the number
        of units actually released.
        """
        _require_positive(amount)

        released = min(amount, self.reserved_stock or 0)
        if released == 0:
            return 0

        now = utcnow()
        self.reserved_stock = self.reserved_stock - released
        self.updated_at = now

        self.raise_(
            StockReleased(
                product_id=str(self.id),
                requested=amount,
                quantity=released,
                stock=self.stock,
                reserved_stock=self.reserved_stock,
                available_stock=self.available_stock,
                released_at=now,
            )
        )
        return released

    def deduct(self, amount):
        """Convert ``amount`` held units into a permanent stock reduction."""
        _require_positive(amount)

        reserved = self.reserved_stock or 0
        if reserved < amount:
            raise ReservationUnderrun(self.id, reserved=reserved, requested=amount)

        now = utcnow()
        with atomic_change(self):
            self.stock = self.stock - amount
            self.reserved_stock = reserved - amount
            self.updated_at = now

        self.raise_(
            StockDeducted(
                product_id=str(self.id),
                quantity=amount,
                stock=self.stock,
                reserved_stock=self.reserved_stock,
                available_stock=self.available_stock,
                deducted_at=now,
            )
        )

    def restock(self, amount):
        """Put ``amount`` previously deducted units back into stock."""
        _require_positive(amount)

        now = utcnow()
        self.stock = (self.stock or 0) + amount
        self.updated_at = now

        self.raise_(
            StockRestocked(
                product_id=str(self.id),
                quantity=amount,
                stock=self.stock,
                reserved_stock=self.reserved_stock,
                available_stock=self.available_stock,
                restocked_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def discontinue(self):
        """Soft-retire the product. It can no longer be added to carts or ordered."""
        if not self.is_active:
            raise ValidationError({"status": ["Product is already discontinued"]})

        now = utcnow()
        self.status = ProductStatus.DISCONTINUED.value
        self.updated_at = now

        self.raise_(
            ProductDiscontinued(
                product_id=str(self.id),
                discontinued_at=now,
            )
        )
