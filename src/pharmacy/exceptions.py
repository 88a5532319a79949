"""Domain errors for stock reservations, carts and orders.

Rule violations are ValidationErrors so that callers (and the HTTP layer) get
the usual field -> messages mapping. Ledger consistency failures are
InvalidOperationErrors: they signal a bug or a corrupted hold, not bad input.
"""

from protean.exceptions import InvalidOperationError, ValidationError


class InsufficientStock(ValidationError):
    def __init__(self, product_id, available, requested):
        self.product_id = str(product_id)
        self.available = available
        self.requested = requested
        super().__init__({"quantity": [f"Insufficient stock: {available} available, {requested} requested"]})


class QuantityOutOfRange(ValidationError):
    def __init__(self, quantity, minimum=1, maximum=None):
        self.quantity = quantity
        self.minimum = minimum
        self.maximum = maximum
        if maximum is not None:
            message = f"Quantity {quantity} is outside the allowed range {minimum}-{maximum}"
        else:
            message = f"Quantity {quantity} is below the minimum of {minimum}"
        super().__init__({"quantity": [message]})


class UnitSaleNotAllowed(ValidationError):
    def __init__(self, product_id):
        self.product_id = str(product_id)
        super().__init__({"purchase_type": ["Product cannot be sold as individual units"]})


class ProductUnavailable(ValidationError):
    def __init__(self, product_id, reason="Product is discontinued"):
        self.product_id = str(product_id)
        super().__init__({"product_id": [reason]})


class SessionExpired(ValidationError):
    def __init__(self, cart_id):
        self.cart_id = str(cart_id)
        super().__init__({"cart": ["Cart has expired"]})


class SessionConverted(ValidationError):
    def __init__(self, cart_id):
        self.cart_id = str(cart_id)
        super().__init__({"cart": ["Cart has already been converted to an order"]})


class SessionEmpty(ValidationError):
    def __init__(self, cart_id):
        self.cart_id = str(cart_id)
        super().__init__({"cart": ["Cannot place an order from an empty cart"]})


class PrescriptionRequired(ValidationError):
    def __init__(self, product_ids=None):
        self.product_ids = [str(pid) for pid in (product_ids or [])]
        super().__init__({"prescriptions": ["A prescription is required for one or more items"]})


class InvalidTransition(ValidationError):
    def __init__(self, current, target, reason=None):
        self.current = current
        self.target = target
        message = f"Cannot transition from {current} to {target}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__({"status": [message]})


class ReservationUnderrun(InvalidOperationError):
    def __init__(self, product_id, reserved, requested):
        self.product_id = str(product_id)
        self.reserved = reserved
        self.requested = requested
        super().__init__(
            f"Cannot deduct {requested} units of product {product_id}: only {reserved} reserved"
        )


class ReservationMismatch(InvalidOperationError):
    def __init__(self, product_id, held, required):
        self.product_id = str(product_id)
        self.held = held
        self.required = required
        super().__init__(
            f"Cart holds {held} base units of product {product_id} but the line requires {required}"
        )
