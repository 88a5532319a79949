"""Domain events for the Cart aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from pharmacy.domain import pharmacy


@pharmacy.event(part_of="Cart")
class CartCreated:
    """A reservation session was opened for an account or an anonymous session."""

    __version__ = 1

    cart_id = Identifier(required=True)
    customer_id = Identifier()
    session_id = String()
    expires_at = DateTime(required=True)


@pharmacy.event(part_of="Cart")
class CartItemAdded:
    """Items were added to a cart line (new line or merged into an existing one)."""

    __version__ = 1

    cart_id = Identifier(required=True)
    product_id = Identifier(required=True)
    purchase_type = String(required=True)
    quantity = Integer(required=True)  # Quantity added by this call
    line_quantity = Integer(required=True)  # Line quantity after the merge
    reserved_base_units = Integer(required=True)
    subtotal = Float(required=True)
    expires_at = DateTime(required=True)


@pharmacy.event(part_of="Cart")
class CartItemUpdated:
    """The quantity of a cart line was changed."""

    __version__ = 1

    cart_id = Identifier(required=True)
    product_id = Identifier(required=True)
    purchase_type = String(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)
    reserved_base_units = Integer(required=True)
    subtotal = Float(required=True)
    expires_at = DateTime(required=True)


@pharmacy.event(part_of="Cart")
class CartItemRemoved:
    """A line was dropped from the cart after its hold was released."""

    __version__ = 1

    cart_id = Identifier(required=True)
    product_id = Identifier(required=True)
    purchase_type = String(required=True)
    released_base_units = Integer(required=True)
    subtotal = Float(required=True)


@pharmacy.event(part_of="Cart")
class CartCleared:
    """Every line was dropped from the cart after its holds were released."""

    __version__ = 1

    cart_id = Identifier(required=True)
    items_removed = Integer(required=True)
    released_base_units = Integer(required=True)


@pharmacy.event(part_of="Cart")
class CartExpired:
    """The sweeper reclaimed an abandoned cart's holds."""

    __version__ = 1

    cart_id = Identifier(required=True)
    customer_id = Identifier()
    session_id = String()
    item_count = Integer(required=True)
    expired_at = DateTime(required=True)


@pharmacy.event(part_of="Cart")
class CartConverted:
    """The cart became an order. Its holds now belong to the order."""

    __version__ = 1

    cart_id = Identifier(required=True)
    order_id = Identifier(required=True)
    converted_at = DateTime(required=True)
