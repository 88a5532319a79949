"""Cart item management — commands and handler.

Every handler validates first, then moves the ledger hold, then mutates the
cart. A hold taken for a change that subsequently fails is released before the
error propagates, so a cart never loses track of units it reserved.
"""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from pharmacy.cart.cart import Cart
from pharmacy.domain import pharmacy
from pharmacy.exceptions import ProductUnavailable, QuantityOutOfRange, UnitSaleNotAllowed
from pharmacy.stock import ledger
from pharmacy.stock.product import PurchaseType


@pharmacy.command(part_of="Cart")
class AddToCart:
    cart_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    purchase_type = String(choices=PurchaseType, default=PurchaseType.PACKAGE.value)


@pharmacy.command(part_of="Cart")
class UpdateCartItem:
    cart_id = Identifier(required=True)
    product_id = Identifier(required=True)
    purchase_type = String(choices=PurchaseType, default=PurchaseType.PACKAGE.value)
    new_quantity = Integer(required=True, min_value=0)  # 0 removes the line


@pharmacy.command(part_of="Cart")
class RemoveFromCart:
    cart_id = Identifier(required=True)
    product_id = Identifier(required=True)
    purchase_type = String(choices=PurchaseType, default=PurchaseType.PACKAGE.value)


@pharmacy.command(part_of="Cart")
class ClearCart:
    cart_id = Identifier(required=True)


def validate_line(product, purchase_type, line_quantity):
    """Check a prospective line quantity against the product's sale rules."""
    if not product.is_active:
        raise ProductUnavailable(product.id)

    minimum = product.min_order_quantity or 1
    maximum = product.max_order_quantity
    if line_quantity < 1 or line_quantity < minimum or (maximum is not None and line_quantity > maximum):
        raise QuantityOutOfRange(line_quantity, minimum=minimum, maximum=maximum)

    if PurchaseType(purchase_type) == PurchaseType.UNIT and not product.allows_unit_sale:
        raise UnitSaleNotAllowed(product.id)


def _adjust_hold(product_id, held, required):
    """Move the ledger hold from ``held`` to ``required`` base units.

    Returns the signed change so a failed cart update can be undone.
    """
    delta = required - held
    if delta > 0:
        ledger.reserve(product_id, delta)
    elif delta < 0:
        ledger.release(product_id, -delta)
    return delta


def _undo_hold(product_id, delta):
    if delta > 0:
        ledger.release(product_id, delta)
    elif delta < 0:
        ledger.reserve(product_id, -delta)


@pharmacy.command_handler(part_of=Cart)
class ManageCartItemsHandler:
    @handle(AddToCart)
    def add_to_cart(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get(command.cart_id)
        cart.assert_active()

        if command.quantity < 1:
            raise QuantityOutOfRange(command.quantity)

        purchase_type = PurchaseType(command.purchase_type or PurchaseType.PACKAGE.value)
        product = ledger.get_product(command.product_id)

        existing = cart.find_item(command.product_id, purchase_type)
        held = existing.reserved_base_units if existing else 0
        line_quantity = (existing.quantity if existing else 0) + command.quantity
        validate_line(product, purchase_type, line_quantity)

        required = product.base_units_for(line_quantity, purchase_type)
        delta = _adjust_hold(product.id, held, required)
        try:
            cart.add_item(
                product_id=command.product_id,
                quantity=command.quantity,
                purchase_type=purchase_type.value,
                unit_price=product.price_for(purchase_type),
                reserved_base_units=required,
            )
            repo.add(cart)
        except Exception:
            _undo_hold(product.id, delta)
            raise

    @handle(UpdateCartItem)
    def update_cart_item(self, command):
        if command.new_quantity == 0:
            return self.remove_from_cart(
                RemoveFromCart(
                    cart_id=command.cart_id,
                    product_id=command.product_id,
                    purchase_type=command.purchase_type,
                )
            )

        repo = current_domain.repository_for(Cart)
        cart = repo.get(command.cart_id)
        cart.assert_active()

        purchase_type = PurchaseType(command.purchase_type or PurchaseType.PACKAGE.value)
        item = cart.find_item(command.product_id, purchase_type)
        if item is None:
            raise ValidationError({"product_id": ["Item not found in cart"]})

        product = ledger.get_product(command.product_id)
        validate_line(product, purchase_type, command.new_quantity)

        required = product.base_units_for(command.new_quantity, purchase_type)
        delta = _adjust_hold(product.id, item.reserved_base_units or 0, required)
        try:
            cart.update_item_quantity(
                product_id=command.product_id,
                purchase_type=purchase_type.value,
                new_quantity=command.new_quantity,
                reserved_base_units=required,
            )
            repo.add(cart)
        except Exception:
            _undo_hold(product.id, delta)
            raise

    @handle(RemoveFromCart)
    def remove_from_cart(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get(command.cart_id)
        cart.assert_active()

        purchase_type = PurchaseType(command.purchase_type or PurchaseType.PACKAGE.value)
        item = cart.find_item(command.product_id, purchase_type)
        held = item.reserved_base_units if item else 0

        cart.remove_item(command.product_id, purchase_type.value)
        if held:
            ledger.release(command.product_id, held)
        repo.add(cart)

    @handle(ClearCart)
    def clear_cart(self, command):
        repo = current_domain.repository_for(Cart)
        cart = repo.get(command.cart_id)
        cart.assert_active()

        for product_id, held in cart.held_base_units().items():
            if held:
                ledger.release(product_id, held)

        cart.clear()
        repo.add(cart)
