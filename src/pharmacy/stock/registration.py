"""Product registration and retirement — commands and handler.

Catalog management lives outside this service; these commands are the seam it
uses to hand over a product's stock record.
"""

from protean import handle
from protean.fields import Boolean, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from pharmacy.domain import pharmacy
from pharmacy.stock.product import DEFAULT_LOW_STOCK_THRESHOLD, Product


@pharmacy.command(part_of="Product")
class RegisterProduct:
    name = String(required=True, max_length=255)
    brand = String(max_length=255)
    category = String(max_length=100)
    price = Float(required=True, min_value=0.0)
    unit_price = Float(min_value=0.0)
    stock = Integer(default=0, min_value=0)
    units_per_base_package = Integer(default=1, min_value=1)
    allows_unit_sale = Boolean(default=False)
    min_order_quantity = Integer(default=1, min_value=1)
    max_order_quantity = Integer(min_value=1)
    requires_prescription = Boolean(default=False)
    low_stock_threshold = Integer(default=DEFAULT_LOW_STOCK_THRESHOLD, min_value=0)


@pharmacy.command(part_of="Product")
class DiscontinueProduct:
    product_id = Identifier(required=True)


@pharmacy.command_handler(part_of=Product)
class ProductRegistrationHandler:
    @handle(RegisterProduct)
    def register_product(self, command):
        product = Product.register(
            name=command.name,
            price=command.price,
            stock=command.stock or 0,
            brand=command.brand,
            category=command.category,
            unit_price=command.unit_price,
            units_per_base_package=command.units_per_base_package or 1,
            allows_unit_sale=bool(command.allows_unit_sale),
            min_order_quantity=command.min_order_quantity or 1,
            max_order_quantity=command.max_order_quantity,
            requires_prescription=bool(command.requires_prescription),
            low_stock_threshold=(
                command.low_stock_threshold
                if command.low_stock_threshold is not None
                else DEFAULT_LOW_STOCK_THRESHOLD
            ),
        )
        current_domain.repository_for(Product).add(product)
        return str(product.id)

    @handle(DiscontinueProduct)
    def discontinue_product(self, command):
        repo = current_domain.repository_for(Product)
        product = repo.get(command.product_id)
        product.discontinue()
        repo.add(product)
