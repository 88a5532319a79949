"""Domain events for the Product stock record.

Every ledger mutation records the counters it produced so that projections and
audits can follow stock movements without reloading the aggregate.
"""

from protean.fields import DateTime, Identifier, Integer, String

from pharmacy.domain import pharmacy


@pharmacy.event(part_of="Product")
class ProductRegistered:
    """A product and its initial stock were registered by catalog management."""

    __version__ = 1

    product_id = Identifier(required=True)
    name = String(required=True)
    stock = Integer(required=True)
    registered_at = DateTime(required=True)


@pharmacy.event(part_of="Product")
class StockReserved:
    """Base units were put on hold, reducing available stock."""

    __version__ = 1

    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    stock = Integer(required=True)
    reserved_stock = Integer(required=True)
    available_stock = Integer(required=True)
    reserved_at = DateTime(required=True)


@pharmacy.event(part_of="Product")
class StockReleased:
    """A hold was returned to available stock (clamped at the reserved amount)."""

    __version__ = 1

    product_id = Identifier(required=True)
    requested = Integer(required=True)
    quantity = Integer(required=True)
    stock = Integer(required=True)
    reserved_stock = Integer(required=True)
    available_stock = Integer(required=True)
    released_at = DateTime(required=True)


@pharmacy.event(part_of="Product")
class StockDeducted:
    """A hold was converted into a permanent reduction of stock."""

    __version__ = 1

    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    stock = Integer(required=True)
    reserved_stock = Integer(required=True)
    available_stock = Integer(required=True)
    deducted_at = DateTime(required=True)


@pharmacy.event(part_of="Product")
class StockRestocked:
    """Previously deducted units were put back on the shelf."""

    __version__ = 1

    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    stock = Integer(required=True)
    reserved_stock = Integer(required=True)
    available_stock = Integer(required=True)
    restocked_at = DateTime(required=True)


@pharmacy.event(part_of="Product")
class LowStockDetected:
    """Available stock fell to or below the product's low-stock threshold."""

    __version__ = 1

    product_id = Identifier(required=True)
    name = String(required=True)
    available_stock = Integer(required=True)
    threshold = Integer(required=True)
    detected_at = DateTime(required=True)


@pharmacy.event(part_of="Product")
class ProductDiscontinued:
    """The product was retired from sale. Existing holds are unaffected."""

    __version__ = 1

    product_id = Identifier(required=True)
    discontinued_at = DateTime(required=True)
