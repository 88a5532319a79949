"""Repository for the Product aggregate."""

from pharmacy.domain import pharmacy
from pharmacy.stock.product import DEFAULT_LOW_STOCK_THRESHOLD, Product, ProductStatus
from pharmacy.utils.paging import fetch_all


@pharmacy.repository(part_of=Product)
class ProductRepository:
    def find_active(self) -> list[Product]:
        return fetch_all(self._dao.query.filter(status=ProductStatus.ACTIVE.value).order_by("name"))

    def find_low_stock(self) -> list[Product]:
        """Active products whose available stock is at or below their threshold."""
        return [
            product
            for product in self.find_active()
            if product.available_stock
            <= (product.low_stock_threshold if product.low_stock_threshold is not None else DEFAULT_LOW_STOCK_THRESHOLD)
        ]

    def count(self) -> int:
        return self._dao.query.all().total
