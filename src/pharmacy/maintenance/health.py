"""Operational reports — low stock and overall system health."""

import structlog
from protean.utils.globals import current_domain

from pharmacy.cart.cart import Cart
from pharmacy.cart.reconciliation import sweep
from pharmacy.order.order import Order
from pharmacy.stock.product import Product
from pharmacy.utils.clock import utcnow

logger = structlog.get_logger(__name__)


def low_stock_products():
    """Active products at or below their low-stock threshold, logged as warnings."""
    products = current_domain.repository_for(Product).find_low_stock()
    for product in products:
        logger.warning(
            "Low stock",
            product_id=str(product.id),
            name=product.name,
            available_stock=product.available_stock,
            threshold=product.low_stock_threshold,
        )
    return products


def system_health():
    """Snapshot of stock, orders and carts. Reclaims expired carts first."""
    reconciled = sweep()

    product_repo = current_domain.repository_for(Product)
    order_repo = current_domain.repository_for(Order)

    report = {
        "products": {
            "total": product_repo.count(),
            "low_stock": len(product_repo.find_low_stock()),
        },
        "orders": {
            "active": order_repo.count_active(),
            "pending_revenue": len(order_repo.find_pending_revenue()),
        },
        "carts": {
            "active": current_domain.repository_for(Cart).count_active(),
            "reconciled": reconciled,
        },
        "timestamp": utcnow().isoformat(),
    }
    logger.info("System health checked", **{k: v for k, v in report.items() if k != "timestamp"})
    return report
