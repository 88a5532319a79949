"""Pharmacy API package."""

from pharmacy.api.routes import cart_router, maintenance_router, order_router, product_router, tracking_router

__all__ = ["product_router", "cart_router", "order_router", "tracking_router", "maintenance_router"]
