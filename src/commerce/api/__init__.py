"""Commerce API package."""

from commerce.api.routes import admin_order_router, cart_router, inventory_router, order_router

__all__ = ["admin_order_router", "cart_router", "inventory_router", "order_router"]
