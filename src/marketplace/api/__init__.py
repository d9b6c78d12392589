from marketplace.api.routes import (
    cart_router,
    inventory_router,
    maintenance_router,
    order_router,
    product_router,
    shop_router,
)

__all__ = [
    "cart_router",
    "inventory_router",
    "maintenance_router",
    "order_router",
    "product_router",
    "shop_router",
]
