"""API routers package."""

from api.routers.health import router as health_router
from api.routers.orders import router as orders_router
from api.routers.admin_orders import router as admin_orders_router
from api.routers.positions import router as positions_router

__all__ = [
    "health_router",
    "orders_router",
    "admin_orders_router",
    "positions_router",
]
