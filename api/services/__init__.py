"""Business logic services."""

from api.services.order_service import OrderService
from api.services.position_service import PositionService

__all__ = [
    "OrderService",
    "PositionService",
]
