"""Pydantic schemas for API request/response models."""

from api.schemas.common import (
    ErrorResponse,
    PageInfo,
    TimestampMixin,
)
from api.schemas.orders import (
    ExpireResponse,
    FillRequest,
    FillResponse,
    FillResultResponse,
    OrderCreateRequest,
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdateRequest,
    RejectRequest,
)
from api.schemas.positions import (
    MonthUsageResponse,
    PositionSummaryResponse,
    YearUsageResponse,
)

__all__ = [
    # Common
    "ErrorResponse",
    "PageInfo",
    "TimestampMixin",
    # Orders
    "ExpireResponse",
    "FillRequest",
    "FillResponse",
    "FillResultResponse",
    "OrderCreateRequest",
    "OrderListResponse",
    "OrderResponse",
    "OrderStatusUpdateRequest",
    "RejectRequest",
    # Positions
    "MonthUsageResponse",
    "PositionSummaryResponse",
    "YearUsageResponse",
]
