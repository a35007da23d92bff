"""Order-related schemas."""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from api.schemas.common import PageInfo, TimestampMixin


OrderSideLiteral = Literal["BUY", "SELL"]
QuantityTypeLiteral = Literal["MW", "PERCENT"]


class OrderCreateRequest(BaseModel):
    """Order submission request."""

    instrument_symbol: str = Field(min_length=1, description="Product symbol, e.g. BASE_Y-26")
    side: OrderSideLiteral = Field(description="BUY or SELL")
    quantity_type: QuantityTypeLiteral = Field(default="MW", description="MW or PERCENT of the yearly limit")
    quantity: float = Field(gt=0, description="Volume in MW, or percentage when quantity_type=PERCENT")
    limit_price: float = Field(gt=0, description="Limit price")
    valid_until: Optional[datetime] = Field(None, description="Order validity (ISO-8601, defaults to +24h)")


class OrderStatusUpdateRequest(BaseModel):
    """Status change requested by a client (only cancellation is supported)."""

    status: Literal["CANCELLED"] = Field(description="Target status")


class FillRequest(BaseModel):
    """Execution reported by the trading desk."""

    price: float = Field(gt=0, description="Execution price")
    quantity_mw: float = Field(gt=0, description="Executed volume (MW)")


class RejectRequest(BaseModel):
    """Rejection by the trading desk."""

    reason: Optional[str] = Field(None, max_length=500, description="Reason shown to the client")


class OrderResponse(TimestampMixin):
    """Order response with all fields."""

    id: int = Field(description="Order ID")
    organization_id: str = Field(description="Owning organization")
    user_id: str = Field(description="Creating user")
    product_symbol: str = Field(description="Product symbol")
    side: OrderSideLiteral = Field(description="BUY or SELL")
    quantity_mw: float = Field(description="Order volume (MW)")
    quantity_percent: Optional[float] = Field(None, description="Requested percentage, for PERCENT orders")
    filled_mw: float = Field(description="Filled volume (MW)")
    remaining_mw: float = Field(description="Unfilled volume (MW)")
    average_fill_price: Optional[float] = Field(None, description="Volume-weighted fill price")
    limit_price: float = Field(description="Limit price")
    status: str = Field(description="Order status")
    valid_until: int = Field(description="Validity end (Unix ms)")


class FillResponse(BaseModel):
    """Single fill."""

    id: int = Field(description="Fill ID")
    order_id: int = Field(description="Order ID")
    executed_mw: float = Field(description="Executed volume (MW)")
    price: float = Field(description="Execution price")
    executed_by_user_id: str = Field(description="Desk user who executed")
    timestamp: int = Field(description="Execution timestamp (Unix ms)")


class FillResultResponse(BaseModel):
    """Result of a fill: updated order plus the new fill."""

    order: OrderResponse
    fill: FillResponse


class OrderListResponse(PageInfo):
    """One page of an organization's orders, oldest first."""

    orders: List[OrderResponse] = Field(description="Orders on this page")


class ExpireResponse(BaseModel):
    """Result of an expiry sweep."""

    organization_id: str
    expired: int = Field(description="Number of orders expired")
