"""Order lifecycle events and notification routing.

Events are emitted inside the same transaction as the state change they
describe. Client-originated events notify the trading desk; desk-originated
events notify the user who created the order.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from execution.orders.models import Order, utc_now


class OrderEventType(str, Enum):
    ORDER_CREATED = "ORDER_CREATED"
    ORDER_FILLED = "ORDER_FILLED"
    ORDER_PARTIALLY_FILLED = "ORDER_PARTIALLY_FILLED"
    ORDER_CANCELLED_BY_CLIENT = "ORDER_CANCELLED_BY_CLIENT"
    ORDER_CANCELLED_BY_TRADER = "ORDER_CANCELLED_BY_TRADER"
    ORDER_REJECTED = "ORDER_REJECTED"
    ORDER_EXPIRED = "ORDER_EXPIRED"


CLIENT_EVENTS = frozenset({OrderEventType.ORDER_CREATED, OrderEventType.ORDER_CANCELLED_BY_CLIENT})

DESK_AUDIENCE = "TRADE_DESK"


@dataclass
class LifecycleEvent:
    """Something that happened to an order."""

    order_id: int
    type: OrderEventType
    actor_user_id: str
    payload: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utc_now)
    id: Optional[int] = None  # set once persisted


@dataclass(frozen=True)
class Notification:
    """
    Message for a user or for the whole trading desk.

    Exactly one of ``recipient_user_id`` and ``audience`` is set.
    """

    organization_id: str
    title: str
    body: str
    href: str
    dedupe_key: str
    recipient_user_id: Optional[str] = None
    audience: Optional[str] = None


_TITLES = {
    OrderEventType.ORDER_CREATED: ("New order", "{org} placed an order for {symbol} ({qty:g} MW)"),
    OrderEventType.ORDER_CANCELLED_BY_CLIENT: ("Order cancelled", "{org} cancelled the order for {symbol}"),
    OrderEventType.ORDER_FILLED: ("Order filled", "Your order for {symbol} has been filled."),
    OrderEventType.ORDER_PARTIALLY_FILLED: (
        "Order partially filled",
        "Your order for {symbol} has been partially filled.",
    ),
    OrderEventType.ORDER_CANCELLED_BY_TRADER: (
        "Order cancelled",
        "Your order for {symbol} has been cancelled by the trading desk.",
    ),
    OrderEventType.ORDER_REJECTED: ("Order rejected", "Your order for {symbol} has been rejected. Reason: {reason}"),
    OrderEventType.ORDER_EXPIRED: ("Order expired", "Your order for {symbol} has expired."),
}


def build_notification(event: LifecycleEvent, order: Order) -> Notification:
    """
    Route an event to its recipients.

    Args:
        event: Lifecycle event
        order: Order the event belongs to (state after the change)

    Returns:
        Notification addressed to the desk or to the order's creator
    """
    title, template = _TITLES[event.type]
    body = template.format(
        org=order.organization_id,
        symbol=order.product_symbol,
        qty=order.quantity_mw,
        reason=event.payload.get("reason") or "none given",
    )
    suffix = event.id if event.id is not None else int(event.timestamp.timestamp() * 1000)
    dedupe_key = f"{event.type.value}-{event.order_id}-{suffix}"

    if event.type in CLIENT_EVENTS:
        return Notification(
            organization_id=order.organization_id,
            title=title,
            body=body,
            href=f"/admin/trade-desk?orderId={order.id}",
            dedupe_key=dedupe_key,
            audience=DESK_AUDIENCE,
        )

    return Notification(
        organization_id=order.organization_id,
        title=title,
        body=body,
        href=f"/trading?orderId={order.id}",
        dedupe_key=dedupe_key,
        recipient_user_id=order.user_id,
    )
