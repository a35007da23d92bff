"""Builders shared by unit and integration tests."""

from datetime import datetime, timedelta, timezone

from execution.orders.models import (
    Contract,
    Order,
    OrderDraft,
    OrderStatus,
    QuantityType,
    Side,
)

ORG = "org-acme"
OTHER_ORG = "org-globex"

# Fixed "now" inside the 2026 contract window
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

DEFAULT_PRODUCTS = ["BASE_Y-26", "BASE_Q-1-26", "BASE_M-07-26", "BASE_M-01-26", "PEAK_Y-26", "BASE_Y-27"]


class FakeClock:
    """Settable time source for lifecycle tests."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


def make_contract(
    organization_id: str = ORG,
    yearly_limits=None,
    allowed_products=None,
    valid_from: datetime = datetime(2026, 1, 1, tzinfo=timezone.utc),
    valid_to: datetime = datetime(2027, 12, 31, tzinfo=timezone.utc),
    is_active: bool = True,
) -> Contract:
    return Contract(
        id=None,
        organization_id=organization_id,
        allowed_products=frozenset(allowed_products or DEFAULT_PRODUCTS),
        yearly_limits=dict(yearly_limits or {"2026": 10.0}),
        valid_from=valid_from,
        valid_to=valid_to,
        is_active=is_active,
    )


def make_order(
    side: Side = Side.BUY,
    quantity_mw: float = 1.0,
    status: OrderStatus = OrderStatus.SUBMITTED,
    product_symbol: str = "BASE_Y-26",
    filled_mw: float = 0.0,
    organization_id: str = ORG,
) -> Order:
    return Order(
        id=None,
        organization_id=organization_id,
        user_id="u-client",
        product_symbol=product_symbol,
        side=side,
        quantity_mw=quantity_mw,
        limit_price=100.0,
        status=status,
        valid_until=NOW + timedelta(days=1),
        filled_mw=filled_mw,
        created_at=NOW,
    )


def make_draft(
    side: Side = Side.BUY,
    quantity: float = 1.0,
    symbol: str = "BASE_Y-26",
    quantity_type: QuantityType = QuantityType.MW,
    valid_until: datetime | None = None,
    limit_price: float = 95.5,
) -> OrderDraft:
    return OrderDraft(
        instrument_symbol=symbol,
        side=side,
        quantity_type=quantity_type,
        quantity=quantity,
        limit_price=limit_price,
        valid_until=valid_until,
    )
