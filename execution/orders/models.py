"""Order domain records.

Plain dataclasses shared by the ledger, the validator, the lifecycle
manager and the order store. All timestamps are timezone-aware UTC.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class Side(str, Enum):
    BUY = "BUY"
    SELL = "SELL"

    @property
    def sign(self) -> int:
        """+1 for buys, -1 for sells."""
        return 1 if self is Side.BUY else -1


class Profile(str, Enum):
    """Delivery shape: flat 24h (BASE) or peak hours 07:00-22:00 (PEAK)."""

    BASE = "BASE"
    PEAK = "PEAK"


class PeriodKind(str, Enum):
    YEAR = "YEAR"
    QUARTER = "QUARTER"
    MONTH = "MONTH"


class QuantityType(str, Enum):
    MW = "MW"
    PERCENT = "PERCENT"


class OrderStatus(str, Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    NEEDS_APPROVAL = "NEEDS_APPROVAL"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    IN_EXECUTION = "IN_EXECUTION"
    PARTIALLY_FILLED = "PARTIALLY_FILLED"
    FILLED = "FILLED"
    CANCELLED = "CANCELLED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"


# Status classes used by the exposure ledger
CONFIRMED_FULL_STATUSES: FrozenSet[OrderStatus] = frozenset(
    {OrderStatus.FILLED, OrderStatus.APPROVED, OrderStatus.IN_EXECUTION}
)
PENDING_FULL_STATUSES: FrozenSet[OrderStatus] = frozenset(
    {OrderStatus.SUBMITTED, OrderStatus.NEEDS_APPROVAL, OrderStatus.PENDING, OrderStatus.DRAFT}
)
TERMINAL_STATUSES: FrozenSet[OrderStatus] = frozenset(
    {OrderStatus.CANCELLED, OrderStatus.REJECTED, OrderStatus.EXPIRED}
)

# Lifecycle transition guards
FILLABLE_STATUSES: FrozenSet[OrderStatus] = frozenset(
    {OrderStatus.SUBMITTED, OrderStatus.PARTIALLY_FILLED}
)
NON_CANCELLABLE_STATUSES: FrozenSet[OrderStatus] = frozenset(
    {OrderStatus.FILLED, OrderStatus.CANCELLED, OrderStatus.REJECTED, OrderStatus.EXPIRED}
)
REJECTABLE_STATUSES: FrozenSet[OrderStatus] = frozenset(
    {OrderStatus.SUBMITTED, OrderStatus.NEEDS_APPROVAL, OrderStatus.PARTIALLY_FILLED}
)
EXPIRABLE_STATUSES: FrozenSet[OrderStatus] = frozenset(
    {OrderStatus.SUBMITTED, OrderStatus.NEEDS_APPROVAL, OrderStatus.DRAFT}
)


class CallerRole(str, Enum):
    CLIENT = "CLIENT"
    TRADER = "TRADER"
    BACKOFFICE = "BACKOFFICE"
    ADMIN = "ADMIN"

    @property
    def is_desk(self) -> bool:
        """Desk roles may fill, reject and cancel any organization's orders."""
        return self in (CallerRole.TRADER, CallerRole.BACKOFFICE, CallerRole.ADMIN)


@dataclass(frozen=True)
class Caller:
    """Authenticated identity performing an operation."""

    user_id: str
    organization_id: Optional[str] = None
    role: CallerRole = CallerRole.CLIENT


@dataclass(frozen=True)
class Product:
    """Tradeable forward product."""

    symbol: str
    profile: Profile
    period: PeriodKind
    delivery_start: date
    delivery_end: date


@dataclass
class Contract:
    """
    Contracted capacity of an organization.

    Attributes:
        yearly_limits: Year ('2026') -> contracted MW
        allowed_products: Symbols the organization may trade under this contract
    """

    id: Optional[int]
    organization_id: str
    allowed_products: FrozenSet[str]
    yearly_limits: Dict[str, float]
    valid_from: datetime
    valid_to: datetime
    is_active: bool = True

    def permits(self, symbol: str) -> bool:
        return symbol in self.allowed_products


@dataclass
class Order:
    """Order record. Invariant: 0 <= filled_mw <= quantity_mw."""

    id: Optional[int]
    organization_id: str
    user_id: str
    product_symbol: str
    side: Side
    quantity_mw: float
    limit_price: float
    status: OrderStatus
    valid_until: datetime
    filled_mw: float = 0.0
    average_fill_price: Optional[float] = None
    quantity_percent: Optional[float] = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: Optional[datetime] = None

    @property
    def remaining_mw(self) -> float:
        return self.quantity_mw - self.filled_mw


@dataclass
class Fill:
    """Execution against an order. Append-only."""

    id: Optional[int]
    order_id: int
    executed_mw: float
    price: float
    executed_by_user_id: str
    timestamp: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class OrderDraft:
    """Client order request before validation."""

    instrument_symbol: str
    side: Side
    quantity_type: QuantityType
    quantity: float
    limit_price: float
    valid_until: Optional[datetime] = None


@dataclass
class AuditRecord:
    """Audit trail entry written in the same transaction as the change."""

    user_id: str
    action: str
    resource: str
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utc_now)
