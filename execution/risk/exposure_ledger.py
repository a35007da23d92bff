"""Exposure ledger aggregation.

Aggregates an organization's live orders into per-delivery-month
exposure, split into a signed confirmed net position and unsigned
pending buy / pending sell volumes. The ledger is ephemeral: it is
recomputed from the order store for every validation.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, Optional

from execution.orders.models import (
    CONFIRMED_FULL_STATUSES,
    PENDING_FULL_STATUSES,
    Order,
    OrderStatus,
    Profile,
    Side,
)
from execution.products.resolver import profile_for_symbol, resolve_months
from utils.logger import get_ledger_logger

logger = get_ledger_logger()


@dataclass(frozen=True)
class OrderSnapshot:
    """The fields of an order that affect exposure."""

    product_symbol: str
    quantity_mw: float
    side: Side
    status: OrderStatus
    filled_mw: float = 0.0

    @classmethod
    def from_order(cls, order: Order) -> "OrderSnapshot":
        return cls(
            product_symbol=order.product_symbol,
            quantity_mw=order.quantity_mw,
            side=order.side,
            status=order.status,
            filled_mw=order.filled_mw or 0.0,
        )


@dataclass
class MonthlyExposure:
    """
    Exposure for one delivery month.

    Attributes:
        confirmed: Signed net of filled/confirmed volume (buys positive)
        pending_buy: Unfilled buy volume awaiting execution
        pending_sell: Unfilled sell volume awaiting execution
    """

    confirmed: float = 0.0
    pending_buy: float = 0.0
    pending_sell: float = 0.0

    @property
    def used_for_limit(self) -> float:
        """Capacity consumed: pending buys reserve capacity, pending sells do not release it."""
        return self.confirmed + self.pending_buy

    @property
    def available_to_sell(self) -> float:
        """Confirmed volume not already promised to pending sells."""
        return self.confirmed - self.pending_sell


class ExposureLedger:
    """
    Mapping of 'YYYY-MM' -> MonthlyExposure.

    Months never touched by an order read as zeroed entries without being
    inserted.
    """

    def __init__(self, entries: Optional[Dict[str, MonthlyExposure]] = None):
        self._entries: Dict[str, MonthlyExposure] = dict(entries or {})

    def entry(self, month: str) -> MonthlyExposure:
        """Exposure for a month (zeroed if the month has no orders)."""
        return self._entries.get(month) or MonthlyExposure()

    def _touch(self, month: str) -> MonthlyExposure:
        if month not in self._entries:
            self._entries[month] = MonthlyExposure()
        return self._entries[month]

    def months(self) -> list[str]:
        return sorted(self._entries)

    def items(self) -> Iterator[tuple[str, MonthlyExposure]]:
        for month in self.months():
            yield month, self._entries[month]

    def __contains__(self, month: object) -> bool:
        return month in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def to_dict(self) -> Dict[str, Dict[str, float]]:
        return {
            month: {
                "confirmed": e.confirmed,
                "pending_buy": e.pending_buy,
                "pending_sell": e.pending_sell,
            }
            for month, e in self.items()
        }

    def __repr__(self) -> str:
        return f"ExposureLedger(months={len(self._entries)})"


def build_exposure_ledger(
    orders: Iterable[OrderSnapshot | Order],
    profile: Optional[Profile] = None,
) -> ExposureLedger:
    """
    Aggregate orders into an exposure ledger.

    Classification by status:
        PARTIALLY_FILLED: filled part confirmed (signed by side), the
            remainder pending on its side
        FILLED, APPROVED, IN_EXECUTION: full quantity confirmed
        SUBMITTED, NEEDS_APPROVAL, PENDING, DRAFT: full quantity pending
        CANCELLED, REJECTED, EXPIRED: ignored

    Args:
        orders: Orders (or snapshots) of one organization
        profile: If given, only orders of this delivery profile are counted

    Returns:
        ExposureLedger
    """
    ledger = ExposureLedger()
    skipped = 0

    for order in orders:
        snap = order if isinstance(order, OrderSnapshot) else OrderSnapshot.from_order(order)

        if profile is not None and profile_for_symbol(snap.product_symbol) != profile:
            continue

        status = OrderStatus(snap.status)
        is_partial = status is OrderStatus.PARTIALLY_FILLED
        is_confirmed = status in CONFIRMED_FULL_STATUSES
        is_pending = status in PENDING_FULL_STATUSES

        if not (is_partial or is_confirmed or is_pending):
            continue

        months = resolve_months(snap.product_symbol)
        if not months:
            skipped += 1
            continue

        side = Side(snap.side)

        for month in months:
            entry = ledger._touch(month)

            if is_partial:
                filled = snap.filled_mw or 0.0
                remaining = max(0.0, snap.quantity_mw - filled)
                entry.confirmed += filled * side.sign
                if side is Side.BUY:
                    entry.pending_buy += remaining
                else:
                    entry.pending_sell += remaining

            elif is_confirmed:
                entry.confirmed += snap.quantity_mw * side.sign

            elif side is Side.BUY:
                entry.pending_buy += snap.quantity_mw
            else:
                entry.pending_sell += snap.quantity_mw

    if skipped:
        logger.warning(f"Skipped {skipped} order(s) with unresolvable product symbols")

    logger.debug(f"Built exposure ledger over {len(ledger)} month(s)")
    return ledger
