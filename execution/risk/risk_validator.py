"""Pre-trade risk validation against contracted yearly limits.

Rules, checked for every delivery month the candidate order covers:

1. BUY limit: confirmed + pending_buy + new_buy <= limit
   Pending buys reserve capacity immediately; pending sells do not
   release it.
2. SELL coverage: confirmed - pending_sell - new_sell >= 0
   A sell must be covered by confirmed volume that is not already
   promised to other pending sells.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Mapping, Optional

from execution.orders.errors import (
    BusinessRuleViolation,
    InsufficientCoverageError,
    InvalidProductPeriodError,
    LimitExceededError,
)
from execution.orders.models import Side
from execution.products.resolver import resolve_months
from execution.risk.exposure_ledger import ExposureLedger
from utils.logger import get_risk_logger

logger = get_risk_logger()

DEFAULT_COVERAGE_EPSILON_MW = 0.001


class RiskCheckStatus(Enum):
    """Status of a risk check."""

    APPROVED = "approved"
    REJECTED = "rejected"


class RejectionKind(str, Enum):
    INVALID_PRODUCT_PERIOD = "InvalidProductPeriod"
    LIMIT_EXCEEDED = "LimitExceeded"
    INSUFFICIENT_COVERAGE = "InsufficientCoverage"


@dataclass(frozen=True)
class CandidateOrder:
    """Order being validated."""

    product_symbol: str
    quantity_mw: float
    side: Side


@dataclass
class RiskCheckResult:
    """Result of a pre-trade risk check.

    Attributes:
        status: APPROVED or REJECTED
        approved: True if the order can be accepted
        kind: Rejection kind (None when approved)
        reason: Human-readable explanation of a rejection
        month: First failing delivery month
        limit: Yearly limit applied to the failing month (BUY)
        used: Usage including the candidate (BUY)
        available: Confirmed minus pending sells (SELL)
        requested: Candidate quantity (SELL)
    """

    status: RiskCheckStatus
    approved: bool
    kind: Optional[RejectionKind] = None
    reason: Optional[str] = None
    month: Optional[str] = None
    limit: Optional[float] = None
    used: Optional[float] = None
    available: Optional[float] = None
    requested: Optional[float] = None
    symbol: Optional[str] = None

    @classmethod
    def accept(cls) -> "RiskCheckResult":
        return cls(status=RiskCheckStatus.APPROVED, approved=True)

    def to_error(self) -> BusinessRuleViolation:
        """Exception equivalent of a rejection."""
        if self.approved:
            raise ValueError("Approved risk check has no error")
        if self.kind is RejectionKind.LIMIT_EXCEEDED:
            return LimitExceededError(self.month, self.limit, self.used)
        if self.kind is RejectionKind.INSUFFICIENT_COVERAGE:
            return InsufficientCoverageError(self.month, self.available, self.requested)
        return InvalidProductPeriodError(self.symbol or "")


def limit_for_month(yearly_limits: Mapping[str, float], month: str) -> float:
    """Yearly limit applying to a 'YYYY-MM' month (0 if none is set)."""
    year = month.split("-")[0]
    return float(yearly_limits.get(year, 0.0) or 0.0)


def validate_order_risk(
    ledger: ExposureLedger,
    candidate: CandidateOrder,
    yearly_limits: Mapping[str, float],
    coverage_epsilon: float = DEFAULT_COVERAGE_EPSILON_MW,
) -> RiskCheckResult:
    """
    Validate a new order against the ledger and yearly limits.

    Args:
        ledger: Current exposure of the organization
        candidate: Order to validate
        yearly_limits: Year ('2026') -> contracted MW
        coverage_epsilon: Float tolerance for the sell coverage rule

    Returns:
        RiskCheckResult for the first failing month, or an approval
    """
    months = resolve_months(candidate.product_symbol)
    if not months:
        logger.info(f"Rejected {candidate.product_symbol}: invalid product period")
        return RiskCheckResult(
            status=RiskCheckStatus.REJECTED,
            approved=False,
            kind=RejectionKind.INVALID_PRODUCT_PERIOD,
            reason=f"Invalid product period: {candidate.product_symbol}",
            symbol=candidate.product_symbol,
        )

    side = Side(candidate.side)

    for month in months:
        limit = limit_for_month(yearly_limits, month)
        entry = ledger.entry(month)

        if side is Side.BUY:
            used = entry.used_for_limit + candidate.quantity_mw
            if used > limit:
                error = LimitExceededError(month, limit, used)
                logger.info(f"Rejected BUY {candidate.product_symbol}: {error.message}")
                return RiskCheckResult(
                    status=RiskCheckStatus.REJECTED,
                    approved=False,
                    kind=RejectionKind.LIMIT_EXCEEDED,
                    reason=error.message,
                    month=month,
                    limit=limit,
                    used=used,
                )
        else:
            available = entry.available_to_sell
            if available - candidate.quantity_mw < -coverage_epsilon:
                error = InsufficientCoverageError(month, available, candidate.quantity_mw)
                logger.info(f"Rejected SELL {candidate.product_symbol}: {error.message}")
                return RiskCheckResult(
                    status=RiskCheckStatus.REJECTED,
                    approved=False,
                    kind=RejectionKind.INSUFFICIENT_COVERAGE,
                    reason=error.message,
                    month=month,
                    available=available,
                    requested=candidate.quantity_mw,
                )

    return RiskCheckResult.accept()


def stack_yearly_limits(limit_maps: list[Mapping[str, float]]) -> Dict[str, float]:
    """Sum yearly limits across contracts (limits of concurrent contracts stack)."""
    total: Dict[str, float] = {}
    for limits in limit_maps:
        for year, mw in (limits or {}).items():
            total[str(year)] = total.get(str(year), 0.0) + float(mw)
    return total
