"""Exposure ledger and pre-trade risk validation.

This module provides:
- Per-delivery-month exposure aggregation (confirmed / pending buy / pending sell)
- Limit and sell-coverage checks against contracted yearly limits
- Yearly usage summaries for the positions view
"""

from execution.risk.exposure_ledger import (
    ExposureLedger,
    MonthlyExposure,
    OrderSnapshot,
    build_exposure_ledger,
)
from execution.risk.exposure_summary import MonthUsage, YearUsage, summarize_exposure
from execution.risk.risk_validator import (
    CandidateOrder,
    RejectionKind,
    RiskCheckResult,
    RiskCheckStatus,
    stack_yearly_limits,
    validate_order_risk,
)

__all__ = [
    "ExposureLedger",
    "MonthlyExposure",
    "OrderSnapshot",
    "build_exposure_ledger",
    "MonthUsage",
    "YearUsage",
    "summarize_exposure",
    "CandidateOrder",
    "RejectionKind",
    "RiskCheckResult",
    "RiskCheckStatus",
    "stack_yearly_limits",
    "validate_order_risk",
]
