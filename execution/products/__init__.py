"""Product symbol parsing and delivery periods."""

from execution.products.resolver import (
    DeliveryPeriod,
    MonthPeriod,
    QuarterPeriod,
    YearPeriod,
    describe_product,
    parse_period,
    period_months,
    profile_for_symbol,
    resolve_months,
)

__all__ = [
    "DeliveryPeriod",
    "MonthPeriod",
    "QuarterPeriod",
    "YearPeriod",
    "describe_product",
    "parse_period",
    "period_months",
    "profile_for_symbol",
    "resolve_months",
]
