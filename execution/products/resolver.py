"""Product period resolution.

Standardized forward product symbols encode their delivery period:

    BASE_Y-26      calendar year 2026
    BASE_Q-1-26    first quarter of 2026
    PEAK5_M-07-26  July 2026

A symbol is parsed once into a typed period (YearPeriod, QuarterPeriod or
MonthPeriod); everything downstream (ledger months, delivery window,
product profile) reads the typed value instead of re-parsing strings.
"""

import calendar
from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Union

from execution.orders.models import PeriodKind, Product, Profile


@dataclass(frozen=True)
class YearPeriod:
    """Delivery over a full calendar year."""

    year: int

    @property
    def kind(self) -> PeriodKind:
        return PeriodKind.YEAR

    def month_numbers(self) -> List[int]:
        return list(range(1, 13))


@dataclass(frozen=True)
class QuarterPeriod:
    """Delivery over one calendar quarter (1-4)."""

    year: int
    quarter: int

    @property
    def kind(self) -> PeriodKind:
        return PeriodKind.QUARTER

    def month_numbers(self) -> List[int]:
        start = (self.quarter - 1) * 3 + 1
        return [start, start + 1, start + 2]


@dataclass(frozen=True)
class MonthPeriod:
    """Delivery over one calendar month."""

    year: int
    month: int

    @property
    def kind(self) -> PeriodKind:
        return PeriodKind.MONTH

    def month_numbers(self) -> List[int]:
        return [self.month]


DeliveryPeriod = Union[YearPeriod, QuarterPeriod, MonthPeriod]


def _parse_int(token: str) -> Optional[int]:
    token = token.strip()
    if not (token.isascii() and token.isdigit()):
        return None
    return int(token)


def parse_period(symbol: str) -> Optional[DeliveryPeriod]:
    """
    Parse a product symbol into its delivery period.

    Args:
        symbol: Product symbol (e.g. 'BASE_Q-1-26')

    Returns:
        Typed period, or None if the symbol is not a recognised product
    """
    if not symbol:
        return None

    parts = symbol.split("-")

    if "_Y-" in symbol:
        yy = _parse_int(parts[-1])
        if yy is None:
            return None
        return YearPeriod(year=2000 + yy)

    if "_Q-" in symbol:
        if len(parts) < 3:
            return None
        quarter = _parse_int(parts[-2])
        yy = _parse_int(parts[-1])
        if quarter is None or yy is None or not 1 <= quarter <= 4:
            return None
        return QuarterPeriod(year=2000 + yy, quarter=quarter)

    if "_M-" in symbol:
        if len(parts) < 3:
            return None
        month = _parse_int(parts[-2])
        yy = _parse_int(parts[-1])
        if month is None or yy is None or not 1 <= month <= 12:
            return None
        return MonthPeriod(year=2000 + yy, month=month)

    return None


def period_months(period: DeliveryPeriod) -> List[str]:
    """Ordered 'YYYY-MM' tokens covered by a period."""
    return [f"{period.year}-{m:02d}" for m in period.month_numbers()]


def resolve_months(symbol: str) -> List[str]:
    """
    Resolve a product symbol to the calendar months it covers.

    An empty list means the symbol is not a valid product; callers must
    reject orders for it.

    Example:
        >>> resolve_months("BASE_Q-1-26")
        ['2026-01', '2026-02', '2026-03']
    """
    period = parse_period(symbol)
    if period is None:
        return []
    return period_months(period)


def profile_for_symbol(symbol: str) -> Profile:
    """Delivery profile of a symbol: PEAK if it says so, BASE otherwise."""
    return Profile.PEAK if "PEAK" in symbol else Profile.BASE


def delivery_window(period: DeliveryPeriod) -> tuple[date, date]:
    """First and last delivery day of a period."""
    months = period.month_numbers()
    start = date(period.year, months[0], 1)
    last_month = months[-1]
    end = date(period.year, last_month, calendar.monthrange(period.year, last_month)[1])
    return start, end


def describe_product(symbol: str) -> Optional[Product]:
    """
    Build a Product record from the symbol alone.

    Used when the product catalog has no entry for a tradeable symbol.

    Returns:
        Product, or None if the symbol does not resolve
    """
    period = parse_period(symbol)
    if period is None:
        return None
    start, end = delivery_window(period)
    return Product(
        symbol=symbol,
        profile=profile_for_symbol(symbol),
        period=period.kind,
        delivery_start=start,
        delivery_end=end,
    )
