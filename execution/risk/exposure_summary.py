"""Yearly exposure summary for the positions view."""

from dataclasses import dataclass, field
from typing import List, Mapping

from execution.risk.exposure_ledger import ExposureLedger


@dataclass
class MonthUsage:
    """Usage of one delivery month.

    Attributes:
        month: Month number (1-12)
        confirmed: Confirmed net long volume (short positions count as 0)
        pending: Pending buy volume reserving capacity
        total: confirmed + pending
    """

    month: int
    confirmed: float
    pending: float
    total: float

    @property
    def label(self) -> str:
        return f"{self.month:02d}"


@dataclass
class YearUsage:
    year: str
    limit: float
    max_usage: float = 0.0
    months: List[MonthUsage] = field(default_factory=list)


def summarize_exposure(
    ledger: ExposureLedger,
    yearly_limits: Mapping[str, float],
) -> List[YearUsage]:
    """
    Group ledger usage by delivery year.

    Every year that has a limit or ledger activity is listed with all
    twelve months, sorted by year.
    """
    years = {str(y) for y in yearly_limits}
    years.update(month.split("-")[0] for month in ledger.months())

    summary = []
    for year in sorted(years):
        usage = YearUsage(year=year, limit=float(yearly_limits.get(year, 0.0) or 0.0))

        for m in range(1, 13):
            entry = ledger.entry(f"{year}-{m:02d}")
            confirmed = max(0.0, entry.confirmed)
            pending = entry.pending_buy
            total = confirmed + pending
            usage.max_usage = max(usage.max_usage, total)
            usage.months.append(MonthUsage(month=m, confirmed=confirmed, pending=pending, total=total))

        summary.append(usage)

    return summary
