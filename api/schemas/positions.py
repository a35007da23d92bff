"""Position (exposure) schemas."""

from typing import List

from pydantic import BaseModel, Field


class MonthUsageResponse(BaseModel):
    """Usage of one delivery month."""

    month: str = Field(description="Month label ('01'..'12')")
    confirmed: float = Field(description="Confirmed net long volume (MW)")
    pending: float = Field(description="Pending buy volume (MW)")
    total: float = Field(description="confirmed + pending (MW)")


class YearUsageResponse(BaseModel):
    """Usage of one delivery year against its contracted limit."""

    year: str = Field(description="Delivery year")
    limit: float = Field(description="Stacked yearly limit (MW)")
    max_usage: float = Field(description="Highest monthly usage (MW)")
    months: List[MonthUsageResponse] = Field(description="Twelve months, January first")


class PositionSummaryResponse(BaseModel):
    """Exposure of an organization per delivery year."""

    organization_id: str
    years: List[YearUsageResponse]
