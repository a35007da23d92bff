"""Position service: exposure per delivery year."""

import logging
from typing import Optional

from execution.orders.errors import ValidationError
from execution.orders.models import Caller, utc_now
from execution.persistence.state_manager import StateManager
from execution.risk.exposure_ledger import build_exposure_ledger
from execution.risk.exposure_summary import summarize_exposure
from execution.risk.risk_validator import stack_yearly_limits

from api.schemas.positions import MonthUsageResponse, PositionSummaryResponse, YearUsageResponse

logger = logging.getLogger(__name__)


class PositionService:
    """Service for position-related operations."""

    def __init__(self, state_manager: StateManager):
        """Initialize position service.

        Args:
            state_manager: Database state manager
        """
        self.state_manager = state_manager

    def get_summary(self, caller: Caller, organization_id: Optional[str] = None) -> PositionSummaryResponse:
        """Build the yearly exposure summary of an organization.

        Reads the ledger without taking a scope lock: the view may lag an
        in-flight operation but never shows a partial write.

        Args:
            caller: Authenticated caller
            organization_id: Organization to inspect (desk users only)

        Returns:
            Yearly usage with twelve months each
        """
        org = organization_id if caller.role.is_desk and organization_id else caller.organization_id
        if not org:
            raise ValidationError("organization_id is required", field="organization_id")

        with self.state_manager.transaction() as uow:
            contracts = uow.contracts.list_active(org, utc_now())
            orders = uow.orders.list_live(org)

        yearly_limits = stack_yearly_limits([c.yearly_limits for c in contracts])
        ledger = build_exposure_ledger(orders)
        years = summarize_exposure(ledger, yearly_limits)

        logger.debug(f"Exposure summary for {org}: {len(years)} year(s), {len(ledger)} month(s)")

        return PositionSummaryResponse(
            organization_id=org,
            years=[
                YearUsageResponse(
                    year=y.year,
                    limit=y.limit,
                    max_usage=y.max_usage,
                    months=[
                        MonthUsageResponse(month=m.label, confirmed=m.confirmed, pending=m.pending, total=m.total)
                        for m in y.months
                    ],
                )
                for y in years
            ],
        )
