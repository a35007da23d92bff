"""Position endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_caller, get_position_service
from api.schemas.positions import PositionSummaryResponse
from api.services.position_service import PositionService
from execution.orders.models import Caller

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/positions", tags=["Positions"])


@router.get("", response_model=PositionSummaryResponse)
def get_positions(
    organization_id: Optional[str] = Query(None, description="Organization (desk users only)"),
    caller: Caller = Depends(get_caller),
    position_service: PositionService = Depends(get_position_service),
):
    """Exposure per delivery year against the contracted limits.

    Each year lists twelve months with confirmed (net long, floored at 0),
    pending buy and total volume, plus the year's limit and peak usage.
    """
    return position_service.get_summary(caller, organization_id=organization_id)
