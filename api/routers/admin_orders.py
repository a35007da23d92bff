"""Trading desk endpoints: fills, rejections and expiry sweeps."""

import logging

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_caller, get_order_service
from api.schemas.common import ErrorResponse
from api.schemas.orders import ExpireResponse, FillRequest, FillResultResponse, OrderResponse, RejectRequest
from api.services.order_service import OrderService
from execution.orders.models import Caller

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/admin/orders",
    tags=["Trade Desk"],
    responses={
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)


@router.post("/{order_id}/fill", response_model=FillResultResponse)
def fill_order(
    order_id: int,
    request: FillRequest,
    caller: Caller = Depends(get_caller),
    order_service: OrderService = Depends(get_order_service),
):
    """Record an execution against an order.

    Args:
        order_id: Order ID
        request: Price and executed volume

    Returns:
        Updated order and the new fill
    """
    return order_service.fill_order(order_id, request, caller)


@router.post("/{order_id}/reject", response_model=OrderResponse)
def reject_order(
    order_id: int,
    request: RejectRequest,
    caller: Caller = Depends(get_caller),
    order_service: OrderService = Depends(get_order_service),
):
    """Reject an order. Partially filled orders close as FILLED at their filled volume."""
    return order_service.reject_order(order_id, request, caller)


@router.post("/expire", response_model=ExpireResponse)
def expire_orders(
    organization_id: str = Query(..., description="Organization to sweep"),
    caller: Caller = Depends(get_caller),
    order_service: OrderService = Depends(get_order_service),
):
    """Expire overdue unfilled orders of an organization."""
    return order_service.expire_orders(organization_id, caller)
