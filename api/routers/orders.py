"""Client order endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_caller, get_order_service
from api.schemas.common import ErrorResponse
from api.schemas.orders import (
    OrderCreateRequest,
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdateRequest,
)
from api.services.order_service import OrderService
from execution.orders.models import Caller

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/orders",
    tags=["Orders"],
    responses={
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)


@router.post("", response_model=OrderResponse, status_code=201, responses={422: {"model": ErrorResponse}})
def create_order(
    request: OrderCreateRequest,
    caller: Caller = Depends(get_caller),
    order_service: OrderService = Depends(get_order_service),
):
    """Submit a new order.

    The order is checked against the organization's contracted yearly
    limits (buys) or confirmed holdings (sells) under the organization's
    scope lock. Rejections return 422 with the failing month.

    Returns:
        Created order (status SUBMITTED)
    """
    return order_service.submit_order(request, caller)


@router.get("", response_model=OrderListResponse)
def list_orders(
    organization_id: Optional[str] = Query(None, description="Organization (desk users only)"),
    live_only: bool = Query(False, description="Exclude cancelled, rejected and expired orders"),
    limit: int = Query(100, ge=1, le=1000, description="Page size"),
    offset: int = Query(0, ge=0, description="Records to skip"),
    caller: Caller = Depends(get_caller),
    order_service: OrderService = Depends(get_order_service),
):
    """List orders of the caller's organization."""
    return order_service.list_orders(
        caller, organization_id=organization_id, live_only=live_only, limit=limit, offset=offset
    )


@router.get("/{order_id}", response_model=OrderResponse)
def get_order(
    order_id: int,
    caller: Caller = Depends(get_caller),
    order_service: OrderService = Depends(get_order_service),
):
    """Get order by ID.

    Args:
        order_id: Order ID

    Returns:
        Order details
    """
    return order_service.get_order(order_id, caller)


@router.patch("/{order_id}", response_model=OrderResponse)
def update_order(
    order_id: int,
    request: OrderStatusUpdateRequest,
    caller: Caller = Depends(get_caller),
    order_service: OrderService = Depends(get_order_service),
):
    """Cancel an order (``{"status": "CANCELLED"}``).

    Returns 409 when the order is already FILLED, CANCELLED, REJECTED or
    EXPIRED.
    """
    return order_service.update_status(order_id, request, caller)
