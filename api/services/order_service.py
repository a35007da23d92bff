"""Order service for business logic."""

import logging
from datetime import timezone
from typing import Optional

from config.engine import RetryPolicy
from execution.orders.errors import ForbiddenError, NotFoundError, ValidationError
from execution.orders.lifecycle import OrderLifecycleManager
from execution.orders.models import Caller, Fill, Order, OrderDraft, QuantityType, Side
from execution.persistence.state_manager import StateManager, to_millis
from utils.retry import retry_transient

from api.schemas.orders import (
    ExpireResponse,
    FillRequest,
    FillResponse,
    FillResultResponse,
    OrderCreateRequest,
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdateRequest,
    RejectRequest,
)

logger = logging.getLogger(__name__)


def order_to_response(order: Order) -> OrderResponse:
    """Convert an Order to its API representation."""
    return OrderResponse(
        id=order.id,
        organization_id=order.organization_id,
        user_id=order.user_id,
        product_symbol=order.product_symbol,
        side=order.side.value,
        quantity_mw=order.quantity_mw,
        quantity_percent=order.quantity_percent,
        filled_mw=order.filled_mw,
        remaining_mw=max(0.0, order.remaining_mw),
        average_fill_price=order.average_fill_price,
        limit_price=order.limit_price,
        status=order.status.value,
        valid_until=to_millis(order.valid_until),
        created_at=to_millis(order.created_at) if order.created_at else None,
        updated_at=to_millis(order.updated_at) if order.updated_at else None,
    )


def fill_to_response(fill: Fill) -> FillResponse:
    return FillResponse(
        id=fill.id,
        order_id=fill.order_id,
        executed_mw=fill.executed_mw,
        price=fill.price,
        executed_by_user_id=fill.executed_by_user_id,
        timestamp=to_millis(fill.timestamp),
    )


class OrderService:
    """Service for order-related operations.

    Engine calls are retried on transient failures (busy scope lock,
    store unavailable) according to the retry policy.
    """

    def __init__(
        self,
        lifecycle: OrderLifecycleManager,
        state_manager: StateManager,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        """Initialize order service.

        Args:
            lifecycle: Order lifecycle manager
            state_manager: Database state manager (reads)
            retry_policy: Backoff for transient failures
        """
        self.lifecycle = lifecycle
        self.state_manager = state_manager
        self.retry_policy = retry_policy or RetryPolicy()

    def _retry(self, func):
        return retry_transient(func, policy=self.retry_policy)

    def submit_order(self, request: OrderCreateRequest, caller: Caller) -> OrderResponse:
        """Submit a new order.

        Args:
            request: Order submission payload
            caller: Authenticated caller

        Returns:
            Created order
        """
        valid_until = request.valid_until
        if valid_until is not None and valid_until.tzinfo is None:
            valid_until = valid_until.replace(tzinfo=timezone.utc)

        draft = OrderDraft(
            instrument_symbol=request.instrument_symbol,
            side=Side(request.side),
            quantity_type=QuantityType(request.quantity_type),
            quantity=request.quantity,
            limit_price=request.limit_price,
            valid_until=valid_until,
        )
        order = self._retry(lambda: self.lifecycle.submit(draft, caller))
        return order_to_response(order)

    def get_order(self, order_id: int, caller: Caller) -> OrderResponse:
        """Get order by ID, scoped to the caller's organization for clients."""
        order = self.state_manager.get_order(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found", order_id=order_id)
        if not caller.role.is_desk and order.organization_id != caller.organization_id:
            raise ForbiddenError(f"Order {order_id} belongs to another organization", order_id=order_id)
        return order_to_response(order)

    def list_orders(
        self,
        caller: Caller,
        organization_id: Optional[str] = None,
        live_only: bool = False,
        limit: int = 100,
        offset: int = 0,
    ) -> OrderListResponse:
        """List orders of an organization, one page at a time.

        Clients always see their own organization; desk users may name one.
        """
        org = organization_id if caller.role.is_desk and organization_id else caller.organization_id
        if not org:
            raise ValidationError("organization_id is required", field="organization_id")

        orders = self.state_manager.get_orders(org, live_only=live_only)
        page = orders[offset:offset + limit]
        return OrderListResponse(
            orders=[order_to_response(o) for o in page],
            total=len(orders),
            limit=limit,
            offset=offset,
            has_more=offset + len(page) < len(orders),
        )

    def update_status(self, order_id: int, request: OrderStatusUpdateRequest, caller: Caller) -> OrderResponse:
        """Apply a client status change (cancellation)."""
        order = self._retry(lambda: self.lifecycle.cancel(order_id, caller))
        return order_to_response(order)

    def fill_order(self, order_id: int, request: FillRequest, caller: Caller) -> FillResultResponse:
        """Record a desk execution."""
        result = self._retry(
            lambda: self.lifecycle.fill(order_id, request.price, request.quantity_mw, caller)
        )
        return FillResultResponse(
            order=order_to_response(result.order),
            fill=fill_to_response(result.fill),
        )

    def reject_order(self, order_id: int, request: RejectRequest, caller: Caller) -> OrderResponse:
        """Reject an order from the desk."""
        order = self._retry(lambda: self.lifecycle.reject(order_id, caller, reason=request.reason))
        return order_to_response(order)

    def expire_orders(self, organization_id: str, caller: Caller) -> ExpireResponse:
        """Run an expiry sweep for one organization (desk only)."""
        if not caller.role.is_desk:
            raise ForbiddenError("Only trading desk users may run expiry sweeps")

        expired = self._retry(lambda: self.lifecycle.expire_overdue_orders(organization_id))
        logger.info(f"Expiry sweep for {organization_id} by {caller.user_id}: {expired} expired")
        return ExpireResponse(organization_id=organization_id, expired=expired)
