"""Order lifecycle management.

State machine:

    DRAFT -> SUBMITTED -> PARTIALLY_FILLED -> FILLED
                       -> FILLED
    SUBMITTED / NEEDS_APPROVAL / PARTIALLY_FILLED -> CANCELLED | REJECTED
    SUBMITTED (unfilled, past valid_until) -> EXPIRED

Every operation runs as one transaction:

    open transaction -> acquire (organization, profile) lock -> read
    -> validate -> write order/fill -> audit record -> lifecycle event
    -> commit (lock released) | rollback (lock released)

Business-rule failures raise before anything is committed, so a rejected
request leaves no trace in the store.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from config.engine import EngineConfig
from execution.locking.coordinator import (
    ConcurrencyCoordinator,
    InProcessLockBackend,
    PostgresAdvisoryLockBackend,
)
from execution.orders.errors import (
    ConflictError,
    ForbiddenError,
    InvalidProductPeriodError,
    NoActiveContractError,
    NotFoundError,
    ProductNotPermittedError,
    ValidationError,
)
from execution.orders.events import LifecycleEvent, OrderEventType
from execution.orders.models import (
    FILLABLE_STATUSES,
    NON_CANCELLABLE_STATUSES,
    REJECTABLE_STATUSES,
    AuditRecord,
    Caller,
    Fill,
    Order,
    OrderDraft,
    OrderStatus,
    Profile,
    QuantityType,
    Side,
    utc_now,
)
from execution.persistence.repositories import UnitOfWork, UnitOfWorkFactory
from execution.products.resolver import describe_product, profile_for_symbol, resolve_months
from execution.risk.exposure_ledger import build_exposure_ledger
from execution.risk.risk_validator import (
    CandidateOrder,
    limit_for_month,
    stack_yearly_limits,
    validate_order_risk,
)
from utils.logger import get_lifecycle_logger

logger = get_lifecycle_logger()


@dataclass
class FillResult:
    """Outcome of a fill: the updated order and the appended fill."""

    order: Order
    fill: Fill


def _require_finite(name: str, value: float) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a number", field=name)
    if not math.isfinite(value):
        raise ValidationError(f"{name} must be finite", field=name)
    return value


def _resource(order_id: int) -> str:
    return f"Order:{order_id}"


class OrderLifecycleManager:
    """
    Submit, fill, cancel, reject and expire orders atomically.

    Attributes:
        unit_of_work: Factory opening a transaction-bound unit of work
        coordinator: Scope lock coordinator
        config: Engine configuration (tolerances, validity, ledger scope)
    """

    def __init__(
        self,
        unit_of_work: UnitOfWorkFactory,
        coordinator: ConcurrencyCoordinator,
        config: Optional[EngineConfig] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize lifecycle manager.

        Args:
            unit_of_work: Callable returning a context manager over a UnitOfWork
            coordinator: ConcurrencyCoordinator instance
            config: EngineConfig (defaults to EngineConfig())
            clock: Time source, injectable for tests
        """
        self.unit_of_work = unit_of_work
        self.coordinator = coordinator
        self.config = config or EngineConfig()
        self.clock = clock

        logger.info(
            f"Initialized OrderLifecycleManager (ledger_scope={self.config.ledger_scope}, "
            f"fill_eps={self.config.fill_epsilon_mw}, coverage_eps={self.config.coverage_epsilon_mw})"
        )

    # ------------------------------------------------------------------
    # Submit
    # ------------------------------------------------------------------

    def _validate_draft(self, draft: OrderDraft, caller: Caller, now: datetime) -> datetime:
        """Check draft shape; returns the effective valid_until."""
        if not caller.organization_id:
            raise ForbiddenError("Caller has no organization")

        if not draft.instrument_symbol or not draft.instrument_symbol.strip():
            raise ValidationError("instrument_symbol is required", field="instrument_symbol")

        try:
            Side(draft.side)
            quantity_type = QuantityType(draft.quantity_type)
        except ValueError as e:
            raise ValidationError(str(e))

        quantity = _require_finite("quantity", draft.quantity)
        if quantity <= 0:
            raise ValidationError("quantity must be > 0", field="quantity")
        if quantity_type is QuantityType.PERCENT and quantity > 100:
            raise ValidationError("percentage quantity must be in (0, 100]", field="quantity")

        limit_price = _require_finite("limit_price", draft.limit_price)
        if limit_price <= 0:
            raise ValidationError("limit_price must be > 0", field="limit_price")

        valid_until = draft.valid_until or now + timedelta(hours=self.config.default_validity_hours)
        if valid_until.tzinfo is None:
            raise ValidationError("valid_until must be timezone-aware", field="valid_until")
        if valid_until <= now:
            raise ValidationError("valid_until must be in the future", field="valid_until")

        return valid_until

    def submit(
        self,
        draft: OrderDraft,
        caller: Caller,
        lock_timeout: Optional[float] = None,
    ) -> Order:
        """
        Validate and record a new order.

        Args:
            draft: Client order request
            caller: Submitting user and organization
            lock_timeout: Override for the scope lock wait (seconds)

        Returns:
            Persisted order in SUBMITTED state

        Raises:
            ValidationError: Malformed draft
            ForbiddenError: Caller has no organization
            NoActiveContractError: No contract in force, or none covering valid_until
            ProductNotPermittedError: No active contract allows the product
            InvalidProductPeriodError: Symbol does not resolve to delivery months
            LimitExceededError / InsufficientCoverageError: Risk check failed
            LockBusyError: Scope lock not obtained in time (retryable)
        """
        now = self.clock()
        valid_until = self._validate_draft(draft, caller, now)

        organization_id = caller.organization_id
        symbol = draft.instrument_symbol.strip()
        side = Side(draft.side)
        profile = profile_for_symbol(symbol)

        with self.unit_of_work() as uow:
            self.coordinator.acquire(uow, organization_id, profile, lock_timeout)

            self._expire_in_scope(uow, organization_id, profile, now)

            contracts = uow.contracts.list_active(organization_id, now)
            if not contracts:
                raise NoActiveContractError(
                    f"No active contract for organization {organization_id}",
                    organization_id=organization_id,
                )

            permitting = [c for c in contracts if c.permits(symbol)]
            if not permitting:
                raise ProductNotPermittedError(symbol)

            if not any(c.valid_to >= valid_until for c in permitting):
                raise NoActiveContractError(
                    f"No active contract for {symbol} covers the order validity "
                    f"({valid_until.isoformat()})",
                    organization_id=organization_id,
                    symbol=symbol,
                )

            product = uow.products.get(symbol) or describe_product(symbol)
            months = resolve_months(symbol)
            if product is None or not months:
                raise InvalidProductPeriodError(symbol)

            yearly_limits = stack_yearly_limits([c.yearly_limits for c in contracts])

            quantity_mw = float(draft.quantity)
            quantity_percent = None
            if QuantityType(draft.quantity_type) is QuantityType.PERCENT:
                quantity_percent = quantity_mw
                year_limit = limit_for_month(yearly_limits, months[0])
                if year_limit <= 0:
                    raise ValidationError(
                        f"Percentage orders need a yearly limit for {months[0][:4]}",
                        field="quantity",
                    )
                quantity_mw = year_limit * quantity_percent / 100.0

            ledger_profile = profile if self.config.ledger_scope == "profile" else None
            ledger = build_exposure_ledger(uow.orders.list_live(organization_id), profile=ledger_profile)

            result = validate_order_risk(
                ledger,
                CandidateOrder(product_symbol=symbol, quantity_mw=quantity_mw, side=side),
                yearly_limits,
                coverage_epsilon=self.config.coverage_epsilon_mw,
            )
            if not result.approved:
                logger.info(
                    f"Order rejected for {organization_id}: {side.value} {quantity_mw:g} MW "
                    f"{symbol} ({result.reason})"
                )
                raise result.to_error()

            order = Order(
                id=None,
                organization_id=organization_id,
                user_id=caller.user_id,
                product_symbol=symbol,
                side=side,
                quantity_mw=quantity_mw,
                quantity_percent=quantity_percent,
                limit_price=float(draft.limit_price),
                status=OrderStatus.SUBMITTED,
                valid_until=valid_until,
                created_at=now,
            )
            uow.orders.add(order)

            details = {
                "instrument": symbol,
                "side": side.value,
                "quantity_type": QuantityType(draft.quantity_type).value,
                "quantity": draft.quantity,
                "quantity_mw": quantity_mw,
                "limit_price": order.limit_price,
                "valid_until": valid_until.isoformat(),
            }
            uow.audit.record(AuditRecord(
                user_id=caller.user_id,
                action="ORDER_CREATE",
                resource=_resource(order.id),
                details=details,
                timestamp=now,
            ))
            uow.notifications.dispatch(
                LifecycleEvent(
                    order_id=order.id,
                    type=OrderEventType.ORDER_CREATED,
                    actor_user_id=caller.user_id,
                    payload=details,
                    timestamp=now,
                ),
                order,
            )

        logger.info(
            f"Order {order.id} accepted: {organization_id} {side.value} {quantity_mw:g} MW "
            f"{symbol} @ {order.limit_price:g}"
        )
        return order

    # ------------------------------------------------------------------
    # Fill
    # ------------------------------------------------------------------

    def _load_locked(
        self,
        uow: UnitOfWork,
        order_id: int,
        lock_timeout: Optional[float],
        caller: Optional[Caller] = None,
    ) -> Order:
        """Load an order, lock its scope, then re-read it under the lock."""
        order = uow.orders.get(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found", order_id=order_id)

        if caller is not None and not caller.role.is_desk and order.organization_id != caller.organization_id:
            raise ForbiddenError(f"Order {order_id} belongs to another organization", order_id=order_id)

        self.coordinator.acquire(
            uow,
            order.organization_id,
            profile_for_symbol(order.product_symbol),
            lock_timeout,
        )

        # State may have changed while waiting for the lock
        return uow.orders.get(order_id)

    def fill(
        self,
        order_id: int,
        price: float,
        quantity_mw: float,
        caller: Caller,
        lock_timeout: Optional[float] = None,
    ) -> FillResult:
        """
        Record an execution against an order.

        Args:
            order_id: Order to fill
            price: Execution price (> 0)
            quantity_mw: Executed volume (> 0, at most the remaining volume)
            caller: Desk user executing the fill
            lock_timeout: Override for the scope lock wait (seconds)

        Returns:
            FillResult with the updated order and the new fill

        Raises:
            ValidationError: Non-positive inputs or overfill
            ForbiddenError: Caller is not a desk user
            NotFoundError: Unknown order
            ConflictError: Order status does not allow filling
        """
        price = _require_finite("price", price)
        quantity_mw = _require_finite("quantity_mw", quantity_mw)
        if price <= 0:
            raise ValidationError("price must be > 0", field="price")
        if quantity_mw <= 0:
            raise ValidationError("quantity_mw must be > 0", field="quantity_mw")
        if not caller.role.is_desk:
            raise ForbiddenError("Only trading desk users may fill orders")

        eps = self.config.fill_epsilon_mw
        now = self.clock()

        with self.unit_of_work() as uow:
            order = self._load_locked(uow, order_id, lock_timeout)

            if order.status not in FILLABLE_STATUSES:
                raise ConflictError(
                    f"Order status {order.status.value} does not allow filling",
                    order_id=order_id,
                    status=order.status.value,
                )

            remaining = order.remaining_mw
            if quantity_mw > remaining + eps:
                raise ValidationError(
                    f"Fill quantity ({quantity_mw:g}) exceeds remaining order quantity ({remaining:g})",
                    field="quantity_mw",
                    remaining=remaining,
                )

            old_filled = order.filled_mw
            is_fully_filled = quantity_mw > remaining - eps
            # Fills never sum past the order quantity
            executed_mw = min(quantity_mw, remaining)

            fill = Fill(
                id=None,
                order_id=order_id,
                executed_mw=executed_mw,
                price=price,
                executed_by_user_id=caller.user_id,
                timestamp=now,
            )
            uow.fills.add(fill)

            old_avg = order.average_fill_price or 0.0
            new_filled = old_filled + executed_mw

            order.average_fill_price = (old_filled * old_avg + executed_mw * price) / new_filled
            order.filled_mw = order.quantity_mw if is_fully_filled else new_filled
            order.status = OrderStatus.FILLED if is_fully_filled else OrderStatus.PARTIALLY_FILLED
            uow.orders.update(order)

            details = {
                "fill_id": fill.id,
                "volume": executed_mw,
                "price": price,
                "status": order.status.value,
            }
            uow.audit.record(AuditRecord(
                user_id=caller.user_id,
                action="ORDER_FILL",
                resource=_resource(order_id),
                details=details,
                timestamp=now,
            ))
            uow.notifications.dispatch(
                LifecycleEvent(
                    order_id=order_id,
                    type=OrderEventType.ORDER_FILLED if is_fully_filled else OrderEventType.ORDER_PARTIALLY_FILLED,
                    actor_user_id=caller.user_id,
                    payload=details,
                    timestamp=now,
                ),
                order,
            )

        logger.info(
            f"Order {order_id} filled {executed_mw:g} MW @ {price:g} -> {order.status.value} "
            f"({order.filled_mw:g}/{order.quantity_mw:g} MW, avg {order.average_fill_price:.4f})"
        )
        return FillResult(order=order, fill=fill)

    # ------------------------------------------------------------------
    # Cancel / reject
    # ------------------------------------------------------------------

    def cancel(
        self,
        order_id: int,
        caller: Caller,
        lock_timeout: Optional[float] = None,
    ) -> Order:
        """
        Cancel an order.

        Clients may only cancel orders of their own organization; desk
        users may cancel any order.

        Raises:
            NotFoundError: Unknown order
            ForbiddenError: Order belongs to another organization
            ConflictError: Order is FILLED, CANCELLED, REJECTED or EXPIRED
        """
        now = self.clock()

        with self.unit_of_work() as uow:
            order = self._load_locked(uow, order_id, lock_timeout, caller=caller)

            if order.status in NON_CANCELLABLE_STATUSES:
                raise ConflictError(
                    f"Cannot cancel order with status {order.status.value}",
                    order_id=order_id,
                    status=order.status.value,
                )

            old_status = order.status
            order.status = OrderStatus.CANCELLED
            uow.orders.update(order)

            uow.audit.record(AuditRecord(
                user_id=caller.user_id,
                action="ORDER_CANCEL",
                resource=_resource(order_id),
                details={"old_status": old_status.value, "role": caller.role.value},
                timestamp=now,
            ))
            event_type = (
                OrderEventType.ORDER_CANCELLED_BY_TRADER
                if caller.role.is_desk
                else OrderEventType.ORDER_CANCELLED_BY_CLIENT
            )
            uow.notifications.dispatch(
                LifecycleEvent(
                    order_id=order_id,
                    type=event_type,
                    actor_user_id=caller.user_id,
                    payload={"old_status": old_status.value},
                    timestamp=now,
                ),
                order,
            )

        logger.info(f"Order {order_id} cancelled by {caller.user_id} (was {old_status.value})")
        return order

    def reject(
        self,
        order_id: int,
        caller: Caller,
        reason: Optional[str] = None,
        lock_timeout: Optional[float] = None,
    ) -> Order:
        """
        Reject an order from the trading desk.

        An order that already has fills keeps them: it is closed as FILLED
        with its quantity reduced to the filled volume. An unfilled order
        becomes REJECTED.

        Raises:
            ForbiddenError: Caller is not a desk user
            NotFoundError: Unknown order
            ConflictError: Order status does not allow rejection
        """
        if not caller.role.is_desk:
            raise ForbiddenError("Only trading desk users may reject orders")

        now = self.clock()

        with self.unit_of_work() as uow:
            order = self._load_locked(uow, order_id, lock_timeout)

            if order.status not in REJECTABLE_STATUSES:
                raise ConflictError(
                    f"Cannot reject order in status {order.status.value}",
                    order_id=order_id,
                    status=order.status.value,
                )

            old_status = order.status
            if order.filled_mw > 0:
                order.quantity_mw = order.filled_mw
                order.status = OrderStatus.FILLED
            else:
                order.status = OrderStatus.REJECTED
            uow.orders.update(order)

            uow.audit.record(AuditRecord(
                user_id=caller.user_id,
                action="ORDER_REJECT",
                resource=_resource(order_id),
                details={"reason": reason, "old_status": old_status.value, "new_status": order.status.value},
                timestamp=now,
            ))
            uow.notifications.dispatch(
                LifecycleEvent(
                    order_id=order_id,
                    type=OrderEventType.ORDER_REJECTED,
                    actor_user_id=caller.user_id,
                    payload={"reason": reason},
                    timestamp=now,
                ),
                order,
            )

        logger.info(f"Order {order_id} rejected by {caller.user_id} -> {order.status.value} ({reason})")
        return order

    # ------------------------------------------------------------------
    # Expiry
    # ------------------------------------------------------------------

    def _expire_in_scope(
        self,
        uow: UnitOfWork,
        organization_id: str,
        profile: Profile,
        now: datetime,
    ) -> int:
        """Expire overdue unfilled orders of one scope. Caller holds the scope lock."""
        expired = 0
        for order in uow.orders.list_overdue(organization_id, now):
            if profile_for_symbol(order.product_symbol) != profile:
                continue

            old_status = order.status
            order.status = OrderStatus.EXPIRED
            uow.orders.update(order)

            uow.audit.record(AuditRecord(
                user_id=order.user_id,
                action="ORDER_EXPIRE",
                resource=_resource(order.id),
                details={"old_status": old_status.value, "valid_until": order.valid_until.isoformat()},
                timestamp=now,
            ))
            uow.notifications.dispatch(
                LifecycleEvent(
                    order_id=order.id,
                    type=OrderEventType.ORDER_EXPIRED,
                    actor_user_id=order.user_id,
                    payload={"reason": "Time limit reached"},
                    timestamp=now,
                ),
                order,
            )
            expired += 1

        if expired:
            logger.info(f"Expired {expired} overdue order(s) for {organization_id}/{profile.value}")
        return expired

    def expire_overdue_orders(
        self,
        organization_id: str,
        profile: Optional[Profile] = None,
        lock_timeout: Optional[float] = None,
    ) -> int:
        """
        Mark overdue unfilled orders EXPIRED, releasing their reserved capacity.

        Args:
            organization_id: Organization to sweep
            profile: Only this profile (default: every profile, one transaction each)

        Returns:
            Number of orders expired
        """
        profiles: List[Profile] = [Profile(profile)] if profile else list(Profile)
        total = 0
        for p in profiles:
            with self.unit_of_work() as uow:
                self.coordinator.acquire(uow, organization_id, p, lock_timeout)
                total += self._expire_in_scope(uow, organization_id, p, self.clock())
        return total


def create_lifecycle_manager(state_manager, config: Optional[EngineConfig] = None) -> OrderLifecycleManager:
    """
    Wire a lifecycle manager to a StateManager.

    The lock backend follows ``config.lock_backend``: PostgreSQL databases
    get advisory locks, everything else in-process locks.
    """
    config = config or EngineConfig()
    backend_name = config.resolved_lock_backend(state_manager.dialect)

    backend = PostgresAdvisoryLockBackend() if backend_name == "postgres" else InProcessLockBackend()
    logger.info(f"Using {backend_name} lock backend")
    coordinator = ConcurrencyCoordinator(backend=backend, default_timeout=config.lock_timeout_seconds)
    return OrderLifecycleManager(state_manager.transaction, coordinator, config=config)
