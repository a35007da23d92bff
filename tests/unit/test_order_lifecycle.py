"""Unit tests for the order lifecycle manager (SQLite-backed)."""

from datetime import datetime, timedelta, timezone

import pytest

from config.engine import EngineConfig
from execution.orders.errors import (
    ConflictError,
    ForbiddenError,
    InsufficientCoverageError,
    InvalidProductPeriodError,
    LimitExceededError,
    NoActiveContractError,
    NotFoundError,
    ProductNotPermittedError,
    ValidationError,
)
from execution.orders.events import DESK_AUDIENCE, OrderEventType
from execution.orders.lifecycle import OrderLifecycleManager, create_lifecycle_manager
from execution.orders.models import Caller, OrderStatus, Profile, QuantityType, Side
from execution.locking.coordinator import InProcessLockBackend
from execution.persistence.state_manager import to_millis
from tests.helpers import NOW, ORG, OTHER_ORG, make_contract, make_draft


def filled_buy(lifecycle, client_caller, trader_caller, qty, symbol="BASE_Y-26", price=100.0):
    """Submit a buy and fill it completely."""
    order = lifecycle.submit(make_draft(Side.BUY, qty, symbol), client_caller)
    return lifecycle.fill(order.id, price, qty, trader_caller).order


class TestSubmit:
    """Tests for OrderLifecycleManager.submit."""

    def test_accepts_order(self, lifecycle, state_manager, contract, client_caller):
        order = lifecycle.submit(make_draft(Side.BUY, 6), client_caller)

        assert order.id is not None
        assert order.status == OrderStatus.SUBMITTED
        assert order.quantity_mw == 6
        assert order.filled_mw == 0
        assert order.organization_id == ORG
        assert order.valid_until == NOW + timedelta(hours=24)

        stored = state_manager.get_order(order.id)
        assert stored.status == OrderStatus.SUBMITTED
        assert stored.limit_price == 95.5

    def test_limit_exceeded_scenario(self, lifecycle, state_manager, contract, client_caller):
        lifecycle.submit(make_draft(Side.BUY, 6), client_caller)

        with pytest.raises(LimitExceededError) as exc_info:
            lifecycle.submit(make_draft(Side.BUY, 5), client_caller)

        assert exc_info.value.fields["month"] == "2026-01"
        assert exc_info.value.fields["used"] == 11
        assert len(state_manager.get_orders(ORG)) == 1

    def test_coverage_scenario(self, lifecycle, state_manager, contract, client_caller, trader_caller):
        filled_buy(lifecycle, client_caller, trader_caller, 10)

        sell = lifecycle.submit(make_draft(Side.SELL, 4), client_caller)
        assert sell.status == OrderStatus.SUBMITTED

        with pytest.raises(InsufficientCoverageError) as exc_info:
            lifecycle.submit(make_draft(Side.SELL, 7), client_caller)

        assert exc_info.value.fields["available"] == 6
        assert exc_info.value.fields["requested"] == 7

    def test_rejection_writes_nothing(self, lifecycle, state_manager, contract, client_caller):
        with pytest.raises(LimitExceededError):
            lifecycle.submit(make_draft(Side.BUY, 11), client_caller)

        assert state_manager.get_orders(ORG) == []
        assert state_manager.get_audit_log() == []
        assert state_manager.get_notifications(audience=DESK_AUDIENCE) == []

    def test_no_contract(self, lifecycle, client_caller):
        with pytest.raises(NoActiveContractError):
            lifecycle.submit(make_draft(Side.BUY, 1), client_caller)

    def test_inactive_contract_ignored(self, lifecycle, state_manager, client_caller):
        state_manager.save_contract(make_contract(is_active=False))

        with pytest.raises(NoActiveContractError):
            lifecycle.submit(make_draft(Side.BUY, 1), client_caller)

    def test_contract_not_yet_in_force(self, lifecycle, state_manager, client_caller):
        state_manager.save_contract(make_contract(valid_from=datetime(2026, 6, 1, tzinfo=timezone.utc)))

        with pytest.raises(NoActiveContractError):
            lifecycle.submit(make_draft(Side.BUY, 1), client_caller)

    def test_contract_must_cover_validity(self, lifecycle, state_manager, client_caller):
        state_manager.save_contract(make_contract(valid_to=NOW + timedelta(hours=1)))

        with pytest.raises(NoActiveContractError, match="covers the order validity"):
            lifecycle.submit(make_draft(Side.BUY, 1), client_caller)

    def test_product_not_permitted(self, lifecycle, contract, client_caller):
        with pytest.raises(ProductNotPermittedError):
            lifecycle.submit(make_draft(Side.BUY, 1, symbol="BASE_Q-2-26"), client_caller)

    def test_invalid_product_period(self, lifecycle, state_manager, client_caller):
        state_manager.save_contract(make_contract(allowed_products=["BASE_X-26"]))

        with pytest.raises(InvalidProductPeriodError):
            lifecycle.submit(make_draft(Side.BUY, 1, symbol="BASE_X-26"), client_caller)

    def test_limits_stack_across_contracts(self, lifecycle, state_manager, contract, client_caller):
        state_manager.save_contract(make_contract(yearly_limits={"2026": 5}))

        order = lifecycle.submit(make_draft(Side.BUY, 15), client_caller)

        assert order.quantity_mw == 15

    def test_other_organization_exposure_ignored(self, lifecycle, state_manager, contract, client_caller):
        state_manager.save_contract(make_contract(organization_id=OTHER_ORG))
        other = Caller(user_id="u-other", organization_id=OTHER_ORG)
        lifecycle.submit(make_draft(Side.BUY, 10), other)

        order = lifecycle.submit(make_draft(Side.BUY, 10), client_caller)

        assert order.status == OrderStatus.SUBMITTED

    def test_organization_ledger_spans_profiles(self, lifecycle, contract, client_caller):
        lifecycle.submit(make_draft(Side.BUY, 8, symbol="PEAK_Y-26"), client_caller)

        with pytest.raises(LimitExceededError):
            lifecycle.submit(make_draft(Side.BUY, 3, symbol="BASE_Y-26"), client_caller)

    def test_profile_ledger_scope(self, state_manager, coordinator, clock, contract, client_caller):
        config = EngineConfig(database_url="sqlite://", ledger_scope="profile")
        lifecycle = OrderLifecycleManager(state_manager.transaction, coordinator, config=config, clock=clock)
        lifecycle.submit(make_draft(Side.BUY, 8, symbol="PEAK_Y-26"), client_caller)

        order = lifecycle.submit(make_draft(Side.BUY, 3, symbol="BASE_Y-26"), client_caller)

        assert order.status == OrderStatus.SUBMITTED

    def test_percent_quantity(self, lifecycle, contract, client_caller):
        order = lifecycle.submit(make_draft(Side.BUY, 25, quantity_type=QuantityType.PERCENT), client_caller)

        assert order.quantity_mw == pytest.approx(2.5)
        assert order.quantity_percent == 25

    def test_percent_without_limit(self, lifecycle, contract, client_caller):
        with pytest.raises(ValidationError, match="yearly limit"):
            lifecycle.submit(
                make_draft(Side.BUY, 10, symbol="BASE_Y-27", quantity_type=QuantityType.PERCENT),
                client_caller,
            )

    @pytest.mark.parametrize(
        "draft_kwargs",
        [
            {"quantity": 0},
            {"quantity": -1},
            {"quantity": float("nan")},
            {"quantity": 101, "quantity_type": QuantityType.PERCENT},
            {"limit_price": 0},
            {"symbol": " "},
            {"valid_until": NOW - timedelta(minutes=1)},
        ],
    )
    def test_invalid_draft(self, lifecycle, contract, client_caller, draft_kwargs):
        with pytest.raises(ValidationError):
            lifecycle.submit(make_draft(**draft_kwargs), client_caller)

    def test_naive_valid_until_rejected(self, lifecycle, contract, client_caller):
        with pytest.raises(ValidationError, match="timezone-aware"):
            lifecycle.submit(make_draft(valid_until=datetime(2026, 3, 5)), client_caller)

    def test_caller_without_organization(self, lifecycle, contract, trader_caller):
        with pytest.raises(ForbiddenError):
            lifecycle.submit(make_draft(), trader_caller)

    def test_audit_and_desk_notification(self, lifecycle, state_manager, contract, client_caller):
        order = lifecycle.submit(make_draft(Side.BUY, 2), client_caller)

        audit = state_manager.get_audit_log(f"Order:{order.id}")
        assert [a["action"] for a in audit] == ["ORDER_CREATE"]
        assert audit[0]["details"]["quantity_mw"] == 2

        events = state_manager.get_order_events(order.id)
        assert [e.type for e in events] == [OrderEventType.ORDER_CREATED]

        notes = state_manager.get_notifications(audience=DESK_AUDIENCE)
        assert len(notes) == 1
        assert notes[0]["href"] == f"/admin/trade-desk?orderId={order.id}"
        assert notes[0]["dedupe_key"] == f"ORDER_CREATED-{order.id}-{events[0].id}"


class TestFill:
    """Tests for OrderLifecycleManager.fill."""

    def test_partial_then_full_fill(self, lifecycle, state_manager, contract, client_caller, trader_caller):
        order = lifecycle.submit(make_draft(Side.BUY, 10), client_caller)

        first = lifecycle.fill(order.id, 100.0, 3, trader_caller)
        assert first.order.status == OrderStatus.PARTIALLY_FILLED
        assert first.order.filled_mw == 3
        assert first.order.average_fill_price == pytest.approx(100.0)
        assert first.fill.id is not None

        second = lifecycle.fill(order.id, 110.0, 7, trader_caller)
        assert second.order.status == OrderStatus.FILLED
        assert second.order.filled_mw == 10
        assert second.order.average_fill_price == pytest.approx(107.0)

        stored = state_manager.get_order(order.id)
        assert stored.status == OrderStatus.FILLED
        assert [f.executed_mw for f in state_manager.get_fills(order.id)] == [3, 7]

    def test_fill_within_tolerance_completes(self, lifecycle, contract, client_caller, trader_caller):
        order = lifecycle.submit(make_draft(Side.BUY, 5), client_caller)

        result = lifecycle.fill(order.id, 90.0, 5.00005, trader_caller)

        assert result.order.status == OrderStatus.FILLED
        assert result.order.filled_mw == 5

    def test_fill_within_tolerance_clamps_executed_volume(
        self, lifecycle, state_manager, contract, client_caller, trader_caller
    ):
        order = lifecycle.submit(make_draft(Side.BUY, 5), client_caller)
        lifecycle.fill(order.id, 90.0, 2, trader_caller)

        result = lifecycle.fill(order.id, 100.0, 3.00005, trader_caller)

        assert result.fill.executed_mw == 3
        assert result.order.average_fill_price == pytest.approx(96.0)
        fills = state_manager.get_fills(order.id)
        assert sum(f.executed_mw for f in fills) == 5

    def test_overfill_rejected(self, lifecycle, state_manager, contract, client_caller, trader_caller):
        order = lifecycle.submit(make_draft(Side.BUY, 5), client_caller)
        lifecycle.fill(order.id, 90.0, 2, trader_caller)

        with pytest.raises(ValidationError, match="exceeds remaining"):
            lifecycle.fill(order.id, 90.0, 3.01, trader_caller)

        assert state_manager.get_order(order.id).filled_mw == 2
        assert len(state_manager.get_fills(order.id)) == 1

    def test_fill_requires_desk_role(self, lifecycle, contract, client_caller):
        order = lifecycle.submit(make_draft(Side.BUY, 5), client_caller)

        with pytest.raises(ForbiddenError):
            lifecycle.fill(order.id, 90.0, 1, client_caller)

    @pytest.mark.parametrize("price,qty", [(0, 1), (-5, 1), (90, 0), (90, -1)])
    def test_fill_inputs_must_be_positive(self, lifecycle, trader_caller, price, qty):
        with pytest.raises(ValidationError):
            lifecycle.fill(1, price, qty, trader_caller)

    def test_fill_unknown_order(self, lifecycle, trader_caller):
        with pytest.raises(NotFoundError):
            lifecycle.fill(999, 90.0, 1, trader_caller)

    def test_fill_cancelled_order(self, lifecycle, contract, client_caller, trader_caller):
        order = lifecycle.submit(make_draft(Side.BUY, 5), client_caller)
        lifecycle.cancel(order.id, client_caller)

        with pytest.raises(ConflictError):
            lifecycle.fill(order.id, 90.0, 1, trader_caller)

    def test_fill_notifies_creator(self, lifecycle, state_manager, contract, client_caller, trader_caller):
        order = lifecycle.submit(make_draft(Side.BUY, 5), client_caller)
        lifecycle.fill(order.id, 90.0, 2, trader_caller)
        lifecycle.fill(order.id, 90.0, 3, trader_caller)

        types = [e.type for e in state_manager.get_order_events(order.id)]
        assert types == [
            OrderEventType.ORDER_CREATED,
            OrderEventType.ORDER_PARTIALLY_FILLED,
            OrderEventType.ORDER_FILLED,
        ]
        notes = state_manager.get_notifications(recipient_user_id="u-client")
        assert [n["title"] for n in notes] == ["Order filled", "Order partially filled"]
        assert all(n["href"] == f"/trading?orderId={order.id}" for n in notes)

        actions = [a["action"] for a in state_manager.get_audit_log(f"Order:{order.id}")]
        assert actions == ["ORDER_CREATE", "ORDER_FILL", "ORDER_FILL"]

    def test_filled_buy_counts_against_limit(self, lifecycle, contract, client_caller, trader_caller):
        """A filled buy still counts against the limit."""
        filled_buy(lifecycle, client_caller, trader_caller, 10)

        with pytest.raises(LimitExceededError):
            lifecycle.submit(make_draft(Side.BUY, 1), client_caller)


class TestCancel:
    """Tests for OrderLifecycleManager.cancel."""

    def test_cancel_releases_capacity(self, lifecycle, state_manager, contract, client_caller):
        order = lifecycle.submit(make_draft(Side.BUY, 10), client_caller)

        cancelled = lifecycle.cancel(order.id, client_caller)

        assert cancelled.status == OrderStatus.CANCELLED
        assert lifecycle.submit(make_draft(Side.BUY, 10), client_caller).status == OrderStatus.SUBMITTED

    def test_cancel_filled_order_conflicts(self, lifecycle, state_manager, contract, client_caller, trader_caller):
        order = filled_buy(lifecycle, client_caller, trader_caller, 4)

        with pytest.raises(ConflictError):
            lifecycle.cancel(order.id, client_caller)

        stored = state_manager.get_order(order.id)
        assert stored.status == OrderStatus.FILLED
        assert stored.filled_mw == 4

    def test_cancel_twice_conflicts(self, lifecycle, contract, client_caller):
        order = lifecycle.submit(make_draft(Side.BUY, 1), client_caller)
        lifecycle.cancel(order.id, client_caller)

        with pytest.raises(ConflictError):
            lifecycle.cancel(order.id, client_caller)

    def test_client_cannot_cancel_other_organization(self, lifecycle, contract, client_caller):
        order = lifecycle.submit(make_draft(Side.BUY, 1), client_caller)
        stranger = Caller(user_id="u-other", organization_id=OTHER_ORG)

        with pytest.raises(ForbiddenError):
            lifecycle.cancel(order.id, stranger)

    def test_cancel_unknown_order(self, lifecycle, client_caller):
        with pytest.raises(NotFoundError):
            lifecycle.cancel(12345, client_caller)

    def test_event_depends_on_role(self, lifecycle, state_manager, contract, client_caller, trader_caller):
        by_client = lifecycle.submit(make_draft(Side.BUY, 1), client_caller)
        by_trader = lifecycle.submit(make_draft(Side.BUY, 1), client_caller)

        lifecycle.cancel(by_client.id, client_caller)
        lifecycle.cancel(by_trader.id, trader_caller)

        assert state_manager.get_order_events(by_client.id)[-1].type == OrderEventType.ORDER_CANCELLED_BY_CLIENT
        assert state_manager.get_order_events(by_trader.id)[-1].type == OrderEventType.ORDER_CANCELLED_BY_TRADER

        desk_titles = [n["title"] for n in state_manager.get_notifications(audience=DESK_AUDIENCE)]
        assert "Order cancelled" in desk_titles
        client_titles = [n["title"] for n in state_manager.get_notifications(recipient_user_id="u-client")]
        assert client_titles == ["Order cancelled"]


class TestReject:
    """Tests for OrderLifecycleManager.reject."""

    def test_reject_unfilled(self, lifecycle, state_manager, contract, client_caller, trader_caller):
        order = lifecycle.submit(make_draft(Side.BUY, 5), client_caller)

        rejected = lifecycle.reject(order.id, trader_caller, reason="Price out of market")

        assert rejected.status == OrderStatus.REJECTED
        audit = state_manager.get_audit_log(f"Order:{order.id}")[-1]
        assert audit["action"] == "ORDER_REJECT"
        assert audit["details"]["reason"] == "Price out of market"
        note = state_manager.get_notifications(recipient_user_id="u-client")[0]
        assert "Price out of market" in note["body"]

    def test_reject_partially_filled_keeps_fills(self, lifecycle, state_manager, contract, client_caller, trader_caller):
        order = lifecycle.submit(make_draft(Side.BUY, 10), client_caller)
        lifecycle.fill(order.id, 100.0, 4, trader_caller)

        closed = lifecycle.reject(order.id, trader_caller)

        assert closed.status == OrderStatus.FILLED
        assert closed.quantity_mw == 4
        assert closed.filled_mw == 4
        # 6 MW of capacity is free again
        assert lifecycle.submit(make_draft(Side.BUY, 6), client_caller).status == OrderStatus.SUBMITTED

    def test_reject_requires_desk_role(self, lifecycle, contract, client_caller):
        order = lifecycle.submit(make_draft(Side.BUY, 1), client_caller)

        with pytest.raises(ForbiddenError):
            lifecycle.reject(order.id, client_caller)

    def test_reject_filled_conflicts(self, lifecycle, contract, client_caller, trader_caller):
        order = filled_buy(lifecycle, client_caller, trader_caller, 2)

        with pytest.raises(ConflictError):
            lifecycle.reject(order.id, trader_caller)


class TestExpiry:
    """Tests for overdue order expiry."""

    def test_expire_overdue(self, lifecycle, state_manager, contract, client_caller, clock):
        order = lifecycle.submit(make_draft(Side.BUY, 10, valid_until=NOW + timedelta(hours=1)), client_caller)
        clock.advance(hours=2)

        expired = lifecycle.expire_overdue_orders(ORG)

        assert expired == 1
        assert state_manager.get_order(order.id).status == OrderStatus.EXPIRED
        assert state_manager.get_order_events(order.id)[-1].type == OrderEventType.ORDER_EXPIRED
        assert state_manager.get_audit_log(f"Order:{order.id}")[-1]["action"] == "ORDER_EXPIRE"

    def test_submit_expires_stale_orders_first(self, lifecycle, state_manager, contract, client_caller, clock):
        stale = lifecycle.submit(make_draft(Side.BUY, 10, valid_until=NOW + timedelta(hours=1)), client_caller)
        clock.advance(hours=2)

        fresh = lifecycle.submit(make_draft(Side.BUY, 10), client_caller)

        assert fresh.status == OrderStatus.SUBMITTED
        assert state_manager.get_order(stale.id).status == OrderStatus.EXPIRED

    def test_partially_filled_not_expired(self, lifecycle, state_manager, contract, client_caller, trader_caller, clock):
        order = lifecycle.submit(make_draft(Side.BUY, 10, valid_until=NOW + timedelta(hours=1)), client_caller)
        lifecycle.fill(order.id, 100.0, 1, trader_caller)
        clock.advance(hours=2)

        assert lifecycle.expire_overdue_orders(ORG) == 0
        assert state_manager.get_order(order.id).status == OrderStatus.PARTIALLY_FILLED

    def test_expire_single_profile(self, lifecycle, state_manager, contract, client_caller, clock):
        base = lifecycle.submit(make_draft(Side.BUY, 1, valid_until=NOW + timedelta(hours=1)), client_caller)
        peak = lifecycle.submit(
            make_draft(Side.BUY, 1, symbol="PEAK_Y-26", valid_until=NOW + timedelta(hours=1)), client_caller
        )
        clock.advance(hours=2)

        assert lifecycle.expire_overdue_orders(ORG, profile=Profile.PEAK) == 1
        assert state_manager.get_order(base.id).status == OrderStatus.SUBMITTED
        assert state_manager.get_order(peak.id).status == OrderStatus.EXPIRED

    def test_not_yet_due(self, lifecycle, contract, client_caller):
        lifecycle.submit(make_draft(Side.BUY, 1), client_caller)

        assert lifecycle.expire_overdue_orders(ORG) == 0


class TestFactory:
    """Tests for create_lifecycle_manager."""

    def test_sqlite_uses_in_process_locks(self, state_manager):
        manager = create_lifecycle_manager(state_manager, EngineConfig(lock_timeout_seconds=2.0))

        assert isinstance(manager.coordinator.backend, InProcessLockBackend)
        assert manager.coordinator.default_timeout == 2.0

    def test_valid_until_stored_in_millis(self, lifecycle, state_manager, contract, client_caller):
        order = lifecycle.submit(make_draft(Side.BUY, 1), client_caller)

        assert to_millis(state_manager.get_order(order.id).valid_until) == to_millis(NOW + timedelta(hours=24))
