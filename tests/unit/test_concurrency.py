"""Concurrent submissions against one (organization, profile) scope."""

from collections import Counter
from concurrent.futures import ThreadPoolExecutor

import pytest

from execution.orders.errors import InsufficientCoverageError, LimitExceededError
from execution.orders.models import OrderStatus, Side
from execution.risk.exposure_ledger import build_exposure_ledger
from tests.helpers import ORG, make_draft


def submit_all(lifecycle, caller, drafts, workers=8):
    """Submit drafts from a thread pool; returns (accepted orders, rejection errors)."""

    def attempt(draft):
        try:
            return lifecycle.submit(draft, caller)
        except (LimitExceededError, InsufficientCoverageError) as e:
            return e

    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(attempt, drafts))

    accepted = [r for r in results if not isinstance(r, Exception)]
    rejected = [r for r in results if isinstance(r, Exception)]
    return accepted, rejected


class TestConcurrentSubmit:
    """Limit and coverage rules hold under concurrent submission."""

    def test_buys_never_overflow_limit(self, lifecycle, state_manager, contract, client_caller):
        """Twelve 3 MW buys against a 10 MW limit: exactly three fit."""
        accepted, rejected = submit_all(lifecycle, client_caller, [make_draft(Side.BUY, 3) for _ in range(12)])

        assert len(accepted) == 3
        assert len(rejected) == 9
        assert all(isinstance(e, LimitExceededError) for e in rejected)

        ledger = build_exposure_ledger(state_manager.get_orders(ORG, live_only=True))
        for _, entry in ledger.items():
            assert entry.used_for_limit <= 10

    def test_sells_never_exceed_holdings(self, lifecycle, state_manager, contract, client_caller, trader_caller):
        """Ten 1.5 MW sells against 10 MW held: exactly six fit."""
        held = lifecycle.submit(make_draft(Side.BUY, 10), client_caller)
        lifecycle.fill(held.id, 100.0, 10, trader_caller)

        accepted, rejected = submit_all(lifecycle, client_caller, [make_draft(Side.SELL, 1.5) for _ in range(10)])

        assert len(accepted) == 6
        assert all(isinstance(e, InsufficientCoverageError) for e in rejected)

        ledger = build_exposure_ledger(state_manager.get_orders(ORG, live_only=True))
        for _, entry in ledger.items():
            assert entry.available_to_sell >= 0

    @pytest.mark.parametrize("workers", [2, 16])
    def test_mixed_sizes_accept_in_lock_order(self, lifecycle, state_manager, contract, client_caller, workers):
        """Each decision sees every earlier acceptance: the accepted total never exceeds the limit."""
        sizes = [4, 1, 3, 2, 5, 1, 2, 4, 1, 3]

        accepted, rejected = submit_all(lifecycle, client_caller, [make_draft(Side.BUY, s) for s in sizes], workers)

        total = sum(o.quantity_mw for o in accepted)
        assert total <= 10
        assert all(o.status == OrderStatus.SUBMITTED for o in accepted)

        # A rejected size did not fit when it was decided, so it cannot fit the final headroom either
        rejected_sizes = Counter(sizes) - Counter(int(o.quantity_mw) for o in accepted)
        assert sum(rejected_sizes.values()) == len(rejected)
        assert all(size > 10 - total for size in rejected_sizes)
