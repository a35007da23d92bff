"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from config.engine import EngineConfig  # noqa: E402
from execution.locking.coordinator import ConcurrencyCoordinator, InProcessLockBackend  # noqa: E402
from execution.orders.lifecycle import OrderLifecycleManager  # noqa: E402
from execution.orders.models import Caller, CallerRole  # noqa: E402
from execution.persistence.state_manager import StateManager  # noqa: E402
from tests.helpers import ORG, FakeClock, make_contract  # noqa: E402


@pytest.fixture
def clock():
    """Settable clock starting at 2026-03-01 12:00 UTC."""
    return FakeClock()


@pytest.fixture
def state_manager(tmp_path, monkeypatch):
    """StateManager on a fresh SQLite file."""
    monkeypatch.delenv("DATABASE_URL", raising=False)
    sm = StateManager(db_path=tmp_path / "orders.db")
    yield sm
    sm.close()


@pytest.fixture
def engine_config():
    return EngineConfig(database_url="sqlite://", lock_timeout_seconds=5.0)


@pytest.fixture
def coordinator():
    return ConcurrencyCoordinator(backend=InProcessLockBackend(), default_timeout=5.0)


@pytest.fixture
def lifecycle(state_manager, coordinator, engine_config, clock):
    """Lifecycle manager over SQLite with in-process locks and a fake clock."""
    return OrderLifecycleManager(state_manager.transaction, coordinator, config=engine_config, clock=clock)


@pytest.fixture
def contract(state_manager):
    """Active 2026-2027 contract for ORG with a 10 MW limit in 2026."""
    c = make_contract()
    state_manager.save_contract(c)
    return c


@pytest.fixture
def client_caller():
    return Caller(user_id="u-client", organization_id=ORG, role=CallerRole.CLIENT)


@pytest.fixture
def trader_caller():
    return Caller(user_id="u-trader", organization_id=None, role=CallerRole.TRADER)
