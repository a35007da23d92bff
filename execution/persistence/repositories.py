"""Repository interfaces consumed by the order engine.

The lifecycle manager only talks to these protocols. One UnitOfWork
bundles every repository over a single database transaction, so all
reads and writes of an operation commit or roll back together.
"""

from datetime import datetime
from typing import Any, Callable, ContextManager, List, Optional, Protocol

from execution.orders.events import LifecycleEvent
from execution.orders.models import AuditRecord, Contract, Fill, Order, Product


class OrderRepository(Protocol):
    def get(self, order_id: int) -> Optional[Order]: ...

    def list_live(self, organization_id: str) -> List[Order]:
        """Orders of an organization that are not CANCELLED/REJECTED/EXPIRED."""
        ...

    def list_overdue(self, organization_id: str, now: datetime) -> List[Order]:
        """Unfilled SUBMITTED/NEEDS_APPROVAL/DRAFT orders with valid_until < now."""
        ...

    def add(self, order: Order) -> int: ...

    def update(self, order: Order) -> None: ...


class ContractRepository(Protocol):
    def list_active(self, organization_id: str, at: datetime) -> List[Contract]:
        """Active contracts whose validity window contains ``at``."""
        ...


class ProductCatalog(Protocol):
    def get(self, symbol: str) -> Optional[Product]: ...


class FillRepository(Protocol):
    def add(self, fill: Fill) -> int: ...

    def list_for_order(self, order_id: int) -> List[Fill]: ...


class AuditSink(Protocol):
    def record(self, entry: AuditRecord) -> None: ...


class NotificationDispatcher(Protocol):
    def dispatch(self, event: LifecycleEvent, order: Order) -> None:
        """Persist the event and the notifications it produces."""
        ...


class UnitOfWork(Protocol):
    """Repositories bound to one open transaction."""

    orders: OrderRepository
    contracts: ContractRepository
    products: ProductCatalog
    fills: FillRepository
    audit: AuditSink
    notifications: NotificationDispatcher

    @property
    def connection(self) -> Any:
        """Underlying database connection (used by database-backed locks)."""
        ...

    def on_close(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` once the transaction has committed or rolled back."""
        ...


UnitOfWorkFactory = Callable[[], ContextManager[UnitOfWork]]
