"""Order domain: records, errors, lifecycle events and the lifecycle manager.

The lifecycle manager lives in ``execution.orders.lifecycle`` and is not
re-exported here so that the persistence layer can import the records
without pulling in the engine.
"""

from execution.orders.errors import (
    BusinessRuleViolation,
    ConflictError,
    ForbiddenError,
    InfrastructureError,
    InsufficientCoverageError,
    InvalidProductPeriodError,
    LimitExceededError,
    LockBusyError,
    NoActiveContractError,
    NotFoundError,
    OrderEngineError,
    ProductNotPermittedError,
    ValidationError,
)
from execution.orders.models import (
    AuditRecord,
    Caller,
    CallerRole,
    Contract,
    Fill,
    Order,
    OrderDraft,
    OrderStatus,
    PeriodKind,
    Product,
    Profile,
    QuantityType,
    Side,
)

__all__ = [
    "BusinessRuleViolation",
    "ConflictError",
    "ForbiddenError",
    "InfrastructureError",
    "InsufficientCoverageError",
    "InvalidProductPeriodError",
    "LimitExceededError",
    "LockBusyError",
    "NoActiveContractError",
    "NotFoundError",
    "OrderEngineError",
    "ProductNotPermittedError",
    "ValidationError",
    "AuditRecord",
    "Caller",
    "CallerRole",
    "Contract",
    "Fill",
    "Order",
    "OrderDraft",
    "OrderStatus",
    "PeriodKind",
    "Product",
    "Profile",
    "QuantityType",
    "Side",
]
