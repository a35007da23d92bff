"""Order engine error taxonomy.

Every error carries a machine-readable ``kind`` and a human-readable
message, and knows whether a caller may retry it:

- ValidationError: malformed input, never retryable
- BusinessRuleViolation: limit/coverage/product/contract rules, never retryable
- ForbiddenError: caller lacks the role or does not own the order
- NotFoundError: missing order
- ConflictError: transition not allowed from the current state;
  LockBusyError (scope lock wait timed out) is the retryable variant
- InfrastructureError: store or lock backend unavailable, retryable
"""

from typing import Any, Dict, Optional


class OrderEngineError(Exception):
    """Base class for all engine errors."""

    kind: str = "OrderEngineError"
    retryable: bool = False

    def __init__(self, message: str, **fields: Any):
        super().__init__(message)
        self.message = message
        self.fields = {k: v for k, v in fields.items() if v is not None}

    def to_dict(self) -> Dict[str, Any]:
        """Structured form returned to callers."""
        return {"kind": self.kind, "message": self.message, **self.fields}


class ValidationError(OrderEngineError):
    kind = "ValidationError"


class BusinessRuleViolation(OrderEngineError):
    kind = "BusinessRuleViolation"


class LimitExceededError(BusinessRuleViolation):
    kind = "LimitExceeded"

    def __init__(self, month: str, limit: float, used: float):
        super().__init__(
            f"Limit exceeded in {month} (limit: {limit:g} MW, usage: {used:.1f} MW)",
            month=month,
            limit=limit,
            used=used,
        )


class InsufficientCoverageError(BusinessRuleViolation):
    kind = "InsufficientCoverage"

    def __init__(self, month: str, available: float, requested: float):
        super().__init__(
            f"Insufficient coverage to sell in {month} "
            f"(available: {available:.1f} MW, requested: {requested:g} MW)",
            month=month,
            available=available,
            requested=requested,
        )


class InvalidProductPeriodError(BusinessRuleViolation):
    kind = "InvalidProductPeriod"

    def __init__(self, symbol: str):
        super().__init__(f"Invalid product period: {symbol}", symbol=symbol)


class NoActiveContractError(BusinessRuleViolation):
    kind = "NoActiveContract"


class ProductNotPermittedError(BusinessRuleViolation):
    kind = "ProductNotPermitted"

    def __init__(self, symbol: str):
        super().__init__(f"Product {symbol} is not permitted by any active contract", symbol=symbol)


class ForbiddenError(OrderEngineError):
    kind = "Forbidden"


class NotFoundError(OrderEngineError):
    kind = "NotFound"


class ConflictError(OrderEngineError):
    kind = "Conflict"


class LockBusyError(ConflictError):
    kind = "LockBusy"
    retryable = True

    def __init__(self, scope: str, timeout: Optional[float] = None):
        super().__init__(
            f"Scope {scope} is busy, retry later",
            scope=scope,
            timeout=timeout,
        )


class InfrastructureError(OrderEngineError):
    kind = "InfrastructureError"
    retryable = True
