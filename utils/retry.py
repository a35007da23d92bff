"""Retry helper for transient engine failures.

Lock timeouts and store outages are safe to retry because every engine
operation either commits atomically or rolls back completely.
"""

import time
from typing import Callable, Optional, TypeVar

from config.engine import RetryPolicy
from utils.logger import get_logger

logger = get_logger("system", "forwarddesk.retry")

T = TypeVar("T")


def is_retryable(exc: BaseException) -> bool:
    """True if the exception is flagged as transient."""
    return bool(getattr(exc, "retryable", False))


def retry_transient(
    func: Callable[[], T],
    policy: Optional[RetryPolicy] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call ``func`` and retry it with exponential backoff on transient errors.

    Business rule violations and other non-retryable errors propagate
    immediately. After the last attempt the transient error is re-raised.

    Args:
        func: Zero-argument callable performing one full operation
        policy: Backoff settings (defaults to RetryPolicy())
        sleep: Sleep function (injectable for tests)

    Returns:
        Whatever ``func`` returns
    """
    policy = policy or RetryPolicy()
    delay = policy.initial_delay

    for attempt in range(1, policy.max_attempts + 1):
        try:
            return func()
        except Exception as exc:
            if not is_retryable(exc) or attempt >= policy.max_attempts:
                raise

            logger.warning(
                f"Transient failure (attempt {attempt}/{policy.max_attempts}), "
                f"retrying in {delay:.3f}s: {exc}"
            )
            sleep(delay)
            delay = min(delay * policy.backoff_multiplier, policy.max_delay)

    # max_attempts >= 1, so the loop always returns or raises
    raise RuntimeError("retry loop exited without result")
