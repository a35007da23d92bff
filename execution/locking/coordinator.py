"""Per (organization, profile) mutual exclusion for order operations.

Every order operation reads the exposure ledger, validates and writes
inside one transaction. Two concurrent submissions that each pass on their
own could jointly breach a limit, so the whole sequence runs under a named
mutex keyed by (organization, delivery profile):

- same organization and profile: strictly serialized
- different organization or profile: fully parallel

The mutex is acquired inside the operation's transaction and released when
that transaction commits or rolls back. Waiting is bounded; a timeout
raises LockBusyError, which callers may retry.

Two backends are provided:
- InProcessLockBackend: threading locks, for a single process (SQLite, tests)
- PostgresAdvisoryLockBackend: pg_advisory_xact_lock on the transaction's
  connection, for multiple processes sharing one PostgreSQL database
"""

import threading
import time
from dataclasses import dataclass
from typing import Dict, Optional, Protocol, Tuple

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError

from execution.orders.errors import InfrastructureError, LockBusyError
from execution.orders.models import Profile
from execution.persistence.repositories import UnitOfWork
from utils.logger import get_locking_logger

logger = get_locking_logger()

# PostgreSQL SQLSTATE for lock_not_available
_PG_LOCK_NOT_AVAILABLE = "55P03"


def stable_hash32(value: str) -> int:
    """
    Deterministic signed 32-bit hash of a string.

    Polynomial hash (h = h * 31 + c) over UTF-16 code units, wrapped to
    the signed 32-bit range accepted by pg_advisory_xact_lock(int, int).
    Stable across processes and interpreter runs, unlike ``hash()``.
    """
    h = 0
    data = value.encode("utf-16-le")
    for i in range(0, len(data), 2):
        code_unit = data[i] | (data[i + 1] << 8)
        h = (h * 31 + code_unit) & 0xFFFFFFFF
    return h - 0x100000000 if h >= 0x80000000 else h


@dataclass(frozen=True)
class LockKey:
    """Named mutex identifier for one (organization, profile) scope."""

    organization_key: int
    profile_key: int
    label: str

    @property
    def pair(self) -> Tuple[int, int]:
        return self.organization_key, self.profile_key


def lock_key_for(organization_id: str, profile: Profile | str) -> LockKey:
    """Lock key for an organization's delivery profile."""
    profile_name = Profile(profile).value
    return LockKey(
        organization_key=stable_hash32(organization_id),
        profile_key=stable_hash32(profile_name),
        label=f"{organization_id}/{profile_name}",
    )


class LockBackend(Protocol):
    def acquire(self, uow: UnitOfWork, key: LockKey, timeout: float) -> None:
        """Block until ``key`` is held by ``uow``'s transaction or raise LockBusyError."""
        ...


class InProcessLockBackend:
    """
    Named mutexes backed by ``threading.Lock``.

    Locks are created on first use and kept for the lifetime of the
    backend. Release is registered on the unit of work, so the lock is
    freed only after the transaction has finished.
    """

    def __init__(self):
        self._locks: Dict[Tuple[int, int], threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, key: LockKey) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key.pair)
            if lock is None:
                lock = threading.Lock()
                self._locks[key.pair] = lock
            return lock

    def acquire(self, uow: UnitOfWork, key: LockKey, timeout: float) -> None:
        lock = self._lock_for(key)
        if not lock.acquire(timeout=timeout):
            raise LockBusyError(key.label, timeout)
        uow.on_close(lock.release)

    def __repr__(self) -> str:
        return f"InProcessLockBackend(keys={len(self._locks)})"


class PostgresAdvisoryLockBackend:
    """
    Transaction-scoped PostgreSQL advisory locks.

    ``pg_advisory_xact_lock`` is released by PostgreSQL itself at commit or
    rollback. The wait is bounded with ``SET LOCAL lock_timeout``.
    """

    def acquire(self, uow: UnitOfWork, key: LockKey, timeout: float) -> None:
        conn = uow.connection
        timeout_ms = max(1, int(timeout * 1000))

        try:
            conn.execute(text(f"SET LOCAL lock_timeout = '{timeout_ms}ms'"))
            conn.execute(
                text("SELECT pg_advisory_xact_lock(:k1, :k2)"),
                {"k1": key.organization_key, "k2": key.profile_key},
            )
            conn.execute(text("SET LOCAL lock_timeout TO DEFAULT"))
        except DBAPIError as e:
            orig = getattr(e, "orig", None)
            sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
            if sqlstate == _PG_LOCK_NOT_AVAILABLE:
                raise LockBusyError(key.label, timeout) from e
            raise InfrastructureError(f"Advisory lock failed for {key.label}") from e


class ConcurrencyCoordinator:
    """
    Acquires the scope lock for an order operation.

    Attributes:
        backend: Named-mutex implementation
        default_timeout: Lock wait used when the caller does not pass one
    """

    def __init__(self, backend: Optional[LockBackend] = None, default_timeout: float = 5.0):
        if default_timeout <= 0:
            raise ValueError(f"default_timeout must be > 0, got {default_timeout}")

        self.backend = backend or InProcessLockBackend()
        self.default_timeout = default_timeout

        logger.info(
            f"Initialized ConcurrencyCoordinator "
            f"(backend={type(self.backend).__name__}, timeout={default_timeout}s)"
        )

    def acquire(
        self,
        uow: UnitOfWork,
        organization_id: str,
        profile: Profile | str,
        timeout: Optional[float] = None,
    ) -> LockKey:
        """
        Hold the (organization, profile) lock until ``uow`` ends.

        Raises:
            LockBusyError: If the lock was not obtained within the timeout
        """
        key = lock_key_for(organization_id, profile)
        wait = self.default_timeout if timeout is None else timeout

        started = time.monotonic()
        try:
            self.backend.acquire(uow, key, wait)
        except LockBusyError:
            logger.warning(f"Lock wait for {key.label} timed out after {wait:.2f}s")
            raise

        waited_ms = (time.monotonic() - started) * 1000
        logger.debug(f"Acquired lock {key.label} {key.pair} after {waited_ms:.1f}ms")
        return key
