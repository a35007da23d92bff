"""Scope locks serializing order operations per organization and profile."""

from execution.locking.coordinator import (
    ConcurrencyCoordinator,
    InProcessLockBackend,
    LockBackend,
    LockKey,
    PostgresAdvisoryLockBackend,
    lock_key_for,
    stable_hash32,
)

__all__ = [
    "ConcurrencyCoordinator",
    "InProcessLockBackend",
    "LockBackend",
    "LockKey",
    "PostgresAdvisoryLockBackend",
    "lock_key_for",
    "stable_hash32",
]
