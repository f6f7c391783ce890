"""
dynamodb-lock - Lease-based distributed locks on Amazon DynamoDB

Mutual exclusion for a named resource across processes and hosts, built on
DynamoDB conditional writes, with retry/backoff and Prometheus metrics.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

__all__ = [
    "__version__",
    "DistributedLockHandle",
    "DynamoDbDistributedLock",
    "InMemoryLockStore",
    "LockNotAcquiredError",
    "LockOptions",
    "RetryOptions",
    "create_distributed_lock",
    "generate_owner_id",
]

if TYPE_CHECKING:
    from dynamodb_lock.core import LockNotAcquiredError, LockOptions, RetryOptions, __version__
    from dynamodb_lock.locks import (
        DistributedLockHandle,
        DynamoDbDistributedLock,
        InMemoryLockStore,
        create_distributed_lock,
        generate_owner_id,
    )

_CORE_NAMES = {"__version__", "LockNotAcquiredError", "LockOptions", "RetryOptions"}


def __getattr__(name: str) -> Any:
    if name in _CORE_NAMES:
        from dynamodb_lock import core

        return getattr(core, name)
    if name in __all__:
        from dynamodb_lock import locks

        return getattr(locks, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
