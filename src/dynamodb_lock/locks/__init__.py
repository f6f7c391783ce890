"""Lease locks: coordinator, handle and backing stores."""

from dynamodb_lock.locks.coordinator import (
    DynamoDbDistributedLock,
    generate_owner_id,
    should_retry_acquisition,
)
from dynamodb_lock.locks.factory import create_distributed_lock, create_dynamodb_client
from dynamodb_lock.locks.handle import DistributedLockHandle
from dynamodb_lock.locks.store import (
    ConditionalDeleteRequest,
    ConditionalPutRequest,
    DynamoDbLockStore,
    InMemoryLockStore,
    LockStore,
    StoreOutcome,
    StoreResult,
    classify_client_error,
    ensure_lock_table,
    is_retryable,
)

__all__ = [
    "ConditionalDeleteRequest",
    "ConditionalPutRequest",
    "DistributedLockHandle",
    "DynamoDbDistributedLock",
    "DynamoDbLockStore",
    "InMemoryLockStore",
    "LockStore",
    "StoreOutcome",
    "StoreResult",
    "classify_client_error",
    "create_distributed_lock",
    "create_dynamodb_client",
    "ensure_lock_table",
    "generate_owner_id",
    "is_retryable",
    "should_retry_acquisition",
]
