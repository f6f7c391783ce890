"""Custom exceptions for DynamoDB distributed locks.

Contention is an expected outcome and is reported as a boolean, never as
an exception. The classes here cover configuration problems, the explicit
"must hold the lock" scope, and the internal signal used to carry a
retryable store outcome through the retry engine.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dynamodb_lock.locks.store import StoreOutcome


class DynamoDbLockError(Exception):
    """Base exception for all lock errors."""

    def __init__(self, message: str, details: str | None = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class ConfigurationError(DynamoDbLockError):
    """Exception raised for configuration-related errors.

    Examples:
        - Missing config file
        - Invalid JSON in config file
        - Empty table or key attribute names
        - Non-positive lease duration
    """

    def __init__(
        self, message: str, config_file: str | None = None, field: str | None = None, details: str | None = None
    ):
        self.config_file = config_file
        self.field = field
        super().__init__(message, details)


class LockNotAcquiredError(DynamoDbLockError):
    """Raised when a scoped hold cannot take the lease.

    Attributes:
        resource_id: Resource the caller tried to lock
        owner_id: Owner that was refused
    """

    def __init__(self, resource_id: str, owner_id: str):
        self.resource_id = resource_id
        self.owner_id = owner_id
        super().__init__(f"Could not acquire lock on '{resource_id}'", f"owner '{owner_id}'")


class RetryableStoreError(DynamoDbLockError):
    """A store call ended with an outcome worth retrying.

    Raised inside a single acquisition attempt so the retry engine can
    classify it. Callers of the public API never see it: an acquisition
    that exhausts its attempts on this error returns ``False``.
    """

    def __init__(self, outcome: StoreOutcome, cause: BaseException | None = None):
        self.outcome = outcome
        self.cause = cause
        details = str(cause) if cause is not None else None
        super().__init__(f"Retryable store outcome: {outcome.value}", details)
