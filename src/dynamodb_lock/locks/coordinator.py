"""Lease-based distributed lock coordinated through conditional writes.

A lock is one item per resource. Acquisition writes the item only if it is
absent or its lease has expired; release deletes it only if the caller
still owns it. The store decides every race, so the coordinator keeps no
state of its own between calls.
"""

from __future__ import annotations

import asyncio
import logging
import os
import socket
import time
import uuid
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, datetime

from dynamodb_lock.core.config import LockOptions
from dynamodb_lock.core.constants import (
    EXPIRES_AT_ATTRIBUTE,
    LOCK_KEY_PREFIX,
    LOCK_SORT_KEY_VALUE,
    OWNER_ID_ATTRIBUTE,
)
from dynamodb_lock.core.exceptions import DynamoDbLockError, LockNotAcquiredError, RetryableStoreError
from dynamodb_lock.core.logging import with_log_context
from dynamodb_lock.locks.handle import DistributedLockHandle
from dynamodb_lock.locks.store import (
    ConditionalDeleteRequest,
    ConditionalPutRequest,
    LockStore,
    StoreOutcome,
    StoreResult,
    is_retryable,
)
from dynamodb_lock.metrics import names
from dynamodb_lock.metrics.sinks import LockMetrics, NoOpLockMetrics
from dynamodb_lock.resilience import ExponentialBackoffRetryPolicy

_ACQUIRE_FAILURE_REASONS = {
    StoreOutcome.CONDITION_FAILED: names.REASON_CONDITION_CHECK_FAILED,
    StoreOutcome.THROTTLED: names.REASON_THROTTLED,
    StoreOutcome.INTERNAL_FAULT: names.REASON_INTERNAL_ERROR,
}


def generate_owner_id(prefix: str | None = None) -> str:
    """Generate an owner id unique to this process and call."""
    parts = [prefix] if prefix else []
    parts.extend([socket.gethostname(), str(os.getpid()), uuid.uuid4().hex])
    return ":".join(parts)


def should_retry_acquisition(error: BaseException) -> bool:
    """Only store outcomes classified as retryable are retried."""
    return isinstance(error, RetryableStoreError) and is_retryable(error.outcome)


def _require(name: str, value: str | None) -> None:
    if value is None or (isinstance(value, str) and not value):
        raise ValueError(f"{name} must be a non-empty string")


@dataclass(frozen=True)
class _LockAcquisitionResult:
    acquired: bool
    expires_at: datetime | None = None


_NOT_ACQUIRED = _LockAcquisitionResult(False)


class DynamoDbDistributedLock:
    """Acquire and release leases on named resources.

    Args:
        store: Conditional-write store holding the lock items
        options: Table layout, lease duration and retry tuning
        metrics: Event sink (default: no-op)
        logger: Logger for lifecycle messages
        clock: Returns the current Unix time in seconds
    """

    def __init__(
        self,
        store: LockStore,
        options: LockOptions | None = None,
        metrics: LockMetrics | None = None,
        logger: logging.Logger | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ):
        if store is None:
            raise ValueError("store must not be None")
        self.store = store
        self.options = options or LockOptions()
        self.metrics = metrics or NoOpLockMetrics()
        self.logger = logger or logging.getLogger(__name__)
        self.clock = clock
        self.retry_policy = ExponentialBackoffRetryPolicy(self.options.retry, self.metrics, self.logger)

    # ==================== REQUESTS ====================

    def _key(self, resource_id: str) -> dict[str, dict[str, str]]:
        return {
            self.options.partition_key_attribute: {"S": f"{LOCK_KEY_PREFIX}{resource_id}"},
            self.options.sort_key_attribute: {"S": LOCK_SORT_KEY_VALUE},
        }

    def build_put_request(self, resource_id: str, owner_id: str, now: float) -> tuple[ConditionalPutRequest, float]:
        """Build the acquisition write and the lease expiry it grants.

        The single condition covers both a first acquisition and the
        takeover of an expired lease.
        """
        expires_at = now + self.options.lock_timeout_seconds
        key = self._key(resource_id)
        request = ConditionalPutRequest(
            table_name=self.options.table_name,
            key=key,
            item={
                **key,
                OWNER_ID_ATTRIBUTE: {"S": owner_id},
                EXPIRES_AT_ATTRIBUTE: {"N": str(int(expires_at))},
            },
            condition_expression="(attribute_not_exists(#pk) AND attribute_not_exists(#sk)) OR #expiresAt < :now",
            expression_attribute_names={
                "#pk": self.options.partition_key_attribute,
                "#sk": self.options.sort_key_attribute,
                "#expiresAt": EXPIRES_AT_ATTRIBUTE,
            },
            expression_attribute_values={":now": {"N": str(int(now))}},
        )
        return request, expires_at

    def build_delete_request(self, resource_id: str, owner_id: str) -> ConditionalDeleteRequest:
        """Build the release delete, conditional on ownership."""
        return ConditionalDeleteRequest(
            table_name=self.options.table_name,
            key=self._key(resource_id),
            condition_expression="#ownerId = :owner",
            expression_attribute_names={"#ownerId": OWNER_ID_ATTRIBUTE},
            expression_attribute_values={":owner": {"S": owner_id}},
        )

    # ==================== PUBLIC API ====================

    async def acquire(self, resource_id: str, owner_id: str, cancel_event: asyncio.Event | None = None) -> bool:
        """Try to acquire the lock on ``resource_id`` for ``owner_id``.

        Returns:
            True if the lease was granted. False if another owner holds an
            unexpired lease or retryable store faults outlasted the retries.

        Raises:
            ValueError: If ``resource_id`` or ``owner_id`` is missing
            asyncio.CancelledError: If cancelled before an attempt or during backoff
            botocore.exceptions.ClientError: For any non-retryable store fault
        """
        _require("resource_id", resource_id)
        _require("owner_id", owner_id)
        with self.metrics.track_lock_acquire():
            result = await self._try_acquire(resource_id, owner_id, cancel_event)
        return result.acquired

    async def acquire_handle(
        self, resource_id: str, owner_id: str, cancel_event: asyncio.Event | None = None
    ) -> DistributedLockHandle | None:
        """Like :meth:`acquire`, but return a handle that releases the lease.

        Returns:
            A :class:`DistributedLockHandle`, or None if the lock was not acquired
        """
        _require("resource_id", resource_id)
        _require("owner_id", owner_id)
        with self.metrics.track_lock_acquire():
            result = await self._try_acquire(resource_id, owner_id, cancel_event)
        if not result.acquired:
            return None
        return DistributedLockHandle(self, resource_id, owner_id, result.expires_at)

    async def release(self, resource_id: str, owner_id: str, cancel_event: asyncio.Event | None = None) -> bool:
        """Release the lock if ``owner_id`` still owns it.

        Returns:
            True if the item was deleted, False if the caller does not own
            the current lease (expired and taken over, or never held).

        Raises:
            ValueError: If ``resource_id`` or ``owner_id`` is missing
            botocore.exceptions.ClientError: For any other store fault
        """
        _require("resource_id", resource_id)
        _require("owner_id", owner_id)
        log = with_log_context(self.logger, resource_id=resource_id, owner_id=owner_id)
        request = self.build_delete_request(resource_id, owner_id)

        with self.metrics.track_lock_release():
            try:
                result = await self.store.conditional_delete(request, cancel_event)
            except Exception:
                self.metrics.lock_release_failed(names.REASON_UNEXPECTED_EXCEPTION)
                raise

        if result.succeeded:
            self.metrics.lock_released()
            log.debug(f"Released lock on '{resource_id}'")
            return True

        if result.outcome is StoreOutcome.CONDITION_FAILED:
            self.metrics.lock_release_failed(names.REASON_NOT_OWNED)
            log.warning(f"Lock on '{resource_id}' is not owned by '{owner_id}'; nothing released")
            return False

        self.metrics.lock_release_failed(names.REASON_UNEXPECTED_EXCEPTION)
        log.error(f"Releasing lock on '{resource_id}' failed: {result.detail}")
        raise self._store_error(result)

    @asynccontextmanager
    async def hold(
        self, resource_id: str, owner_id: str, cancel_event: asyncio.Event | None = None
    ) -> AsyncIterator[DistributedLockHandle]:
        """Hold the lock for the duration of an ``async with`` block.

        Raises:
            LockNotAcquiredError: If the lease could not be acquired
        """
        handle = await self.acquire_handle(resource_id, owner_id, cancel_event)
        if handle is None:
            raise LockNotAcquiredError(resource_id, owner_id)
        async with handle:
            yield handle

    # ==================== INTERNALS ====================

    async def _try_acquire(
        self, resource_id: str, owner_id: str, cancel_event: asyncio.Event | None
    ) -> _LockAcquisitionResult:
        if not self.options.retry.enabled:
            return await self._acquire_once(resource_id, owner_id, cancel_event, suppress_retryable=True)

        async def attempt(event: asyncio.Event | None) -> _LockAcquisitionResult:
            return await self._acquire_once(resource_id, owner_id, event, suppress_retryable=False)

        try:
            return await self.retry_policy.execute(attempt, should_retry_acquisition, cancel_event)
        except RetryableStoreError as e:
            # Attempts exhausted on contention or transient faults.
            self.logger.info(
                f"Lock on '{resource_id}' not acquired after {self.options.retry.max_attempts} attempts "
                f"({e.outcome.value})"
            )
            return _NOT_ACQUIRED

    async def _acquire_once(
        self,
        resource_id: str,
        owner_id: str,
        cancel_event: asyncio.Event | None,
        *,
        suppress_retryable: bool,
    ) -> _LockAcquisitionResult:
        log = with_log_context(self.logger, resource_id=resource_id, owner_id=owner_id)
        request, expires_at = self.build_put_request(resource_id, owner_id, self.clock())

        try:
            result = await self.store.conditional_put(request, cancel_event)
        except Exception:
            self.metrics.lock_acquire_failed(names.REASON_UNEXPECTED_EXCEPTION)
            raise

        if result.succeeded:
            self.metrics.lock_acquired()
            log.debug(f"Acquired lock on '{resource_id}'")
            return _LockAcquisitionResult(True, datetime.fromtimestamp(expires_at, UTC))

        if is_retryable(result.outcome):
            self.metrics.lock_acquire_failed(_ACQUIRE_FAILURE_REASONS[result.outcome])
            if suppress_retryable:
                log.info(f"Lock on '{resource_id}' not acquired ({result.outcome.value})")
                return _NOT_ACQUIRED
            raise RetryableStoreError(result.outcome, result.error)

        self.metrics.lock_acquire_failed(names.REASON_UNEXPECTED_EXCEPTION)
        log.error(f"Acquiring lock on '{resource_id}' failed: {result.detail}")
        raise self._store_error(result)

    @staticmethod
    def _store_error(result: StoreResult) -> BaseException:
        if result.error is not None:
            return result.error
        return DynamoDbLockError(f"Store call failed with outcome '{result.outcome.value}'", result.detail)
