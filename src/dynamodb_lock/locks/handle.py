"""Scoped handle for an acquired lease."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from types import TracebackType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dynamodb_lock.locks.coordinator import DynamoDbDistributedLock

logger = logging.getLogger(__name__)


class DistributedLockHandle:
    """Release capability for one acquired lease.

    Created only by a successful acquisition. ``expires_at`` is a snapshot
    taken at acquisition time; the handle does not renew the lease.

    The handle releases at most once. Use it as an async context manager so
    the release runs on every exit path::

        handle = await lock.acquire_handle("orders", owner_id)
        if handle is not None:
            async with handle:
                await process_orders()
    """

    def __init__(
        self,
        lock: DynamoDbDistributedLock,
        resource_id: str,
        owner_id: str,
        expires_at: datetime,
    ):
        self._lock = lock
        self.resource_id = resource_id
        self.owner_id = owner_id
        self.expires_at = expires_at
        self._acquired = True

    @property
    def is_acquired(self) -> bool:
        """True until the first release attempt, whatever its outcome."""
        return self._acquired

    @property
    def is_expired(self) -> bool:
        """True once the lease expiry recorded at acquisition has passed."""
        return datetime.now(UTC) >= self.expires_at

    async def release(self, cancel_event: asyncio.Event | None = None) -> bool:
        """Release the lease.

        Returns:
            True if the store released it, False if the lease was no longer
            owned or this handle was already released.
        """
        if not self._acquired:
            return False
        self._acquired = False
        return await self._lock.release(self.resource_id, self.owner_id, cancel_event)

    async def __aenter__(self) -> DistributedLockHandle:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if exc_type is None:
            # Nothing in flight: a fatal release error reaches the caller.
            await self.release()
            return

        try:
            await self.release()
        except Exception:
            # Never replace the exception raised inside the scope.
            logger.error(
                f"Failed to release lock on '{self.resource_id}' while handling {exc_type.__name__}",
                exc_info=True,
                extra={"resource_id": self.resource_id, "owner_id": self.owner_id},
            )

    def __repr__(self) -> str:
        return (
            f"DistributedLockHandle(resource_id={self.resource_id!r}, owner_id={self.owner_id!r}, "
            f"expires_at={self.expires_at.isoformat()!r}, is_acquired={self._acquired})"
        )
