"""Retry logic with exponential backoff for lock acquisition.

Attempts run strictly one after another. Between attempts the policy
suspends on the event loop for a computed delay; the wait ends early with
``asyncio.CancelledError`` when the caller's cancel event is set.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

from dynamodb_lock.core.config import RetryOptions
from dynamodb_lock.metrics.sinks import LockMetrics, NoOpLockMetrics

T = TypeVar("T")

Operation = Callable[[asyncio.Event | None], Awaitable[T]]
RetryPredicate = Callable[[BaseException], bool]


def calculate_backoff_delay(
    attempt: int,
    options: RetryOptions,
    *,
    rng: Callable[[float, float], float] = random.uniform,
) -> float:
    """Delay in seconds to wait after the ``attempt``-th failure.

    Backoff Formula:
        delay = min(base_delay * (backoff_multiplier ** (attempt - 1)), max_delay)
        if use_jitter: delay += uniform(0, delay * jitter_factor)
    """
    delay = min(options.base_delay * (options.backoff_multiplier ** (attempt - 1)), options.max_delay)
    if options.use_jitter:
        delay += rng(0.0, delay * options.jitter_factor)
    return delay


def raise_if_cancelled(cancel_event: asyncio.Event | None) -> None:
    """Raise ``asyncio.CancelledError`` when cancellation was requested."""
    if cancel_event is not None and cancel_event.is_set():
        raise asyncio.CancelledError("operation cancelled")


async def cancellable_sleep(delay: float, cancel_event: asyncio.Event | None) -> None:
    """Sleep for ``delay`` seconds unless ``cancel_event`` is set first."""
    if cancel_event is None:
        await asyncio.sleep(delay)
        return
    raise_if_cancelled(cancel_event)
    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=delay)
    except TimeoutError:
        return
    raise asyncio.CancelledError("operation cancelled during retry backoff")


class ExponentialBackoffRetryPolicy:
    """Execute an async operation with exponential backoff and optional jitter.

    ``max_attempts`` counts the first attempt, so ``max_attempts=3`` means at
    most two retries. A failure is surfaced unchanged when it happens on the
    last permitted attempt or when ``should_retry`` rejects it.

    Example:
        policy = ExponentialBackoffRetryPolicy(RetryOptions(max_attempts=5))
        item = await policy.execute(fetch_item, lambda e: isinstance(e, TimeoutError))
    """

    def __init__(
        self,
        options: RetryOptions,
        metrics: LockMetrics | None = None,
        logger: logging.Logger | None = None,
        *,
        rng: Callable[[float, float], float] = random.uniform,
    ):
        if options is None:
            raise ValueError("options must not be None")
        self.options = options
        self.metrics = metrics or NoOpLockMetrics()
        self.logger = logger or logging.getLogger(__name__)
        self._rng = rng

    def calculate_delay(self, attempt: int) -> float:
        return calculate_backoff_delay(attempt, self.options, rng=self._rng)

    async def execute(
        self,
        operation: Operation[T],
        should_retry: RetryPredicate,
        cancel_event: asyncio.Event | None = None,
    ) -> T:
        """Run ``operation`` until it succeeds, fails fatally or runs out of attempts.

        Args:
            operation: Coroutine function receiving the cancel event
            should_retry: Classifies an exception as worth retrying
            cancel_event: Cooperative cancellation signal

        Returns:
            The result of the first successful attempt

        Raises:
            ValueError: If ``operation`` or ``should_retry`` is missing
            asyncio.CancelledError: If cancellation is requested before an
                attempt or during a backoff delay
            Exception: The last failure, unchanged
        """
        if operation is None:
            raise ValueError("operation must not be None")
        if should_retry is None:
            raise ValueError("should_retry must not be None")

        max_attempts = self.options.max_attempts
        attempt = 1
        while True:
            raise_if_cancelled(cancel_event)
            if attempt > 1:
                self.metrics.retry_attempt()

            try:
                result = await operation(cancel_event)
            except Exception as e:
                if attempt >= max_attempts or not should_retry(e):
                    if attempt > 1:
                        self.metrics.retries_exhausted()
                        self.logger.error(f"Giving up after {attempt}/{max_attempts} attempts: {e!s}")
                    raise

                delay = self.calculate_delay(attempt)
                self.logger.warning(
                    f"Attempt {attempt}/{max_attempts} failed: {e!s}. Retrying in {delay * 1000:.0f}ms..."
                )
                await cancellable_sleep(delay, cancel_event)
                attempt += 1
                continue

            if attempt > 1:
                self.logger.info(f"Succeeded on attempt {attempt}/{max_attempts}")
            return result
