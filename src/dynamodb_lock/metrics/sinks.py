"""Metric sinks for lock lifecycle events.

The coordinator and retry policy always report to a :class:`LockMetrics`
sink. :class:`NoOpLockMetrics` is the default, so core code never checks
whether metrics are wired.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager, contextmanager
from typing import Protocol

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram

from dynamodb_lock.metrics import names

# Milliseconds; a DynamoDB conditional write is normally single-digit ms.
TIMER_BUCKETS_MS = (1.0, 5.0, 10.0, 25.0, 50.0, 100.0, 250.0, 500.0, 1000.0, 2500.0, 5000.0, 10000.0)


class LockMetrics(Protocol):
    """Event sink for lock acquisition, release and retry metrics."""

    def track_lock_acquire(self) -> AbstractContextManager[None]:
        """Time an acquisition call; elapsed milliseconds are recorded on exit."""

    def track_lock_release(self) -> AbstractContextManager[None]:
        """Time a release call; elapsed milliseconds are recorded on exit."""

    def lock_acquired(self) -> None: ...

    def lock_released(self) -> None: ...

    def lock_acquire_failed(self, reason: str) -> None: ...

    def lock_release_failed(self, reason: str) -> None: ...

    def retry_attempt(self) -> None: ...

    def retries_exhausted(self) -> None: ...


@contextmanager
def _elapsed_ms(record: Callable[[float], None]) -> Iterator[None]:
    start = time.perf_counter()
    try:
        yield
    finally:
        record((time.perf_counter() - start) * 1000.0)


class NoOpLockMetrics:
    """Sink that discards every event."""

    def track_lock_acquire(self) -> AbstractContextManager[None]:
        return _elapsed_ms(_discard)

    def track_lock_release(self) -> AbstractContextManager[None]:
        return _elapsed_ms(_discard)

    def lock_acquired(self) -> None:
        pass

    def lock_released(self) -> None:
        pass

    def lock_acquire_failed(self, reason: str) -> None:
        pass

    def lock_release_failed(self, reason: str) -> None:
        pass

    def retry_attempt(self) -> None:
        pass

    def retries_exhausted(self) -> None:
        pass


def _discard(_value: float) -> None:
    return None


class PrometheusLockMetrics:
    """Publish lock metrics through ``prometheus_client``.

    A registry accepts each metric name once, so create one instance per
    registry. :meth:`default` returns a shared instance bound to the global
    registry.
    """

    _default: PrometheusLockMetrics | None = None
    _default_lock = threading.Lock()

    def __init__(self, registry: CollectorRegistry | None = None):
        self.registry = registry if registry is not None else REGISTRY

        self._lock_acquire = Counter(names.LOCK_ACQUIRE, "Locks successfully acquired", registry=self.registry)
        self._lock_release = Counter(names.LOCK_RELEASE, "Locks successfully released", registry=self.registry)
        self._lock_acquire_failed = Counter(
            names.LOCK_ACQUIRE_FAILED, "Failed lock acquisition attempts", ["reason"], registry=self.registry
        )
        self._lock_release_failed = Counter(
            names.LOCK_RELEASE_FAILED, "Failed lock releases", ["reason"], registry=self.registry
        )
        self._retry_attempt = Counter(
            names.RETRY_ATTEMPT, "Acquisition retries executed after a failure", registry=self.registry
        )
        self._retries_exhausted = Counter(
            names.RETRIES_EXHAUSTED, "Retry loops that gave up after retrying", registry=self.registry
        )
        self._lock_acquire_timer = Histogram(
            names.LOCK_ACQUIRE_TIMER,
            "Duration of lock acquisition calls in milliseconds",
            buckets=TIMER_BUCKETS_MS,
            registry=self.registry,
        )
        self._lock_release_timer = Histogram(
            names.LOCK_RELEASE_TIMER,
            "Duration of lock release calls in milliseconds",
            buckets=TIMER_BUCKETS_MS,
            registry=self.registry,
        )

    @classmethod
    def default(cls) -> PrometheusLockMetrics:
        """Shared instance registered on the global Prometheus registry."""
        with cls._default_lock:
            if cls._default is None:
                cls._default = cls()
            return cls._default

    def track_lock_acquire(self) -> AbstractContextManager[None]:
        return _elapsed_ms(self._lock_acquire_timer.observe)

    def track_lock_release(self) -> AbstractContextManager[None]:
        return _elapsed_ms(self._lock_release_timer.observe)

    def lock_acquired(self) -> None:
        self._lock_acquire.inc()

    def lock_released(self) -> None:
        self._lock_release.inc()

    def lock_acquire_failed(self, reason: str) -> None:
        self._lock_acquire_failed.labels(reason=reason).inc()

    def lock_release_failed(self, reason: str) -> None:
        self._lock_release_failed.labels(reason=reason).inc()

    def retry_attempt(self) -> None:
        self._retry_attempt.inc()

    def retries_exhausted(self) -> None:
        self._retries_exhausted.inc()
