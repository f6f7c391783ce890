"""Pytest configuration and fixtures for dynamodb-lock tests"""

from __future__ import annotations

import asyncio
import logging

import boto3
import pytest
from prometheus_client import CollectorRegistry

from dynamodb_lock.core.config import LockOptions, RetryOptions
from dynamodb_lock.locks.store import (
    ConditionalDeleteRequest,
    ConditionalPutRequest,
    InMemoryLockStore,
    StoreResult,
)
from dynamodb_lock.metrics.sinks import PrometheusLockMetrics


class FakeClock:
    """Settable Unix clock for lease expiry tests."""

    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedStore:
    """Lock store that replays scripted results and records every request.

    Each scripted entry is either a :class:`StoreResult` to return or an
    exception to raise. When a script runs out, its last entry repeats.
    """

    def __init__(self, put_results=None, delete_results=None):
        self.put_results = list(put_results or [StoreResult.ok()])
        self.delete_results = list(delete_results or [StoreResult.ok()])
        self.put_requests: list[ConditionalPutRequest] = []
        self.delete_requests: list[ConditionalDeleteRequest] = []

    @staticmethod
    def _next(script):
        entry = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(entry, BaseException):
            raise entry
        return entry

    async def conditional_put(self, request, cancel_event=None):
        self.put_requests.append(request)
        return self._next(self.put_results)

    async def conditional_delete(self, request, cancel_event=None):
        self.delete_requests.append(request)
        return self._next(self.delete_results)


@pytest.fixture
def registry():
    """Isolated Prometheus registry"""
    return CollectorRegistry()


@pytest.fixture
def prometheus_metrics(registry):
    return PrometheusLockMetrics(registry)


@pytest.fixture
def sample(registry):
    """Read a metric sample, treating an unseen sample as zero"""

    def _sample(name: str, labels: dict[str, str] | None = None) -> float:
        value = registry.get_sample_value(name, labels or {})
        return 0.0 if value is None else value

    return _sample


@pytest.fixture
def fast_retry():
    """Retry options with no backoff delay"""
    return RetryOptions(enabled=True, max_attempts=3, base_delay=0.0, max_delay=0.0, use_jitter=False)


@pytest.fixture
def lock_options(fast_retry):
    return LockOptions(lock_timeout_seconds=30, retry=fast_retry)


@pytest.fixture
def no_retry_options():
    return LockOptions(lock_timeout_seconds=30, retry=RetryOptions(enabled=False))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_store():
    return InMemoryLockStore()


@pytest.fixture
def scripted_store():
    """Factory for stores that replay scripted results"""
    return ScriptedStore


@pytest.fixture
def dynamodb_client():
    """Offline DynamoDB client for use with botocore's Stubber"""
    return boto3.client(
        "dynamodb",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


@pytest.fixture
def cancel_event():
    return asyncio.Event()


@pytest.fixture
def restore_root_logging():
    """Restore root handlers and level after tests that call setup_logging"""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            handler.close()
            root.removeHandler(handler)
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
