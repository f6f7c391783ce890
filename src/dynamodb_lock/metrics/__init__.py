"""Metric sinks and metric names for lock lifecycle events."""

from dynamodb_lock.metrics import names
from dynamodb_lock.metrics.sinks import LockMetrics, NoOpLockMetrics, PrometheusLockMetrics

__all__ = [
    "LockMetrics",
    "NoOpLockMetrics",
    "PrometheusLockMetrics",
    "names",
]
