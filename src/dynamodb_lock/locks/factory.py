"""Wiring helper that assembles a lock from configuration."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from typing import Any

import boto3

from dynamodb_lock.core.config import LockOptions, load_lock_options
from dynamodb_lock.core.constants import ENDPOINT_URL_ENV_VAR, REGION_ENV_VAR
from dynamodb_lock.locks.coordinator import DynamoDbDistributedLock
from dynamodb_lock.locks.store import DynamoDbLockStore
from dynamodb_lock.metrics.sinks import LockMetrics


def create_dynamodb_client(environ: Mapping[str, str] | None = None) -> Any:
    """Create a boto3 DynamoDB client.

    ``DYNAMODB_LOCK_REGION`` and ``DYNAMODB_LOCK_ENDPOINT_URL`` override the
    region and endpoint (e.g. DynamoDB Local); otherwise boto3's normal
    resolution applies.
    """
    env = os.environ if environ is None else environ
    return boto3.client(
        "dynamodb",
        region_name=env.get(REGION_ENV_VAR) or None,
        endpoint_url=env.get(ENDPOINT_URL_ENV_VAR) or None,
    )


def create_distributed_lock(
    options: LockOptions | None = None,
    *,
    client: Any | None = None,
    metrics: LockMetrics | None = None,
    logger: logging.Logger | None = None,
) -> DynamoDbDistributedLock:
    """Build a :class:`DynamoDbDistributedLock` backed by DynamoDB.

    Args:
        options: Lock options; loaded from the environment when omitted
        client: boto3 DynamoDB client; created from the environment when omitted
        metrics: Metric sink (default: no-op)
        logger: Logger for lifecycle messages
    """
    if options is None:
        options = load_lock_options()
    if client is None:
        client = create_dynamodb_client()
    return DynamoDbDistributedLock(DynamoDbLockStore(client), options, metrics, logger)
