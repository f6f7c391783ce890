"""Backing store adapters for lock items.

Design principles:
- The store is the only source of truth for who holds a lock; nothing is
  cached locally and every operation is a fresh round trip.
- Store calls never raise for expected outcomes. They return a
  :class:`StoreResult` whose :class:`StoreOutcome` the coordinator
  classifies with pure functions.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from botocore.exceptions import BotoCoreError, ClientError

from dynamodb_lock.core.config import LockOptions
from dynamodb_lock.core.constants import (
    CONDITION_FAILED_ERROR_CODES,
    EXPIRES_AT_ATTRIBUTE,
    INTERNAL_ERROR_CODES,
    OWNER_ID_ATTRIBUTE,
    THROTTLING_ERROR_CODES,
)
from dynamodb_lock.resilience import raise_if_cancelled

logger = logging.getLogger(__name__)


class StoreOutcome(Enum):
    """Result of a conditional store write."""

    OK = "ok"
    CONDITION_FAILED = "condition_failed"
    THROTTLED = "throttled"
    INTERNAL_FAULT = "internal_fault"
    OTHER = "other"


_RETRYABLE_OUTCOMES = frozenset({StoreOutcome.CONDITION_FAILED, StoreOutcome.THROTTLED, StoreOutcome.INTERNAL_FAULT})


def is_retryable(outcome: StoreOutcome) -> bool:
    """Contention, throttling and transient service faults are worth retrying."""
    return outcome in _RETRYABLE_OUTCOMES


def classify_client_error(error: BaseException) -> StoreOutcome:
    """Map a botocore exception to a :class:`StoreOutcome`."""
    if not isinstance(error, ClientError):
        return StoreOutcome.OTHER
    code = error.response.get("Error", {}).get("Code", "")
    if code in CONDITION_FAILED_ERROR_CODES:
        return StoreOutcome.CONDITION_FAILED
    if code in THROTTLING_ERROR_CODES:
        return StoreOutcome.THROTTLED
    if code in INTERNAL_ERROR_CODES:
        return StoreOutcome.INTERNAL_FAULT
    return StoreOutcome.OTHER


@dataclass(frozen=True)
class StoreResult:
    """Outcome of one store call plus the error that produced it, if any."""

    outcome: StoreOutcome
    error: BaseException | None = None
    detail: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is StoreOutcome.OK

    @classmethod
    def ok(cls) -> StoreResult:
        return cls(StoreOutcome.OK)

    @classmethod
    def from_error(cls, error: BaseException) -> StoreResult:
        return cls(classify_client_error(error), error=error, detail=str(error))


def _with_expression_maps(kwargs: dict[str, Any], names: dict[str, str], values: dict[str, Any]) -> dict[str, Any]:
    # DynamoDB rejects empty expression maps.
    if names:
        kwargs["ExpressionAttributeNames"] = names
    if values:
        kwargs["ExpressionAttributeValues"] = values
    return kwargs


@dataclass(frozen=True)
class ConditionalPutRequest:
    """A PutItem request that only succeeds when its condition holds."""

    table_name: str
    key: dict[str, dict[str, str]]
    item: dict[str, dict[str, str]]
    condition_expression: str
    expression_attribute_names: dict[str, str] = field(default_factory=dict)
    expression_attribute_values: dict[str, dict[str, str]] = field(default_factory=dict)

    def to_boto_kwargs(self) -> dict[str, Any]:
        kwargs = {
            "TableName": self.table_name,
            "Item": self.item,
            "ConditionExpression": self.condition_expression,
        }
        return _with_expression_maps(kwargs, self.expression_attribute_names, self.expression_attribute_values)


@dataclass(frozen=True)
class ConditionalDeleteRequest:
    """A DeleteItem request that only succeeds when its condition holds."""

    table_name: str
    key: dict[str, dict[str, str]]
    condition_expression: str
    expression_attribute_names: dict[str, str] = field(default_factory=dict)
    expression_attribute_values: dict[str, dict[str, str]] = field(default_factory=dict)

    def to_boto_kwargs(self) -> dict[str, Any]:
        kwargs = {
            "TableName": self.table_name,
            "Key": self.key,
            "ConditionExpression": self.condition_expression,
        }
        return _with_expression_maps(kwargs, self.expression_attribute_names, self.expression_attribute_values)


class LockStore(Protocol):
    """Atomic conditional-write service holding lock items."""

    async def conditional_put(
        self, request: ConditionalPutRequest, cancel_event: asyncio.Event | None = None
    ) -> StoreResult:
        """Write the item if the request's condition holds."""

    async def conditional_delete(
        self, request: ConditionalDeleteRequest, cancel_event: asyncio.Event | None = None
    ) -> StoreResult:
        """Delete the item if the request's condition holds."""


class DynamoDbLockStore:
    """Lock store backed by a boto3 DynamoDB client.

    boto3 is blocking, so each call runs in a worker thread via
    ``asyncio.to_thread`` and the event loop keeps serving other tasks.
    """

    def __init__(self, client: Any):
        if client is None:
            raise ValueError("client must not be None")
        self.client = client

    async def conditional_put(
        self, request: ConditionalPutRequest, cancel_event: asyncio.Event | None = None
    ) -> StoreResult:
        raise_if_cancelled(cancel_event)
        kwargs = request.to_boto_kwargs()

        def _put() -> None:
            self.client.put_item(**kwargs)

        try:
            await asyncio.to_thread(_put)
        except (ClientError, BotoCoreError) as e:
            return StoreResult.from_error(e)
        return StoreResult.ok()

    async def conditional_delete(
        self, request: ConditionalDeleteRequest, cancel_event: asyncio.Event | None = None
    ) -> StoreResult:
        raise_if_cancelled(cancel_event)
        kwargs = request.to_boto_kwargs()

        def _delete() -> None:
            self.client.delete_item(**kwargs)

        try:
            await asyncio.to_thread(_delete)
        except (ClientError, BotoCoreError) as e:
            return StoreResult.from_error(e)
        return StoreResult.ok()


class InMemoryLockStore:
    """In-process lock store for local development and tests.

    Evaluates the two conditions the coordinator issues: "item absent or
    its ``expiresAt`` is older than ``:now``" for puts and "``ownerId``
    equals ``:owner``" for deletes.
    """

    def __init__(self) -> None:
        self.items: dict[tuple, dict[str, dict[str, str]]] = {}
        self._lock: asyncio.Lock | None = None

    def _get_lock(self) -> asyncio.Lock:
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    @staticmethod
    def _item_key(table_name: str, key: dict[str, dict[str, str]]) -> tuple:
        return (table_name, *sorted((name, value["S"]) for name, value in key.items()))

    def get_item(self, table_name: str, key: dict[str, dict[str, str]]) -> dict[str, dict[str, str]] | None:
        """Return a copy of the stored item, or None."""
        item = self.items.get(self._item_key(table_name, key))
        return dict(item) if item is not None else None

    async def conditional_put(
        self, request: ConditionalPutRequest, cancel_event: asyncio.Event | None = None
    ) -> StoreResult:
        raise_if_cancelled(cancel_event)
        async with self._get_lock():
            item_key = self._item_key(request.table_name, request.key)
            existing = self.items.get(item_key)
            now = int(request.expression_attribute_values[":now"]["N"])
            if existing is not None and int(existing[EXPIRES_AT_ATTRIBUTE]["N"]) >= now:
                return StoreResult(StoreOutcome.CONDITION_FAILED, detail="lock is held")
            self.items[item_key] = dict(request.item)
            return StoreResult.ok()

    async def conditional_delete(
        self, request: ConditionalDeleteRequest, cancel_event: asyncio.Event | None = None
    ) -> StoreResult:
        raise_if_cancelled(cancel_event)
        async with self._get_lock():
            item_key = self._item_key(request.table_name, request.key)
            existing = self.items.get(item_key)
            owner = request.expression_attribute_values[":owner"]["S"]
            if existing is None or existing[OWNER_ID_ATTRIBUTE]["S"] != owner:
                return StoreResult(StoreOutcome.CONDITION_FAILED, detail="lock is not owned")
            del self.items[item_key]
            return StoreResult.ok()


def ensure_lock_table(client: Any, options: LockOptions, *, enable_ttl: bool = True) -> bool:
    """Create the lock table if it does not exist.

    Uses on-demand billing and, when ``enable_ttl`` is set, turns on
    DynamoDB's native expiry on the ``expiresAt`` attribute so abandoned
    lock items are eventually removed.

    Returns:
        True if the table was created, False if it already existed
    """
    try:
        client.describe_table(TableName=options.table_name)
        return False
    except ClientError as e:
        if e.response.get("Error", {}).get("Code") != "ResourceNotFoundException":
            raise

    client.create_table(
        TableName=options.table_name,
        AttributeDefinitions=[
            {"AttributeName": options.partition_key_attribute, "AttributeType": "S"},
            {"AttributeName": options.sort_key_attribute, "AttributeType": "S"},
        ],
        KeySchema=[
            {"AttributeName": options.partition_key_attribute, "KeyType": "HASH"},
            {"AttributeName": options.sort_key_attribute, "KeyType": "RANGE"},
        ],
        BillingMode="PAY_PER_REQUEST",
    )
    client.get_waiter("table_exists").wait(TableName=options.table_name)
    logger.info(f"Created lock table '{options.table_name}'")

    if enable_ttl:
        client.update_time_to_live(
            TableName=options.table_name,
            TimeToLiveSpecification={"Enabled": True, "AttributeName": EXPIRES_AT_ATTRIBUTE},
        )
    return True
