"""Constants and default values for DynamoDB distributed locks.

This module centralizes the item layout, default option values and the
environment variable names read by the configuration loader.
"""

# ==================== ITEM LAYOUT ====================

# Partition key value is f"{LOCK_KEY_PREFIX}{resource_id}"
LOCK_KEY_PREFIX: str = "lock#"
LOCK_SORT_KEY_VALUE: str = "metadata#lock"
OWNER_ID_ATTRIBUTE: str = "ownerId"
EXPIRES_AT_ATTRIBUTE: str = "expiresAt"  # Unix seconds, usable as the table's TTL attribute

# ==================== LOCK DEFAULTS ====================

DEFAULT_TABLE_NAME: str = "distributed_locks"
DEFAULT_PARTITION_KEY_ATTRIBUTE: str = "pk"
DEFAULT_SORT_KEY_ATTRIBUTE: str = "sk"
DEFAULT_LOCK_TIMEOUT_SECONDS: int = 30

# Configuration file section bound by load_lock_options()
DEFAULT_CONFIG_SECTION: str = "DynamoDbLockSettings"

# ==================== RETRY DEFAULTS ====================

DEFAULT_RETRY_ENABLED: bool = True
DEFAULT_MAX_ATTEMPTS: int = 3
DEFAULT_BASE_DELAY: float = 0.1  # 100ms
DEFAULT_MAX_DELAY: float = 5.0
DEFAULT_BACKOFF_MULTIPLIER: float = 2.0
DEFAULT_USE_JITTER: bool = True
DEFAULT_JITTER_FACTOR: float = 0.25

# ==================== STORE ERROR CODES ====================

CONDITION_FAILED_ERROR_CODES: frozenset[str] = frozenset({"ConditionalCheckFailedException"})
THROTTLING_ERROR_CODES: frozenset[str] = frozenset(
    {
        "ProvisionedThroughputExceededException",
        "RequestLimitExceeded",
        "ThrottlingException",
    }
)
INTERNAL_ERROR_CODES: frozenset[str] = frozenset({"InternalServerError"})

# ==================== LOGGING DEFAULTS ====================

LOG_FILE_MAX_BYTES: int = 10 * 1024 * 1024  # 10MB max per log file
LOG_FILE_BACKUP_COUNT: int = 5

# ==================== ENVIRONMENT ====================

# Environment variable -> LockOptions / RetryOptions field
ENV_VAR_MAPPING: dict[str, str] = {
    "DYNAMODB_LOCK_TABLE_NAME": "table_name",
    "DYNAMODB_LOCK_PARTITION_KEY": "partition_key_attribute",
    "DYNAMODB_LOCK_SORT_KEY": "sort_key_attribute",
    "DYNAMODB_LOCK_TIMEOUT_SECONDS": "lock_timeout_seconds",
    "DYNAMODB_LOCK_RETRY_ENABLED": "retry.enabled",
    "DYNAMODB_LOCK_MAX_ATTEMPTS": "retry.max_attempts",
    "DYNAMODB_LOCK_RETRY_BASE_DELAY": "retry.base_delay",
    "DYNAMODB_LOCK_RETRY_MAX_DELAY": "retry.max_delay",
    "DYNAMODB_LOCK_BACKOFF_MULTIPLIER": "retry.backoff_multiplier",
    "DYNAMODB_LOCK_USE_JITTER": "retry.use_jitter",
    "DYNAMODB_LOCK_JITTER_FACTOR": "retry.jitter_factor",
}

REGION_ENV_VAR: str = "DYNAMODB_LOCK_REGION"
ENDPOINT_URL_ENV_VAR: str = "DYNAMODB_LOCK_ENDPOINT_URL"
