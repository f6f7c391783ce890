"""Core module - Foundation components with no internal dependencies.

This module provides the basic building blocks used throughout the package:
- Version information
- Custom exceptions
- Configuration dataclasses
- Constants and defaults
- Logging helpers
"""

from dynamodb_lock.core.version import __version__

from dynamodb_lock.core.exceptions import (
    DynamoDbLockError,
    ConfigurationError,
    LockNotAcquiredError,
    RetryableStoreError,
)

from dynamodb_lock.core.config import (
    RetryOptions,
    LockOptions,
    load_lock_options,
)

from dynamodb_lock.core.logging import (
    JSONFormatter,
    SensitiveDataFilter,
    flush_logging_handlers,
    setup_logging,
    with_log_context,
)

__all__ = [
    # Version
    '__version__',
    # Exceptions
    'DynamoDbLockError',
    'ConfigurationError',
    'LockNotAcquiredError',
    'RetryableStoreError',
    # Configuration
    'RetryOptions',
    'LockOptions',
    'load_lock_options',
    # Logging
    'JSONFormatter',
    'SensitiveDataFilter',
    'flush_logging_handlers',
    'setup_logging',
    'with_log_context',
]
