"""Configuration dataclasses for DynamoDB distributed locks.

These dataclasses are immutable option records. They are built once at
startup (from code, a mapping, a JSON file or the environment) and then
passed into the lock coordinator and retry policy, which only read them.
"""

from __future__ import annotations

import json
import logging
import math
import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

from dynamodb_lock.core.constants import (
    DEFAULT_BACKOFF_MULTIPLIER,
    DEFAULT_BASE_DELAY,
    DEFAULT_CONFIG_SECTION,
    DEFAULT_JITTER_FACTOR,
    DEFAULT_LOCK_TIMEOUT_SECONDS,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_DELAY,
    DEFAULT_PARTITION_KEY_ATTRIBUTE,
    DEFAULT_RETRY_ENABLED,
    DEFAULT_SORT_KEY_ATTRIBUTE,
    DEFAULT_TABLE_NAME,
    DEFAULT_USE_JITTER,
    ENV_VAR_MAPPING,
)
from dynamodb_lock.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# PascalCase keys accepted in configuration files, mapped to field names.
_LOCK_ALIASES = {
    "TableName": "table_name",
    "PartitionKeyAttribute": "partition_key_attribute",
    "SortKeyAttribute": "sort_key_attribute",
    "LockTimeoutSeconds": "lock_timeout_seconds",
    "Retry": "retry",
}
_RETRY_ALIASES = {
    "Enabled": "enabled",
    "MaxAttempts": "max_attempts",
    "BaseDelay": "base_delay",
    "MaxDelay": "max_delay",
    "BackoffMultiplier": "backoff_multiplier",
    "UseJitter": "use_jitter",
    "JitterFactor": "jitter_factor",
}
_STRING_OPTIONS = {"table_name", "partition_key_attribute", "sort_key_attribute"}
_BOOL_OPTIONS = {"retry.enabled", "retry.use_jitter"}


@dataclass(frozen=True)
class RetryOptions:
    """Configuration for lock acquisition retries with exponential backoff.

    Values are not validated here; the retry policy documents them as
    preconditions.

    Attributes:
        enabled: Wrap acquisition attempts in the retry policy (default: True)
        max_attempts: Total attempts including the first, >= 1 (default: 3)
        base_delay: Delay before the second attempt in seconds (default: 0.1)
        max_delay: Cap for the computed delay in seconds (default: 5.0)
        backoff_multiplier: Growth factor per failure, > 1 (default: 2.0)
        use_jitter: Add a random fraction of the delay (default: True)
        jitter_factor: Upper bound of that fraction, 0-1 (default: 0.25)
    """

    enabled: bool = DEFAULT_RETRY_ENABLED
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay: float = DEFAULT_BASE_DELAY
    max_delay: float = DEFAULT_MAX_DELAY
    backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER
    use_jitter: bool = DEFAULT_USE_JITTER
    jitter_factor: float = DEFAULT_JITTER_FACTOR

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> RetryOptions:
        """Create retry options from a mapping using field names or PascalCase keys."""
        values = _normalize_keys(data or {}, _RETRY_ALIASES, section="Retry")
        return cls(**{name: _coerce_option(f"retry.{name}", name, value) for name, value in values.items()})


@dataclass(frozen=True)
class LockOptions:
    """Configuration for the lock table and lease duration.

    Attributes:
        table_name: DynamoDB table holding lock items
        partition_key_attribute: Name of the table's partition key (default: "pk")
        sort_key_attribute: Name of the table's sort key (default: "sk")
        lock_timeout_seconds: Lease duration in seconds, > 0 (default: 30)
        retry: Retry configuration for acquisition
    """

    table_name: str = DEFAULT_TABLE_NAME
    partition_key_attribute: str = DEFAULT_PARTITION_KEY_ATTRIBUTE
    sort_key_attribute: str = DEFAULT_SORT_KEY_ATTRIBUTE
    lock_timeout_seconds: int = DEFAULT_LOCK_TIMEOUT_SECONDS
    retry: RetryOptions = field(default_factory=RetryOptions)

    def __post_init__(self) -> None:
        for name in ("table_name", "partition_key_attribute", "sort_key_attribute"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                raise ConfigurationError(f"'{name}' must be a non-empty string", field=name)
        if self.lock_timeout_seconds <= 0:
            raise ConfigurationError(
                "'lock_timeout_seconds' must be greater than zero",
                field="lock_timeout_seconds",
                details=f"got {self.lock_timeout_seconds!r}",
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "table_name": self.table_name,
            "partition_key_attribute": self.partition_key_attribute,
            "sort_key_attribute": self.sort_key_attribute,
            "lock_timeout_seconds": self.lock_timeout_seconds,
            "retry": self.retry.to_dict(),
        }

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> LockOptions:
        """Create lock options from a mapping using field names or PascalCase keys.

        A nested ``retry`` / ``Retry`` mapping is bound to :class:`RetryOptions`.
        """
        values = _normalize_keys(data or {}, _LOCK_ALIASES, section="lock options")
        retry_data = values.pop("retry", None)
        values = {name: _coerce_option(name, name, value) for name, value in values.items()}
        if isinstance(retry_data, RetryOptions):
            values["retry"] = retry_data
        elif retry_data is not None:
            if not isinstance(retry_data, Mapping):
                raise ConfigurationError("'retry' must be a mapping", field="retry")
            values["retry"] = RetryOptions.from_mapping(retry_data)
        return cls(**values)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, base: LockOptions | None = None) -> LockOptions:
        """Apply ``DYNAMODB_LOCK_*`` environment overrides on top of ``base``.

        Invalid values are logged and ignored so a typo in the environment
        falls back to the configured value instead of failing startup.
        """
        env = os.environ if environ is None else environ
        options = base or cls()
        lock_updates: dict[str, Any] = {}
        retry_updates: dict[str, Any] = {}

        for env_name, target in ENV_VAR_MAPPING.items():
            raw = env.get(env_name)
            if raw is None:
                continue
            parsed = _parse_option_value(target, raw)
            if parsed is None:
                logger.warning(f"Ignoring invalid {env_name}={raw!r}; keeping configured value")
                continue
            if target.startswith("retry."):
                retry_updates[target.removeprefix("retry.")] = parsed
            else:
                lock_updates[target] = parsed

        retry = replace(options.retry, **retry_updates)
        # Guard against a window that would otherwise shrink delays below the base.
        if retry.max_delay < retry.base_delay:
            logger.warning(
                f"Ignoring invalid retry delay window (max_delay={retry.max_delay} < base_delay={retry.base_delay}); "
                f"using max_delay={retry.base_delay}"
            )
            retry = replace(retry, max_delay=retry.base_delay)

        return replace(options, retry=retry, **lock_updates)


def load_lock_options(
    config_file: str | Path | None = None,
    *,
    section: str = DEFAULT_CONFIG_SECTION,
    environ: Mapping[str, str] | None = None,
) -> LockOptions:
    """Load lock options from an optional JSON file, then apply environment overrides.

    Args:
        config_file: Path to a JSON file. The ``section`` key is bound when
            present, otherwise the whole document is used.
        section: Name of the configuration section
        environ: Environment mapping (defaults to ``os.environ``)

    Raises:
        ConfigurationError: If the file is missing, unreadable or not a JSON object
    """
    base = LockOptions()
    if config_file is not None:
        path = Path(config_file)
        if not path.is_file():
            raise ConfigurationError("Configuration file not found", config_file=str(path))
        try:
            with open(path, encoding="utf-8") as f:
                document = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError("Invalid JSON in configuration file", config_file=str(path), details=str(e)) from e
        except OSError as e:
            raise ConfigurationError("Cannot read configuration file", config_file=str(path), details=str(e)) from e

        if not isinstance(document, dict):
            raise ConfigurationError("Configuration file must contain a JSON object", config_file=str(path))
        data = document.get(section, document)
        if not isinstance(data, dict):
            raise ConfigurationError(f"Section '{section}' must be a JSON object", config_file=str(path))
        try:
            base = LockOptions.from_mapping(data)
        except ConfigurationError as e:
            e.config_file = str(path)
            raise

    return LockOptions.from_env(environ, base=base)


def _normalize_keys(data: Mapping[str, Any], aliases: dict[str, str], *, section: str) -> dict[str, Any]:
    known = set(aliases.values())
    values: dict[str, Any] = {}
    for key, value in data.items():
        name = aliases.get(key, key)
        if name not in known:
            raise ConfigurationError(f"Unknown key '{key}' in {section}", field=key)
        values[name] = value
    return values


def _coerce_option(target: str, name: str, value: Any) -> Any:
    """Convert a mapped value to its field type, accepting the same strings as the environment."""
    if isinstance(value, bool):
        valid = target in _BOOL_OPTIONS
    elif isinstance(value, (int, float)):
        valid = target not in _STRING_OPTIONS and target not in _BOOL_OPTIONS
    else:
        valid = isinstance(value, str)
    parsed = _parse_option_value(target, str(value)) if valid else None
    if parsed is None:
        raise ConfigurationError(f"Invalid value for '{name}'", field=name, details=f"got {value!r}")
    return parsed


def _parse_bool(value: str) -> bool | None:
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return None


def _parse_env_numeric(value: str, cast: Callable[[str], Any]) -> Any | None:
    """Parse an environment value, returning None when invalid."""
    try:
        parsed = cast(value)
    except (TypeError, ValueError):
        return None
    if isinstance(parsed, float) and not math.isfinite(parsed):
        return None
    return parsed


def _parse_option_value(target: str, raw: str) -> Any | None:
    if target in ("retry.enabled", "retry.use_jitter"):
        return _parse_bool(raw)
    if target in ("lock_timeout_seconds", "retry.max_attempts"):
        parsed = _parse_env_numeric(raw, int)
        return parsed if parsed is not None and parsed >= 1 else None
    if target in ("retry.base_delay", "retry.max_delay"):
        parsed = _parse_env_numeric(raw, float)
        return parsed if parsed is not None and parsed >= 0 else None
    if target == "retry.backoff_multiplier":
        parsed = _parse_env_numeric(raw, float)
        return parsed if parsed is not None and parsed > 1 else None
    if target == "retry.jitter_factor":
        parsed = _parse_env_numeric(raw, float)
        return parsed if parsed is not None and 0 <= parsed <= 1 else None
    value = raw.strip()
    return value or None
