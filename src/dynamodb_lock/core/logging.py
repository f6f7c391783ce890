"""Logging helpers for DynamoDB distributed locks.

Library modules only call ``logging.getLogger(__name__)``. Applications
that want the package's formatting call :func:`setup_logging` once.
"""

import json
import logging
import os
import re
import sys
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

from dynamodb_lock.core.constants import LOG_FILE_BACKUP_COUNT, LOG_FILE_MAX_BYTES

_LOG_RECORD_RESERVED_FIELDS = set(logging.makeLogRecord({}).__dict__.keys()) | {"message", "asctime"}
_SENSITIVE_NAME_PARTS = {"password", "secret", "token", "authorization", "credentials"}
_REDACTED_VALUE = "[REDACTED]"
_SENSITIVE_KEY_REGEX = (
    r"aws[_-]?secret[_-]?access[_-]?key|secret[_-]?access[_-]?key|aws[_-]?session[_-]?token|"
    r"session[_-]?token|security[_-]?token|authorization|password|secret|token"
)
_SENSITIVE_KEY_VALUE_PATTERN = re.compile(
    rf"""(?ix)
    (?P<full_key>["']?(?<![A-Za-z0-9_])(?:{_SENSITIVE_KEY_REGEX})(?![A-Za-z0-9_])["']?)
    (?P<separator>\s*[:=]\s*)
    (?P<value>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*'|[^,\s;}}\]]+)
    """
)
# AWS SigV4 Authorization headers carry the access key id and signature.
_SIGV4_PATTERN = re.compile(r"(?i)(Credential=)[^,\s]+|(Signature=)[0-9a-f]+")


def _is_extra_field(key: str) -> bool:
    return key not in _LOG_RECORD_RESERVED_FIELDS and not key.startswith("_")


def _is_sensitive_field(name: str) -> bool:
    return bool(set(name.lower().replace("-", "_").split("_")) & _SENSITIVE_NAME_PARTS)


def _redact_key_value_match(match: re.Match[str]) -> str:
    value = match.group("value")
    if len(value) >= 2 and value[0] in {"'", '"'} and value[-1] == value[0]:
        replacement = f"{value[0]}{_REDACTED_VALUE}{value[0]}"
    else:
        replacement = _REDACTED_VALUE
    return f"{match.group('full_key')}{match.group('separator')}{replacement}"


def _redact_message(message: str) -> str:
    redacted = _SIGV4_PATTERN.sub(lambda m: f"{m.group(1) or m.group(2)}{_REDACTED_VALUE}", message)
    return _SENSITIVE_KEY_VALUE_PATTERN.sub(_redact_key_value_match, redacted)


def _redact_field(key: str, value: object) -> object:
    if _is_sensitive_field(key):
        return _REDACTED_VALUE
    if isinstance(value, str):
        return _redact_message(value)
    return value


class SensitiveDataFilter(logging.Filter):
    """Best-effort redaction of AWS credentials and secrets in log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = _redact_message(record.getMessage())
        record.args = ()
        for key, value in list(record.__dict__.items()):
            if _is_extra_field(key):
                record.__dict__[key] = _redact_field(key, value)
        return True


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging output.

    Produces JSON lines suitable for log aggregation systems (CloudWatch, ELK).
    Each log record is a single JSON object on one line.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": _redact_message(record.getMessage()),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "process": record.process,
            "task": getattr(record, "taskName", None),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        # Custom LogRecord attributes set via logging's `extra` or a context adapter.
        for key, value in record.__dict__.items():
            if _is_extra_field(key):
                log_entry.setdefault(key, _redact_field(key, value))

        return json.dumps(log_entry, default=str)


class ContextLoggerAdapter(logging.LoggerAdapter):
    """LoggerAdapter that merges contextual fields into record extras."""

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        extra = kwargs.get("extra")
        merged_extra = dict(self.extra)
        if isinstance(extra, dict):
            merged_extra.update(extra)
        kwargs["extra"] = merged_extra
        return msg, kwargs


def _unwrap_logger(logger: logging.Logger | logging.LoggerAdapter | None) -> logging.Logger | None:
    current = logger
    while isinstance(current, logging.LoggerAdapter):
        current = current.logger
    if isinstance(current, logging.Logger):
        return current
    return None


def with_log_context(
    logger: logging.Logger | logging.LoggerAdapter | object, **context: object
) -> logging.Logger | logging.LoggerAdapter | object:
    """Return a logger enriched with persistent contextual fields."""
    base_logger = _unwrap_logger(logger)
    if base_logger is None:
        # Test doubles and mocks are returned unchanged.
        return logger

    existing_context = dict(logger.extra or {}) if isinstance(logger, logging.LoggerAdapter) else {}
    existing_context.update({k: v for k, v in context.items() if v is not None})
    return ContextLoggerAdapter(base_logger, existing_context)


def flush_logging_handlers(logger: logging.Logger | logging.LoggerAdapter | None = None) -> None:
    """Flush the handlers a record from ``logger`` reaches, including propagated root handlers."""
    current = _unwrap_logger(logger) or logging.root
    while current is not None:
        for handler in current.handlers:
            handler.flush()
        current = current.parent if current.propagate else None


def setup_logging(
    log_level: str | None = None, log_format: str = "text", log_file: str | Path | None = None
) -> logging.Logger:
    """Configure root logging for an application that uses the lock.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format - "text" (default) or "json" for structured logging
        log_file: Optional path of a rotating log file

    Returns:
        The package logger

    Priority: 1) Passed parameter, 2) Environment variable LOG_LEVEL, 3) Default INFO
    """
    if log_level is None:
        log_level = os.environ.get("LOG_LEVEL", "INFO")

    valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if log_level.upper() not in valid_levels:
        print(f"Warning: Invalid log level '{log_level}', using INFO", file=sys.stderr)
        log_level = "INFO"
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    # Clear any existing handlers from root logger
    for handler in logging.root.handlers[:]:
        handler.close()
        logging.root.removeHandler(handler)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        log_path = Path(log_file)
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(
                RotatingFileHandler(log_path, maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUP_COUNT)
            )
        except OSError as e:
            print(f"Warning: Cannot open log file {log_path}: {e}. Logging to console only.", file=sys.stderr)

    if log_format.lower() == "json":
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(numeric_level)
        handler.addFilter(SensitiveDataFilter())
        logging.root.addHandler(handler)

    logging.root.setLevel(numeric_level)

    logger = logging.getLogger("dynamodb_lock")
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
    return logger
