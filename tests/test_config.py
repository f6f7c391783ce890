"""Tests for lock configuration loading"""

import json
import logging

import pytest

from dynamodb_lock.core.config import LockOptions, RetryOptions, load_lock_options
from dynamodb_lock.core.exceptions import ConfigurationError


class TestOptionDefaults:
    def test_lock_defaults(self):
        options = LockOptions()
        assert options.table_name == "distributed_locks"
        assert options.partition_key_attribute == "pk"
        assert options.sort_key_attribute == "sk"
        assert options.lock_timeout_seconds == 30
        assert options.retry == RetryOptions()

    def test_retry_defaults(self):
        retry = RetryOptions()
        assert retry.enabled is True
        assert retry.max_attempts == 3
        assert retry.base_delay == 0.1
        assert retry.max_delay == 5.0
        assert retry.backoff_multiplier == 2.0
        assert retry.use_jitter is True
        assert retry.jitter_factor == 0.25

    def test_options_are_frozen(self):
        options = LockOptions()
        with pytest.raises(AttributeError):
            options.table_name = "other"

    def test_to_dict(self):
        data = LockOptions(table_name="locks").to_dict()
        assert data["table_name"] == "locks"
        assert data["retry"]["max_attempts"] == 3


class TestValidation:
    """Test invariants enforced on construction"""

    @pytest.mark.parametrize("field", ["table_name", "partition_key_attribute", "sort_key_attribute"])
    def test_empty_names_rejected(self, field):
        with pytest.raises(ConfigurationError) as exc_info:
            LockOptions(**{field: "  "})
        assert exc_info.value.field == field

    @pytest.mark.parametrize("lease", [0, -5])
    def test_non_positive_lease_rejected(self, lease):
        with pytest.raises(ConfigurationError, match="lock_timeout_seconds"):
            LockOptions(lock_timeout_seconds=lease)


class TestFromMapping:
    def test_snake_case(self):
        options = LockOptions.from_mapping(
            {"table_name": "locks", "lock_timeout_seconds": 10, "retry": {"max_attempts": 5}}
        )
        assert options.table_name == "locks"
        assert options.lock_timeout_seconds == 10
        assert options.retry.max_attempts == 5
        assert options.retry.base_delay == 0.1

    def test_pascal_case(self):
        options = LockOptions.from_mapping(
            {
                "TableName": "locks",
                "PartitionKeyAttribute": "PK",
                "SortKeyAttribute": "SK",
                "LockTimeoutSeconds": 45,
                "Retry": {"Enabled": False, "MaxAttempts": 7, "UseJitter": False},
            }
        )
        assert options.partition_key_attribute == "PK"
        assert options.sort_key_attribute == "SK"
        assert options.lock_timeout_seconds == 45
        assert options.retry.enabled is False
        assert options.retry.max_attempts == 7
        assert options.retry.use_jitter is False

    def test_unknown_key_rejected(self):
        with pytest.raises(ConfigurationError, match="Unknown key 'Tablename'"):
            LockOptions.from_mapping({"Tablename": "locks"})

    def test_unknown_retry_key_rejected(self):
        with pytest.raises(ConfigurationError, match="Unknown key 'Attempts'"):
            LockOptions.from_mapping({"Retry": {"Attempts": 3}})

    def test_retry_must_be_mapping(self):
        with pytest.raises(ConfigurationError, match="retry"):
            LockOptions.from_mapping({"retry": 3})

    def test_empty_mapping(self):
        assert LockOptions.from_mapping(None) == LockOptions()

    def test_string_values_converted(self):
        options = LockOptions.from_mapping(
            {"LockTimeoutSeconds": "20", "Retry": {"Enabled": "false", "MaxAttempts": "4", "BaseDelay": "0.25"}}
        )
        assert options.lock_timeout_seconds == 20
        assert options.retry.enabled is False
        assert options.retry.max_attempts == 4
        assert options.retry.base_delay == 0.25

    @pytest.mark.parametrize(
        ("data", "field"),
        [
            ({"TableName": 5}, "table_name"),
            ({"LockTimeoutSeconds": True}, "lock_timeout_seconds"),
            ({"LockTimeoutSeconds": "soon"}, "lock_timeout_seconds"),
            ({"Retry": {"UseJitter": 1}}, "use_jitter"),
            ({"Retry": {"MaxAttempts": [3]}}, "max_attempts"),
            ({"Retry": {"JitterFactor": 2}}, "jitter_factor"),
        ],
    )
    def test_wrong_types_rejected(self, data, field):
        with pytest.raises(ConfigurationError, match="Invalid value") as exc_info:
            LockOptions.from_mapping(data)
        assert exc_info.value.field == field


class TestFromEnv:
    """Test DYNAMODB_LOCK_* environment overrides"""

    def test_overrides(self):
        env = {
            "DYNAMODB_LOCK_TABLE_NAME": "env_locks",
            "DYNAMODB_LOCK_TIMEOUT_SECONDS": "12",
            "DYNAMODB_LOCK_RETRY_ENABLED": "false",
            "DYNAMODB_LOCK_MAX_ATTEMPTS": "6",
            "DYNAMODB_LOCK_RETRY_BASE_DELAY": "0.5",
            "DYNAMODB_LOCK_RETRY_MAX_DELAY": "8",
            "DYNAMODB_LOCK_USE_JITTER": "no",
            "DYNAMODB_LOCK_JITTER_FACTOR": "0.1",
        }
        options = LockOptions.from_env(env)

        assert options.table_name == "env_locks"
        assert options.lock_timeout_seconds == 12
        assert options.retry.enabled is False
        assert options.retry.max_attempts == 6
        assert options.retry.base_delay == 0.5
        assert options.retry.max_delay == 8.0
        assert options.retry.use_jitter is False
        assert options.retry.jitter_factor == 0.1

    def test_empty_environment_keeps_base(self):
        base = LockOptions(table_name="configured")
        assert LockOptions.from_env({}, base=base) == base

    @pytest.mark.parametrize(
        ("name", "value"),
        [
            ("DYNAMODB_LOCK_TIMEOUT_SECONDS", "soon"),
            ("DYNAMODB_LOCK_TIMEOUT_SECONDS", "0"),
            ("DYNAMODB_LOCK_MAX_ATTEMPTS", "-1"),
            ("DYNAMODB_LOCK_RETRY_BASE_DELAY", "nan"),
            ("DYNAMODB_LOCK_BACKOFF_MULTIPLIER", "0.5"),
            ("DYNAMODB_LOCK_JITTER_FACTOR", "2"),
            ("DYNAMODB_LOCK_RETRY_ENABLED", "maybe"),
            ("DYNAMODB_LOCK_TABLE_NAME", "   "),
        ],
    )
    def test_invalid_values_ignored_with_warning(self, name, value, caplog):
        with caplog.at_level(logging.WARNING, logger="dynamodb_lock.core.config"):
            options = LockOptions.from_env({name: value})

        assert options == LockOptions()
        assert any(name in r.getMessage() for r in caplog.records)

    def test_inverted_delay_window_clamped(self, caplog):
        env = {"DYNAMODB_LOCK_RETRY_BASE_DELAY": "2", "DYNAMODB_LOCK_RETRY_MAX_DELAY": "1"}
        with caplog.at_level(logging.WARNING, logger="dynamodb_lock.core.config"):
            options = LockOptions.from_env(env)

        assert options.retry.base_delay == 2.0
        assert options.retry.max_delay == 2.0
        assert any("max_delay" in r.getMessage() for r in caplog.records)


class TestLoadLockOptions:
    def test_no_file_uses_defaults_and_env(self):
        options = load_lock_options(environ={"DYNAMODB_LOCK_TABLE_NAME": "from_env"})
        assert options.table_name == "from_env"

    def test_section_in_file(self, tmp_path):
        config_file = tmp_path / "appsettings.json"
        config_file.write_text(
            json.dumps(
                {
                    "Logging": {"LogLevel": "Information"},
                    "DynamoDbLockSettings": {"TableName": "file_locks", "Retry": {"MaxAttempts": 4}},
                }
            )
        )
        options = load_lock_options(config_file, environ={})

        assert options.table_name == "file_locks"
        assert options.retry.max_attempts == 4

    def test_whole_document_without_section(self, tmp_path):
        config_file = tmp_path / "locks.json"
        config_file.write_text(json.dumps({"table_name": "plain"}))

        assert load_lock_options(config_file, environ={}).table_name == "plain"

    def test_env_overrides_file(self, tmp_path):
        config_file = tmp_path / "locks.json"
        config_file.write_text(json.dumps({"table_name": "plain", "lock_timeout_seconds": 60}))

        options = load_lock_options(config_file, environ={"DYNAMODB_LOCK_TIMEOUT_SECONDS": "5"})
        assert options.table_name == "plain"
        assert options.lock_timeout_seconds == 5

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found") as exc_info:
            load_lock_options(tmp_path / "missing.json", environ={})
        assert exc_info.value.config_file.endswith("missing.json")

    def test_invalid_json(self, tmp_path):
        config_file = tmp_path / "broken.json"
        config_file.write_text("{not json")

        with pytest.raises(ConfigurationError, match="Invalid JSON"):
            load_lock_options(config_file, environ={})

    def test_non_object_document(self, tmp_path):
        config_file = tmp_path / "list.json"
        config_file.write_text("[1, 2]")

        with pytest.raises(ConfigurationError, match="JSON object"):
            load_lock_options(config_file, environ={})

    def test_invalid_values_in_file_report_path(self, tmp_path):
        config_file = tmp_path / "locks.json"
        config_file.write_text(json.dumps({"lock_timeout_seconds": 0}))

        with pytest.raises(ConfigurationError) as exc_info:
            load_lock_options(config_file, environ={})
        assert exc_info.value.config_file == str(config_file)

    def test_numeric_string_in_file(self, tmp_path):
        config_file = tmp_path / "appsettings.json"
        config_file.write_text(json.dumps({"DynamoDbLockSettings": {"LockTimeoutSeconds": "30"}}))

        options = load_lock_options(config_file, environ={})
        assert options.lock_timeout_seconds == 30
        assert isinstance(options.lock_timeout_seconds, int)

    def test_timespan_delay_in_file_rejected(self, tmp_path):
        config_file = tmp_path / "appsettings.json"
        config_file.write_text(json.dumps({"DynamoDbLockSettings": {"Retry": {"BaseDelay": "00:00:00.100"}}}))

        with pytest.raises(ConfigurationError, match="base_delay") as exc_info:
            load_lock_options(config_file, environ={})
        assert exc_info.value.field == "base_delay"
        assert exc_info.value.config_file == str(config_file)
