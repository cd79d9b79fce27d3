"""Tests for configuration module."""

import json
import os
import pytest
from unittest.mock import patch

from stratus.infrastructure.config import (
    CloudConfig,
    PollingConfig,
    StateConfig,
    TelemetryConfig,
    load_config,
)
from stratus.infrastructure.http.client import DEFAULT_ENDPOINT_TEMPLATE


class TestDefaultConfig:
    def test_defaults(self):
        config = load_config(path="/nonexistent/stratus.json")
        assert config.log_level == "WARNING"
        assert config.log_json is False
        assert config.cloud.region == "eu-de"
        assert config.cloud.endpoint_template == DEFAULT_ENDPOINT_TEMPLATE
        assert config.polling.initial_delay < 0
        assert config.polling.not_found_checks == 20
        assert config.state.path == "stratus.db"
        assert config.telemetry.endpoint == ""

    def test_all_sections_present(self):
        config = load_config(path="/nonexistent/stratus.json")
        assert isinstance(config.cloud, CloudConfig)
        assert isinstance(config.polling, PollingConfig)
        assert isinstance(config.state, StateConfig)
        assert isinstance(config.telemetry, TelemetryConfig)

    def test_token_hidden_from_repr(self):
        config = CloudConfig(auth_token="secret-token")
        assert "secret-token" not in repr(config)


class TestFileConfig:
    def test_load_from_file(self, tmp_path):
        config_file = tmp_path / "stratus.json"
        config_file.write_text(json.dumps({
            "log_level": "debug",
            "cloud": {"region": "eu-nl", "project_id": "p-123"},
            "polling": {"interval": 2.5},
            "state": {"path": "/var/lib/stratus.db"},
        }))

        config = load_config(path=str(config_file))
        assert config.log_level == "DEBUG"
        assert config.cloud.region == "eu-nl"
        assert config.cloud.project_id == "p-123"
        assert config.polling.interval == 2.5
        assert config.state.path == "/var/lib/stratus.db"

    def test_partial_config(self, tmp_path):
        config_file = tmp_path / "stratus.json"
        config_file.write_text(json.dumps({"cloud": {"project_id": "p-1"}}))

        config = load_config(path=str(config_file))
        assert config.cloud.project_id == "p-1"
        assert config.cloud.region == "eu-de"  # default preserved
        assert config.cloud.request_timeout == 60.0

    def test_invalid_json_returns_defaults(self, tmp_path):
        config_file = tmp_path / "stratus.json"
        config_file.write_text("not valid json{{{")

        config = load_config(path=str(config_file))
        assert config.cloud.region == "eu-de"

    def test_non_object_returns_defaults(self, tmp_path):
        config_file = tmp_path / "stratus.json"
        config_file.write_text("[1, 2]")

        config = load_config(path=str(config_file))
        assert config.state.path == "stratus.db"

    def test_unknown_keys_ignored(self, tmp_path):
        config_file = tmp_path / "stratus.json"
        config_file.write_text(json.dumps({
            "cloud": {"region": "eu-nl", "unknown_key": "ignored"},
        }))

        config = load_config(path=str(config_file))
        assert config.cloud.region == "eu-nl"


class TestEnvOverride:
    def test_env_overrides_file(self, tmp_path):
        config_file = tmp_path / "stratus.json"
        config_file.write_text(json.dumps({"cloud": {"region": "eu-nl"}}))

        with patch.dict(os.environ, {"STRATUS_CLOUD_REGION": "eu-ch2"}):
            config = load_config(path=str(config_file))

        assert config.cloud.region == "eu-ch2"

    def test_field_names_with_underscores(self):
        with patch.dict(os.environ, {
            "STRATUS_CLOUD_PROJECT_ID": "p-env",
            "STRATUS_POLLING_NOT_FOUND_CHECKS": "5",
        }):
            config = load_config(path="/nonexistent/stratus.json")

        assert config.cloud.project_id == "p-env"
        assert config.polling.not_found_checks == 5

    def test_float_and_bool_conversion(self):
        with patch.dict(os.environ, {
            "STRATUS_CLOUD_REQUEST_TIMEOUT": "12.5",
            "STRATUS_CLOUD_VERIFY_TLS": "false",
            "STRATUS_TELEMETRY_INSECURE": "yes",
        }):
            config = load_config(path="/nonexistent/stratus.json")

        assert config.cloud.request_timeout == 12.5
        assert config.cloud.verify_tls is False
        assert config.telemetry.insecure is True

    def test_invalid_number_keeps_default(self):
        with patch.dict(os.environ, {"STRATUS_POLLING_NOT_FOUND_CHECKS": "many"}):
            config = load_config(path="/nonexistent/stratus.json")

        assert config.polling.not_found_checks == 20

    def test_top_level_settings(self):
        with patch.dict(os.environ, {"STRATUS_LOG_LEVEL": "info", "STRATUS_LOG_JSON": "1"}):
            config = load_config(path="/nonexistent/stratus.json")

        assert config.log_level == "INFO"
        assert config.log_json is True

    def test_custom_prefix(self):
        with patch.dict(os.environ, {"MYAPP_STATE_PATH": "/tmp/other.db"}):
            config = load_config(path="/nonexistent/stratus.json", env_prefix="MYAPP")

        assert config.state.path == "/tmp/other.db"


class TestConfigImmutability:
    def test_frozen(self):
        config = load_config(path="/nonexistent/stratus.json")
        with pytest.raises(AttributeError):
            config.log_level = "DEBUG"

    def test_sub_config_frozen(self):
        config = load_config(path="/nonexistent/stratus.json")
        with pytest.raises(AttributeError):
            config.cloud.region = "eu-nl"
