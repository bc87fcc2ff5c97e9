"""
Unit tests for settings, admin auth resolution and JSON logging.
"""

import json
import logging

import pytest
from pydantic import ValidationError

from forexhub.auth import AuthConfig
from forexhub.config import Settings
from forexhub.logging_config import JSONFormatter, storage_mode_var


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


class TestSettings:
    def test_blank_database_url_means_volatile_only(self):
        assert _settings(DATABASE_URL="   ").DATABASE_URL is None

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("postgres://u:p@db:5432/forex", "postgresql+psycopg2://u:p@db:5432/forex"),
            ("postgresql://u:p@db/forex", "postgresql+psycopg2://u:p@db/forex"),
            ("sqlite:///./local.db", "sqlite:///./local.db"),
        ],
    )
    def test_database_url_normalized(self, raw, expected):
        assert _settings(DATABASE_URL=raw).DATABASE_URL == expected

    def test_log_level_uppercased(self):
        assert _settings(LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"

    def test_invalid_log_level_rejected(self):
        with pytest.raises(ValidationError):
            _settings(LOG_LEVEL="chatty")

    def test_probe_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            _settings(PROBE_TIMEOUT_SECONDS=0)

    def test_cors_origins_split(self):
        settings = _settings(CORS_ORIGINS="https://forexhub.io, ,http://localhost:3000")
        assert settings.cors_origins == ["https://forexhub.io", "http://localhost:3000"]


class TestAuthConfig:
    def test_bypass_requires_flag(self):
        config = AuthConfig.from_settings(_settings(ENVIRONMENT="development"))
        assert config.bypass_active is False

    def test_bypass_ignored_in_production(self):
        config = AuthConfig(admin_api_key=None, environment="Production", bypass_auth_in_non_prod=True)
        assert config.bypass_active is False

    def test_bypass_outside_production(self):
        config = AuthConfig(admin_api_key=None, environment="staging", bypass_auth_in_non_prod=True)
        assert config.bypass_active is True


class TestJSONFormatter:
    def _record(self, **extra) -> logging.LogRecord:
        record = logging.LogRecord("forexhub.test", logging.WARNING, __file__, 1, "switched to %s", ("volatile",), None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_includes_known_extras(self):
        line = JSONFormatter().format(self._record(event="storage_mode_changed", to_mode="volatile", secret="x"))
        data = json.loads(line)

        assert data["message"] == "switched to volatile"
        assert data["level"] == "WARNING"
        assert data["event"] == "storage_mode_changed"
        assert data["to_mode"] == "volatile"
        assert "secret" not in data

    def test_carries_request_storage_mode(self):
        token = storage_mode_var.set("durable")
        try:
            data = json.loads(JSONFormatter().format(self._record()))
        finally:
            storage_mode_var.reset(token)

        assert data["storage_mode"] == "durable"
