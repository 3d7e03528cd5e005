"""Tests for configuration defaults and env overrides."""

from __future__ import annotations

from tfstate.core.config import AppSettings, DynamoDBConfig, RedisConfig, SQLConfig, StoreConfig


def test_default_settings():
    settings = AppSettings()
    assert settings.environment == "dev"
    assert settings.store.backend == "sql"
    assert settings.sql.url == "sqlite:///tfstate.db"


def test_redis_config_defaults():
    config = RedisConfig()
    assert config.port == 6379
    assert config.key_prefix == "tfstate:"


def test_backend_selected_from_env(monkeypatch):
    monkeypatch.setenv("TFSTATE_STORE_BACKEND", "dynamodb")
    assert StoreConfig().backend == "dynamodb"
    assert AppSettings().store.backend == "dynamodb"


def test_sql_url_from_env(monkeypatch):
    monkeypatch.setenv("TFSTATE_SQL_URL", "postgresql+psycopg://tf@db/tfstate")
    assert SQLConfig().url == "postgresql+psycopg://tf@db/tfstate"


def test_log_format_from_env(monkeypatch):
    monkeypatch.setenv("TFSTATE_LOG_FORMAT", "json")
    assert AppSettings().log_format == "json"


def test_dynamodb_retry_settings_from_env(monkeypatch):
    monkeypatch.setenv("TFSTATE_DYNAMO_MAX_ATTEMPTS", "1")
    monkeypatch.setenv("TFSTATE_DYNAMO_CONNECT_TIMEOUT", "0.5")
    config = DynamoDBConfig()
    assert config.max_attempts == 1
    assert config.connect_timeout == 0.5
