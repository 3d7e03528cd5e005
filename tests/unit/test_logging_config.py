"""Tests for structlog configuration."""

from __future__ import annotations

import json
import logging

import pytest
import structlog

from tfstate.core.config import AppSettings
from tfstate.core.logging_config import configure_logging


@pytest.fixture(autouse=True)
def _restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
    structlog.reset_defaults()


def test_json_format_renders_json_lines(capsys):
    configure_logging(AppSettings(log_format="json", log_level="DEBUG"))
    structlog.get_logger("tfstate.test").info("state_locked", state="prod-network", lock_id="lock-a")
    line = capsys.readouterr().out.strip().splitlines()[-1]
    event = json.loads(line)
    assert event["event"] == "state_locked"
    assert event["state"] == "prod-network"
    assert event["level"] == "info"
    assert "timestamp" in event


def test_log_level_applies_to_root_logger():
    configure_logging(AppSettings(log_level="warning"))
    assert logging.getLogger().level == logging.WARNING


def test_stdlib_loggers_share_the_handler(capsys):
    configure_logging(AppSettings(log_format="json"))
    logging.getLogger("sqlalchemy.engine").warning("pool exhausted")
    event = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert event["event"] == "pool exhausted"
    assert event["logger"] == "sqlalchemy.engine"
