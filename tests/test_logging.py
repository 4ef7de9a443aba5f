"""
Unit tests for logging utilities.

Tests verify:
- Logging setup and configuration
- JSON formatting and correlation IDs
- Function call decorator behavior
"""

import json
import logging

import pytest

from artifact_uploader.utils.logging import (
    JSONFormatter,
    clear_correlation_id,
    get_correlation_id,
    get_logger,
    log_function_call,
    set_correlation_id,
    setup_logging,
)


def test_setup_logging_configures_root_logger() -> None:
    """Test that setup_logging properly configures the root logger."""
    setup_logging(level="DEBUG")
    root_logger = logging.getLogger()
    assert root_logger.level == logging.DEBUG


def test_setup_logging_json_handler(monkeypatch) -> None:
    """Test that LOG_FORMAT=json installs the JSON formatter."""
    monkeypatch.setenv("LOG_FORMAT", "json")
    setup_logging(level="INFO")

    handlers = logging.getLogger().handlers
    assert len(handlers) == 1
    assert isinstance(handlers[0].formatter, JSONFormatter)


def test_get_logger_returns_logger_instance() -> None:
    """Test that get_logger returns a valid logger instance."""
    logger = get_logger("test_module")
    assert isinstance(logger, logging.Logger)
    assert logger.name == "test_module"


def test_correlation_id_round_trip() -> None:
    """Test setting, reading and clearing the correlation ID."""
    set_correlation_id("build-1234")
    assert get_correlation_id() == "build-1234"

    clear_correlation_id()
    generated = get_correlation_id()
    assert generated != "build-1234"
    assert get_correlation_id() == generated


def test_json_formatter_includes_extra_fields() -> None:
    """Test that JSONFormatter emits message, correlation ID and extras."""
    set_correlation_id("build-1234")
    record = logging.LogRecord(
        name="artifact_uploader.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="Uploaded %s",
        args=("report.txt",),
        exc_info=None,
    )
    record.bucket = "docs"

    payload = json.loads(JSONFormatter().format(record))

    assert payload["message"] == "Uploaded report.txt"
    assert payload["level"] == "INFO"
    assert payload["correlation_id"] == "build-1234"
    assert payload["extra"] == {"bucket": "docs"}
    clear_correlation_id()


def test_log_function_call_decorator_logs_entry_and_exit(caplog) -> None:
    """Test that log_function_call decorator logs function entry and exit."""

    @log_function_call
    def sample_function(x: int, y: int) -> int:
        return x + y

    with caplog.at_level(logging.INFO):
        result = sample_function(2, 3)

    assert result == 5
    messages = [r.getMessage() for r in caplog.records]
    assert "ENTER sample_function" in messages
    assert "EXIT sample_function -> 5" in messages


def test_log_function_call_decorator_handles_exceptions() -> None:
    """Test that log_function_call decorator re-raises exceptions."""

    @log_function_call
    def failing_function() -> None:
        raise ValueError("Test exception")

    with pytest.raises(ValueError, match="Test exception"):
        failing_function()
