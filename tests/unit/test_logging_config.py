"""
Unit tests for utils.logging

Covers JSON and console formatting, context logging and environment-based
configuration.
"""

import json
import logging
import logging.handlers
import os
import sys
from datetime import datetime
from unittest.mock import patch

import pytest

from utils.logging import (
    ConsoleFormatter,
    ContextLogger,
    JSONFormatter,
    configure_from_env,
    setup_logging,
)


def make_record(msg="Test message", level=logging.INFO, exc_info=None, **extra):
    record = logging.LogRecord(
        name="pgslice.filler",
        level=level,
        pathname="/path/to/filler.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture
def clean_root_logger():
    yield
    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        handler.close()
    root_logger.handlers.clear()
    root_logger.setLevel(logging.WARNING)


class TestJSONFormatter:
    """Test JSONFormatter class"""

    def test_init_with_defaults(self):
        formatter = JSONFormatter()

        assert formatter.include_timestamp is True
        assert formatter.include_hostname is True
        assert formatter.app_name == "pgslice"
        assert formatter.hostname is not None

    def test_format_basic_log_record(self):
        """Test formatting a basic log record"""
        # Arrange
        formatter = JSONFormatter()

        # Act
        data = json.loads(formatter.format(make_record()))

        # Assert
        assert data["level"] == "INFO"
        assert data["logger"] == "pgslice.filler"
        assert data["message"] == "Test message"
        assert data["app"] == "pgslice"
        assert "timestamp" in data
        assert "hostname" in data
        assert data["source"]["file"] == "/path/to/filler.py"
        assert data["source"]["line"] == 42
        assert "context" not in data

    def test_format_without_timestamp_and_hostname(self):
        formatter = JSONFormatter(include_timestamp=False, include_hostname=False)

        data = json.loads(formatter.format(make_record()))

        assert "timestamp" not in data
        assert "hostname" not in data

    def test_format_with_exception_info(self):
        """Test formatting with exception information"""
        # Arrange
        formatter = JSONFormatter()
        try:
            raise ValueError("Test error")
        except ValueError:
            record = make_record("Batch failed", level=logging.ERROR, exc_info=sys.exc_info())

        # Act
        data = json.loads(formatter.format(record))

        # Assert
        assert data["exception"]["type"] == "ValueError"
        assert data["exception"]["message"] == "Test error"
        assert any("Test error" in line for line in data["exception"]["traceback"])

    def test_format_with_extra_context(self):
        """Test that extra fields land under context"""
        # Arrange
        formatter = JSONFormatter()
        record = make_record(table="public.posts", batch=3)

        # Act
        data = json.loads(formatter.format(record))

        # Assert
        assert data["context"] == {"table": "public.posts", "batch": 3}

    def test_format_excludes_internal_fields(self):
        formatter = JSONFormatter()
        record = make_record(_private="hidden", table="public.posts")

        data = json.loads(formatter.format(record))

        assert data["context"] == {"table": "public.posts"}

    def test_format_non_serializable_context(self):
        formatter = JSONFormatter()
        record = make_record(starting_time=datetime(2026, 1, 1))

        data = json.loads(formatter.format(record))

        assert data["context"]["starting_time"] == "2026-01-01 00:00:00"


class TestConsoleFormatter:
    """Test ConsoleFormatter class"""

    def test_colors_disabled_without_terminal(self):
        with patch("sys.stderr.isatty", return_value=False):
            formatter = ConsoleFormatter(use_colors=True)

        assert formatter.use_colors is False

    def test_format_without_colors(self):
        """Test plain formatting"""
        # Arrange
        formatter = ConsoleFormatter(use_colors=False)

        # Act
        result = formatter.format(make_record())

        # Assert
        assert "[INFO] pgslice.filler: Test message" in result
        assert "\033[" not in result

    @patch("sys.stderr.isatty", return_value=True)
    def test_format_with_colors_restores_levelname(self, mock_isatty):
        """Test that colored output does not leak into other handlers"""
        # Arrange
        formatter = ConsoleFormatter(use_colors=True)
        record = make_record(level=logging.WARNING)
        record.levelname = "WARNING"

        # Act
        result = formatter.format(record)

        # Assert
        assert "\033[33mWARNING\033[0m" in result
        assert record.levelname == "WARNING"

    def test_format_with_extra_context(self):
        formatter = ConsoleFormatter(use_colors=False)

        result = formatter.format(make_record(table="public.posts", batch=3))

        assert result.endswith(" [table=public.posts, batch=3]")


@pytest.mark.usefixtures("clean_root_logger")
class TestSetupLogging:
    """Test setup_logging function"""

    def test_setup_logging_with_defaults(self):
        setup_logging()

        root_logger = logging.getLogger()
        assert root_logger.level == logging.INFO
        assert len(root_logger.handlers) == 1
        assert isinstance(root_logger.handlers[0].formatter, ConsoleFormatter)

    def test_setup_logging_with_custom_level(self):
        setup_logging(level="debug")

        assert logging.getLogger().level == logging.DEBUG

    def test_setup_logging_with_invalid_level_defaults_to_info(self):
        setup_logging(level="INVALID")

        assert logging.getLogger().level == logging.INFO

    def test_setup_logging_with_file(self, tmp_path):
        """Test setup with file logging in a directory that does not exist yet"""
        # Arrange
        log_file = tmp_path / "logs" / "pgslice.log"

        # Act
        setup_logging(log_file=str(log_file), console_output=False)
        logging.getLogger("pgslice").warning("written to file")

        # Assert
        handlers = logging.getLogger().handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0], logging.handlers.RotatingFileHandler)
        handlers[0].flush()
        assert "written to file" in log_file.read_text()

    def test_setup_logging_with_json_format(self):
        setup_logging(json_format=True)

        assert isinstance(logging.getLogger().handlers[0].formatter, JSONFormatter)

    def test_setup_logging_clears_existing_handlers(self):
        logging.getLogger().addHandler(logging.NullHandler())

        setup_logging()
        setup_logging()

        assert len(logging.getLogger().handlers) == 1

    def test_setup_logging_quiets_opentelemetry(self):
        setup_logging(level="DEBUG")

        assert logging.getLogger("opentelemetry").level == logging.WARNING


class TestContextLogger:
    """Test ContextLogger class"""

    def test_init_without_context(self):
        assert ContextLogger("test_logger").context == {}

    @patch("logging.Logger.log")
    def test_info_adds_context(self, mock_log):
        """Test that info method adds context"""
        # Arrange
        logger = ContextLogger("test_logger", table="public.posts", operation="fill")

        # Act
        logger.info("Batch complete", batch=3)

        # Assert
        mock_log.assert_called_once()
        args, kwargs = mock_log.call_args
        assert args[0] == logging.INFO
        assert args[1] == "Batch complete"
        assert kwargs["extra"] == {"table": "public.posts", "operation": "fill", "batch": 3}

    @patch("logging.Logger.log")
    def test_call_values_override_context(self, mock_log):
        logger = ContextLogger("test_logger", batch=1)

        logger.debug("Batch", batch=2)

        assert mock_log.call_args[1]["extra"]["batch"] == 2

    @patch("logging.Logger.log")
    def test_error_with_exc_info(self, mock_log):
        logger = ContextLogger("test_logger", table="public.posts")

        logger.error("Batch failed", exc_info=True)

        args, kwargs = mock_log.call_args
        assert args[0] == logging.ERROR
        assert kwargs["exc_info"] is True

    @patch("logging.Logger.log")
    def test_warning_level(self, mock_log):
        ContextLogger("test_logger").warning("careful")

        assert mock_log.call_args[0][0] == logging.WARNING

    def test_update_context(self):
        logger = ContextLogger("test_logger", table="public.posts")

        logger.update_context(table="public.comments", operation="synchronize")

        assert logger.context == {"table": "public.comments", "operation": "synchronize"}

    def test_get_context_returns_copy(self):
        logger = ContextLogger("test_logger", table="public.posts")

        context = logger.get_context()
        context["table"] = "changed"

        assert logger.context["table"] == "public.posts"


class TestConfigureFromEnv:
    """Test configure_from_env function"""

    @patch.dict(os.environ, {
        "LOG_LEVEL": "DEBUG",
        "LOG_FILE": "/tmp/pgslice.log",
        "LOG_JSON": "true",
        "LOG_CONSOLE": "false",
    })
    @patch("utils.logging.config.setup_logging")
    def test_configure_from_env_all_vars_set(self, mock_setup):
        configure_from_env()

        mock_setup.assert_called_once_with(
            level="DEBUG",
            log_file="/tmp/pgslice.log",
            console_output=False,
            json_format=True,
        )

    @patch.dict(os.environ, {}, clear=True)
    @patch("utils.logging.config.setup_logging")
    def test_configure_from_env_with_defaults(self, mock_setup):
        configure_from_env()

        mock_setup.assert_called_once_with(
            level="INFO",
            log_file=None,
            console_output=True,
            json_format=False,
        )

    @patch.dict(os.environ, {"LOG_LEVEL": "WARNING"})
    @patch("utils.logging.config.setup_logging")
    def test_explicit_level_wins_over_environment(self, mock_setup):
        configure_from_env("DEBUG")

        assert mock_setup.call_args[1]["level"] == "DEBUG"

    @pytest.mark.parametrize("value,expected", [
        ("true", True), ("1", True), ("YES", True), ("false", False), ("no", False),
    ])
    @patch("utils.logging.config.setup_logging")
    def test_configure_from_env_json_variations(self, mock_setup, value, expected):
        with patch.dict(os.environ, {"LOG_JSON": value}):
            configure_from_env()

        assert mock_setup.call_args[1]["json_format"] is expected
