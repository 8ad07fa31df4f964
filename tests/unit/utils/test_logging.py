"""Tests for logging utilities module."""

import io
import logging
from pathlib import Path

import structlog

from sitewright.utils.logging import (
    _add_separator,
    _filter_event_dict,
    _truncate_base64,
    create_task_log_path,
    get_console,
    get_logger,
    set_log_output,
    setup_logging,
    setup_task_logging,
)


class TestTruncateBase64:
    """Tests for _truncate_base64 processor."""

    def test_truncates_data_uri(self):
        """Test inline image payloads keep their prefix but lose the data."""
        long_base64 = "A" * 200
        event_dict = {"event": "test", "image": f"data:image/png;base64,{long_base64}"}

        result = _truncate_base64(None, "info", event_dict)

        assert result["image"].startswith("data:image/png;base64,[BASE64:")
        assert long_base64 not in result["image"]

    def test_truncates_data_uri_inside_markup(self):
        """Test payloads embedded in chunk markup are shortened in place."""
        markup = f'<img alt="hero" src="data:image/jpeg;base64,{"B" * 400}">'
        event_dict = {"event": "test", "html": markup}

        result = _truncate_base64(None, "info", event_dict)

        assert result["html"].startswith('<img alt="hero" src="data:image/jpeg;base64,[BASE64:')
        assert result["html"].endswith('chars]">')

    def test_truncates_plain_base64(self):
        """Test truncating plain base64 string."""
        long_base64 = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/" * 20
        event_dict = {"event": "test", "data": long_base64}

        result = _truncate_base64(None, "info", event_dict)

        assert result["data"] == f"[BASE64:{len(long_base64)} chars]"

    def test_does_not_truncate_short_strings(self):
        """Test that short strings are not modified."""
        event_dict = {"event": "test", "data": "short string"}

        result = _truncate_base64(None, "info", event_dict)

        assert result["data"] == "short string"

    def test_handles_non_string_values(self):
        """Test handling non-string values."""
        event_dict = {"event": "test", "count": 42, "flag": True}

        result = _truncate_base64(None, "info", event_dict)

        assert result["count"] == 42
        assert result["flag"] is True


class TestFilterEventDict:
    """Tests for _filter_event_dict processor."""

    def test_truncates_long_string(self):
        """Test truncating long string values."""
        long_string = "x" * 1000
        event_dict = {"event": "test", "data": long_string}

        result = _filter_event_dict(None, "info", event_dict)

        assert result["data"] == "x" * 500 + "... [1000 chars total]"

    def test_does_not_truncate_short_string(self):
        """Test that short strings are not modified."""
        event_dict = {"event": "test", "data": "short"}

        result = _filter_event_dict(None, "info", event_dict)

        assert result["data"] == "short"


class TestAddSeparator:
    """Tests for _add_separator processor."""

    def test_adds_separator_when_context_present(self):
        """Test adding separator when context keys present."""
        event_dict = {"event": "Processing chunk", "chunk_id": "chunk-1"}

        result = _add_separator(None, "info", event_dict)

        assert result["event"] == "Processing chunk |"

    def test_no_separator_without_context(self):
        """Test no separator when no context keys."""
        event_dict = {"event": "Processing", "level": "info", "timestamp": "2025-01-01"}

        result = _add_separator(None, "info", event_dict)

        assert result["event"] == "Processing"

    def test_handles_missing_event(self):
        """Test handling event dict without event key."""
        event_dict = {"chunk_id": "chunk-1"}

        result = _add_separator(None, "info", event_dict)

        assert result == {"chunk_id": "chunk-1"}


class TestGetConsole:
    """Tests for get_console function."""

    def test_returns_console(self):
        """Test that get_console returns a Console."""
        from rich.console import Console

        assert isinstance(get_console(), Console)

    def test_returns_same_instance(self):
        """Test that get_console returns the same instance."""
        assert get_console() is get_console()


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_configures_root_logger(self):
        """Test that root logger is configured."""
        setup_logging(level="DEBUG")

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1

    def test_supports_json_format(self):
        """Test JSON format configuration."""
        setup_logging(level="INFO", json_format=True)

        assert logging.getLogger().level == logging.INFO

    def test_supports_file_logging(self, tmp_path):
        """Test file logging configuration."""
        log_file = tmp_path / "subdir" / "test.log"

        setup_logging(level="INFO", log_file=str(log_file))
        logging.getLogger("test").info("Test message")

        assert log_file.exists()
        assert len(logging.getLogger().handlers) == 2

    def test_handler_level_overrides(self, tmp_path):
        """Test console and file levels can differ from the root level."""
        setup_logging(
            level="DEBUG",
            log_file=str(tmp_path / "test.log"),
            console_level="WARNING",
            file_level="INFO",
        )

        console_handler, file_handler = logging.getLogger().handlers
        assert console_handler.level == logging.WARNING
        assert file_handler.level == logging.INFO

    def test_suppresses_noisy_loggers(self):
        """Test that noisy third-party loggers are suppressed."""
        setup_logging(level="INFO")

        assert logging.getLogger("httpx").level >= logging.WARNING
        assert logging.getLogger("openai").level >= logging.WARNING

    def test_custom_output_stream(self):
        """Test console output goes to the configured stream."""
        stream = io.StringIO()
        set_log_output(stream)
        try:
            setup_logging(level="INFO")
            get_logger("test").warning("Chunk failed", chunk_id="chunk-2")
        finally:
            set_log_output(io.StringIO())

        output = stream.getvalue()
        assert "Chunk failed |" in output
        assert "chunk-2" in output


class TestGetLogger:
    """Tests for get_logger function."""

    def test_returns_logger_with_methods(self):
        """Test that get_logger returns a logger with expected methods."""
        setup_logging(level="INFO")
        logger = get_logger("test")

        for method in ("debug", "info", "warning", "error"):
            assert hasattr(logger, method)


class TestCreateTaskLogPath:
    """Tests for create_task_log_path function."""

    def test_creates_log_directory(self, tmp_path):
        """Test that log directory is created."""
        log_dir = tmp_path / "logs"
        create_task_log_path(log_dir, "test")

        assert log_dir.exists()

    def test_returns_task_id_and_path(self, tmp_path):
        """Test the task id and the file name layout."""
        task_id, log_path = create_task_log_path(tmp_path, "redesign")

        assert len(task_id) == 8
        assert isinstance(log_path, Path)
        assert log_path.name.startswith("redesign_")
        assert log_path.name.endswith(f"_{task_id}.log")


class TestSetupTaskLogging:
    """Tests for setup_task_logging function."""

    def test_creates_log_file(self, tmp_path):
        """Test that log file is created."""
        _, log_path = setup_task_logging(tmp_path, "test")

        get_logger("test").info("Test message")

        assert log_path.exists()

    def test_binds_task_id(self, tmp_path):
        """Test the task id is bound for every later log line."""
        try:
            task_id, _ = setup_task_logging(tmp_path, "plan")

            assert structlog.contextvars.get_contextvars()["task_id"] == task_id
        finally:
            structlog.contextvars.clear_contextvars()

    def test_quiet_console(self, tmp_path):
        """Test the console only shows warnings unless verbose."""
        setup_task_logging(tmp_path, "test", verbose=False)
        console_handler = logging.getLogger().handlers[0]
        assert console_handler.level == logging.WARNING

        setup_task_logging(tmp_path, "test", verbose=True)
        console_handler = logging.getLogger().handlers[0]
        assert console_handler.level == logging.DEBUG
