"""Tests for logging system."""

import logging
from pathlib import Path

import structlog

from momory.telemetry.logger import (
    bind_context,
    clear_context,
    get_logger,
    log_context,
    setup_logging,
)


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_console_and_json(self) -> None:
        setup_logging(level="DEBUG", json_format=False)
        assert logging.getLogger().level == logging.DEBUG

        setup_logging(level="INFO", json_format=True)
        assert logging.getLogger().level == logging.INFO

    def test_log_file_directory_created(self, tmp_path: Path) -> None:
        log_file = tmp_path / "logs" / "momory.log"

        setup_logging(level="DEBUG", log_file=log_file)
        get_logger("test").info("test message")

        assert log_file.parent.exists()

    def test_repeated_setup_does_not_stack_handlers(self, tmp_path: Path) -> None:
        log_file = tmp_path / "momory.log"

        setup_logging(log_file=log_file)
        setup_logging(log_file=log_file)

        assert len(logging.getLogger().handlers) == 2

    def test_http_client_logs_quieted(self) -> None:
        setup_logging(level="DEBUG")
        assert logging.getLogger("httpx").level == logging.WARNING


class TestContext:
    """Tests for context binding."""

    def test_get_logger_has_logging_methods(self) -> None:
        logger = get_logger(__name__)
        assert hasattr(logger, "info")
        assert hasattr(logger, "warning")
        assert hasattr(logger, "error")

    def test_bind_and_clear(self) -> None:
        clear_context()

        bind_context(session_id="abc123")
        assert structlog.contextvars.get_contextvars()["session_id"] == "abc123"

        clear_context()
        assert structlog.contextvars.get_contextvars() == {}

    def test_log_context_is_scoped(self) -> None:
        clear_context()

        with log_context(session_id="s1", interaction=3):
            assert structlog.contextvars.get_contextvars() == {"session_id": "s1", "interaction": 3}

        assert structlog.contextvars.get_contextvars() == {}
