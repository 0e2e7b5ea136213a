"""
Tests for logging infrastructure.

Verifies logger configuration, file creation, and shutdown.
"""

import logging
from unittest.mock import patch

import pytest

import voxpaste.utils.logger as logger_module
from voxpaste.core.settings.config import get_log_level
from voxpaste.utils.logger import get_log_dir, get_logger, shutdown_logging


@pytest.fixture
def fresh_logger(tmp_path):
    """Re-initialize the app logger against a temporary log directory."""
    shutdown_logging()
    with patch.object(logger_module, "get_log_dir", return_value=tmp_path):
        yield tmp_path
    shutdown_logging()


class TestLoggerConfiguration:
    """Tests for logger setup and configuration."""

    def test_get_logger_returns_logger(self):
        """Test get_logger returns a Logger instance."""
        assert isinstance(get_logger("test"), logging.Logger)

    def test_get_logger_singleton(self):
        """Test get_logger returns same instance for the app logger."""
        assert get_logger() is get_logger("voxpaste")

    def test_module_loggers_are_children(self):
        logger = get_logger("voxpaste.core.session")
        assert logger.parent.name.startswith("voxpaste")

    def test_src_prefix_is_normalized(self):
        assert get_logger("src.voxpaste.core.session").name == "voxpaste.core.session"

    def test_log_directory(self):
        log_dir = get_log_dir()
        assert log_dir.exists()
        assert log_dir.is_dir()

    def test_logger_writes_to_file(self, fresh_logger):
        """Test logger writes messages to file."""
        logger = get_logger()
        logger.info("Test message")

        for handler in logger.handlers:
            handler.flush()

        content = (fresh_logger / "app.log").read_text(encoding="utf-8")
        assert "Test message" in content
        assert "INFO" in content

    def test_child_messages_reach_file(self, fresh_logger):
        get_logger()
        get_logger("voxpaste.core.optimizer").warning("child warning")

        for handler in logging.getLogger("voxpaste").handlers:
            handler.flush()

        assert "child warning" in (fresh_logger / "app.log").read_text(encoding="utf-8")


class TestShutdown:
    def test_shutdown_detaches_handlers(self, fresh_logger):
        logger = get_logger()
        assert logger.handlers

        shutdown_logging()

        assert logging.getLogger("voxpaste").handlers == []
        assert logger_module._logger_instance is None


class TestLogLevel:
    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("VOXPASTE_LOG_LEVEL", "warning")
        assert get_log_level() == logging.WARNING

    def test_unknown_level_defaults_to_info(self, monkeypatch):
        monkeypatch.setenv("VOXPASTE_LOG_LEVEL", "chatty")
        assert get_log_level() == logging.INFO
