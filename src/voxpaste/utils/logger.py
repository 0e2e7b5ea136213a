import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from platformdirs import user_log_path

APP_LOGGER_NAME = "voxpaste"
LOG_FILE_NAME = "app.log"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_MAX_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5

_logger_instance: Optional[logging.Logger] = None


def get_log_dir() -> Path:
    return user_log_path(APP_LOGGER_NAME, appauthor=False, ensure_exists=True)


def _configure_app_logger(app_logger: logging.Logger) -> None:
    from ..core.settings.config import LOG_TO_CONSOLE, get_log_level

    level = get_log_level()
    app_logger.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    handlers: list[logging.Handler] = [
        RotatingFileHandler(
            get_log_dir() / LOG_FILE_NAME,
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
    ]
    if LOG_TO_CONSOLE:
        handlers.append(logging.StreamHandler(sys.stderr))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        app_logger.addHandler(handler)


def get_logger(name: str = APP_LOGGER_NAME) -> logging.Logger:
    """
    Return a logger under the ``voxpaste`` hierarchy.

    The first call attaches the rotating file handler (and the console handler
    when enabled) to the app logger; module loggers inherit them.
    """
    global _logger_instance

    if name.startswith(f"src.{APP_LOGGER_NAME}"):
        name = name[len("src.") :]

    if _logger_instance is None:
        app_logger = logging.getLogger(APP_LOGGER_NAME)
        if not app_logger.handlers:
            _configure_app_logger(app_logger)
        _logger_instance = app_logger

    if name == APP_LOGGER_NAME:
        return _logger_instance
    return logging.getLogger(name)


def shutdown_logging() -> None:
    """Close and detach all handlers so the log file is released."""
    global _logger_instance
    app_logger = logging.getLogger(APP_LOGGER_NAME)
    for handler in app_logger.handlers[:]:
        handler.close()
        app_logger.removeHandler(handler)
    _logger_instance = None
