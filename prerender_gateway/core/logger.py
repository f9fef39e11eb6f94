"""
Centralized logging setup for the Prerender Gateway.

Logging is configured from the 'logging' section of the YAML configuration,
with a console handler and an optional rotating file handler.

Key Functions:
- `setup_logging()`: Initializes the logging system. Called once at application startup.
- `get_logger(name)`: Returns a logger, initializing logging with fallbacks if needed.
"""
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional, Dict, Any

from prerender_gateway.core.config import ConfigurationManager

# PROJECT_ROOT: Root of the repository, used to resolve relative log file paths.
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))

DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Loggers of the serving stack that should follow the configured level.
THIRD_PARTY_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")

_logging_initialized = False


def setup_logging(config: Optional[ConfigurationManager] = None) -> None:
    """
    Sets up centralized logging using settings from a `ConfigurationManager`.

    Falls back to `logging.basicConfig` when no configuration, or no 'logging'
    section, is available.

    Args:
        config (Optional[ConfigurationManager]): The configuration to read. If None,
            the global `config_manager` is used.
    """
    global _logging_initialized
    if _logging_initialized:
        logging.getLogger(__name__).debug("Logging setup_logging: Already initialized.")
        return

    current_config = config
    if current_config is None:
        from prerender_gateway.core.config import config_manager as global_config_manager
        current_config = global_config_manager

    log_settings: Optional[Dict[str, Any]] = current_config.get("logging")
    if not log_settings:
        logging.basicConfig(level=logging.INFO, format=DEFAULT_LOG_FORMAT)
        logging.warning("Logging setup: 'logging' section not found in configuration. Using basicConfig.")
        _logging_initialized = True
        return

    log_level_str = str(log_settings.get("level", "INFO")).upper()
    log_level = getattr(logging, log_level_str, logging.INFO)
    log_format = log_settings.get("format", DEFAULT_LOG_FORMAT)

    root_logger = logging.getLogger()
    # Drop handlers installed earlier (basicConfig, test runners) to avoid duplicate lines.
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    root_logger.setLevel(log_level)
    formatter = logging.Formatter(log_format)

    handlers_settings = log_settings.get("handlers", {}) or {}
    console_handler_settings = handlers_settings.get("console", {}) or {}
    if console_handler_settings.get("enabled", True):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    file_handler_settings = handlers_settings.get("file", {}) or {}
    log_file_path_absolute = None
    if file_handler_settings.get("enabled", False):
        log_file_path_relative = file_handler_settings.get("path", "logs/prerender_gateway.log")
        log_file_path_absolute = os.path.join(PROJECT_ROOT, log_file_path_relative)
        max_bytes = int(file_handler_settings.get("max_bytes", 10 * 1024 * 1024))
        backup_count = int(file_handler_settings.get("backup_count", 5))

        try:
            os.makedirs(os.path.dirname(log_file_path_absolute), exist_ok=True)
            file_handler = RotatingFileHandler(
                filename=log_file_path_absolute,
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding='utf-8'
            )
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
        except OSError as e:
            logging.error(f"Logging setup: Failed to configure file logging at '{log_file_path_absolute}': {e}. File logging disabled.", exc_info=True)
            log_file_path_absolute = None

    for name in THIRD_PARTY_LOGGERS:
        logging.getLogger(name).setLevel(log_level)

    _logging_initialized = True
    logging.info(f"Logging system initialized. Level: {log_level_str}.")
    if log_file_path_absolute:
        logging.debug(f"File logging handler enabled at path: {log_file_path_absolute}")


def get_logger(name: str) -> logging.Logger:
    """
    Retrieves a logger instance with the specified name.

    Ensures `setup_logging()` has run at least once, so modules can call this at
    import time.

    Args:
        name (str): The logger name, typically `__name__` of the calling module.

    Returns:
        logging.Logger: An instance of `logging.Logger`.
    """
    if not _logging_initialized:
        setup_logging()
    return logging.getLogger(name)
