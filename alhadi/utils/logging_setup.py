"""Logging setup for Al-Hadi Media with file and console output"""

import logging
import logging.handlers
import sys
from pathlib import Path

from alhadi.config import LoggingConfig


def setup_logging(
    log_level: str = "INFO",
    log_file_name: str | None = None,
    log_to_console: bool = True,
    log_to_file: bool = True,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
    log_format: str | None = None,
) -> logging.Logger:
    """
    Set up logging for the Al-Hadi Media application.

    This configures logging to write to:
    - Console (stdout) with a short format
    - File with rotation and the detailed format

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file_name: Path to log file (can be absolute or relative)
        log_to_console: Whether to log to console
        log_to_file: Whether to log to file
        max_bytes: Maximum size of log file before rotation (default 10MB)
        backup_count: Number of backup files to keep
        log_format: Custom log format string for the file handler

    Returns:
        Configured root logger
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    log_file_path = Path(log_file_name or "logs/alhadi.log")

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Clear any existing handlers to avoid duplicates
    root_logger.handlers.clear()

    detailed_formatter = logging.Formatter(
        log_format or "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    console_formatter = logging.Formatter(
        "%(asctime)s - %(levelname)s - %(message)s", datefmt="%H:%M:%S"
    )

    if log_to_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(console_formatter)
        root_logger.addHandler(console_handler)

    if log_to_file:
        log_file_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_file_path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(detailed_formatter)
        root_logger.addHandler(file_handler)

    # Quiet chatty client libraries below our own level
    logging.getLogger("httpx").setLevel(max(numeric_level, logging.WARNING))

    root_logger.info(f"Al-Hadi Media logging initialized - Level: {log_level}")
    if log_to_file:
        root_logger.info(f"Log file: {log_file_path}")

    return root_logger


def setup_logging_from_config(logging_config: LoggingConfig) -> logging.Logger:
    """Set up logging from the `logging` configuration section."""
    return setup_logging(
        log_level=logging_config.level,
        log_file_name=logging_config.file,
        log_to_console=logging_config.to_console,
        log_to_file=logging_config.to_file,
        max_bytes=logging_config.max_bytes,
        backup_count=logging_config.backup_count,
        log_format=logging_config.format,
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a specific module.

    Args:
        name: Name of the logger (usually __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def log_exception(
    logger: logging.Logger, exception: Exception, message: str = "Exception occurred"
):
    """
    Log an exception with full traceback.

    Args:
        logger: Logger instance to use
        exception: Exception to log
        message: Additional context message
    """
    logger.error(f"{message}: {exception!s}", exc_info=True)
