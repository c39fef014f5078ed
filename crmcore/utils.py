"""
Utility functions for crmcore.

Includes logging setup, the NOTICE log level, retries and file permissions.
"""

import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional

from rich.console import Console
from rich.logging import RichHandler

from crmcore.errors import TransientError


# Between INFO and WARNING: soft failures that did not abort anything
NOTICE = 25
logging.addLevelName(NOTICE, "NOTICE")


def log_notice(logger: logging.Logger, message: str, *args) -> None:
    """Log at NOTICE level."""
    logger.log(NOTICE, message, *args)


def setup_logging(
    log_file: Optional[Path] = None,
    log_level: str = "INFO",
    log_format: str = "structured",
    console_output: bool = True,
) -> logging.Logger:
    """
    Set up logging for the crmcore logger.

    Args:
        log_file: Path to log file, or None for console only
        log_level: Logging level (DEBUG, INFO, NOTICE, WARNING, ERROR)
        log_format: "structured" (JSON) or "pretty" (human-readable)
        console_output: Also log to console

    Returns:
        Configured logger
    """
    logger = logging.getLogger("crmcore")
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")
    logger.setLevel(level)
    logger.handlers = []  # Clear existing handlers

    if log_file is not None:
        ensure_directory_permissions(log_file.parent)
        file_handler = logging.FileHandler(log_file)
        if log_format == "structured":
            file_handler.setFormatter(StructuredFormatter())
        else:
            file_handler.setFormatter(
                logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            )
        logger.addHandler(file_handler)

    if console_output:
        if log_format == "pretty":
            console_handler = RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_time=False)
        else:
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(
                logging.Formatter("%(levelname)s: %(message)s")
            )
        logger.addHandler(console_handler)

    return logger


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Add extra fields if present
        if hasattr(record, "entity_type"):
            log_data["entity_type"] = record.entity_type
        if hasattr(record, "record_id"):
            log_data["record_id"] = record.record_id
        if hasattr(record, "formula"):
            log_data["formula"] = record.formula

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def retry_with_backoff(
    func: Callable,
    max_attempts: int = 3,
    backoff_seconds: float = 0.5,
    backoff_multiplier: float = 2.0,
    logger: Optional[logging.Logger] = None,
) -> Any:
    """
    Retry a function with exponential backoff.

    Only TransientError is retried; anything else propagates on the first
    attempt.

    Args:
        func: Function to retry
        max_attempts: Maximum number of attempts
        backoff_seconds: Initial backoff time in seconds
        backoff_multiplier: Multiplier for each retry
        logger: Logger for retry messages

    Returns:
        Result of successful function call

    Raises:
        TransientError: If all retries exhausted
    """
    attempt = 1
    wait_time = backoff_seconds

    while True:
        try:
            return func()

        except TransientError as e:
            if attempt >= max_attempts:
                if logger:
                    logger.error(f"All {max_attempts} attempts failed: {e}")
                raise

            if logger:
                logger.warning(
                    f"Attempt {attempt} failed: {e}. Retrying in {wait_time}s..."
                )

            time.sleep(wait_time)
            wait_time *= backoff_multiplier
            attempt += 1


def ensure_directory_permissions(directory: Path, mode: int = 0o700) -> None:
    """
    Ensure directory exists with correct permissions.

    Args:
        directory: Directory path
        mode: Permission mode (default: 0o700)
    """
    directory.mkdir(parents=True, exist_ok=True)
    directory.chmod(mode)
