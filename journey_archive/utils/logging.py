"""Logging configuration for Journey Archive.

Provides centralized logging setup with Rich console formatting
and optional file logging.

Example:
    >>> from journey_archive.utils.logging import setup_logging, LogContext
    >>> setup_logging(level="DEBUG")
    >>> with LogContext("Uploading batch"):
    ...     # do work
    ... # Logs: "Uploading batch completed in 2.3s"
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from journey_archive.config import LoggingConfig


# =============================================================================
# Constants
# =============================================================================

PACKAGE_NAME = "journey_archive"

# Third-party loggers that are chatty at INFO
NOISY_LOGGERS = [
    "httpx",
    "httpcore",
    "PIL",
    "asyncio",
]

FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_console = Console(stderr=True)


# =============================================================================
# Setup Functions
# =============================================================================


def setup_logging(
    level: str = "INFO",
    log_file: Path | None = None,
    quiet_third_party: bool = True,
) -> logging.Logger:
    """Configure logging for the journey_archive package.

    Sets up a Rich console handler and, optionally, a file handler.
    Calling it again replaces the previous handlers.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to log file.
        quiet_third_party: If True, suppress noisy third-party loggers.

    Returns:
        The package logger.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    package_logger = logging.getLogger(PACKAGE_NAME)
    package_logger.setLevel(numeric_level)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    console_handler = RichHandler(
        console=_console,
        show_time=False,
        show_path=False,
        rich_tracebacks=True,
        tracebacks_show_locals=numeric_level == logging.DEBUG,
        markup=False,
    )
    console_handler.setLevel(numeric_level)
    package_logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=FILE_DATE_FORMAT))
        package_logger.addHandler(file_handler)

    if quiet_third_party:
        for logger_name in NOISY_LOGGERS:
            logging.getLogger(logger_name).setLevel(logging.WARNING)

    package_logger.propagate = False
    package_logger.debug(f"Logging configured: level={level}, file={log_file}")
    return package_logger


def setup_logging_from_config(config: LoggingConfig, debug: bool = False) -> logging.Logger:
    """Configure logging from the ``logging`` config section."""
    level = "DEBUG" if debug else config.level
    return setup_logging(level=level, log_file=config.file)


# =============================================================================
# Log Context Manager
# =============================================================================


class LogContext:
    """Context manager for timing and logging operations.

    Attributes:
        message: Description of the operation.
        level: Log level for messages.
        logger: Logger instance to use.
        elapsed: Elapsed time in seconds (after exit).

    Example:
        >>> with LogContext("Saving batch metadata") as ctx:
        ...     pass
        # Logs: "Saving batch metadata..."
        # Logs: "Saving batch metadata completed in 0.41s"
    """

    def __init__(
        self,
        message: str,
        level: int = logging.INFO,
        logger: logging.Logger | None = None,
    ) -> None:
        self.message = message
        self.level = level
        self.logger = logger or logging.getLogger(PACKAGE_NAME)
        self.elapsed: float = 0.0
        self._start_time: float = 0.0

    def __enter__(self) -> "LogContext":
        self._start_time = time.perf_counter()
        self.logger.log(self.level, f"{self.message}...")
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self.elapsed = time.perf_counter() - self._start_time

        if exc_type is not None:
            self.logger.error(f"{self.message} failed after {self.elapsed:.2f}s: {exc_val}")
        else:
            self.logger.log(self.level, f"{self.message} completed in {self.elapsed:.2f}s")
