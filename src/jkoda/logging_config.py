"""Centralized logging configuration for jkoda.

Logging is configured through environment variables or programmatically.
Loggers live under the ``jkoda`` namespace; engine setup and schedule
generation log at DEBUG, period-end adjustments at WARNING, calculator
results at INFO and skipped portfolio contracts at ERROR.
"""

import json
import logging
import logging.handlers
import os
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
ROOT_LOGGER_NAME = "jkoda"

# Environment variable names
ENV_LOG_LEVEL = "JKODA_LOG_LEVEL"
ENV_LOG_FILE = "JKODA_LOG_FILE"
ENV_LOG_FORMAT = "JKODA_LOG_FORMAT"
ENV_STRUCTURED_LOGS = "JKODA_STRUCTURED_LOGS"
ENV_PERF_LOG_LEVEL = "JKODA_PERF_LOG_LEVEL"

# Attributes every LogRecord carries; anything else came in through ``extra``.
_STANDARD_RECORD_FIELDS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime"}


def _resolve_level(level: str | None, env_var: str = ENV_LOG_LEVEL) -> int:
    level_str = level or os.getenv(env_var) or DEFAULT_LOG_LEVEL
    return getattr(logging, level_str.upper(), logging.INFO)


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").lower() in ("true", "1", "yes")


class StructuredFormatter(logging.Formatter):
    """Formatter that outputs log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as JSON.

        Fields passed through ``extra`` (contract_id, evaluation_date, ...)
        are copied into the output object.

        Args:
            record: The log record to format

        Returns:
            JSON string representation of the log record
        """
        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _STANDARD_RECORD_FIELDS:
                log_data[key] = value

        return json.dumps(log_data, default=str)


def get_logger(name: str, level: str | None = None) -> logging.Logger:
    """Get a logger in the jkoda namespace.

    Args:
        name: Name of the logger (typically __name__ of the calling module)
        level: Optional log level override. Without one the logger inherits
               from the ``jkoda`` root configured by configure_logging().

    Returns:
        Logger instance

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Pricing contract", extra={"contract_id": "KODA-001"})
    """
    logger = logging.getLogger(name)
    if level is not None:
        logger.setLevel(_resolve_level(level))
    return logger


def configure_logging(
    level: str | None = None,
    log_file: str | None = None,
    console: bool = True,
    structured: bool = False,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> None:
    """Configure logging for the entire jkoda package.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               Defaults to JKODA_LOG_LEVEL or INFO.
        log_file: Path to a rotating log file. Defaults to JKODA_LOG_FILE;
                  no file logging when neither is set.
        console: Whether to log to stderr. Default: True
        structured: Whether to emit JSON lines. Can also be switched on with
                    JKODA_STRUCTURED_LOGS.
        max_bytes: Maximum size of log file before rotation (default: 10MB)
        backup_count: Number of rotated files to keep (default: 5)

    Example:
        >>> configure_logging(level="DEBUG")
        >>> configure_logging(level="INFO", log_file="/var/log/jkoda.log", structured=True)
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.handlers.clear()

    log_level = _resolve_level(level)
    logger.setLevel(log_level)

    if structured or _env_flag(ENV_STRUCTURED_LOGS):
        formatter: logging.Formatter = StructuredFormatter(datefmt=DEFAULT_DATE_FORMAT)
    else:
        log_format = os.getenv(ENV_LOG_FORMAT, DEFAULT_LOG_FORMAT)
        formatter = logging.Formatter(log_format, datefmt=DEFAULT_DATE_FORMAT)

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    log_file_path = log_file or os.getenv(ENV_LOG_FILE)
    if log_file_path:
        Path(log_file_path).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file_path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False


def get_performance_logger(name: str) -> logging.Logger:
    """Get a logger for timing information.

    Performance loggers sit under ``jkoda.performance`` and default to DEBUG,
    controlled separately through JKODA_PERF_LOG_LEVEL.

    Args:
        name: Name of the performance logger

    Returns:
        Logger configured for performance monitoring
    """
    logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.performance.{name}")
    perf_level = os.getenv(ENV_PERF_LOG_LEVEL, "DEBUG")
    logger.setLevel(getattr(logging, perf_level.upper(), logging.DEBUG))
    return logger


@contextmanager
def log_duration(logger: logging.Logger, label: str, **fields: Any) -> Iterator[None]:
    """Log the wall-clock duration of a block at DEBUG level.

    Example:
        >>> perf = get_performance_logger("engine")
        >>> with log_duration(perf, "price paths", num_paths=10_000):
        ...     pass
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000.0
        logger.debug(f"{label} took {elapsed_ms:.1f} ms", extra={"duration_ms": elapsed_ms, **fields})


def disable_logging() -> None:
    """Disable all jkoda logging.

    Useful for tests or applications that want to suppress package output.
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.handlers.clear()
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


# Sensible defaults without explicit configuration
if not logging.getLogger(ROOT_LOGGER_NAME).handlers:
    configure_logging()
