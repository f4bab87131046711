"""
Logging configuration for eml2feed.

Two output styles:
- Production: one JSON object per line for log shippers
- Development: human-readable colored lines

Usage:
    from eml2feed.logging_config import configure_logging, log_timing

    configure_logging()  # Call once at startup

    @log_timing(operation="Entry upsert")
    def sync():
        ...
"""

import functools
import json
import logging
import os
import time
from datetime import UTC, datetime
from typing import Any, Callable, Dict, Optional

# LogRecord attributes that are not user-supplied extras
_RESERVED_ATTRS = frozenset(
    (
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    )
)


class JSONFormatter(logging.Formatter):
    """JSON log formatter for production environments."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        return json.dumps(log_data, default=str)


class DevFormatter(logging.Formatter):
    """Human-readable formatter for terminals."""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

        base = f"{timestamp} {color}{record.levelname:8}{self.RESET} [{record.name}] {record.getMessage()}"

        extras = []
        for key in ("duration_ms", "entries_count", "messages_count"):
            if hasattr(record, key):
                value = getattr(record, key)
                if key == "duration_ms":
                    extras.append(f"{value}ms")
                else:
                    extras.append(f"{key.replace('_count', '')}={value}")

        if extras:
            base += f" ({', '.join(extras)})"

        if record.exc_info:
            base += "\n" + self.formatException(record.exc_info)

        return base


def configure_logging(
    level: Optional[str] = None,
    force_json: bool = False,
) -> None:
    """
    Configure process-wide logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR). Defaults to LOG_LEVEL or INFO.
        force_json: Force JSON formatting regardless of environment.
    """
    environment = os.environ.get("ENVIRONMENT", "development")
    log_level = level or os.environ.get("LOG_LEVEL", "INFO")

    use_json = force_json or environment == "production"

    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter() if use_json else DevFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Remove existing handlers to avoid duplicates
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    # SQL echo and driver chatter stay out of import output
    for noisy_logger in ("sqlalchemy.engine", "sqlalchemy.pool", "psycopg"):
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        "Logging configured",
        extra={
            "environment": environment,
            "log_level": log_level,
            "format": "json" if use_json else "dev",
        },
    )


def log_timing(operation: Optional[str] = None) -> Callable:
    """
    Decorator to log function execution time.

    Args:
        operation: Custom operation name (defaults to function name)

    Usage:
        @log_timing(operation="Entry removal")
        def sync_delete(entries):
            ...
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            logger = logging.getLogger(func.__module__)
            op_name = operation or func.__name__

            start_time = time.perf_counter()

            try:
                result = func(*args, **kwargs)
            except Exception as e:
                duration_ms = (time.perf_counter() - start_time) * 1000
                logger.error(
                    f"{op_name} failed: {e}",
                    extra={"duration_ms": round(duration_ms, 2)},
                )
                raise

            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.info(
                f"{op_name} completed", extra={"duration_ms": round(duration_ms, 2)}
            )
            return result

        return wrapper

    return decorator
