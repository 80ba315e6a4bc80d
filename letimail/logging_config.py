"""
Structured Logging
==================

JSON logging to stdout with request correlation IDs,
the authenticated user, and keyword fields as JSON keys.
"""

from __future__ import annotations

import json
import logging
import sys
import time
import traceback
from contextvars import ContextVar
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Callable, Optional, TypeVar
from uuid import uuid4

# Context variables for request correlation
request_id_var: ContextVar[str] = ContextVar("request_id", default="")
user_id_var: ContextVar[str] = ContextVar("user_id", default="")

F = TypeVar("F", bound=Callable[..., Any])

# Shared level for every logger created through get_logger
_level: int = logging.INFO

# Keys never written to a log line
REDACTED_KEYS = frozenset({"password", "token", "otp", "code", "api_key", "authorization"})


class JsonFormatter(logging.Formatter):
    """
    JSON formatter for container log collectors.

    One JSON object per line, with severity, timestamp,
    source location, correlation IDs and extra fields.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as a single JSON line."""
        log_entry: dict[str, Any] = {
            "severity": record.levelname,
            "message": record.getMessage(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "logger": record.name,
            "source": f"{record.module}:{record.lineno}",
        }

        request_id = request_id_var.get()
        if request_id:
            log_entry["request_id"] = request_id
        user_id = user_id_var.get()
        if user_id:
            log_entry["user_id"] = user_id

        if hasattr(record, "extra_fields"):
            for key, value in record.extra_fields.items():
                log_entry[key] = "[redacted]" if key.lower() in REDACTED_KEYS else value

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else "Unknown",
                "message": str(record.exc_info[1]) if record.exc_info[1] else "",
                "traceback": traceback.format_exception(*record.exc_info),
            }

        return json.dumps(log_entry, default=str, ensure_ascii=False)


class StructuredLogger:
    """
    Structured logger with context support.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Email generated", user_id="abc123", tone="friendly")
        >>> logger.error("Send failed", error=str(e), recipient="test@example.com")
    """

    def __init__(self, name: str, level: Optional[int] = None) -> None:
        self._logger = logging.getLogger(name)
        self._logger.setLevel(level if level is not None else _level)

        # Avoid duplicate handlers
        if not self._logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(JsonFormatter())
            self._logger.addHandler(handler)
            self._logger.propagate = False

    def _log(
        self,
        level: int,
        message: str,
        exc_info: bool = False,
        **kwargs: Any
    ) -> None:
        extra = {"extra_fields": kwargs} if kwargs else {}
        self._logger.log(level, message, exc_info=exc_info, extra=extra)

    def set_level(self, level: int) -> None:
        self._logger.setLevel(level)

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, exc_info: bool = False, **kwargs: Any) -> None:
        self._log(logging.ERROR, message, exc_info=exc_info, **kwargs)

    def critical(self, message: str, exc_info: bool = False, **kwargs: Any) -> None:
        self._log(logging.CRITICAL, message, exc_info=exc_info, **kwargs)

    def exception(self, message: str, **kwargs: Any) -> None:
        """Log exception with traceback."""
        self._log(logging.ERROR, message, exc_info=True, **kwargs)


_loggers: dict[str, StructuredLogger] = {}


def get_logger(name: str) -> StructuredLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        StructuredLogger instance
    """
    if name not in _loggers:
        _loggers[name] = StructuredLogger(name)
    return _loggers[name]


def configure_logging(level: str = "INFO") -> None:
    """
    Set the minimum level for all structured loggers.

    Args:
        level: Level name such as "DEBUG" or "INFO".
    """
    global _level
    _level = logging.getLevelName(level.upper()) if isinstance(level, str) else level
    if not isinstance(_level, int):
        _level = logging.INFO
    for logger in _loggers.values():
        logger.set_level(_level)


def generate_request_id() -> str:
    """Generate a unique request ID."""
    return str(uuid4())


def set_request_id(request_id: Optional[str] = None) -> str:
    """
    Set the request ID for the current context.

    Args:
        request_id: Optional request ID. If not provided, generates a new one.

    Returns:
        The request ID that was set.
    """
    rid = request_id or generate_request_id()
    request_id_var.set(rid)
    return rid


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


def set_user_id(user_id: Optional[str]) -> None:
    """Bind the authenticated user to the current context."""
    user_id_var.set(user_id or "")


def log_execution_time(logger: Optional[StructuredLogger] = None) -> Callable[[F], F]:
    """
    Decorator to log function execution time.

    Args:
        logger: Logger instance. If not provided, creates one based on function module.

    Example:
        >>> @log_execution_time()
        ... def call_llm():
        ...     ...
    """
    def decorator(func: F) -> F:
        nonlocal logger
        if logger is None:
            logger = get_logger(func.__module__)

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                logger.error(
                    f"Function {func.__name__} failed",
                    function=func.__name__,
                    duration_seconds=round(time.perf_counter() - start, 4),
                    status="error",
                    error=str(e)
                )
                raise
            logger.info(
                f"Function {func.__name__} completed",
                function=func.__name__,
                duration_seconds=round(time.perf_counter() - start, 4),
                status="success"
            )
            return result

        return wrapper  # type: ignore

    return decorator
