"""
Logging and error handling framework for sesh.

This module provides:
- Structured logging configuration
- The base exception class for all sesh errors
- Context-aware logging utilities
- Performance and audit logging decorators
"""

import functools
import inspect
import json
import logging
import logging.config
import sys
import time
import traceback
from collections.abc import Callable
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any


class LogLevel(str, Enum):
    """Log level enumeration for type safety."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogContext(str, Enum):
    """Log context categories for structured logging."""

    ORCHESTRATOR = "orchestrator"
    DISCOVERY = "discovery"
    STORE = "store"
    CAPTURE = "capture"
    CONTROLLER = "controller"
    TEMPLATE = "template"
    REMOTE = "remote"
    CLI = "cli"
    CONFIG = "config"
    INTEGRATION = "integration"
    PROCESS = "process"


class SeshException(Exception):
    """Base exception class for all sesh errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)


class ConfigurationError(SeshException):
    """Errors related to configuration and setup."""

    pass


class StructuredFormatter(logging.Formatter):
    """Custom formatter for structured JSON logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if hasattr(record, "context"):
            log_data["context"] = record.context

        if hasattr(record, "session_id"):
            log_data["session_id"] = record.session_id

        # Everything else passed through ``extra``
        standard_fields = {
            "name",
            "msg",
            "args",
            "levelname",
            "levelno",
            "pathname",
            "filename",
            "module",
            "exc_info",
            "exc_text",
            "stack_info",
            "lineno",
            "funcName",
            "created",
            "msecs",
            "relativeCreated",
            "thread",
            "threadName",
            "processName",
            "process",
            "taskName",
            "getMessage",
            "context",
            "session_id",
        }

        for key, value in record.__dict__.items():
            if key not in standard_fields and not key.startswith("_"):
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": traceback.format_exception(*record.exc_info),
            }

        return json.dumps(log_data, default=str)


class ContextualLogger:
    """Logger with context management for structured logging."""

    def __init__(self, name: str, context: LogContext):
        self.logger = logging.getLogger(name)
        self.context = context.value
        self.session_id: str | None = None

    def set_session_id(self, session_id: str | None) -> None:
        """Set the session identifier for all subsequent log messages."""
        self.session_id = session_id

    def _log(
        self, level: int, message: str, extra_context: dict[str, Any] | None = None
    ) -> None:
        """Internal logging method with context injection."""
        extra: dict[str, Any] = {
            "context": self.context,
        }

        if self.session_id:
            extra["session_id"] = self.session_id

        if extra_context:
            extra.update(extra_context)

        self.logger.log(level, message, extra=extra)

    def debug(self, message: str, **kwargs) -> None:
        """Log debug message with context."""
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs) -> None:
        """Log info message with context."""
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs) -> None:
        """Log warning message with context."""
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, exception: Exception | None = None, **kwargs) -> None:
        """Log error message with context and optional exception."""
        if exception:
            self.logger.error(
                message,
                exc_info=exception,
                extra={
                    "context": self.context,
                    "session_id": self.session_id,
                    **kwargs,
                },
            )
        else:
            self._log(logging.ERROR, message, kwargs)


def get_logger(name: str, context: LogContext) -> ContextualLogger:
    """Get a contextual logger instance."""
    return ContextualLogger(name, context)


def setup_logging(
    log_level: str | LogLevel = LogLevel.WARNING,
    log_file: Path | None = None,
    enable_structured: bool = False,
    enable_console: bool = True,
) -> None:
    """
    Setup logging configuration.

    Console output goes to stderr so command output on stdout stays parseable.

    Args:
        log_level: Minimum log level to capture
        log_file: Optional file path for log output
        enable_structured: Use JSON structured logging format
        enable_console: Enable console output
    """
    if isinstance(log_level, LogLevel):
        log_level = log_level.value

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)

    handlers: list[logging.Handler] = []

    if enable_console:
        console_handler = logging.StreamHandler(sys.stderr)
        if enable_structured:
            console_handler.setFormatter(StructuredFormatter())
        else:
            console_handler.setFormatter(
                logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            )
        handlers.append(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        if enable_structured:
            file_handler.setFormatter(StructuredFormatter())
        else:
            file_handler.setFormatter(
                logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            )
        handlers.append(file_handler)

    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    # Suppress noisy third-party loggers
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("git").setLevel(logging.WARNING)


def flush_logging() -> None:
    """Flush all root handlers, used before the process image is replaced."""
    for handler in logging.getLogger().handlers:
        handler.flush()


def log_performance(log_context: LogContext = LogContext.ORCHESTRATOR):
    """Decorator to log function performance metrics.

    Works on both plain functions and coroutine functions.
    """

    def decorator(func: Callable) -> Callable:
        logger = get_logger(func.__module__, log_context)

        def _report(start_time: float, error: Exception | None = None) -> None:
            execution_time = time.monotonic() - start_time
            if error is None:
                logger.debug(
                    f"Performance: {func.__name__} completed",
                    function=func.__name__,
                    execution_time=execution_time,
                    status="success",
                )
            else:
                logger.warning(
                    f"Performance: {func.__name__} failed",
                    function=func.__name__,
                    execution_time=execution_time,
                    status="error",
                    error=str(error),
                )

        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                start_time = time.monotonic()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    _report(start_time, e)
                    raise
                _report(start_time)
                return result

            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            start_time = time.monotonic()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _report(start_time, e)
                raise
            _report(start_time)
            return result

        return wrapper

    return decorator


def audit_log(action: str, log_context: LogContext = LogContext.ORCHESTRATOR):
    """Decorator for audit logging of mutating operations.

    Works on both plain functions and coroutine functions.
    """

    def decorator(func: Callable) -> Callable:
        logger = get_logger(f"{func.__module__}.audit", log_context)

        def _started(args: tuple) -> None:
            logger.info(
                f"Audit: {action} started",
                action=action,
                function=func.__name__,
                arguments=str(args[1:])[:200],
            )

        def _finished(error: Exception | None = None) -> None:
            if error is None:
                logger.info(
                    f"Audit: {action} completed successfully",
                    action=action,
                    function=func.__name__,
                    status="success",
                )
            else:
                logger.error(
                    f"Audit: {action} failed",
                    action=action,
                    function=func.__name__,
                    status="error",
                    error=str(error),
                )

        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                _started(args)
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    _finished(e)
                    raise
                _finished()
                return result

            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            _started(args)
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _finished(e)
                raise
            _finished()
            return result

        return wrapper

    return decorator
