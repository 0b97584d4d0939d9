"""Logging utilities for screen operations."""

import logging
from typing import Any

# Create screen logger
screen_logger = logging.getLogger("sesh.screen")


def log_session_operation(
    operation: str, session_name: str, status: str, context: dict[str, Any] | None = None
) -> None:
    """Log session operation."""
    message = f"Session {operation} {status} - {session_name}"
    if context:
        message += f" - {context}"

    if status == "error":
        screen_logger.error(message)
    else:
        screen_logger.info(message)


def log_session_attach(session_name: str, mode: str, host: str | None = None) -> None:
    """Log session attachment."""
    message = f"Session attached - {session_name} (mode: {mode})"
    if host:
        message += f" (host: {host})"
    screen_logger.info(message)


def log_session_detach(session_name: str) -> None:
    """Log session detachment."""
    screen_logger.info(f"Session detached - {session_name}")


def log_session_kill(session_name: str) -> None:
    """Log session termination."""
    screen_logger.info(f"Session killed - {session_name}")


def log_session_list(sessions: list[Any], host: str | None = None) -> None:
    """Log session listing."""
    message = f"Sessions listed - count: {len(sessions)}"
    if host:
        message += f" (host: {host})"
    screen_logger.debug(message)


def log_skipped_line(line: str, host: str | None = None) -> None:
    """Log a listing line that could not be parsed."""
    message = f"Skipped unparseable listing line - {line!r}"
    if host:
        message += f" (host: {host})"
    screen_logger.warning(message)


def log_partial_session(session_name: str, reason: str) -> None:
    """Log a session whose windows could not be enumerated."""
    screen_logger.warning(f"Window enumeration failed - {session_name}: {reason}")


def log_template_applied(session_name: str, template_name: str, windows: list[str]) -> None:
    """Log template instantiation."""
    message = f"Template applied - {session_name} (template: {template_name}, windows: {windows})"
    screen_logger.info(message)
