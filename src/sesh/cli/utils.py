"""CLI utilities for output formatting and common functionality."""

import json
import sys
from collections.abc import Callable
from functools import wraps
from pathlib import Path
from typing import Any

import click

from ..config.loader import SeshConfig, load_config
from ..core.exceptions import SeshError
from ..utils.logging import ConfigurationError, LogContext, get_logger, setup_logging

logger = get_logger(__name__, LogContext.CLI)


class CliError(Exception):
    """Exception for CLI errors."""

    def __init__(self, message: str, exit_code: int = 1):
        """Initialize CLI error.

        Args:
            message: Error message
            exit_code: Exit code for the CLI
        """
        super().__init__(message)
        self.message = message
        self.exit_code = exit_code


def describe_error(error: SeshError) -> str:
    """One-line description with the target and the raw external text."""
    text = error.message
    if error.target:
        text = f"{error.target}: {text}"
    if error.detail:
        text = f"{text}: {error.detail}"
    return text


def error_handler(func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator for handling CLI errors."""

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except CliError as e:
            click.echo(click.style(f"Error: {e.message}", fg="red"), err=True)
            sys.exit(e.exit_code)
        except SeshError as e:
            click.echo(click.style(f"Error: {describe_error(e)}", fg="red"), err=True)
            sys.exit(1)
        except ConfigurationError as e:
            click.echo(click.style(f"Configuration error: {e.message}", fg="red"), err=True)
            sys.exit(1)
        except (click.exceptions.Exit, click.ClickException):
            raise
        except Exception as e:
            click.echo(click.style(f"Unexpected error: {e}", fg="red"), err=True)
            sys.exit(1)

    return wrapper


def success_message(message: str) -> None:
    """Display a success message."""
    click.echo(click.style(f"✓ {message}", fg="green"))


def output_json(data: Any) -> None:
    """Output data as JSON."""
    click.echo(json.dumps(data, indent=2, default=str))


def output_table(headers: list[str], rows: list[list[str]]) -> None:
    """Output data as a formatted table."""
    if not rows:
        click.echo("No data to display")
        return

    # Calculate column widths
    col_widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            if i < len(col_widths):
                col_widths[i] = max(col_widths[i], len(str(cell)))

    header_row = " | ".join(
        h.ljust(w) for h, w in zip(headers, col_widths, strict=False)
    )
    click.echo(header_row)
    click.echo("-" * len(header_row))

    for row in rows:
        formatted_row = " | ".join(
            str(cell).ljust(w) for cell, w in zip(row, col_widths, strict=False)
        )
        click.echo(formatted_row)


def handle_error(message: str, exit_code: int = 1) -> None:
    """Handle errors with consistent formatting."""
    click.echo(click.style(f"Error: {message}", fg="red"), err=True)
    sys.exit(exit_code)


def verbose_echo(ctx: click.Context, message: str) -> None:
    """Echo message only if verbose mode is enabled."""
    if ctx.obj and ctx.obj.get("verbose"):
        click.echo(click.style(f"[VERBOSE] {message}", fg="blue"), err=True)


def quiet_echo(ctx: click.Context, message: str) -> None:
    """Echo message only if not in quiet mode."""
    if not (ctx.obj and ctx.obj.get("quiet")):
        click.echo(message)


def format_output(
    ctx: click.Context, data: dict[str, Any], human_format_func: Any = None
) -> None:
    """Format output based on context (JSON or human-readable)."""
    if ctx.obj and ctx.obj.get("json"):
        output_json(data)
    elif human_format_func:
        human_format_func(data)
    else:
        # Default human format
        for key, value in data.items():
            click.echo(f"{key}: {value}")


def parse_assignments(values: tuple[str, ...], option: str = "--var") -> dict[str, str]:
    """Parse ``KEY=VALUE`` option values."""
    result = {}
    for item in values:
        if "=" not in item:
            raise CliError(f"Invalid {option} format: {item} (expected KEY=VALUE)")
        key, value = item.split("=", 1)
        if not key:
            raise CliError(f"Invalid {option} format: {item} (empty key)")
        result[key] = value
    return result


def load_cli_config(ctx: click.Context, **overrides: Any) -> SeshConfig:
    """Load configuration for the current invocation and set up logging."""
    obj = ctx.obj or {}
    cli_overrides = dict(obj.get("cli_overrides") or {})
    cli_overrides.update({k: v for k, v in overrides.items() if v is not None})
    config = load_config(obj.get("config"), obj.get("profile"), cli_overrides)

    log_level = "DEBUG" if obj.get("verbose") else config.log_level
    setup_logging(
        log_level=log_level,
        log_file=Path(config.log_file).expanduser() if config.log_file else None,
    )
    if ctx.obj is not None and config.default_output_format == "json":
        ctx.obj["json"] = True
    logger.debug(
        "CLI configuration loaded",
        command=ctx.info_name,
        profile=obj.get("profile"),
        host=obj.get("host"),
    )
    return config


def session_identifier(ctx: click.Context, session: str) -> str:
    """Identifier for a SESSION argument, tagged with ``--host`` when given."""
    host = (ctx.obj or {}).get("host")
    if host and "@" not in session:
        return f"{session}@{host}"
    return session
