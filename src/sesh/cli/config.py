"""Configuration management commands."""

import click

from ..config.loader import (
    SeshConfig,
    config_search_paths,
    find_config_file,
    load_config,
    load_config_file,
    save_config,
)
from .utils import format_output, handle_error

ENV_VARS = [
    "SCREEN_COMMAND",
    "DEFAULT_SHELL",
    "COMMAND_TIMEOUT",
    "ATTACH_MODE",
    "SPAWN_TERMINAL",
    "REFRESH_INTERVAL",
    "PREVIEW_INTERVAL",
    "PREVIEW_LINES",
    "CAPTURE_ATTEMPTS",
    "TEMPLATES_DIR",
    "GIT_STATUS",
    "INCLUDE_REMOTE",
    "SSH_CONNECT_TIMEOUT",
    "LOG_LEVEL",
    "LOG_FILE",
    "DEFAULT_OUTPUT_FORMAT",
]


def _load(ctx: click.Context) -> SeshConfig:
    config_path = ctx.obj.get("config") if ctx.obj else None
    profile = ctx.obj.get("profile") if ctx.obj else None
    cli_overrides = ctx.obj.get("cli_overrides") if ctx.obj else None
    return load_config(config_path, profile, cli_overrides)


@click.group()
def config() -> None:
    """Manage configuration settings."""
    pass


@config.command()
@click.pass_context
def show(ctx: click.Context) -> None:
    """Show current configuration."""
    try:
        config_obj = _load(ctx)
        format_output(ctx, {"configuration": config_obj.model_dump()})
    except Exception as e:
        handle_error(f"Failed to load configuration: {e}")


@config.command()
@click.argument("key")
@click.pass_context
def get(ctx: click.Context, key: str) -> None:
    """Get a configuration value."""
    try:
        config_obj = _load(ctx)
    except Exception as e:
        handle_error(f"Failed to get configuration: {e}")
        return

    if key not in SeshConfig.model_fields:
        handle_error(f"Unknown configuration key: {key}")
        return

    value = getattr(config_obj, key)
    if key == "hosts":
        value = [host.model_dump() for host in value]
    format_output(ctx, {key: value})


@config.command()
@click.pass_context
def validate(ctx: click.Context) -> None:
    """Validate current configuration."""
    try:
        _load(ctx)  # This will raise if invalid
    except Exception as e:
        handle_error(f"Configuration validation failed: {e}")
        return

    if not (ctx.obj and ctx.obj.get("quiet")):
        click.echo("Configuration is valid")


@config.command()
@click.option("--path", help="Custom path for config file")
@click.pass_context
def init(ctx: click.Context, path: str | None) -> None:
    """Initialize configuration file with defaults."""
    try:
        saved_path = save_config(SeshConfig(), path)
    except Exception as e:
        handle_error(f"Failed to initialize configuration: {e}")
        return

    if not (ctx.obj and ctx.obj.get("quiet")):
        click.echo(f"Configuration initialized at: {saved_path}")


@config.command()
@click.pass_context
def profiles(ctx: click.Context) -> None:
    """List available configuration profiles."""
    try:
        config_path = ctx.obj.get("config") if ctx.obj else None
        config_file = find_config_file(config_path)

        if not config_file:
            if not (ctx.obj and ctx.obj.get("quiet")):
                click.echo("No configuration file found. Use 'config init' to create one.")
            return

        config_data = load_config_file(config_file)
    except Exception as e:
        handle_error(f"Failed to list profiles: {e}")
        return

    if not config_data.get("profiles"):
        if not (ctx.obj and ctx.obj.get("quiet")):
            click.echo("No profiles defined in configuration file.")
        return

    format_output(ctx, {"profiles": list(config_data["profiles"].keys())})


@config.command()
def locations() -> None:
    """Show configuration file search locations."""
    click.echo("Configuration file search locations (in order):")
    for i, location in enumerate(config_search_paths(), 1):
        click.echo(f"  {i}. {location}")

    click.echo("\nEnvironment variables (SESH_*):")
    for var in ENV_VARS:
        click.echo(f"  SESH_{var}")
