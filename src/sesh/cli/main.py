"""Main CLI entry point for sesh."""

import click

from .. import __version__
from .config import config
from .sessions import attach, detach, kill, list_sessions, new, preview, rename, windows
from .templates import start, templates


@click.group()
@click.version_option(version=__version__, prog_name="sesh")
@click.option("--config", "-c", help="Configuration file path")
@click.option("--profile", "-p", help="Configuration profile to use")
@click.option("--host", "-H", help="Operate on sessions of a configured remote host")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
# Configuration override flags
@click.option("--log-level", help="Override log_level setting")
@click.option("--screen-command", help="Override screen_command setting")
@click.option("--templates-dir", help="Override templates_dir setting")
@click.pass_context
def main(
    ctx: click.Context,
    config: str | None,
    profile: str | None,
    host: str | None,
    verbose: bool,
    quiet: bool,
    json: bool,
    log_level: str | None,
    screen_command: str | None,
    templates_dir: str | None,
) -> None:
    """sesh - Discover, preview and control GNU Screen sessions.

    Sessions on remote hosts listed in the configuration are reached over
    SSH; use --host to target one, or 'list --all' to include every host.
    """
    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["profile"] = profile
    ctx.obj["host"] = host
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["json"] = json

    # Store CLI overrides for configuration
    ctx.obj["cli_overrides"] = {
        "log_level": log_level,
        "screen_command": screen_command,
        "templates_dir": templates_dir,
    }
    # Remove None values
    ctx.obj["cli_overrides"] = {
        k: v for k, v in ctx.obj["cli_overrides"].items() if v is not None
    }

    # Validate conflicting options
    if verbose and quiet:
        raise click.UsageError("Cannot use both --verbose and --quiet options")


# Session commands
main.add_command(list_sessions)
main.add_command(new)
main.add_command(attach)
main.add_command(detach)
main.add_command(kill)
main.add_command(windows)
main.add_command(rename)
main.add_command(preview)

# Template commands
main.add_command(start)
main.add_command(templates)

# Configuration
main.add_command(config)


if __name__ == "__main__":
    main()
