"""CLI commands for session templates."""

import asyncio

import click

from ..core.orchestrator import get_orchestrator
from ..core.templates import example_template, find_template, list_templates
from .utils import (
    error_handler,
    load_cli_config,
    output_json,
    output_table,
    parse_assignments,
    quiet_echo,
    success_message,
)


@click.command()
@click.argument("template")
@click.option("--name", "-n", "session_name", help="Session name (default: template name)")
@click.option("--var", "variables", multiple=True, help="Template variable (KEY=VALUE)")
@click.option(
    "--interactive",
    "-i",
    is_flag=True,
    help="Prompt for declared variables that have no value",
)
@click.pass_context
@error_handler
def start(
    ctx: click.Context,
    template: str,
    session_name: str | None,
    variables: tuple[str, ...],
    interactive: bool,
) -> None:
    """Create a session from a template.

    TEMPLATE: Template name in the templates directory
    """
    config = load_cli_config(ctx)
    host = ctx.obj.get("host") if ctx.obj else None
    substitutions = parse_assignments(variables)
    loaded = find_template(template, config.templates_dir)

    if interactive:
        for key, spec in loaded.variables.items():
            if key not in substitutions and spec.default is None:
                substitutions[key] = click.prompt(spec.prompt or key)

    async def _start_template() -> str:
        orchestrator = get_orchestrator(config)
        return await orchestrator.start_template(
            loaded, substitutions, session_name=session_name, host=host
        )

    identifier = asyncio.run(_start_template())

    if ctx.obj and ctx.obj.get("json"):
        output_json(
            {
                "identifier": identifier,
                "template": loaded.name,
                "windows": [window.name for window in loaded.windows],
            }
        )
    else:
        success_message(f"Created session '{identifier}' from template '{loaded.name}'")


@click.command()
@click.option("--example", is_flag=True, help="Print an example template")
@click.pass_context
@error_handler
def templates(ctx: click.Context, example: bool) -> None:
    """List available session templates."""
    if example:
        click.echo(example_template(), nl=False)
        return

    config = load_cli_config(ctx)
    found = list_templates(config.templates_dir)

    if ctx.obj and ctx.obj.get("json"):
        output_json(
            {
                "templates_dir": config.templates_dir,
                "templates": [template.model_dump() for template in found],
            }
        )
        return

    if not found:
        quiet_echo(ctx, f"No templates found in {config.templates_dir}")
        return

    rows = [
        [
            template.name,
            ", ".join(window.name for window in template.windows),
            template.description or "",
        ]
        for template in found
    ]
    output_table(["TEMPLATE", "WINDOWS", "DESCRIPTION"], rows)
