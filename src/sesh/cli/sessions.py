"""CLI commands for screen session management."""

import asyncio
from typing import Any

import click

from ..core.models import AttachMode, PreviewSnapshot, Session
from ..core.orchestrator import get_orchestrator
from .utils import (
    error_handler,
    load_cli_config,
    output_json,
    output_table,
    quiet_echo,
    session_identifier,
    success_message,
    verbose_echo,
)


def session_to_dict(session: Session, git: Any = None) -> dict[str, Any]:
    """JSON-friendly view of a session."""
    data: dict[str, Any] = {
        "identifier": session.identifier,
        "name": session.name,
        "pid": session.pid,
        "status": session.status.value,
        "attached": session.attached,
        "host": session.host,
        "created": session.created.isoformat() if session.created else None,
        "age": session.age_string(),
        "working_directory": session.working_directory,
        "partial": session.partial,
        "windows": [
            {
                "index": window.index,
                "title": window.title,
                "active": window.active,
                "flags": window.flags,
                "activity": window.activity.value,
            }
            for window in session.windows
        ],
    }
    if git is not None:
        data["git"] = {"branch": git.branch, "dirty": git.dirty}
    return data


@click.command("list")
@click.option(
    "--all", "show_all", is_flag=True, help="Include sessions on configured remote hosts"
)
@click.pass_context
@error_handler
def list_sessions(ctx: click.Context, show_all: bool) -> None:
    """List live screen sessions."""
    config = load_cli_config(ctx, include_remote=True if show_all else None)
    host = ctx.obj.get("host") if ctx.obj else None

    async def _list_sessions() -> dict[str, Any]:
        orchestrator = get_orchestrator(config)
        if host:
            orchestrator.watch_host(host)
        sessions = await orchestrator.list_sessions()
        if host:
            sessions = [s for s in sessions if s.host == host]

        entries = []
        for session in sessions:
            git = await orchestrator.git_status(session.identifier)
            entries.append(session_to_dict(session, git))
        return {
            "sessions": entries,
            "unavailable_hosts": dict(orchestrator.unavailable_hosts),
        }

    result = asyncio.run(_list_sessions())

    if ctx.obj and ctx.obj.get("json"):
        output_json(result)
        return

    if not result["sessions"]:
        quiet_echo(ctx, "No screen sessions found")
    else:
        rows = []
        for entry in result["sessions"]:
            windows = "?" if entry["partial"] else str(len(entry["windows"]))
            git = entry.get("git")
            branch = ""
            if git:
                branch = git["branch"] + ("*" if git["dirty"] else "")
            rows.append(
                [
                    entry["identifier"],
                    str(entry["pid"]),
                    entry["status"],
                    entry["age"],
                    windows,
                    entry["working_directory"] or "",
                    branch,
                ]
            )
        output_table(
            ["SESSION", "PID", "STATUS", "AGE", "WINDOWS", "DIRECTORY", "GIT"], rows
        )

    for unavailable, reason in result["unavailable_hosts"].items():
        click.echo(
            click.style(f"Warning: host {unavailable} unavailable: {reason}", fg="yellow"),
            err=True,
        )


@click.command()
@click.argument("name")
@click.option("--dir", "-d", "directory", help="Working directory of the first window")
@click.option("--command", "-x", help="Command to run in the first window")
@click.pass_context
@error_handler
def new(ctx: click.Context, name: str, directory: str | None, command: str | None) -> None:
    """Create a detached session.

    NAME: Name for the new session
    """
    config = load_cli_config(ctx)
    host = ctx.obj.get("host") if ctx.obj else None

    async def _create_session() -> str:
        orchestrator = get_orchestrator(config)
        return await orchestrator.create(name, directory, command, host=host)

    identifier = asyncio.run(_create_session())

    if ctx.obj and ctx.obj.get("json"):
        output_json({"identifier": identifier, "created": True})
    else:
        success_message(f"Created session '{identifier}'")


@click.command()
@click.argument("session")
@click.option(
    "--spawn/--exec",
    "spawn",
    default=None,
    help="Open in a new terminal window or replace this process",
)
@click.option("--force-detach", is_flag=True, help="Detach other displays first")
@click.pass_context
@error_handler
def attach(
    ctx: click.Context, session: str, spawn: bool | None, force_detach: bool
) -> None:
    """Attach to a session.

    SESSION: Session name or identifier
    """
    config = load_cli_config(ctx)
    identifier = session_identifier(ctx, session)
    mode = None if spawn is None else (AttachMode.SPAWN if spawn else AttachMode.EXEC)
    verbose_echo(ctx, f"Attaching to {identifier}")

    async def _attach_session() -> None:
        orchestrator = get_orchestrator(config)
        await orchestrator.attach(identifier, mode=mode, force_detach=force_detach)

    asyncio.run(_attach_session())

    # Only reached for spawn attaches
    if ctx.obj and ctx.obj.get("json"):
        output_json({"identifier": identifier, "attached": True, "mode": "spawn"})
    else:
        success_message(f"Opened '{identifier}' in {config.spawn_terminal}")


@click.command()
@click.argument("session")
@click.pass_context
@error_handler
def detach(ctx: click.Context, session: str) -> None:
    """Detach all displays from a session.

    SESSION: Session name or identifier
    """
    config = load_cli_config(ctx)
    identifier = session_identifier(ctx, session)

    async def _detach_session() -> None:
        orchestrator = get_orchestrator(config)
        await orchestrator.detach(identifier)

    asyncio.run(_detach_session())

    if ctx.obj and ctx.obj.get("json"):
        output_json({"identifier": identifier, "detached": True})
    else:
        success_message(f"Detached session '{identifier}'")


@click.command()
@click.argument("session")
@click.option("--force", "-f", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
@error_handler
def kill(ctx: click.Context, session: str, force: bool) -> None:
    """Terminate a session and all its windows.

    SESSION: Session name or identifier
    """
    identifier = session_identifier(ctx, session)
    if not force and not click.confirm(f"Kill session '{identifier}'?", default=False):
        click.echo("Aborted.")
        return

    config = load_cli_config(ctx)

    async def _kill_session() -> None:
        orchestrator = get_orchestrator(config)
        await orchestrator.kill(identifier)

    asyncio.run(_kill_session())

    if ctx.obj and ctx.obj.get("json"):
        output_json({"identifier": identifier, "killed": True})
    else:
        success_message(f"Killed session '{identifier}'")


@click.command()
@click.argument("session")
@click.pass_context
@error_handler
def windows(ctx: click.Context, session: str) -> None:
    """List the windows of a session.

    SESSION: Session name or identifier
    """
    config = load_cli_config(ctx)
    identifier = session_identifier(ctx, session)

    async def _list_windows() -> Session:
        orchestrator = get_orchestrator(config)
        return await orchestrator.get_session(identifier)

    target = asyncio.run(_list_windows())
    data = session_to_dict(target)

    if ctx.obj and ctx.obj.get("json"):
        output_json({"identifier": identifier, "windows": data["windows"]})
        return

    if target.partial:
        click.echo(
            click.style(f"Warning: windows of {identifier} could not be read", fg="yellow"),
            err=True,
        )
    rows = [
        [
            str(window["index"]),
            window["title"],
            window["activity"],
            "*" if window["active"] else "",
        ]
        for window in data["windows"]
    ]
    output_table(["INDEX", "TITLE", "ACTIVITY", "ACTIVE"], rows)


@click.command()
@click.argument("session")
@click.argument("new_name")
@click.pass_context
@error_handler
def rename(ctx: click.Context, session: str, new_name: str) -> None:
    """Rename a session.

    SESSION: Session name or identifier
    NEW_NAME: New session name
    """
    config = load_cli_config(ctx)
    identifier = session_identifier(ctx, session)

    async def _rename_session() -> str:
        orchestrator = get_orchestrator(config)
        return await orchestrator.rename(identifier, new_name)

    new_identifier = asyncio.run(_rename_session())

    if ctx.obj and ctx.obj.get("json"):
        output_json({"identifier": identifier, "new_identifier": new_identifier})
    else:
        success_message(f"Renamed '{identifier}' to '{new_identifier}'")


@click.command()
@click.argument("session")
@click.option("--window", "-w", type=int, help="Window index (default: active window)")
@click.option("--lines", "-n", type=int, help="Number of trailing lines to show")
@click.pass_context
@error_handler
def preview(
    ctx: click.Context, session: str, window: int | None, lines: int | None
) -> None:
    """Print the visible contents of a window.

    SESSION: Session name or identifier
    """
    config = load_cli_config(ctx)
    identifier = session_identifier(ctx, session)

    async def _capture() -> PreviewSnapshot:
        orchestrator = get_orchestrator(config)
        return await orchestrator.capture_preview(identifier, window, lines)

    snapshot = asyncio.run(_capture())

    if ctx.obj and ctx.obj.get("json"):
        output_json(
            {
                "identifier": snapshot.identifier,
                "window": snapshot.window_index,
                "lines": list(snapshot.lines),
                "captured_at": snapshot.captured_at.isoformat(),
            }
        )
    else:
        for line in snapshot.lines:
            click.echo(line)
