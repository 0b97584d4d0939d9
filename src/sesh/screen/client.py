"""
GNU Screen command interface.

ScreenClient turns each multiplexer operation into one screen invocation and
returns the raw CommandResult. Interpreting exit codes is left to the callers
(discovery, capture, controller), which map failures into their own errors.
"""

import os
import shlex
import tempfile
import uuid
from collections.abc import Awaitable, Callable, Sequence
from pathlib import Path

from ..utils.process import CommandResult, CommandRunner

Runner = Callable[..., Awaitable[CommandResult]]


def window_program(
    working_directory: str | None = None,
    command: str | None = None,
    shell: str | None = None,
) -> list[str]:
    """Build the program a new window runs.

    With neither a directory nor a command, screen's default shell is used. A
    command is followed by an interactive shell so the window stays open.
    """
    if not working_directory and not command:
        return [shell] if shell else []

    parts = []
    if working_directory:
        parts.append(f"cd {_quote_path(working_directory)} || exit 1")
    if command:
        parts.append(command)
    login_shell = shlex.quote(shell) if shell else '"${SHELL:-/bin/sh}"'
    parts.append(f"exec {login_shell}")
    return ["sh", "-c", "; ".join(parts)]


def _quote_path(path: str) -> str:
    # Quoting would stop the shell from expanding a leading ~
    if path == "~":
        return '"$HOME"'
    if path.startswith("~/"):
        return f'"$HOME"/{shlex.quote(path[2:])}'
    return shlex.quote(path)


class ScreenClient:
    """Issues screen commands on the local machine."""

    host: str | None = None

    def __init__(
        self,
        runner: Runner | None = None,
        screen_command: str = "screen",
        default_shell: str | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            runner: Coroutine used to execute commands
            screen_command: screen executable name or path
            default_shell: Shell started in windows that get a program
        """
        self.runner = runner or CommandRunner()
        self.screen_command = screen_command
        self.default_shell = default_shell

    @property
    def is_local(self) -> bool:
        return self.host is None

    def tag(self, name: str) -> str:
        """Store identifier for a session name."""
        return name

    def owns(self, identifier: str) -> bool:
        """True when the identifier belongs to this client's host."""
        return "@" not in identifier

    async def run(self, args: Sequence[str], cwd: str | None = None) -> CommandResult:
        """Run ``screen <args>``."""
        return await self.runner([self.screen_command, *args], cwd=cwd)

    # Queries

    async def list_sessions(self) -> CommandResult:
        return await self.run(["-ls"])

    async def list_windows(self, target: str) -> CommandResult:
        return await self.run(["-S", target, "-Q", "windows"])

    # Mutations

    async def create_session(
        self,
        name: str,
        working_directory: str | None = None,
        command: str | None = None,
    ) -> CommandResult:
        program = window_program(working_directory, command, self.default_shell)
        return await self.run(["-dmS", name, *program])

    async def create_window(
        self,
        target: str,
        title: str,
        working_directory: str | None = None,
        command: str | None = None,
    ) -> CommandResult:
        program = window_program(working_directory, command, self.default_shell)
        return await self.run(["-S", target, "-X", "screen", "-t", title, *program])

    async def detach(self, target: str) -> CommandResult:
        return await self.run(["-d", target])

    async def quit(self, target: str) -> CommandResult:
        return await self.run(["-S", target, "-X", "quit"])

    async def rename_session(self, target: str, new_name: str) -> CommandResult:
        return await self.run(["-S", target, "-X", "sessionname", new_name])

    async def title_window(self, target: str, index: int, title: str) -> CommandResult:
        return await self.run(["-S", target, "-p", str(index), "-X", "title", title])

    async def kill_window(self, target: str, index: int) -> CommandResult:
        return await self.run(["-S", target, "-p", str(index), "-X", "kill"])

    async def stuff(self, target: str, text: str, index: int | None = None) -> CommandResult:
        args = ["-S", target]
        if index is not None:
            args += ["-p", str(index)]
        return await self.run([*args, "-X", "stuff", text])

    # Attach

    def attach_argv(self, target: str, force_detach: bool = False) -> list[str]:
        """Command line that attaches the current terminal to a session."""
        flags = ["-d", "-r"] if force_detach else ["-r"]
        return [self.screen_command, *flags, target]

    # Hardcopy artifacts

    async def hardcopy(self, target: str, index: int, path: str) -> CommandResult:
        return await self.run(
            ["-S", target, "-p", str(index), "-X", "hardcopy", "-h", path]
        )

    def new_artifact_path(self) -> str:
        """Path for a hardcopy dump; the file is not created."""
        return str(Path(tempfile.gettempdir()) / f"sesh-preview-{uuid.uuid4().hex}.txt")

    async def read_artifact(self, path: str) -> str | None:
        """Dump contents, or None while the file is missing or still empty."""
        try:
            content = Path(path).read_text(errors="replace")
        except FileNotFoundError:
            return None
        return content or None

    async def remove_artifact(self, path: str) -> None:
        try:
            os.unlink(path)
        except FileNotFoundError:
            pass
