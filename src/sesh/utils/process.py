"""Process execution utilities for screen and ssh invocations."""

import asyncio
import os
import subprocess  # nosec B404
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn

from .logging import LogContext, get_logger

logger = get_logger(__name__, LogContext.PROCESS)


@dataclass(frozen=True)
class CommandResult:
    """Outcome of an external command."""

    argv: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        """True when the command exited with status 0."""
        return self.returncode == 0

    @property
    def output(self) -> str:
        """stdout and stderr joined, for tools that print to either stream."""
        return f"{self.stdout}{self.stderr}"

    @property
    def error_text(self) -> str:
        """Best available diagnostic for a failed command."""
        text = self.stderr.strip() or self.stdout.strip()
        return text or f"exit status {self.returncode}"


class ProcessError(Exception):
    """Exception raised for process execution errors."""

    def __init__(self, message: str, argv: Sequence[str] | None = None):
        """Initialize ProcessError.

        Args:
            message: Error message
            argv: Optional command line that failed
        """
        super().__init__(message)
        self.argv = tuple(argv) if argv else ()


class CommandNotFoundError(ProcessError):
    """The executable is missing or not executable."""


class CommandTimeoutError(ProcessError):
    """The command did not finish within its time budget."""


class RemoteConnectionError(ProcessError):
    """ssh could not reach or authenticate against the remote host."""


class CommandRunner:
    """Runs commands as asyncio subprocesses and collects their output."""

    def __init__(self, timeout: float | None = 10.0) -> None:
        """Initialize the runner.

        Args:
            timeout: Seconds to wait for each command, None for no limit
        """
        self.timeout = timeout

    async def __call__(
        self, argv: Sequence[str], cwd: Path | str | None = None
    ) -> CommandResult:
        return await run_command(argv, cwd=cwd, timeout=self.timeout)


async def run_command(
    argv: Sequence[str],
    cwd: Path | str | None = None,
    timeout: float | None = None,
) -> CommandResult:
    """Run a command and capture its output.

    Args:
        argv: Command and arguments
        cwd: Working directory for the command
        timeout: Seconds to wait before killing the command

    Returns:
        CommandResult with decoded output

    Raises:
        CommandNotFoundError: If the executable cannot be started
        CommandTimeoutError: If the command exceeds the timeout
    """
    logger.debug("Running command", argv=list(argv), cwd=str(cwd) if cwd else None)

    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            cwd=str(cwd) if cwd else None,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except (FileNotFoundError, PermissionError) as e:
        raise CommandNotFoundError(f"Cannot execute {argv[0]}: {e}", argv) from e

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError as e:
        process.kill()
        await process.wait()
        raise CommandTimeoutError(
            f"Command timed out after {timeout}s: {' '.join(argv)}", argv
        ) from e

    return CommandResult(
        argv=tuple(argv),
        returncode=process.returncode if process.returncode is not None else -1,
        stdout=stdout.decode(errors="replace"),
        stderr=stderr.decode(errors="replace"),
    )


def spawn_detached(
    argv: Sequence[str], environment: dict[str, str] | None = None
) -> int:
    """Start a process that outlives this one and is never waited on.

    Args:
        argv: Command and arguments
        environment: Additional environment variables

    Returns:
        PID of the started process

    Raises:
        CommandNotFoundError: If the executable cannot be started
    """
    env = os.environ.copy()
    if environment:
        env.update(environment)

    logger.debug("Spawning detached process", argv=list(argv))

    try:
        process = subprocess.Popen(  # nosec B603
            list(argv),
            env=env,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,  # Create new process group
        )
    except OSError as e:
        raise CommandNotFoundError(f"Cannot spawn {argv[0]}: {e}", argv) from e

    return process.pid


def exec_replace(argv: Sequence[str]) -> NoReturn:
    """Replace the current process image with ``argv``.

    Raises:
        CommandNotFoundError: If exec fails; on success this never returns
    """
    try:
        os.execvp(argv[0], list(argv))  # nosec B606
    except OSError as e:
        raise CommandNotFoundError(f"Cannot exec {argv[0]}: {e}", argv) from e
    raise CommandNotFoundError(f"exec returned for {argv[0]}", argv)
