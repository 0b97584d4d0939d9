"""
Remote screen sessions over SSH.

Every screen command is wrapped in an ssh invocation for a configured host.
Session identifiers are tagged ``name@host`` so they never collide with local
sessions in the shared store, and hardcopy artifacts live on the remote host.
"""

import os
import posixpath
import shlex
import uuid
from collections.abc import Sequence

from ..config.loader import HostConfig
from ..utils.logging import LogContext, get_logger
from ..utils.process import (
    CommandNotFoundError,
    CommandResult,
    CommandTimeoutError,
    RemoteConnectionError,
    run_command,
)
from .client import ScreenClient

logger = get_logger(__name__, LogContext.REMOTE)

# ssh reserves exit status 255 for its own failures
SSH_FAILURE_STATUS = 255
# The remote shell could not find (127) or execute (126) the command
COMMAND_MISSING_STATUSES = (126, 127)


def ssh_options(host: HostConfig, connect_timeout: int = 3) -> list[str]:
    """ssh flags for a host, without the destination."""
    args: list[str] = []
    if host.identity_file:
        args += ["-i", os.path.expanduser(host.identity_file)]
    if host.port and host.port != 22:
        args += ["-p", str(host.port)]
    args += [
        "-o",
        f"ConnectTimeout={connect_timeout}",
        "-o",
        "BatchMode=yes",
        "-o",
        "StrictHostKeyChecking=accept-new",
    ]
    return args


class SSHCommandRunner:
    """Runs commands on a remote host through ssh."""

    def __init__(
        self,
        host: HostConfig,
        timeout: float | None = 10.0,
        connect_timeout: int = 3,
        ssh_command: str = "ssh",
    ) -> None:
        self.host = host
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self.ssh_command = ssh_command

    def wrap(self, argv: Sequence[str], cwd: str | None = None) -> list[str]:
        """Local ssh command line that runs ``argv`` remotely."""
        remote = shlex.join(argv)
        if cwd:
            remote = f"cd {shlex.quote(cwd)} && {remote}"
        return [
            self.ssh_command,
            *ssh_options(self.host, self.connect_timeout),
            self.host.connection_string,
            remote,
        ]

    async def __call__(
        self, argv: Sequence[str], cwd: str | None = None
    ) -> CommandResult:
        wrapped = self.wrap(argv, cwd)
        try:
            result = await run_command(wrapped, timeout=self.timeout)
        except CommandTimeoutError as e:
            logger.warning("SSH command timed out", host=self.host.name, argv=list(argv))
            raise RemoteConnectionError(
                f"Timed out talking to {self.host.name}", wrapped
            ) from e
        except CommandNotFoundError as e:
            raise RemoteConnectionError(
                f"Cannot run {self.ssh_command} for {self.host.name}: {e}", wrapped
            ) from e

        if result.returncode == SSH_FAILURE_STATUS:
            logger.warning(
                "SSH connection failed",
                host=self.host.name,
                error=result.error_text,
            )
            raise RemoteConnectionError(
                f"Cannot reach {self.host.name}: {result.error_text}", wrapped
            )

        if result.returncode in COMMAND_MISSING_STATUSES:
            program = argv[0] if argv else ""
            logger.warning(
                "Remote command unavailable",
                host=self.host.name,
                command=program,
                error=result.error_text,
            )
            raise CommandNotFoundError(
                f"Cannot execute {program} on {self.host.name}: {result.error_text}",
                argv,
            )

        # Report the remote command line rather than the ssh wrapper
        return CommandResult(
            argv=tuple(argv),
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
        )


class RemoteScreenClient(ScreenClient):
    """Issues screen commands on a remote host."""

    def __init__(
        self,
        host: HostConfig,
        runner: SSHCommandRunner | None = None,
        screen_command: str = "screen",
        default_shell: str | None = None,
        remote_tmp: str = "/tmp",
    ) -> None:
        super().__init__(
            runner=runner or SSHCommandRunner(host),
            screen_command=screen_command,
            default_shell=default_shell,
        )
        self.host_config = host
        self.host = host.name
        self.remote_tmp = remote_tmp

    def tag(self, name: str) -> str:
        return f"{name}@{self.host}"

    def owns(self, identifier: str) -> bool:
        return identifier.endswith(f"@{self.host}")

    def attach_argv(self, target: str, force_detach: bool = False) -> list[str]:
        flags = ["-d", "-r"] if force_detach else ["-r"]
        return [
            "ssh",
            "-t",
            *ssh_options(self.host_config),
            self.host_config.connection_string,
            shlex.join([self.screen_command, *flags, target]),
        ]

    def new_artifact_path(self) -> str:
        return posixpath.join(self.remote_tmp, f"sesh-preview-{uuid.uuid4().hex}.txt")

    async def read_artifact(self, path: str) -> str | None:
        result = await self.runner(["cat", path])
        if not result.ok or not result.stdout:
            return None
        return result.stdout

    async def remove_artifact(self, path: str) -> None:
        await self.runner(["rm", "-f", path])
