"""
Attach controller.

The only component that issues mutating screen commands. Operations move the
controller through a small state machine so that a second operation cannot
start while one is in flight, and every command is issued exactly once.
"""

import re
from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum
from typing import NoReturn

from ..integrations.terminal import spawn_command
from ..screen.client import ScreenClient
from ..screen.logging_utils import (
    log_session_attach,
    log_session_detach,
    log_session_kill,
    log_session_operation,
)
from ..utils.logging import LogContext, audit_log, flush_logging, get_logger
from ..utils.process import CommandResult, ProcessError, exec_replace, spawn_detached
from .exceptions import (
    AttachUnavailableError,
    CommandFailedError,
    ControllerBusyError,
    InvalidSessionNameError,
    NameConflictError,
    NotAttachedError,
    SessionNotFoundError,
)
from .models import AttachMode, AttachRequest, Session
from .store import ChangeEvent, SessionStore

logger = get_logger(__name__, LogContext.CONTROLLER)

# screen uses '.' to separate pid and name, ':' and '@' are taken by targets
_INVALID_NAME = re.compile(r"[\s.:@/]")


class ControllerState(Enum):
    """Lifecycle state of the controller."""

    IDLE = "idle"
    CREATING = "creating"
    UPDATING = "updating"
    ATTACHING = "attaching"
    ATTACHED = "attached"
    SPAWNING = "spawning"
    DETACHING = "detaching"
    KILLING = "killing"
    FAILED = "failed"


_READY_STATES = (ControllerState.IDLE, ControllerState.FAILED)


def validate_session_name(name: str) -> str:
    """Return the name unchanged or raise InvalidSessionNameError."""
    if not name or _INVALID_NAME.search(name):
        raise InvalidSessionNameError(
            "Session names must be non-empty without whitespace, '.', ':', '@' or '/'",
            target=name,
        )
    return name


class AttachController:
    """Issues lifecycle commands against one host's screen sessions."""

    def __init__(
        self,
        client: ScreenClient,
        store: SessionStore,
        terminal: str = "xterm",
    ) -> None:
        """Initialize the controller.

        Args:
            client: Screen client for the host
            store: Store used to resolve identifiers and drop killed sessions
            terminal: Terminal emulator launched by spawn attaches
        """
        self.client = client
        self.store = store
        self.terminal = terminal
        self.state = ControllerState.IDLE
        # Sessions created here that a refresh has not picked up yet
        self._pending: dict[str, str] = {}
        store.subscribe(self._settle_pending)

    def _settle_pending(self, events: list[ChangeEvent]) -> None:
        # Once the store has seen a session, its record is the only target
        for event in events:
            self._pending.pop(event.identifier, None)

    @contextmanager
    def _operation(
        self,
        state: ControllerState,
        target: str,
        success_state: ControllerState = ControllerState.IDLE,
    ) -> Iterator[None]:
        if self.state not in _READY_STATES:
            raise ControllerBusyError(
                f"Cannot start {state.value} while {self.state.value}", target=target
            )
        self.state = state
        try:
            yield
        except BaseException:
            self.state = ControllerState.FAILED
            raise
        self.state = success_state

    def _session(self, identifier: str) -> Session:
        session = self.store.get(identifier)
        if session is None:
            raise SessionNotFoundError("No such session", target=identifier)
        return session

    def _target(self, identifier: str) -> str:
        session = self.store.get(identifier)
        if session is not None:
            self._pending.pop(identifier, None)
            return session.target
        if identifier in self._pending:
            return self._pending[identifier]
        raise SessionNotFoundError("No such session", target=identifier)

    async def _issue(self, command, identifier: str, *args) -> CommandResult:
        try:
            result = await command(*args)
        except ProcessError as e:
            logger.warning("screen unavailable", target=identifier, error=str(e))
            raise AttachUnavailableError(
                "screen is unavailable", target=identifier, detail=str(e)
            ) from e
        if not result.ok:
            logger.warning(
                "screen command failed", target=identifier, error=result.error_text
            )
            raise CommandFailedError(
                "screen command failed", target=identifier, detail=result.error_text
            )
        return result

    # Attach

    async def attach(self, request: AttachRequest) -> None:
        """Attach according to the request's mode.

        In exec mode this call does not return.
        """
        if request.mode is AttachMode.EXEC:
            self.attach_exec(request)
            return
        await self.attach_spawn(request)

    def attach_argv(self, request: AttachRequest) -> list[str]:
        session = self._session(request.identifier)
        return self.client.attach_argv(session.target, request.force_detach)

    def attach_exec(self, request: AttachRequest) -> NoReturn:
        """Replace this process with ``screen -r`` for the session."""
        with self._operation(
            ControllerState.ATTACHING,
            request.identifier,
            success_state=ControllerState.ATTACHED,
        ):
            argv = self.attach_argv(request)
            self.state = ControllerState.ATTACHED
            log_session_attach(request.identifier, AttachMode.EXEC.value, self.client.host)
            flush_logging()
            try:
                exec_replace(argv)
            except ProcessError as e:
                raise AttachUnavailableError(
                    "Cannot attach", target=request.identifier, detail=str(e)
                ) from e

    @audit_log("attach_spawn", LogContext.CONTROLLER)
    async def attach_spawn(self, request: AttachRequest) -> int:
        """Open the session in a new terminal window.

        Returns:
            PID of the terminal emulator
        """
        with self._operation(ControllerState.SPAWNING, request.identifier):
            argv = self.attach_argv(request)
            session = self._session(request.identifier)
            command = spawn_command(self.terminal, argv, f"sesh: {session.display_name}")
            try:
                pid = spawn_detached(command)
            except ProcessError as e:
                raise AttachUnavailableError(
                    f"Cannot launch {self.terminal}",
                    target=request.identifier,
                    detail=str(e),
                ) from e
            log_session_attach(request.identifier, AttachMode.SPAWN.value, self.client.host)
            return pid

    # Lifecycle

    @audit_log("detach_session", LogContext.CONTROLLER)
    async def detach(self, identifier: str) -> None:
        with self._operation(ControllerState.DETACHING, identifier):
            session = self._session(identifier)
            if not session.attached:
                raise NotAttachedError("Session is not attached", target=identifier)
            await self._issue(self.client.detach, identifier, session.target)
            log_session_detach(identifier)

    @audit_log("kill_session", LogContext.CONTROLLER)
    async def kill(self, identifier: str) -> None:
        with self._operation(ControllerState.KILLING, identifier):
            session = self._session(identifier)
            await self._issue(self.client.quit, identifier, session.target)
            self._pending.pop(identifier, None)
            self.store.discard(identifier)
            log_session_kill(identifier)

    @audit_log("create_session", LogContext.CONTROLLER)
    async def create(
        self,
        name: str,
        working_directory: str | None = None,
        command: str | None = None,
    ) -> str:
        """Create a detached session.

        Args:
            name: Session name
            working_directory: Directory the first window starts in
            command: Command run in the first window

        Returns:
            Identifier of the new session

        Raises:
            NameConflictError: A live session already has this name
        """
        identifier = self.client.tag(name)
        with self._operation(ControllerState.CREATING, identifier):
            validate_session_name(name)
            if identifier in self.store:
                raise NameConflictError("Session already exists", target=identifier)
            await self._issue(
                self.client.create_session, identifier, name, working_directory, command
            )
            self._pending[identifier] = name
            log_session_operation("create", identifier, "success")
            return identifier

    @audit_log("add_window", LogContext.CONTROLLER)
    async def add_window(
        self,
        identifier: str,
        title: str,
        working_directory: str | None = None,
        command: str | None = None,
    ) -> None:
        with self._operation(ControllerState.CREATING, identifier):
            target = self._target(identifier)
            await self._issue(
                self.client.create_window,
                identifier,
                target,
                title,
                working_directory,
                command,
            )

    async def title_window(self, identifier: str, index: int, title: str) -> None:
        with self._operation(ControllerState.UPDATING, identifier):
            target = self._target(identifier)
            await self._issue(self.client.title_window, identifier, target, index, title)

    @audit_log("rename_session", LogContext.CONTROLLER)
    async def rename(self, identifier: str, new_name: str) -> str:
        """Rename a session.

        Returns:
            The session's new identifier
        """
        with self._operation(ControllerState.UPDATING, identifier):
            validate_session_name(new_name)
            session = self._session(identifier)
            new_identifier = self.client.tag(new_name)
            if new_identifier != identifier and new_identifier in self.store:
                raise NameConflictError("Session already exists", target=new_identifier)
            await self._issue(
                self.client.rename_session, identifier, session.target, new_name
            )
            log_session_operation("rename", identifier, "success", {"new_name": new_name})
            return new_identifier

    @audit_log("kill_window", LogContext.CONTROLLER)
    async def kill_window(self, identifier: str, index: int) -> None:
        with self._operation(ControllerState.KILLING, identifier):
            session = self._session(identifier)
            if session.windows and session.window(index) is None:
                raise SessionNotFoundError("No such window", target=f"{identifier}:{index}")
            await self._issue(self.client.kill_window, identifier, session.target, index)

    async def send_keys(self, identifier: str, text: str, window: int | None = None) -> None:
        """Type text into a window, as if entered at the keyboard."""
        with self._operation(ControllerState.UPDATING, identifier):
            target = self._target(identifier)
            await self._issue(self.client.stuff, identifier, target, text, window)
