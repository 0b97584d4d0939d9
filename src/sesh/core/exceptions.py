"""Error taxonomy for the session orchestration engine."""

from enum import Enum
from typing import Any

from ..utils.logging import SeshException


class ErrorKind(str, Enum):
    """Category of an orchestration failure."""

    UNAVAILABLE = "unavailable"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    TIMEOUT = "timeout"
    INVALID = "invalid"
    PARTIAL = "partial"
    FAILED = "failed"


class SeshError(SeshException):
    """Base class for orchestration errors.

    ``target`` names the session (or ``session:window``) the operation was aimed
    at and ``detail`` keeps the raw text reported by screen or ssh.
    """

    kind = ErrorKind.FAILED

    def __init__(
        self,
        message: str,
        target: str | None = None,
        detail: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context)
        self.target = target
        self.detail = detail

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message}: {self.detail}"
        return self.message


# Discovery


class DiscoveryError(SeshError):
    """Listing sessions failed."""


class ScreenUnavailableError(DiscoveryError):
    """screen (or the remote host running it) cannot be reached."""

    kind = ErrorKind.UNAVAILABLE


# Preview capture


class CaptureError(SeshError):
    """Capturing a window's contents failed."""


class CaptureTimeoutError(CaptureError):
    """The hardcopy artifact never appeared."""

    kind = ErrorKind.TIMEOUT


class WindowGoneError(CaptureError):
    """The session or window is no longer live."""

    kind = ErrorKind.NOT_FOUND


class CaptureUnavailableError(CaptureError):
    """screen or the remote host could not be reached while capturing."""

    kind = ErrorKind.UNAVAILABLE


# Attach controller


class AttachError(SeshError):
    """A lifecycle operation against a session failed."""


class NameConflictError(AttachError):
    """A live session already uses the requested name."""

    kind = ErrorKind.CONFLICT


class InvalidSessionNameError(AttachError):
    """The requested session name cannot be used with screen."""

    kind = ErrorKind.INVALID


class NotAttachedError(AttachError):
    """Detach was requested for a session with no attached display."""

    kind = ErrorKind.INVALID


class SessionNotFoundError(AttachError):
    """The target session is not in the current snapshot."""

    kind = ErrorKind.NOT_FOUND


class CommandFailedError(AttachError):
    """screen exited with a non-zero status."""


class AttachUnavailableError(AttachError):
    """screen, the terminal emulator or the remote host cannot be reached."""

    kind = ErrorKind.UNAVAILABLE


class ControllerBusyError(AttachError):
    """Another lifecycle operation is still in progress."""

    kind = ErrorKind.CONFLICT


# Templates


class TemplateError(SeshError):
    """Template loading or instantiation failed."""


class InvalidTemplateError(TemplateError):
    """A template document is malformed."""

    kind = ErrorKind.INVALID

    def __init__(self, message: str, field: str | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.field = field


class TemplateNotFoundError(TemplateError):
    """No template file with the requested name exists."""

    kind = ErrorKind.NOT_FOUND


class UnresolvedVariableError(TemplateError):
    """A ``${VAR}`` placeholder has no value in the substitution mapping."""

    kind = ErrorKind.INVALID

    def __init__(self, variables: list[str], **kwargs: Any):
        names = ", ".join(variables)
        super().__init__(f"Unresolved template variables: {names}", **kwargs)
        self.variables = variables


class TemplateCreationError(TemplateError):
    """The session itself could not be created; nothing was left behind."""

    def __init__(self, message: str, cause: SeshError, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.cause = cause
        self.kind = cause.kind


class PartialCreationError(TemplateError):
    """The session exists but some of its windows could not be set up."""

    kind = ErrorKind.PARTIAL

    def __init__(
        self,
        session_id: str,
        completed: list[str],
        failed: str,
        cause: SeshError,
    ):
        done = ", ".join(completed) if completed else "none"
        super().__init__(
            f"Session {session_id} partially created (completed: {done}; failed: {failed})",
            target=session_id,
            detail=str(cause),
        )
        self.session_id = session_id
        self.completed = completed
        self.failed = failed
        self.cause = cause
