"""Session, window and preview records.

These are read replicas of screen's state: discovery builds them from command
output and they are never mutated afterwards.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class SessionStatus(Enum):
    """Status of a screen session as reported by ``screen -ls``."""

    ATTACHED = "attached"
    DETACHED = "detached"
    MULTI = "multi"
    DEAD = "dead"
    UNKNOWN = "unknown"


class WindowActivity(Enum):
    """Activity state of a window, derived from its screen flags."""

    IDLE = "idle"
    ACTIVE = "active"
    BELL = "bell"
    RUNNING = "running"


class AttachMode(Enum):
    """How to take over a session's terminal."""

    EXEC = "exec"  # replace the current process
    SPAWN = "spawn"  # launch a new terminal emulator


@dataclass(frozen=True)
class Window:
    """A window within a screen session."""

    index: int
    title: str
    command: str | None = None
    active: bool = False
    flags: str = ""
    activity: WindowActivity = WindowActivity.IDLE


@dataclass(frozen=True)
class Session:
    """A live screen session."""

    identifier: str
    name: str
    pid: int
    status: SessionStatus = SessionStatus.UNKNOWN
    created: datetime | None = None
    windows: tuple[Window, ...] = ()
    working_directory: str | None = None
    host: str | None = None
    partial: bool = False

    @property
    def attached(self) -> bool:
        return self.status in (SessionStatus.ATTACHED, SessionStatus.MULTI)

    @property
    def is_remote(self) -> bool:
        return self.host is not None

    @property
    def target(self) -> str:
        """Argument for ``screen -S``; the pid prefix keeps it unambiguous."""
        if self.pid:
            return f"{self.pid}.{self.name}"
        return self.name

    @property
    def display_name(self) -> str:
        if self.host:
            return f"{self.name}@{self.host}"
        return self.name

    @property
    def window_count(self) -> int:
        return len(self.windows)

    @property
    def active_window(self) -> Window | None:
        for window in self.windows:
            if window.active:
                return window
        return None

    def window(self, index: int) -> Window | None:
        for window in self.windows:
            if window.index == index:
                return window
        return None

    def age_string(self, now: datetime | None = None) -> str:
        """Short human-readable age such as ``3d``, ``5h`` or ``now``."""
        if self.created is None:
            return "-"
        now = now or datetime.now()
        seconds = int((now - self.created).total_seconds())
        if seconds >= 86400:
            return f"{seconds // 86400}d"
        if seconds >= 3600:
            return f"{seconds // 3600}h"
        if seconds >= 60:
            return f"{seconds // 60}m"
        return "now"


@dataclass(frozen=True)
class PreviewSnapshot:
    """Captured contents of one window."""

    identifier: str
    window_index: int
    lines: tuple[str, ...]
    captured_at: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class AttachRequest:
    """Request to attach to a session."""

    identifier: str
    mode: AttachMode = AttachMode.EXEC
    host: str | None = None
    force_detach: bool = False
