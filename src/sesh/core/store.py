"""
Session state store.

Holds the current snapshot of live sessions. The snapshot is an immutable
tuple plus an index that are swapped together under a lock, so readers never
need the lock and never see half of an update.
"""

import builtins
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum

from ..utils.logging import LogContext, get_logger
from .models import Session

logger = get_logger(__name__, LogContext.STORE)


class ChangeKind(Enum):
    """Kind of change between two snapshots."""

    ADDED = "added"
    REMOVED = "removed"
    UPDATED = "updated"


@dataclass(frozen=True)
class ChangeEvent:
    """One session's change between two snapshots.

    ``session`` is the new record, or the last known record for removals.
    """

    kind: ChangeKind
    identifier: str
    session: Session


Listener = Callable[[list[ChangeEvent]], None]


@dataclass(frozen=True)
class _Snapshot:
    sessions: tuple[Session, ...]
    index: dict[str, Session]
    version: int


class SessionStore:
    """Owns the current snapshot of live sessions."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._snapshot = _Snapshot(sessions=(), index={}, version=0)
        self._listeners: list[Listener] = []

    @property
    def version(self) -> int:
        """Number of snapshots applied so far; 0 until the first scan."""
        return self._snapshot.version

    def get(self, identifier: str) -> Session | None:
        return self._snapshot.index.get(identifier)

    def list(self) -> builtins.list[Session]:
        return list(self._snapshot.sessions)

    def __contains__(self, identifier: str) -> bool:
        return identifier in self._snapshot.index

    def __len__(self) -> int:
        return len(self._snapshot.sessions)

    def apply(self, sessions: Iterable[Session]) -> builtins.list[ChangeEvent]:
        """Replace the snapshot wholesale.

        Args:
            sessions: The complete set of live sessions

        Returns:
            Change events, ordered removed, added, updated
        """
        new_sessions = tuple(sessions)
        with self._lock:
            previous = self._snapshot
            self._snapshot = _Snapshot(
                sessions=new_sessions,
                index={session.identifier: session for session in new_sessions},
                version=previous.version + 1,
            )
            current = self._snapshot

        events = diff_snapshots(previous.sessions, current.sessions)
        logger.debug(
            "Snapshot applied",
            version=current.version,
            sessions=len(new_sessions),
            changes=len(events),
        )
        self._notify(events)
        return events

    def discard(self, identifier: str) -> builtins.list[ChangeEvent]:
        """Remove one session from the snapshot, e.g. right after killing it."""
        with self._lock:
            previous = self._snapshot
            if identifier not in previous.index:
                return []
            remaining = tuple(s for s in previous.sessions if s.identifier != identifier)
            self._snapshot = _Snapshot(
                sessions=remaining,
                index={session.identifier: session for session in remaining},
                version=previous.version + 1,
            )

        events = [ChangeEvent(ChangeKind.REMOVED, identifier, previous.index[identifier])]
        self._notify(events)
        return events

    def subscribe(self, listener: Listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, events: builtins.list[ChangeEvent]) -> None:
        if not events:
            return
        for listener in list(self._listeners):
            try:
                listener(events)
            except Exception as e:
                logger.error("Store listener failed", exception=e)


def diff_snapshots(
    previous: Iterable[Session], current: Iterable[Session]
) -> list[ChangeEvent]:
    """Compute change events between two session collections."""
    old = {session.identifier: session for session in previous}
    new = {session.identifier: session for session in current}

    removed = [
        ChangeEvent(ChangeKind.REMOVED, identifier, session)
        for identifier, session in old.items()
        if identifier not in new
    ]
    added = [
        ChangeEvent(ChangeKind.ADDED, identifier, session)
        for identifier, session in new.items()
        if identifier not in old
    ]
    updated = [
        ChangeEvent(ChangeKind.UPDATED, identifier, session)
        for identifier, session in new.items()
        if identifier in old and old[identifier] != session
    ]
    return removed + added + updated
