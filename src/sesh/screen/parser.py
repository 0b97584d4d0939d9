"""
Parsers for GNU Screen command output.

``screen -ls`` output is loosely structured, so sessions are parsed one line at
a time: a line either yields a Session or is skipped.
"""

import re
from datetime import datetime

from ..core.models import Session, SessionStatus, Window, WindowActivity

_HEAD = re.compile(r"^(?P<head>[^\s()]+)(?P<rest>.*)$")
_PID_NAME = re.compile(r"^(?P<pid>\d+)\.(?P<name>.+)$")
_PAREN_FIELD = re.compile(r"\(([^()]*)\)")
_WINDOW_ENTRY = re.compile(r"^(?P<index>\d+)(?P<flags>[^\s\w]*Z?)\s+(?P<title>.+)$")
_ENTRY_SEPARATOR = re.compile(r"\s{2,}|\n")

_DATE_FORMATS = (
    "%m/%d/%Y %I:%M:%S %p",
    "%m/%d/%y %I:%M:%S %p",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%y %H:%M:%S",
    "%d/%m/%y %H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
)

_NOISE_PREFIXES = (
    "there is a screen on",
    "there are screens on",
    "there is no screen",
    "no sockets found",
    "no screen session found",
    "remove dead screens",
)

_STATUS_WORDS = {
    "attached": SessionStatus.ATTACHED,
    "detached": SessionStatus.DETACHED,
    "multi": SessionStatus.MULTI,
    "dead": SessionStatus.DEAD,
}


def is_listing_noise(line: str) -> bool:
    """True for header and footer lines of ``screen -ls``."""
    text = line.strip().lower()
    if not text:
        return True
    if text.startswith(_NOISE_PREFIXES):
        return True
    # "2 Sockets in /run/screen/S-user." / "1 Socket in ..."
    return bool(re.match(r"^\d+ sockets? in ", text))


def is_listing_output(output: str) -> bool:
    """True when the text looks like a ``screen -ls`` report."""
    text = output.lower()
    return (
        "no sockets found" in text
        or "there is a screen on" in text
        or "there are screens on" in text
        or bool(re.search(r"\d+ sockets? in ", text))
    )


def parse_status(status: str) -> SessionStatus:
    """Map a status word (any case, trailing detail allowed) to SessionStatus."""
    match = re.match(r"[a-z]+", status.strip().lower())
    if not match:
        return SessionStatus.UNKNOWN
    return _STATUS_WORDS.get(match.group(0), SessionStatus.UNKNOWN)


def parse_datetime(text: str) -> datetime | None:
    """Parse the creation date screen prints next to a session."""
    text = text.strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def parse_session_line(line: str, host: str | None = None) -> Session | None:
    """Parse one line of ``screen -ls`` output.

    Accepts ``12345.name (date) (Attached)`` as printed by screen as well as
    ``name (12345) (Attached)``. Parenthesised fields may appear in any number
    and order. Returns None when no name and pid can be found.

    Args:
        line: A single output line
        host: Host the listing came from, None for local

    Returns:
        Session with no windows, or None
    """
    match = _HEAD.match(line.strip())
    if not match:
        return None

    head = match.group("head")
    pid: int | None = None
    name = head

    pid_name = _PID_NAME.match(head)
    if pid_name:
        pid = int(pid_name.group("pid"))
        name = pid_name.group("name")

    status = SessionStatus.UNKNOWN
    created: datetime | None = None

    for raw_field in _PAREN_FIELD.findall(match.group("rest")):
        value = raw_field.strip()
        if not value:
            continue
        if value.isdigit():
            if pid is None:
                pid = int(value)
            continue
        field_status = parse_status(value)
        if field_status is not SessionStatus.UNKNOWN:
            status = field_status
            continue
        parsed = parse_datetime(value)
        if parsed is not None:
            created = parsed

    if pid is None or not name:
        return None

    identifier = f"{name}@{host}" if host else name
    return Session(
        identifier=identifier,
        name=name,
        pid=pid,
        status=status,
        created=created,
        host=host,
    )


def parse_window_flags(flags: str) -> WindowActivity:
    """Derive window activity from screen's window flags."""
    if "@" in flags or "!" in flags:
        return WindowActivity.BELL
    if "*" in flags or "$" in flags:
        return WindowActivity.ACTIVE
    if "+" in flags:
        return WindowActivity.RUNNING
    return WindowActivity.IDLE


def parse_window_list(output: str) -> list[Window]:
    """Parse ``screen -Q windows`` output.

    Entries look like ``0$ bash  1-$ vim  2*$ editor`` (two-space separated) or
    one per line. The current window carries ``*``; when no entry does, the
    first ``$`` entry is treated as current. At most one window is active.

    Returns:
        Windows sorted by index, duplicates dropped
    """
    entries: list[tuple[int, str, str]] = []
    seen: set[int] = set()

    for chunk in _ENTRY_SEPARATOR.split(output):
        chunk = chunk.strip()
        if not chunk:
            continue
        match = _WINDOW_ENTRY.match(chunk)
        if not match:
            continue
        index = int(match.group("index"))
        if index in seen:
            continue
        seen.add(index)
        entries.append((index, match.group("flags"), match.group("title").strip()))

    entries.sort(key=lambda entry: entry[0])

    active_index: int | None = None
    for marker in ("*", "$"):
        for index, flags, _title in entries:
            if marker in flags:
                active_index = index
                break
        if active_index is not None:
            break

    return [
        Window(
            index=index,
            title=title,
            active=index == active_index,
            flags=flags,
            activity=parse_window_flags(flags),
        )
        for index, flags, title in entries
    ]


def parse_hardcopy(content: str, max_lines: int | None = None) -> list[str]:
    """Turn a hardcopy dump into display lines.

    Trailing whitespace is stripped from each line and the blank padding screen
    writes below the last output line is dropped. With ``max_lines`` only the
    trailing lines are kept.
    """
    lines = [line.rstrip() for line in content.splitlines()]
    while lines and not lines[-1]:
        lines.pop()
    if max_lines is not None:
        if max_lines <= 0:
            return []
        lines = lines[-max_lines:]
    return lines
