"""Command lines for opening an attach command in a new terminal emulator."""

import os
import shlex
from collections.abc import Sequence

# Terminals that take a window title and the command as trailing arguments
_TITLE_THEN_COMMAND = {
    "alacritty": ["--title", "{title}", "-e"],
    "kitty": ["--title", "{title}"],
    "gnome-terminal": ["--title", "{title}", "--"],
    "foot": ["--title", "{title}"],
}


def spawn_command(terminal: str, argv: Sequence[str], title: str) -> list[str]:
    """Build the command that runs ``argv`` inside a new terminal window.

    Args:
        terminal: Terminal emulator name or path
        argv: Attach command to run in the terminal
        title: Window title, where the terminal supports one

    Returns:
        Full command line for the terminal emulator
    """
    name = os.path.basename(terminal)

    if name in _TITLE_THEN_COMMAND:
        flags = [flag.format(title=title) for flag in _TITLE_THEN_COMMAND[name]]
        return [terminal, *flags, *argv]
    if name == "wezterm":
        return [terminal, "start", "--", *argv]
    if name == "konsole":
        return [terminal, "-e", *argv]

    # Unknown terminals get the xterm convention with a single shell string
    return [terminal, "-e", "sh", "-c", shlex.join(argv)]
