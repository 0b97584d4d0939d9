"""
GNU Screen access for sesh.

This package provides:
- Parsers for screen's listing, window and hardcopy output
- A command interface for local screen and one for remote hosts over SSH
- Session discovery and preview capture built on those clients
"""

from .capture import PreviewCapture
from .client import ScreenClient
from .discovery import SessionDiscovery
from .remote import RemoteScreenClient, SSHCommandRunner

__all__ = [
    "PreviewCapture",
    "RemoteScreenClient",
    "SSHCommandRunner",
    "ScreenClient",
    "SessionDiscovery",
]
