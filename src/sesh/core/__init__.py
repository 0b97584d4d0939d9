"""Core session orchestration functionality."""

from .exceptions import ErrorKind, SeshError
from .models import AttachMode, AttachRequest, PreviewSnapshot, Session, SessionStatus, Window

__all__ = [
    "AttachMode",
    "AttachRequest",
    "ErrorKind",
    "PreviewSnapshot",
    "SeshError",
    "Session",
    "SessionStatus",
    "Window",
]
