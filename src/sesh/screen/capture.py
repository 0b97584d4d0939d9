"""
Preview capture.

Captures the visible contents of one window through ``screen -X hardcopy``.
screen writes the dump asynchronously, so the artifact is polled with a
bounded exponential backoff and removed on every exit path.
"""

import asyncio

from ..core.exceptions import (
    CaptureError,
    CaptureTimeoutError,
    CaptureUnavailableError,
    WindowGoneError,
)
from ..core.models import PreviewSnapshot
from ..core.store import SessionStore
from ..utils.logging import LogContext, get_logger
from ..utils.process import ProcessError
from .client import ScreenClient
from .parser import parse_hardcopy

logger = get_logger(__name__, LogContext.CAPTURE)

MAX_BACKOFF = 0.2


class PreviewCapture:
    """Captures window contents for previews."""

    def __init__(
        self,
        client: ScreenClient,
        store: SessionStore,
        attempts: int = 10,
        backoff: float = 0.01,
    ) -> None:
        """Initialize capture.

        Args:
            client: Screen client for the session's host
            store: Store used to check that the window is still live
            attempts: Times the artifact is polled before giving up
            backoff: Initial delay between polls, doubled each attempt
        """
        self.client = client
        self.store = store
        self.attempts = max(1, attempts)
        self.backoff = backoff

    async def capture(
        self, identifier: str, window_index: int, max_lines: int | None = None
    ) -> PreviewSnapshot:
        """Capture a window.

        Args:
            identifier: Session identifier
            window_index: Window to capture
            max_lines: Keep only this many trailing lines

        Returns:
            PreviewSnapshot of the window

        Raises:
            WindowGoneError: Session or window is no longer live
            CaptureError: screen rejected the hardcopy command
            CaptureTimeoutError: The artifact never appeared
            CaptureUnavailableError: screen or the host cannot be reached
        """
        target_label = f"{identifier}:{window_index}"
        session = self.store.get(identifier)
        if session is None:
            raise WindowGoneError("Session is gone", target=target_label)
        if session.windows and session.window(window_index) is None:
            raise WindowGoneError("Window is gone", target=target_label)

        path = self.client.new_artifact_path()
        try:
            result = await self.client.hardcopy(session.target, window_index, path)
            if not result.ok:
                raise CaptureError(
                    "hardcopy failed", target=target_label, detail=result.error_text
                )
            content = await self._wait_for_artifact(path, target_label)
        except ProcessError as e:
            raise CaptureUnavailableError(
                "Cannot capture window", target=target_label, detail=str(e)
            ) from e
        finally:
            await self._remove(path)

        return PreviewSnapshot(
            identifier=identifier,
            window_index=window_index,
            lines=tuple(parse_hardcopy(content, max_lines)),
        )

    async def _wait_for_artifact(self, path: str, target_label: str) -> str:
        delay = self.backoff
        for attempt in range(self.attempts):
            content = await self.client.read_artifact(path)
            if content is not None:
                return content
            if attempt < self.attempts - 1:
                await asyncio.sleep(delay)
                delay = min(delay * 2, MAX_BACKOFF)
        raise CaptureTimeoutError(
            f"No hardcopy after {self.attempts} attempts", target=target_label
        )

    async def _remove(self, path: str) -> None:
        try:
            await self.client.remove_artifact(path)
        except (OSError, ProcessError) as e:
            logger.warning("Failed to remove capture artifact", path=path, error=str(e))
