"""
Session discovery.

Lists the live screen sessions on one host and enumerates each session's
windows. A refresh never fails because of one bad line or one session whose
windows cannot be read; only an unreachable screen fails the whole scan.
"""

import asyncio
from dataclasses import replace
from datetime import datetime

import psutil

from ..core.exceptions import DiscoveryError, ScreenUnavailableError
from ..core.models import Session
from ..utils.logging import LogContext, get_logger, log_performance
from ..utils.process import ProcessError
from .client import ScreenClient
from .logging_utils import log_partial_session, log_session_list, log_skipped_line
from .parser import is_listing_noise, is_listing_output, parse_session_line, parse_window_list

logger = get_logger(__name__, LogContext.DISCOVERY)


class SessionDiscovery:
    """Builds Session records from screen's listing."""

    def __init__(self, client: ScreenClient, inspect_processes: bool = True) -> None:
        """Initialize discovery.

        Args:
            client: Screen client for the host being scanned
            inspect_processes: Read working directory and start time of local
                session processes
        """
        self.client = client
        self.inspect_processes = inspect_processes

    @property
    def host(self) -> str | None:
        return self.client.host

    @log_performance(LogContext.DISCOVERY)
    async def refresh(self) -> list[Session]:
        """Scan the host for live sessions.

        Returns:
            Sessions in listing order, each with its windows

        Raises:
            ScreenUnavailableError: screen or the host cannot be reached
            DiscoveryError: screen reported an error instead of a listing
        """
        try:
            result = await self.client.list_sessions()
        except ProcessError as e:
            raise ScreenUnavailableError(
                "Cannot list screen sessions", target=self.host, detail=str(e)
            ) from e

        # screen -ls exits non-zero even when it prints a valid listing
        if not result.ok and not is_listing_output(result.output):
            raise DiscoveryError(
                "screen -ls failed", target=self.host, detail=result.error_text
            )

        sessions = self.parse_listing(result.stdout or result.stderr)
        sessions = list(await asyncio.gather(*(self._with_windows(s) for s in sessions)))

        log_session_list(sessions, host=self.host)
        return sessions

    def parse_listing(self, output: str) -> list[Session]:
        """Parse listing text, skipping lines that do not describe a session."""
        sessions: list[Session] = []
        seen: set[str] = set()

        for line in output.splitlines():
            if is_listing_noise(line):
                continue
            session = parse_session_line(line, host=self.host)
            if session is None:
                log_skipped_line(line.strip(), host=self.host)
                continue

            if session.identifier in seen:
                # Two sessions share a name; the pid keeps identifiers unique
                session = replace(session, identifier=self.client.tag(session.target))
            seen.add(session.identifier)
            sessions.append(session)

        return sessions

    async def _with_windows(self, session: Session) -> Session:
        try:
            result = await self.client.list_windows(session.target)
        except ProcessError as e:
            log_partial_session(session.identifier, str(e))
            return replace(session, partial=True)

        if not result.ok:
            log_partial_session(session.identifier, result.error_text)
            return replace(session, partial=True)

        session = replace(session, windows=tuple(parse_window_list(result.stdout)))
        if self.client.is_local and self.inspect_processes:
            session = self._with_process_info(session)
        return session

    def _with_process_info(self, session: Session) -> Session:
        try:
            process = psutil.Process(session.pid)
            cwd = process.cwd()
            created = session.created or datetime.fromtimestamp(process.create_time())
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            logger.debug("Process details unavailable", session=session.identifier)
            return session
        return replace(session, working_directory=cwd, created=created)
