"""
Orchestrator.

Drives the engine from a single asyncio loop: periodic and debounced
discovery refreshes across the local machine and remote hosts, preview polling
for the selected window, and routing of lifecycle operations to the backend
that owns a session.
"""

import asyncio
import contextlib
from collections.abc import Callable, Coroutine
from typing import Any

from ..config.loader import SeshConfig
from ..integrations.git_status import GitStatus, read_git_status
from ..utils.logging import LogContext, get_logger
from .backend import SessionBackend
from .exceptions import ScreenUnavailableError, SeshError, SessionNotFoundError, WindowGoneError
from .models import AttachMode, AttachRequest, PreviewSnapshot, Session, Window
from .store import ChangeEvent, SessionStore
from .templates import Template, find_template

logger = get_logger(__name__, LogContext.ORCHESTRATOR)

Callback = Callable[[Any, BaseException | None], None]


class Orchestrator:
    """Coordinates discovery, previews and lifecycle operations."""

    def __init__(
        self,
        config: SeshConfig,
        store: SessionStore | None = None,
        backends: list[SessionBackend] | None = None,
    ):
        """Initialize the orchestrator.

        Args:
            config: Loaded configuration
            store: Shared session store, created when omitted
            backends: Backends to use, the local one first; built from the
                configuration when omitted
        """
        self.config = config
        self.store = store if store is not None else SessionStore()
        if backends is None:
            backends = [SessionBackend.local(config, self.store)]
            backends += [
                SessionBackend.remote(host, config, self.store) for host in config.hosts
            ]
        self._backends: dict[str | None, SessionBackend] = {
            backend.host: backend for backend in backends
        }
        self._watched: set[str] = set()
        if config.include_remote:
            self._watched.update(host for host in self._backends if host is not None)

        self.unavailable_hosts: dict[str, str] = {}
        self.latest_preview: PreviewSnapshot | None = None
        self.on_preview: Callable[[PreviewSnapshot], None] | None = None
        self.on_preview_error: Callable[[SeshError], None] | None = None
        self.on_error: Callable[[SeshError], None] | None = None

        self._refresh_task: asyncio.Task | None = None
        self._loop_task: asyncio.Task | None = None
        self._preview_task: asyncio.Task | None = None
        self._selection: tuple[str, int] | None = None
        self._generation = 0
        self._local_unavailable = False
        self._tasks: set[asyncio.Task] = set()
        # Killed sessions by identifier: (kill sequence number, pid)
        self._tombstones: dict[str, tuple[int, int]] = {}
        self._kills = 0

    # Backends

    @property
    def local(self) -> SessionBackend:
        return self._backends[None]

    @property
    def hosts(self) -> list[str]:
        return [host for host in self._backends if host is not None]

    def backend(self, host: str | None = None) -> SessionBackend:
        try:
            return self._backends[host]
        except KeyError:
            raise SessionNotFoundError(f"Unknown host {host}", target=host) from None

    def backend_for(self, identifier: str) -> SessionBackend:
        """Backend that owns a session identifier."""
        for host, backend in self._backends.items():
            if host is not None and backend.client.owns(identifier):
                return backend
        if self.local.client.owns(identifier):
            return self.local
        host = identifier.rpartition("@")[2]
        raise SessionNotFoundError(f"Unknown host {host}", target=identifier)

    def watch_host(self, host: str) -> None:
        """Include a remote host in subsequent scans."""
        self.backend(host)
        self._watched.add(host)

    # Work submission

    def submit(
        self, coro: Coroutine[Any, Any, Any], callback: Callback | None = None
    ) -> asyncio.Task:
        """Run a unit of work as a task and post ``(result, error)`` back."""
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)

        def _done(finished: asyncio.Task) -> None:
            self._tasks.discard(finished)
            if finished.cancelled():
                return
            error = finished.exception()
            result = None if error else finished.result()
            if callback is not None:
                callback(result, error)
            elif error is not None:
                logger.error("Submitted task failed", exception=error)

        task.add_done_callback(_done)
        return task

    # Refresh

    async def refresh(self) -> list[ChangeEvent]:
        """Rescan sessions and apply one merged snapshot.

        Requests made while a scan is in flight share its result.

        Raises:
            ScreenUnavailableError: screen is unavailable locally
            DiscoveryError: The local listing could not be read
        """
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.get_running_loop().create_task(self._scan())
        return await asyncio.shield(self._refresh_task)

    async def _scan(self) -> list[ChangeEvent]:
        started = self._kills
        backends = [self.local] + [
            self._backends[host] for host in sorted(self._watched)
        ]
        results = await asyncio.gather(
            *(backend.discovery.refresh() for backend in backends),
            return_exceptions=True,
        )

        sessions: list[Session] = []
        for backend, result in zip(backends, results):
            if isinstance(result, BaseException):
                if backend.host is None or not isinstance(result, SeshError):
                    raise result
                if backend.host not in self.unavailable_hosts:
                    logger.warning(
                        "Remote host unavailable", host=backend.host, error=str(result)
                    )
                self.unavailable_hosts[backend.host] = str(result)
                continue
            if backend.host is not None:
                self.unavailable_hosts.pop(backend.host, None)
            sessions.extend(result)

        self._local_unavailable = False
        sessions = [s for s in sessions if not self._killed_since(s, started)]
        # Scans that began after a kill see the real state
        self._tombstones = {
            identifier: entry
            for identifier, entry in self._tombstones.items()
            if entry[0] > started
        }
        return self.store.apply(sessions)

    def _killed_since(self, session: Session, started: int) -> bool:
        """True when ``session`` was killed after a scan began listing it."""
        entry = self._tombstones.get(session.identifier)
        if entry is None:
            return False
        sequence, pid = entry
        return sequence > started and (not pid or not session.pid or pid == session.pid)

    async def _ensure_loaded(self) -> None:
        if self.store.version == 0:
            await self.refresh()

    async def _refresh_quietly(self) -> None:
        try:
            await self.refresh()
        except SeshError as e:
            logger.warning("Refresh after operation failed", error=str(e))

    # Periodic loop

    def start(self, interval: float | None = None) -> None:
        """Start refreshing every ``interval`` seconds."""
        if self._loop_task is not None and not self._loop_task.done():
            return
        interval = interval or self.config.refresh_interval
        self._loop_task = asyncio.get_running_loop().create_task(self._run_loop(interval))

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    async def _run_loop(self, interval: float) -> None:
        while True:
            try:
                await self.refresh()
            except ScreenUnavailableError as e:
                if not self._local_unavailable:
                    self._local_unavailable = True
                    logger.error("screen is unavailable, stopping refresh", exception=e)
                    if self.on_error is not None:
                        self.on_error(e)
                return
            except SeshError as e:
                logger.warning("Refresh failed", error=str(e))
                if self.on_error is not None:
                    self.on_error(e)
            await asyncio.sleep(interval)

    async def stop(self) -> None:
        """Stop the refresh loop, preview polling and submitted tasks."""
        tasks = [self._loop_task, self._preview_task, *self._tasks]
        self._loop_task = None
        self._preview_task = None
        for task in tasks:
            if task is not None and not task.done():
                task.cancel()
        for task in tasks:
            if task is not None:
                with contextlib.suppress(asyncio.CancelledError, Exception):
                    await task

    # Preview

    def select(self, identifier: str | None, window_index: int = 0) -> None:
        """Poll previews for a window, replacing any previous selection."""
        self._generation += 1
        if self._preview_task is not None and not self._preview_task.done():
            self._preview_task.cancel()
        self._preview_task = None
        self.latest_preview = None

        if identifier is None:
            self._selection = None
            return

        self._selection = (identifier, window_index)
        self._preview_task = asyncio.get_running_loop().create_task(
            self._poll_preview(self._generation, identifier, window_index)
        )

    @property
    def selection(self) -> tuple[str, int] | None:
        return self._selection

    async def _poll_preview(self, generation: int, identifier: str, window_index: int) -> None:
        backend = self.backend_for(identifier)
        while generation == self._generation:
            try:
                snapshot = await backend.capture.capture(
                    identifier, window_index, self.config.preview_lines
                )
            except WindowGoneError as e:
                if generation == self._generation and self.on_preview_error is not None:
                    self.on_preview_error(e)
                return
            except SeshError as e:
                logger.debug("Preview capture failed", session=identifier, error=str(e))
                if generation == self._generation and self.on_preview_error is not None:
                    self.on_preview_error(e)
            else:
                # A late snapshot for an old selection is dropped
                if generation != self._generation:
                    return
                self.latest_preview = snapshot
                if self.on_preview is not None:
                    self.on_preview(snapshot)
            await asyncio.sleep(self.config.preview_interval)

    async def capture_preview(
        self,
        identifier: str,
        window_index: int | None = None,
        max_lines: int | None = None,
    ) -> PreviewSnapshot:
        """Capture one window, defaulting to the session's active window."""
        session = await self.get_session(identifier)
        if window_index is None:
            active = session.active_window
            if active is not None:
                window_index = active.index
            elif session.windows:
                window_index = session.windows[0].index
            else:
                window_index = 0
        backend = self.backend_for(identifier)
        return await backend.capture.capture(
            identifier,
            window_index,
            self.config.preview_lines if max_lines is None else max_lines,
        )

    # Queries

    async def list_sessions(self, refresh: bool = True) -> list[Session]:
        if refresh:
            await self.refresh()
        else:
            await self._ensure_loaded()
        return self.store.list()

    async def get_session(self, identifier: str) -> Session:
        """Look up a session, rescanning once before reporting it missing."""
        await self._locate(identifier)
        session = self.store.get(identifier)
        if session is None:
            raise SessionNotFoundError("No such session", target=identifier)
        return session

    async def windows(self, identifier: str) -> list[Window]:
        session = await self.get_session(identifier)
        return list(session.windows)

    async def git_status(self, identifier: str) -> GitStatus | None:
        """Git status of a local session's working directory."""
        if not self.config.git_status:
            return None
        session = self.store.get(identifier)
        if session is None or session.is_remote or not session.working_directory:
            return None
        return await asyncio.to_thread(read_git_status, session.working_directory)

    async def _locate(self, identifier: str) -> SessionBackend:
        backend = self.backend_for(identifier)
        if backend.host is not None and backend.host not in self._watched:
            self.watch_host(backend.host)
            await self.refresh()
        else:
            await self._ensure_loaded()
        if identifier not in self.store:
            # The snapshot may predate the session
            await self.refresh()
        return backend

    # Mutations

    async def attach(
        self,
        identifier: str,
        mode: AttachMode | None = None,
        force_detach: bool = False,
    ) -> None:
        """Attach to a session; in exec mode this never returns."""
        backend = await self._locate(identifier)
        mode = mode or AttachMode(self.config.attach_mode)
        request = AttachRequest(
            identifier=identifier,
            mode=mode,
            host=backend.host,
            force_detach=force_detach,
        )
        await backend.controller.attach(request)
        await self._refresh_quietly()

    async def detach(self, identifier: str) -> None:
        backend = await self._locate(identifier)
        await backend.controller.detach(identifier)
        await self._refresh_quietly()

    async def kill(self, identifier: str) -> None:
        """Kill a session and keep in-flight scans from bringing it back."""
        backend = await self._locate(identifier)
        session = self.store.get(identifier)
        await backend.controller.kill(identifier)
        self._kills += 1
        self._tombstones[identifier] = (self._kills, session.pid if session else 0)

    async def create(
        self,
        name: str,
        working_directory: str | None = None,
        command: str | None = None,
        host: str | None = None,
    ) -> str:
        backend = await self._prepare_host(host)
        identifier = await backend.controller.create(name, working_directory, command)
        await self._refresh_quietly()
        return identifier

    async def add_window(
        self,
        identifier: str,
        title: str,
        working_directory: str | None = None,
        command: str | None = None,
    ) -> None:
        backend = await self._locate(identifier)
        await backend.controller.add_window(identifier, title, working_directory, command)
        await self._refresh_quietly()

    async def rename(self, identifier: str, new_name: str) -> str:
        backend = await self._locate(identifier)
        new_identifier = await backend.controller.rename(identifier, new_name)
        await self._refresh_quietly()
        return new_identifier

    async def kill_window(self, identifier: str, index: int) -> None:
        backend = await self._locate(identifier)
        await backend.controller.kill_window(identifier, index)
        await self._refresh_quietly()

    async def send_keys(self, identifier: str, text: str, window: int | None = None) -> None:
        backend = await self._locate(identifier)
        await backend.controller.send_keys(identifier, text, window)

    async def start_template(
        self,
        template: Template | str,
        substitutions: dict[str, str] | None = None,
        session_name: str | None = None,
        host: str | None = None,
    ) -> str:
        """Create a session from a template object or a template name."""
        if isinstance(template, str):
            template = find_template(template, self.config.templates_dir)
        backend = await self._prepare_host(host)
        try:
            return await backend.templates.instantiate(template, substitutions, session_name)
        finally:
            await self._refresh_quietly()

    async def _prepare_host(self, host: str | None) -> SessionBackend:
        backend = self.backend(host)
        if host is not None and host not in self._watched:
            self.watch_host(host)
            await self.refresh()
        else:
            await self._ensure_loaded()
        return backend


# Global orchestrator instance
_orchestrator: Orchestrator | None = None


def get_orchestrator(config: SeshConfig | None = None) -> Orchestrator:
    """Get the global orchestrator instance.

    Args:
        config: Configuration used when the instance is first created

    Returns:
        Orchestrator instance
    """
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = Orchestrator(config or SeshConfig())
    return _orchestrator


async def cleanup_orchestrator() -> None:
    """Stop and discard the global orchestrator."""
    global _orchestrator
    if _orchestrator is not None:
        await _orchestrator.stop()
        _orchestrator = None
