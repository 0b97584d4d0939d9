"""Wiring of discovery, capture and control for one host."""

from ..config.loader import HostConfig, SeshConfig
from ..screen.capture import PreviewCapture
from ..screen.client import ScreenClient
from ..screen.discovery import SessionDiscovery
from ..screen.remote import RemoteScreenClient, SSHCommandRunner
from ..utils.process import CommandRunner
from .controller import AttachController
from .store import SessionStore
from .templates import TemplateEngine


class SessionBackend:
    """Discovery, capture, controller and template engine sharing one client."""

    def __init__(self, client: ScreenClient, store: SessionStore, config: SeshConfig):
        self.client = client
        self.store = store
        self.discovery = SessionDiscovery(client)
        self.capture = PreviewCapture(
            client,
            store,
            attempts=config.capture_attempts,
            backoff=config.capture_backoff,
        )
        self.controller = AttachController(client, store, terminal=config.spawn_terminal)
        self.templates = TemplateEngine(self.controller)

    @property
    def host(self) -> str | None:
        return self.client.host

    @classmethod
    def local(cls, config: SeshConfig, store: SessionStore) -> "SessionBackend":
        client = ScreenClient(
            runner=CommandRunner(timeout=config.command_timeout),
            screen_command=config.screen_command,
            default_shell=config.default_shell,
        )
        return cls(client, store, config)

    @classmethod
    def remote(
        cls, host: HostConfig, config: SeshConfig, store: SessionStore
    ) -> "SessionBackend":
        runner = SSHCommandRunner(
            host,
            timeout=config.command_timeout,
            connect_timeout=config.ssh_connect_timeout,
        )
        client = RemoteScreenClient(
            host,
            runner=runner,
            screen_command=config.screen_command,
            default_shell=config.default_shell,
        )
        return cls(client, store, config)
