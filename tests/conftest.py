"""
Pytest configuration and shared fixtures for sesh tests.
"""

import logging
import os
import sys
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any
from unittest.mock import Mock

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from sesh.config.loader import HostConfig, SeshConfig
from sesh.core.models import Session, SessionStatus, Window
from sesh.core.store import SessionStore
from sesh.screen.client import ScreenClient
from sesh.utils.process import CommandResult

LISTING = (
    "There are screens on:\n"
    "\t12345.proj\t(01/02/2024 10:00:00 AM)\t(Attached)\n"
    "\t23456.demo\t(Detached)\n"
    "2 Sockets in /run/screen/S-user.\n"
)

NO_SESSIONS = "No Sockets found in /run/screen/S-user.\n"

WINDOWS = "0$ bash  1*$ editor  2-$ logs"

Response = CommandResult | BaseException | Callable[[list[str]], CommandResult]


def _contains(argv: list[str], fragment: Sequence[str]) -> bool:
    if not fragment:
        return True
    size = len(fragment)
    return any(
        argv[i : i + size] == list(fragment) for i in range(len(argv) - size + 1)
    )


class FakeRunner:
    """Scripted stand-in for CommandRunner.

    Rules match when their fragment appears contiguously in the command line;
    rules registered later take precedence. Unmatched commands succeed with
    empty output.
    """

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self._rules: list[tuple[tuple[str, ...], Response]] = []

    def on(
        self,
        *fragment: str,
        stdout: str = "",
        stderr: str = "",
        returncode: int = 0,
        raises: BaseException | None = None,
        effect: Callable[[list[str]], CommandResult] | None = None,
    ) -> "FakeRunner":
        response: Response
        if raises is not None:
            response = raises
        elif effect is not None:
            response = effect
        else:
            response = CommandResult(
                argv=tuple(fragment), returncode=returncode, stdout=stdout, stderr=stderr
            )
        self._rules.insert(0, (fragment, response))
        return self

    def listing(self, stdout: str = LISTING, windows: str = WINDOWS) -> "FakeRunner":
        """Script ``-ls`` (exiting 1, as screen does) and window queries."""
        self.on("-ls", stdout=stdout, returncode=1)
        self.on("-Q", "windows", stdout=windows)
        return self

    def matching(self, *fragment: str) -> list[list[str]]:
        return [argv for argv in self.calls if _contains(argv, fragment)]

    async def __call__(self, argv: Sequence[str], cwd: str | None = None) -> CommandResult:
        argv = list(argv)
        self.calls.append(argv)
        for fragment, response in self._rules:
            if not _contains(argv, fragment):
                continue
            if isinstance(response, BaseException):
                raise response
            if callable(response):
                return response(argv)
            return CommandResult(
                argv=tuple(argv),
                returncode=response.returncode,
                stdout=response.stdout,
                stderr=response.stderr,
            )
        return CommandResult(argv=tuple(argv), returncode=0)


def make_session(
    name: str = "demo",
    pid: int = 23456,
    status: SessionStatus = SessionStatus.DETACHED,
    windows: tuple[Window, ...] | None = None,
    host: str | None = None,
    **kwargs: Any,
) -> Session:
    """Build a Session record for tests."""
    if windows is None:
        windows = (Window(index=0, title="bash", active=True),)
    identifier = f"{name}@{host}" if host else name
    return Session(
        identifier=kwargs.pop("identifier", identifier),
        name=name,
        pid=pid,
        status=status,
        windows=windows,
        host=host,
        **kwargs,
    )


@pytest.fixture
def fake_runner() -> FakeRunner:
    """Scripted command runner."""
    return FakeRunner()


@pytest.fixture
def remote_runner() -> FakeRunner:
    """Scripted runner standing in for ssh to a remote host."""
    return FakeRunner()


@pytest.fixture
def screen_client(fake_runner) -> ScreenClient:
    """Local screen client backed by the fake runner."""
    return ScreenClient(runner=fake_runner)


@pytest.fixture
def store() -> SessionStore:
    """Empty session store."""
    return SessionStore()


@pytest.fixture
def session_factory() -> Callable[..., Session]:
    """Factory for Session records."""
    return make_session


@pytest.fixture
def host_config() -> HostConfig:
    """A remote host definition."""
    return HostConfig(name="buildbox", hostname="build.example.com", user="deploy")


@pytest.fixture
def test_config(tmp_path) -> SeshConfig:
    """Configuration with short intervals for fast tests."""
    return SeshConfig(
        refresh_interval=0.01,
        preview_interval=0.01,
        capture_attempts=3,
        capture_backoff=0.0,
        templates_dir=str(tmp_path / "templates"),
        git_status=False,
    )


@pytest.fixture
def isolated_home(tmp_path, monkeypatch) -> Path:
    """Run with an empty home and working directory so no user config is read."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)
    for key in list(os.environ):
        if key.startswith("SESH_"):
            monkeypatch.delenv(key)
    return home


@pytest.fixture
def mock_logger():
    """Provide a mock logger for testing."""
    return Mock(spec=logging.Logger)
