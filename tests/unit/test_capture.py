"""Unit tests for preview capture."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from sesh.core.exceptions import (
    CaptureError,
    CaptureTimeoutError,
    CaptureUnavailableError,
    ErrorKind,
    WindowGoneError,
)
from sesh.core.models import Window
from sesh.screen.capture import PreviewCapture
from sesh.utils.process import CommandNotFoundError, CommandResult


@pytest.fixture
def artifact(tmp_path, screen_client) -> Path:
    """Fixed artifact path, with removals tracked."""
    path = tmp_path / "sesh-preview-test.txt"
    screen_client.new_artifact_path = lambda: str(path)
    screen_client.remove_artifact = AsyncMock(wraps=screen_client.remove_artifact)
    return path


@pytest.fixture
def capture(screen_client, store, session_factory) -> PreviewCapture:
    windows = (
        Window(index=0, title="bash"),
        Window(index=2, title="logs", active=True),
    )
    store.apply([session_factory("demo", 23456, windows=windows)])
    return PreviewCapture(screen_client, store, attempts=3, backoff=0.0)


def write_hardcopy(content: str):
    """Runner effect that writes the dump like screen does."""

    def effect(argv: list[str]) -> CommandResult:
        Path(argv[-1]).write_text(content)
        return CommandResult(argv=tuple(argv), returncode=0)

    return effect


class TestPreviewCapture:
    """Test PreviewCapture.capture."""

    @pytest.mark.asyncio
    async def test_capture_returns_lines(self, capture, fake_runner, artifact):
        fake_runner.on("hardcopy", effect=write_hardcopy("$ make\nok   \n\n\n"))

        snapshot = await capture.capture("demo", 2)

        assert snapshot.identifier == "demo"
        assert snapshot.window_index == 2
        assert snapshot.lines == ("$ make", "ok")
        assert fake_runner.matching(
            "-S", "23456.demo", "-p", "2", "-X", "hardcopy", "-h", str(artifact)
        )

    @pytest.mark.asyncio
    async def test_capture_always_deletes_artifact(self, capture, fake_runner, artifact):
        fake_runner.on("hardcopy", effect=write_hardcopy("output\n"))

        await capture.capture("demo", 0)

        assert not artifact.exists()
        capture.client.remove_artifact.assert_awaited_once_with(str(artifact))

    @pytest.mark.asyncio
    async def test_max_lines_keeps_tail(self, capture, fake_runner, artifact):
        content = "\n".join(f"line {i}" for i in range(50))
        fake_runner.on("hardcopy", effect=write_hardcopy(content))

        snapshot = await capture.capture("demo", 0, max_lines=2)

        assert snapshot.lines == ("line 48", "line 49")

    @pytest.mark.asyncio
    async def test_hardcopy_failure(self, capture, fake_runner, artifact):
        fake_runner.on("hardcopy", stderr="No screen session found.", returncode=1)

        with pytest.raises(CaptureError) as exc_info:
            await capture.capture("demo", 0)

        assert exc_info.value.detail == "No screen session found."
        assert exc_info.value.target == "demo:0"
        capture.client.remove_artifact.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_artifact_never_appears(self, capture, fake_runner, artifact):
        with pytest.raises(CaptureTimeoutError) as exc_info:
            await capture.capture("demo", 0)

        assert exc_info.value.kind == ErrorKind.TIMEOUT
        capture.client.remove_artifact.assert_awaited_once_with(str(artifact))

    @pytest.mark.asyncio
    async def test_empty_artifact_is_retried(self, capture, fake_runner, artifact):
        """An empty file means screen is still writing."""
        reads = iter([None, None, "late output\n"])
        capture.client.read_artifact = AsyncMock(side_effect=lambda path: next(reads))

        snapshot = await capture.capture("demo", 0)

        assert snapshot.lines == ("late output",)
        assert capture.client.read_artifact.await_count == 3

    @pytest.mark.asyncio
    async def test_unavailable_screen(self, capture, fake_runner, artifact):
        fake_runner.on("hardcopy", raises=CommandNotFoundError("Cannot execute screen"))

        with pytest.raises(CaptureUnavailableError):
            await capture.capture("demo", 0)

        capture.client.remove_artifact.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_missing_session_issues_nothing(self, capture, fake_runner, artifact):
        with pytest.raises(WindowGoneError) as exc_info:
            await capture.capture("gone", 0)

        assert exc_info.value.kind == ErrorKind.NOT_FOUND
        assert fake_runner.calls == []

    @pytest.mark.asyncio
    async def test_missing_window_issues_nothing(self, capture, fake_runner, artifact):
        with pytest.raises(WindowGoneError):
            await capture.capture("demo", 1)

        assert fake_runner.calls == []

    @pytest.mark.asyncio
    async def test_partial_session_still_captured(
        self, screen_client, store, session_factory, fake_runner, artifact
    ):
        """Without a window list any index is attempted."""
        store.apply([session_factory("demo", 23456, windows=(), partial=True)])
        fake_runner.on("hardcopy", effect=write_hardcopy("x\n"))
        capture = PreviewCapture(screen_client, store, attempts=2, backoff=0.0)

        snapshot = await capture.capture("demo", 7)

        assert snapshot.lines == ("x",)

    @pytest.mark.asyncio
    async def test_removal_failure_is_logged(self, capture, fake_runner, artifact):
        fake_runner.on("hardcopy", effect=write_hardcopy("x\n"))
        capture.client.remove_artifact = AsyncMock(side_effect=OSError("read-only"))

        snapshot = await capture.capture("demo", 0)

        assert snapshot.lines == ("x",)
