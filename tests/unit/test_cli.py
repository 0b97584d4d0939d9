"""Tests for the sesh command line interface."""

import json
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from sesh import __version__
from sesh.cli.main import main
from sesh.core.exceptions import (
    CommandFailedError,
    NameConflictError,
    PartialCreationError,
    SessionNotFoundError,
)
from sesh.core.models import AttachMode, PreviewSnapshot, SessionStatus, Window
from sesh.integrations.git_status import GitStatus


@pytest.fixture(autouse=True)
def no_logging_setup():
    with patch("sesh.cli.utils.setup_logging"):
        yield


@pytest.fixture
def runner(isolated_home) -> CliRunner:
    return CliRunner()


@pytest.fixture
def orchestrator():
    """Orchestrator double returned by get_orchestrator."""
    mock = MagicMock()
    mock.unavailable_hosts = {}
    for name in (
        "list_sessions",
        "get_session",
        "git_status",
        "create",
        "attach",
        "detach",
        "kill",
        "rename",
        "capture_preview",
        "start_template",
    ):
        setattr(mock, name, AsyncMock())
    mock.git_status.return_value = None
    with patch("sesh.cli.sessions.get_orchestrator", return_value=mock), patch(
        "sesh.cli.templates.get_orchestrator", return_value=mock
    ):
        yield mock


class TestMainGroup:
    """Test the top-level command group."""

    def test_help(self, runner):
        result = runner.invoke(main, ["--help"])

        assert result.exit_code == 0
        for command in ("list", "new", "attach", "detach", "kill", "preview", "start"):
            assert command in result.output

    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_verbose_and_quiet_conflict(self, runner):
        result = runner.invoke(main, ["-v", "-q", "list"])

        assert result.exit_code != 0
        assert "Cannot use both --verbose and --quiet" in result.output


class TestListCommand:
    """Test 'sesh list'."""

    def test_list_table(self, runner, orchestrator, session_factory):
        orchestrator.list_sessions.return_value = [
            session_factory("proj", 12345, status=SessionStatus.ATTACHED, working_directory="/src/proj"),
            session_factory("demo", 23456, partial=True, windows=()),
        ]
        orchestrator.git_status.side_effect = [GitStatus("main", True), None]

        result = runner.invoke(main, ["list"])

        assert result.exit_code == 0
        lines = result.output.splitlines()
        assert lines[0].split(" | ")[0].strip() == "SESSION"
        proj = [line for line in lines if line.startswith("proj")][0]
        assert "attached" in proj
        assert "/src/proj" in proj
        assert "main*" in proj
        demo = [line for line in lines if line.startswith("demo")][0]
        assert "| ?" in demo

    def test_list_json(self, runner, orchestrator, session_factory):
        orchestrator.list_sessions.return_value = [
            session_factory("demo", 23456, created=datetime(2024, 1, 2, 10, 0))
        ]

        result = runner.invoke(main, ["--json", "list"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["sessions"][0]["identifier"] == "demo"
        assert data["sessions"][0]["created"] == "2024-01-02T10:00:00"
        assert data["sessions"][0]["windows"][0]["title"] == "bash"
        assert data["unavailable_hosts"] == {}

    def test_list_empty(self, runner, orchestrator):
        orchestrator.list_sessions.return_value = []

        result = runner.invoke(main, ["list"])

        assert result.exit_code == 0
        assert "No screen sessions found" in result.output

    def test_list_warns_about_unavailable_hosts(self, runner, orchestrator):
        orchestrator.list_sessions.return_value = []
        orchestrator.unavailable_hosts = {"buildbox": "Cannot reach buildbox"}

        result = runner.invoke(main, ["list", "--all"])

        assert result.exit_code == 0
        assert "host buildbox unavailable" in result.output

    def test_list_host_filter(self, runner, orchestrator, session_factory):
        orchestrator.list_sessions.return_value = [
            session_factory("local", 1),
            session_factory("api", 2, host="buildbox"),
        ]

        result = runner.invoke(main, ["--json", "--host", "buildbox", "list"])

        assert result.exit_code == 0
        orchestrator.watch_host.assert_called_once_with("buildbox")
        data = json.loads(result.output)
        assert [s["identifier"] for s in data["sessions"]] == ["api@buildbox"]

    def test_screen_unavailable(self, runner, orchestrator):
        from sesh.core.exceptions import ScreenUnavailableError

        orchestrator.list_sessions.side_effect = ScreenUnavailableError(
            "Cannot list screen sessions", detail="Cannot execute screen"
        )

        result = runner.invoke(main, ["list"])

        assert result.exit_code == 1
        assert "Cannot list screen sessions: Cannot execute screen" in result.output


class TestSessionCommands:
    """Test lifecycle commands."""

    def test_new(self, runner, orchestrator):
        orchestrator.create.return_value = "work"

        result = runner.invoke(main, ["new", "work", "-d", "/srv", "-x", "make"])

        assert result.exit_code == 0
        assert "Created session 'work'" in result.output
        orchestrator.create.assert_awaited_once_with("work", "/srv", "make", host=None)

    def test_new_on_host(self, runner, orchestrator):
        orchestrator.create.return_value = "work@buildbox"

        result = runner.invoke(main, ["--host", "buildbox", "new", "work"])

        assert result.exit_code == 0
        orchestrator.create.assert_awaited_once_with("work", None, None, host="buildbox")

    def test_new_conflict(self, runner, orchestrator):
        orchestrator.create.side_effect = NameConflictError(
            "Session already exists", target="work"
        )

        result = runner.invoke(main, ["new", "work"])

        assert result.exit_code == 1
        assert "work: Session already exists" in result.output

    def test_attach_spawn(self, runner, orchestrator):
        result = runner.invoke(main, ["attach", "demo", "--spawn"])

        assert result.exit_code == 0
        orchestrator.attach.assert_awaited_once_with(
            "demo", mode=AttachMode.SPAWN, force_detach=False
        )
        assert "Opened 'demo'" in result.output

    def test_attach_default_mode_from_config(self, runner, orchestrator):
        result = runner.invoke(main, ["--host", "buildbox", "attach", "api", "--force-detach"])

        assert result.exit_code == 0
        orchestrator.attach.assert_awaited_once_with(
            "api@buildbox", mode=None, force_detach=True
        )

    def test_detach(self, runner, orchestrator):
        result = runner.invoke(main, ["detach", "proj"])

        assert result.exit_code == 0
        orchestrator.detach.assert_awaited_once_with("proj")

    def test_kill_force(self, runner, orchestrator):
        result = runner.invoke(main, ["--json", "kill", "--force", "demo"])

        assert result.exit_code == 0
        assert json.loads(result.output) == {"identifier": "demo", "killed": True}
        orchestrator.kill.assert_awaited_once_with("demo")
        orchestrator.get_session.assert_not_called()

    def test_kill_confirmed(self, runner, orchestrator):
        result = runner.invoke(main, ["kill", "proj"], input="y\n")

        assert result.exit_code == 0
        assert "Kill session 'proj'? [y/N]" in result.output
        assert "Killed session 'proj'" in result.output
        orchestrator.kill.assert_awaited_once_with("proj")

    def test_kill_declined(self, runner, orchestrator):
        result = runner.invoke(main, ["kill", "proj"], input="n\n")

        assert result.exit_code == 0
        assert "Aborted." in result.output
        orchestrator.kill.assert_not_awaited()

    def test_kill_failure_shows_screen_output(self, runner, orchestrator):
        orchestrator.kill.side_effect = CommandFailedError(
            "screen command failed", target="demo", detail="No screen session found."
        )

        result = runner.invoke(main, ["kill", "-f", "demo"])

        assert result.exit_code == 1
        assert "demo: screen command failed: No screen session found." in result.output

    def test_windows(self, runner, orchestrator, session_factory):
        orchestrator.get_session.return_value = session_factory(
            "demo",
            23456,
            windows=(Window(0, "bash"), Window(1, "vim", active=True)),
        )

        result = runner.invoke(main, ["windows", "demo"])

        assert result.exit_code == 0
        assert "vim" in result.output
        assert "INDEX" in result.output

    def test_windows_unknown_session(self, runner, orchestrator):
        orchestrator.get_session.side_effect = SessionNotFoundError(
            "No such session", target="ghost"
        )

        result = runner.invoke(main, ["windows", "ghost"])

        assert result.exit_code == 1
        assert "ghost: No such session" in result.output

    def test_rename(self, runner, orchestrator):
        orchestrator.rename.return_value = "renamed"

        result = runner.invoke(main, ["rename", "demo", "renamed"])

        assert result.exit_code == 0
        assert "Renamed 'demo' to 'renamed'" in result.output

    def test_preview(self, runner, orchestrator):
        orchestrator.capture_preview.return_value = PreviewSnapshot(
            "demo", 1, ("$ make", "ok")
        )

        result = runner.invoke(main, ["preview", "demo", "-w", "1", "-n", "5"])

        assert result.exit_code == 0
        assert result.output == "$ make\nok\n"
        orchestrator.capture_preview.assert_awaited_once_with("demo", 1, 5)


class TestTemplateCommands:
    """Test 'sesh start' and 'sesh templates'."""

    @pytest.fixture
    def templates_dir(self, isolated_home):
        directory = isolated_home / ".config" / "sesh" / "templates"
        directory.mkdir(parents=True)
        (directory / "web.yaml").write_text(
            "description: Web stack\n"
            "variables:\n"
            "  PORT:\n"
            "    prompt: Port\n"
            "windows:\n"
            "  - name: editor\n"
            "  - name: server\n"
            "    command: serve --port ${PORT}\n"
        )
        return directory

    def test_start_with_vars(self, runner, orchestrator, templates_dir):
        orchestrator.start_template.return_value = "web"

        result = runner.invoke(main, ["start", "web", "--var", "PORT=8080"])

        assert result.exit_code == 0
        assert "from template 'web'" in result.output
        args, kwargs = orchestrator.start_template.await_args
        assert args[0].name == "web"
        assert args[1] == {"PORT": "8080"}
        assert kwargs == {"session_name": None, "host": None}

    def test_start_interactive_prompts(self, runner, orchestrator, templates_dir):
        orchestrator.start_template.return_value = "web2"

        result = runner.invoke(main, ["start", "web", "-i", "-n", "web2"], input="9000\n")

        assert result.exit_code == 0
        args, kwargs = orchestrator.start_template.await_args
        assert args[1] == {"PORT": "9000"}
        assert kwargs["session_name"] == "web2"

    def test_start_bad_var(self, runner, orchestrator, templates_dir):
        result = runner.invoke(main, ["start", "web", "--var", "PORT"])

        assert result.exit_code == 1
        assert "Invalid --var format" in result.output

    def test_start_unknown_template(self, runner, orchestrator, templates_dir):
        result = runner.invoke(main, ["start", "missing"])

        assert result.exit_code == 1
        assert "Template 'missing' not found" in result.output

    def test_start_partial(self, runner, orchestrator, templates_dir):
        orchestrator.start_template.side_effect = PartialCreationError(
            "web",
            ["session web"],
            "window server",
            CommandFailedError("screen command failed", detail="No screen session found."),
        )

        result = runner.invoke(main, ["start", "web", "--var", "PORT=1"])

        assert result.exit_code == 1
        assert "partially created" in result.output
        assert "window server" in result.output

    def test_templates_list(self, runner, templates_dir):
        result = runner.invoke(main, ["templates"])

        assert result.exit_code == 0
        assert "web" in result.output
        assert "editor, server" in result.output

    def test_templates_json(self, runner, templates_dir):
        result = runner.invoke(main, ["--json", "templates"])

        data = json.loads(result.output)
        assert data["templates"][0]["name"] == "web"

    def test_templates_example(self, runner):
        result = runner.invoke(main, ["templates", "--example"])

        assert result.exit_code == 0
        assert "name: webdev" in result.output


class TestConfigCommands:
    """Test 'sesh config'."""

    def test_show_json(self, runner):
        result = runner.invoke(main, ["--json", "config", "show"])

        assert result.exit_code == 0
        assert json.loads(result.output)["configuration"]["screen_command"] == "screen"

    def test_get(self, runner):
        result = runner.invoke(main, ["--screen-command", "/opt/screen", "config", "get", "screen_command"])

        assert result.exit_code == 0
        assert "screen_command: /opt/screen" in result.output

    def test_get_unknown_key(self, runner):
        result = runner.invoke(main, ["config", "get", "bogus"])

        assert result.exit_code == 1
        assert "Unknown configuration key" in result.output

    def test_validate_invalid(self, runner, isolated_home):
        (isolated_home / ".sesh.yaml").write_text("attach_mode: sideways\n")

        result = runner.invoke(main, ["config", "validate"])

        assert result.exit_code == 1
        assert "Configuration validation failed" in result.output

    def test_init(self, runner, isolated_home):
        result = runner.invoke(main, ["config", "init"])

        assert result.exit_code == 0
        assert (isolated_home / ".config" / "sesh" / "config.yaml").exists()

    def test_profiles(self, runner, isolated_home):
        (isolated_home / ".sesh.yaml").write_text("profiles:\n  fast: {}\n  slow: {}\n")

        result = runner.invoke(main, ["--json", "config", "profiles"])

        assert json.loads(result.output) == {"profiles": ["fast", "slow"]}

    def test_locations(self, runner):
        result = runner.invoke(main, ["config", "locations"])

        assert result.exit_code == 0
        assert "SESH_SCREEN_COMMAND" in result.output
