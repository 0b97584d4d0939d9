"""Tests for CLI utility functions."""

import json
from pathlib import Path
from unittest.mock import patch

import click
import pytest
from click.testing import CliRunner

from sesh.cli.utils import (
    CliError,
    describe_error,
    error_handler,
    format_output,
    load_cli_config,
    output_json,
    output_table,
    parse_assignments,
    quiet_echo,
    session_identifier,
    success_message,
    verbose_echo,
)
from sesh.core.exceptions import CommandFailedError, SessionNotFoundError
from sesh.utils.logging import ConfigurationError


def _run(func, obj=None):
    """Invoke ``func`` as a click command with ``ctx.obj`` set."""

    @click.command()
    @click.pass_context
    def command(ctx):
        func(ctx)

    return CliRunner().invoke(command, obj=obj if obj is not None else {})


class TestDescribeError:
    """Test error descriptions."""

    def test_message_only(self):
        assert describe_error(SessionNotFoundError("No such session")) == "No such session"

    def test_target_and_detail(self):
        error = CommandFailedError("screen command failed", target="demo", detail="denied")

        assert describe_error(error) == "demo: screen command failed: denied"


class TestErrorHandler:
    """Test the error_handler decorator."""

    def test_passes_result_through(self):
        @error_handler
        def ok():
            return "fine"

        assert ok() == "fine"

    @pytest.mark.parametrize(
        "error,expected",
        [
            (CliError("bad input"), "Error: bad input"),
            (SessionNotFoundError("No such session", target="x"), "Error: x: No such session"),
            (ConfigurationError("broken file"), "Configuration error: broken file"),
            (RuntimeError("boom"), "Unexpected error: boom"),
        ],
    )
    def test_errors_exit_with_message(self, error, expected):
        @error_handler
        def failing(ctx):
            raise error

        result = _run(failing)

        assert result.exit_code == 1
        assert expected in result.output

    def test_cli_error_exit_code(self):
        @error_handler
        def failing(ctx):
            raise CliError("usage", exit_code=3)

        assert _run(failing).exit_code == 3

    def test_click_exceptions_propagate(self):
        @error_handler
        def failing(ctx):
            raise click.BadParameter("nope")

        result = _run(failing)

        assert result.exit_code == 2
        assert "Unexpected error" not in result.output


class TestOutput:
    """Test output helpers."""

    def test_output_json_serializes_anything(self):
        result = _run(lambda ctx: output_json({"path": Path("/tmp")}))

        assert json.loads(result.output) == {"path": "/tmp"}

    def test_output_table(self):
        result = _run(lambda ctx: output_table(["A", "LONGER"], [["xyz", "1"]]))

        lines = result.output.splitlines()
        assert lines[0] == "A   | LONGER"
        assert lines[1] == "-" * len(lines[0])
        assert lines[2] == "xyz | 1     "

    def test_output_table_empty(self):
        assert "No data to display" in _run(lambda ctx: output_table(["A"], [])).output

    def test_success_message(self):
        assert "✓ done" in _run(lambda ctx: success_message("done")).output

    def test_format_output_human(self):
        result = _run(lambda ctx: format_output(ctx, {"key": "value"}))

        assert result.output == "key: value\n"

    def test_format_output_json(self):
        result = _run(lambda ctx: format_output(ctx, {"key": "value"}), obj={"json": True})

        assert json.loads(result.output) == {"key": "value"}

    def test_verbose_and_quiet_echo(self):
        def both(ctx):
            verbose_echo(ctx, "details")
            quiet_echo(ctx, "summary")

        assert "[VERBOSE] details" in _run(both, obj={"verbose": True}).output
        assert _run(both, obj={"quiet": True}).output == ""


class TestParseAssignments:
    """Test KEY=VALUE parsing."""

    def test_parses_pairs(self):
        assert parse_assignments(("A=1", "B=x=y", "C=")) == {"A": "1", "B": "x=y", "C": ""}

    @pytest.mark.parametrize("value", ["A", "=1"])
    def test_rejects_malformed(self, value):
        with pytest.raises(CliError, match="Invalid --var format"):
            parse_assignments((value,))


class TestSessionIdentifier:
    """Test --host tagging of SESSION arguments."""

    @pytest.mark.parametrize(
        "obj,session,expected",
        [
            ({}, "demo", "demo"),
            ({"host": "buildbox"}, "demo", "demo@buildbox"),
            ({"host": "buildbox"}, "demo@other", "demo@other"),
        ],
    )
    def test_tagging(self, obj, session, expected):
        ctx = click.Context(click.Command("x"), obj=obj)

        assert session_identifier(ctx, session) == expected


class TestLoadCliConfig:
    """Test configuration loading for commands."""

    def test_overrides_and_logging(self, isolated_home):
        ctx = click.Context(
            click.Command("x"),
            obj={"verbose": True, "cli_overrides": {"screen_command": "/opt/screen"}},
        )

        with patch("sesh.cli.utils.setup_logging") as mock_setup:
            config = load_cli_config(ctx, include_remote=True, spawn_terminal=None)

        assert config.screen_command == "/opt/screen"
        assert config.include_remote is True
        assert config.spawn_terminal == "xterm"
        mock_setup.assert_called_once_with(log_level="DEBUG", log_file=None)

    @pytest.mark.parametrize("output_format,expected", [("json", True), ("human", None)])
    def test_default_output_format(self, isolated_home, monkeypatch, output_format, expected):
        monkeypatch.setenv("SESH_DEFAULT_OUTPUT_FORMAT", output_format)
        ctx = click.Context(click.Command("x"), obj={})

        with patch("sesh.cli.utils.setup_logging"):
            load_cli_config(ctx)

        assert ctx.obj.get("json") is expected
