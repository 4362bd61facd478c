"""Tests for the sandloop CLI.

Uses click's CliRunner; the model provider is replaced with a scripted
client so no network access is needed.
"""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from conftest import calls_response, final_response, tool_call, ScriptedModelClient
from sandloop import __version__
from sandloop.cli import cli
from sandloop.logging import configure_logging


@pytest.fixture
def runner():
    yield CliRunner()
    # run rebinds the log handler to the runner's stderr
    configure_logging()


class TestCLIBasic:
    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_commands(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("run", "tools", "check-path", "check-command"):
            assert command in result.output

    def test_tools(self, runner):
        result = runner.invoke(cli, ["tools"])
        assert result.exit_code == 0
        names = [t["name"] for t in json.loads(result.output)]
        assert names == [
            "read_file",
            "write_file",
            "list_directory",
            "find_files",
            "get_project_info",
            "run_command",
        ]


class TestCheckCommands:
    def test_path_inside_root(self, runner):
        result = runner.invoke(cli, ["check-path", "src/a.ts", "--root", "/workspace/proj"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["is_valid"] is True
        assert data["resolved_path"] == "/workspace/proj/src/a.ts"

    def test_path_escaping_root(self, runner):
        result = runner.invoke(cli, ["check-path", "../../etc/passwd", "--root", "/workspace/proj"])
        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["is_valid"] is False
        assert "escape" in data["reason"]

    def test_relative_root_is_bad_parameter(self, runner):
        result = runner.invoke(cli, ["check-path", "a.ts", "--root", "relative/root"])
        assert result.exit_code == 2
        assert "--root" in result.output

    def test_command_allowed(self, runner):
        result = runner.invoke(cli, ["check-command", "npm run build"])
        assert result.exit_code == 0
        assert json.loads(result.output)["is_valid"] is True

    def test_command_blocked(self, runner):
        result = runner.invoke(cli, ["check-command", "sudo rm -rf /"])
        assert result.exit_code == 1
        assert json.loads(result.output)["is_valid"] is False


class TestRun:
    def test_run_json(self, runner, workspace):
        client = ScriptedModelClient([
            calls_response(tool_call("list_directory", "c1")),
            final_response("The project has a src folder."),
        ])
        with patch("sandloop.providers.create_client", return_value=client):
            result = runner.invoke(cli, ["run", "What is here?", "--root", str(workspace), "--json-output"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["success"] is True
        assert data["message"] == "The project has a src folder."
        assert data["tool_calls_executed"] == 1
        assert any(t["event_type"] == "TOOL_DISPATCHED" for t in data["traces"])
        assert client.calls[0]["tools"][0] == "read_file"

    def test_run_human_output(self, runner, workspace):
        client = ScriptedModelClient([final_response("Nothing to do.")])
        with patch("sandloop.providers.create_client", return_value=client):
            result = runner.invoke(cli, ["run", "hi", "--root", str(workspace)])

        assert result.exit_code == 0
        assert "Status: SUCCESS" in result.output
        assert "Nothing to do." in result.output

    def test_run_failure_exits_nonzero(self, runner, workspace):
        client = ScriptedModelClient([RuntimeError("provider down")])
        with patch("sandloop.providers.create_client", return_value=client):
            result = runner.invoke(cli, ["run", "hi", "--root", str(workspace)])

        assert result.exit_code == 1
        assert "Status: FAILED" in result.output
        assert "MODEL_ERROR" in result.output

    def test_missing_provider_package(self, runner, workspace):
        with patch("sandloop.providers.create_client", side_effect=ImportError("pip install sandloop[openai]")):
            result = runner.invoke(cli, ["run", "hi", "--root", str(workspace), "--provider", "openai"])
        assert result.exit_code == 1
        assert "sandloop[openai]" in result.output

    def test_root_must_exist(self, runner, tmp_path):
        result = runner.invoke(cli, ["run", "hi", "--root", str(tmp_path / "missing")])
        assert result.exit_code == 2
