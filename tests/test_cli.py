"""Tests for the agent-sandbox CLI."""

import sys
import textwrap
from unittest.mock import patch

import pytest
import yaml
from click.testing import CliRunner

from agent_sandbox.cli import main
from agent_sandbox.sandbox.executor import CapturedRun

from conftest import make_file


@pytest.fixture()
def runner():
    return CliRunner()


@pytest.fixture()
def config_file(tmp_path, workspace):
    """A config file pointing at the workspace, with no MCP servers."""
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump({"project_root": str(workspace)}))
    return path


def _invoke(runner, config_file, *args):
    return runner.invoke(main, ["--config", str(config_file), *args])


class TestExec:
    def test_runs_command(self, runner, config_file):
        proc = CapturedRun(returncode=0, stdout=b"On branch main\n")
        with patch("agent_sandbox.sandbox.executor.run_capped", return_value=proc):
            result = _invoke(runner, config_file, "exec", "git status")
        assert result.exit_code == 0
        assert "On branch main" in result.output

    def test_blocked_command_exits_1(self, runner, config_file):
        result = _invoke(runner, config_file, "exec", "echo $(whoami)")
        assert result.exit_code == 1
        assert "Subshell syntax" in result.output

    def test_safe_delete(self, runner, config_file, workspace):
        make_file(workspace, "junk.txt")
        result = _invoke(runner, config_file, "exec", "rm junk.txt")
        assert result.exit_code == 0
        assert "Safe delete completed" in result.output
        assert (workspace / ".not-needed").is_dir()

    def test_root_option_overrides_config(self, runner, config_file, tmp_path):
        other = tmp_path / "other"
        other.mkdir()
        make_file(other, "only-here.txt")
        result = runner.invoke(
            main, ["--config", str(config_file), "--root", str(other), "exec", "rm only-here.txt"]
        )
        assert result.exit_code == 0
        assert not (other / "only-here.txt").exists()


class TestTools:
    def test_lists_builtins(self, runner, config_file):
        result = _invoke(runner, config_file, "tools")
        assert result.exit_code == 0
        for name in ("exec", "read_file", "write_file", "list_files", "search_code", "log_activity"):
            assert name in result.output


class TestCall:
    def test_executes_tool_code_block(self, runner, config_file, workspace):
        make_file(workspace, "hello.txt", "hi from file")
        text = '<tool_code>{"name": "read_file", "arguments": {"path": "hello.txt"}}</tool_code>'
        result = _invoke(runner, config_file, "call", text)
        assert result.exit_code == 0
        assert "hi from file" in result.output

    def test_no_block(self, runner, config_file):
        result = _invoke(runner, config_file, "call", "no tool here")
        assert result.exit_code == 1
        assert "No valid <tool_code> block found." in result.output

    def test_unknown_tool(self, runner, config_file):
        result = _invoke(runner, config_file, "call", '<tool_code>{"name": "fly"}</tool_code>')
        assert result.exit_code == 1
        assert "Unknown tool: fly" in result.output


class TestMcpTools:
    def test_unknown_server(self, runner, config_file):
        result = _invoke(runner, config_file, "mcp-tools", "ghost")
        assert result.exit_code == 1
        assert "Unknown MCP server: ghost" in result.output

    def test_lists_stdio_server_tools(self, runner, tmp_path, workspace):
        script = tmp_path / "server.py"
        script.write_text(textwrap.dedent(
            """
            import json, sys
            for line in sys.stdin:
                msg = json.loads(line)
                if "id" not in msg:
                    continue
                if msg["method"] == "tools/list":
                    result = {"tools": [{"name": "ping", "description": "Replies pong"}]}
                else:
                    result = {}
                print(json.dumps({"jsonrpc": "2.0", "id": msg["id"], "result": result}), flush=True)
            """
        ))
        config = tmp_path / "mcp.yaml"
        config.write_text(yaml.dump({
            "project_root": str(workspace),
            "mcp_servers": {"local": {"command": sys.executable, "args": [str(script)]}},
        }))
        result = _invoke(runner, config, "mcp-tools", "local")
        assert result.exit_code == 0
        assert "ping: Replies pong" in result.output


class TestConfigErrors:
    def test_invalid_config_exits_1(self, runner, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text(yaml.dump({"command_timeout": "soon"}))
        result = runner.invoke(main, ["--config", str(path), "tools"])
        assert result.exit_code == 1
        assert "command_timeout" in result.output

    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output


class TestDocs:
    def test_init_creates_defaults_once(self, runner, config_file, workspace):
        result = _invoke(runner, config_file, "docs", "init")
        assert result.exit_code == 0
        assert "agent.md" in result.output
        assert (workspace / ".agent" / "changelog.md").is_file()

        again = _invoke(runner, config_file, "docs", "init")
        assert again.exit_code == 0
        assert "already initialized" in again.output

    def test_changes_shows_latest_entries(self, runner, config_file, workspace):
        make_file(workspace, ".agent/changes.md", "# Changes Index\n\n- [2024-05-01] One\n- [2024-05-02] Two\n")
        result = _invoke(runner, config_file, "docs", "changes", "-n", "1")
        assert result.exit_code == 0
        assert "Two" in result.output
        assert "One" not in result.output

    def test_changes_without_log(self, runner, config_file):
        result = _invoke(runner, config_file, "docs", "changes")
        assert result.exit_code == 0
        assert "No changes logged yet." in result.output

    def test_rules_after_init(self, runner, config_file):
        _invoke(runner, config_file, "docs", "init")
        result = _invoke(runner, config_file, "docs", "rules")
        assert result.exit_code == 0
        assert "# Agent Rules" in result.output
