"""Tests for the ToolGuard pre-flight checks."""

from __future__ import annotations

import json

import pytest

from agent_sandbox.core.tool_guard import ToolGuard


@pytest.fixture
def guard(workspace):
    return ToolGuard(project_root=str(workspace), policy={})


@pytest.fixture
def guard_with_policy(workspace):
    return ToolGuard(project_root=str(workspace), policy={"deny_tools": ["exec"]})


SIMPLE_SCHEMA = {
    "properties": {
        "path": {"type": "string"},
        "count": {"type": "integer"},
        "files": {"type": "array"},
    },
    "required": ["path"],
}


class TestSchema:
    def test_valid_args_pass(self, guard):
        assert guard.check("read_file", {"path": "a.txt", "count": 5}, schema=SIMPLE_SCHEMA) is None

    def test_missing_required_field(self, guard):
        result = guard.check("read_file", {}, schema=SIMPLE_SCHEMA)
        assert result.error_code == "INVALID_ARGS"
        assert result.message == "Missing 'path' argument"

    def test_wrong_type(self, guard):
        result = guard.check("read_file", {"path": "a", "count": "many"}, schema=SIMPLE_SCHEMA)
        assert result.error_code == "INVALID_ARGS"
        assert "count" in result.message

    def test_array_type(self, guard):
        result = guard.check("log_activity", {"path": "a", "files": "a.py"}, schema=SIMPLE_SCHEMA)
        assert result.error_code == "INVALID_ARGS"

    def test_extra_fields_allowed(self, guard):
        assert guard.check("read_file", {"path": "a", "verbose": True}, schema=SIMPLE_SCHEMA) is None


class TestPathContainment:
    def test_absolute_outside_blocked(self, guard):
        result = guard.check("read_file", {"path": "/etc/passwd"})
        assert result.error_code == "PATH_OUTSIDE_PROJECT"
        assert result.message == "Path is outside of the project directory: /etc/passwd"

    def test_relative_escape_blocked(self, guard):
        result = guard.check("write_file", {"path": "src/../../x"})
        assert result.error_code == "PATH_OUTSIDE_PROJECT"

    def test_inside_allowed(self, guard, workspace):
        assert guard.check("read_file", {"path": str(workspace / "sub" / "f.txt")}) is None
        assert guard.check("read_file", {"path": "."}) is None

    def test_multiline_value_not_treated_as_path(self, guard):
        assert guard.check("write_file", {"path": "../a\n../b"}) is None


class TestDenyList:
    def test_denied_tool_blocked(self, guard_with_policy):
        result = guard_with_policy.check("exec", {"command": "ls"})
        assert result.error_code == "DENIED_BY_POLICY"
        assert result.message == "Tool 'exec' is denied by policy."

    def test_policy_checked_before_schema(self, guard_with_policy):
        result = guard_with_policy.check("exec", {}, schema={"required": ["command"]})
        assert result.error_code == "DENIED_BY_POLICY"

    def test_other_tools_allowed(self, guard_with_policy):
        assert guard_with_policy.check("read_file", {"path": "a"}) is None


class TestAuditLog:
    def test_entries_appended(self, workspace, tmp_path):
        log_path = tmp_path / "audit.jsonl"
        guard = ToolGuard(project_root=str(workspace), policy={"deny_tools": ["exec"]}, log_path=str(log_path))
        guard.check("read_file", {"path": "a"})
        guard.check("exec", {"command": "ls"})

        entries = [json.loads(line) for line in log_path.read_text().splitlines()]
        assert [e["tool_name"] for e in entries] == ["read_file", "exec"]
        assert entries[0]["denied"] is False
        assert entries[1]["denied"] is True
        assert entries[1]["error_code"] == "DENIED_BY_POLICY"

    def test_no_file_without_log_path(self, guard, workspace):
        guard.check("read_file", {"path": "a"})
        assert list(workspace.iterdir()) == []

    def test_blocked_call_logged_as_warning(self, guard, caplog):
        guard.check("read_file", {"path": "/etc/passwd"})
        assert "Tool call blocked: read_file" in caplog.text
