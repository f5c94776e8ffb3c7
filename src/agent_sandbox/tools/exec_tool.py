from __future__ import annotations

from typing import Any, Dict, Optional

from agent_sandbox.core.tool_result import ToolResult
from agent_sandbox.sandbox.executor import ExecutionSandbox
from agent_sandbox.tools.base import BuiltinTool

SCHEMA = {
    "name": "exec",
    "description": "Execute a shell command. Use this to run system commands, git, etc.",
    "properties": {
        "command": {"type": "string", "description": "Command line to run, e.g. 'git status'."},
    },
    "required": ["command"],
    "example": {"command": "ls -la"},
}


class ExecTool(BuiltinTool):
    SCHEMA = SCHEMA
    PRIMARY_ARG = "command"

    def __init__(
        self,
        sandbox: ExecutionSandbox,
        policy: Optional[Dict[str, Any]] = None,
        audit_log: Optional[str] = None,
    ) -> None:
        super().__init__(str(sandbox.project_root), policy, audit_log)
        self._sandbox = sandbox

    def execute(self, args: Dict[str, Any]) -> ToolResult:
        result = self._sandbox.execute_command(args["command"])
        if result.error:
            return ToolResult.failure(
                "COMMAND_FAILED", result.error, data={"output": result.output}
            )
        return ToolResult.success(data={"output": result.output or "(No output)"})
