from __future__ import annotations

from typing import Any, Dict, Optional

from agent_sandbox.core.tool_result import ToolResult
from agent_sandbox.errors import FilesystemError
from agent_sandbox.sandbox.executor import ExecutionSandbox
from agent_sandbox.tools.base import BuiltinTool

SCHEMA = {
    "name": "read_file",
    "description": "Read the contents of a file.",
    "properties": {
        "path": {"type": "string", "description": "File path relative to the project root."},
    },
    "required": ["path"],
    "example": {"path": "path/to/file"},
}


class FileReadTool(BuiltinTool):
    SCHEMA = SCHEMA
    PRIMARY_ARG = "path"

    def __init__(
        self,
        sandbox: ExecutionSandbox,
        policy: Optional[Dict[str, Any]] = None,
        audit_log: Optional[str] = None,
    ) -> None:
        super().__init__(str(sandbox.project_root), policy, audit_log)
        self._sandbox = sandbox

    def execute(self, args: Dict[str, Any]) -> ToolResult:
        try:
            content = self._sandbox.read_file(args["path"])
        except FilesystemError as exc:
            return ToolResult.failure("READ_ERROR", f"Error reading file: {exc}")
        return ToolResult.success(data={"output": content, "path": args["path"]})
