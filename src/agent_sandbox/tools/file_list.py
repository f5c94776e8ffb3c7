from __future__ import annotations

from typing import Any, Dict, Optional

from agent_sandbox.core.tool_result import ToolResult
from agent_sandbox.errors import FilesystemError
from agent_sandbox.sandbox.executor import ExecutionSandbox
from agent_sandbox.tools.base import BuiltinTool

SCHEMA = {
    "name": "list_files",
    "description": "List files in a directory.",
    "properties": {
        "path": {"type": "string", "description": "Directory to list. Defaults to the project root."},
    },
    "required": [],
    "example": {"path": "path/to/directory"},
}


class FileListTool(BuiltinTool):
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
        path = args.get("path") or "."
        try:
            entries = self._sandbox.list_files(path)
        except FilesystemError as exc:
            return ToolResult.failure("LIST_ERROR", f"Error listing files: {exc}")
        return ToolResult.success(
            data={"output": "\n".join(entries) or "(Empty directory)", "entries": entries},
        )
