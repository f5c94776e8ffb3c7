from __future__ import annotations

from typing import Any, Dict, Optional

from agent_sandbox.core.tool_result import ToolResult
from agent_sandbox.errors import FilesystemError
from agent_sandbox.sandbox.executor import ExecutionSandbox
from agent_sandbox.tools.base import BuiltinTool

SCHEMA = {
    "name": "write_file",
    "description": (
        "Write content to a file. Overwrites existing content. "
        "Intermediate directories are created automatically."
    ),
    "properties": {
        "path": {"type": "string", "description": "File path relative to the project root."},
        "content": {"type": "string", "description": "Text content to write."},
    },
    "required": ["path", "content"],
    "example": {"path": "path/to/file", "content": "file content"},
}


class FileWriteTool(BuiltinTool):
    SCHEMA = SCHEMA

    def __init__(
        self,
        sandbox: ExecutionSandbox,
        policy: Optional[Dict[str, Any]] = None,
        audit_log: Optional[str] = None,
    ) -> None:
        super().__init__(str(sandbox.project_root), policy, audit_log)
        self._sandbox = sandbox

    def execute(self, args: Dict[str, Any]) -> ToolResult:
        path: str = args["path"]
        content: str = args["content"]
        try:
            written = self._sandbox.write_file(path, content)
        except FilesystemError as exc:
            return ToolResult.failure("WRITE_ERROR", f"Error writing file: {exc}")
        return ToolResult.success(
            data={
                "output": f"Successfully wrote to {path}",
                "bytes_written": len(content.encode("utf-8")),
                "absolute_path": str(written),
            },
        )
