from __future__ import annotations

from typing import Any, Dict, Optional

from agent_sandbox.core.tool_result import ToolResult
from agent_sandbox.docs import ActivityLog
from agent_sandbox.errors import FilesystemError
from agent_sandbox.tools.base import BuiltinTool

SCHEMA = {
    "name": "log_activity",
    "description": (
        "Log a significant activity or change to the project's changelog. "
        "Use this when you complete a task or make a meaningful change."
    ),
    "properties": {
        "title": {"type": "string", "description": "Short title of the change."},
        "details": {"type": "string", "description": "What was done and why."},
        "files": {"type": "array", "description": "Files touched by the change."},
    },
    "required": ["title", "details"],
    "example": {
        "title": "Implemented Feature X",
        "details": "Added X, Y, Z components...",
        "files": ["src/feat/x.py"],
    },
}


class LogActivityTool(BuiltinTool):
    SCHEMA = SCHEMA

    def __init__(
        self,
        project_root: str,
        activity_log: ActivityLog,
        policy: Optional[Dict[str, Any]] = None,
        audit_log: Optional[str] = None,
    ) -> None:
        super().__init__(project_root, policy, audit_log)
        self._activity_log = activity_log

    def execute(self, args: Dict[str, Any]) -> ToolResult:
        files = [str(f) for f in args.get("files") or []]
        try:
            self._activity_log.log_activity(args["title"], args["details"], files)
        except FilesystemError as exc:
            return ToolResult.failure("LOG_ERROR", f"Error logging activity: {exc}")
        return ToolResult.success(message="Activity logged successfully.")
