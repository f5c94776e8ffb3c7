"""Base types for the tool system."""

from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from agent_sandbox.core.tool_guard import ToolGuard
from agent_sandbox.core.tool_result import ToolResult


class Tool(ABC):
    """A named capability the agent can invoke with structured arguments."""

    name: str = ""
    description: str = ""
    usage: str = ""

    def describe(self) -> str:
        return f"- {self.name}: {self.description}\n  Usage: {self.usage}"

    @abstractmethod
    async def invoke(self, args: Any) -> ToolResult:
        ...


class BuiltinTool(Tool):
    """A tool implemented in-process by a blocking ``run`` method.

    ``invoke`` runs it on a worker thread so the event loop keeps servicing
    MCP connections while a command executes.
    """

    SCHEMA: Dict[str, Any] = {}
    PRIMARY_ARG: Optional[str] = None

    def __init__(
        self,
        project_root: str,
        policy: Optional[Dict[str, Any]] = None,
        audit_log: Optional[str] = None,
    ) -> None:
        self._guard = ToolGuard(project_root=project_root, policy=policy or {}, log_path=audit_log)
        self.name = self.SCHEMA["name"]
        self.description = self.SCHEMA["description"]
        self.usage = json.dumps({"name": self.name, "arguments": self.SCHEMA.get("example", {})})

    def schema(self) -> Dict[str, Any]:
        return self.SCHEMA

    async def invoke(self, args: Any) -> ToolResult:
        return await asyncio.to_thread(self.run, args)

    def run(self, args: Any) -> ToolResult:
        # Models sometimes pass the single main argument as a bare string
        if args is None:
            args = {}
        elif isinstance(args, str) and self.PRIMARY_ARG:
            args = {self.PRIMARY_ARG: args}
        if not isinstance(args, dict):
            return ToolResult.failure(
                "INVALID_ARGS", f"Please use JSON object arguments for {self.name}."
            )

        blocked = self._guard.check(self.name, args, schema=self.SCHEMA)
        if blocked is not None:
            return blocked
        return self.execute(args)

    @abstractmethod
    def execute(self, args: Dict[str, Any]) -> ToolResult:
        """Tool body; called only after the guard has passed."""
