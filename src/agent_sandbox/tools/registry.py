"""Name-keyed tool dispatch for the agent loop.

The agent emits a ``<tool_code>{"name": ..., "arguments": ...}</tool_code>``
block; :meth:`ToolRegistry.parse_tool_call` extracts it and
:meth:`ToolRegistry.execute` runs the named tool, always returning a string.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from agent_sandbox.docs import ActivityLog
from agent_sandbox.mcp.client import MCPClient
from agent_sandbox.sandbox.executor import ExecutionSandbox
from agent_sandbox.tools.base import Tool
from agent_sandbox.tools.exec_tool import ExecTool
from agent_sandbox.tools.file_list import FileListTool
from agent_sandbox.tools.file_read import FileReadTool
from agent_sandbox.tools.file_write import FileWriteTool
from agent_sandbox.tools.log_activity import LogActivityTool
from agent_sandbox.tools.mcp_tool import MCPTool
from agent_sandbox.tools.search_code import Searcher, SearchCodeTool

_log = logging.getLogger(__name__)

TOOL_CODE_RE = re.compile(r"<tool_code>([\s\S]*?)</tool_code>")

PROMPT_HEADER = (
    "TOOLS AVAILABLE:\n"
    "You can use the following tools to perform actions. "
    "To use a tool, you MUST output a JSON object wrapped in <tool_code> tags.\n"
    "Format:\n<tool_code>\n{\n  \"name\": \"tool_name\",\n  \"arguments\": {\n"
    "    \"arg_name\": \"value\"\n  }\n}\n</tool_code>\n\n"
)

PROMPT_EXAMPLE = (
    "\nExample:\nUser: List files in src\nAssistant: I will list the files.\n"
    "<tool_code>\n{\n  \"name\": \"list_files\",\n  \"arguments\": {\n"
    "    \"path\": \"src\"\n  }\n}\n</tool_code>\n"
    "System: [Output of ls]\nAssistant: I see the files...\n"
)


@dataclass
class ToolCall:
    name: str
    args: Any = None


def parse_tool_call(content: str) -> Optional[ToolCall]:
    """Return the first ``<tool_code>`` call in ``content``, or None.

    Missing blocks and malformed JSON both yield None; the latter is logged.
    """
    match = TOOL_CODE_RE.search(content)
    if not match:
        return None
    try:
        parsed = json.loads(match.group(1).strip())
    except json.JSONDecodeError as exc:
        _log.error("Failed to parse tool call JSON: %s", exc)
        return None
    if not isinstance(parsed, dict) or not isinstance(parsed.get("name"), str):
        _log.error("Tool call JSON has no 'name': %r", parsed)
        return None
    return ToolCall(name=parsed["name"], args=parsed.get("arguments"))


def build_builtin_tools(
    sandbox: ExecutionSandbox,
    policy: Optional[Dict[str, Any]] = None,
    audit_log: Optional[str] = None,
    searcher: Optional[Searcher] = None,
    activity_log: Optional[ActivityLog] = None,
) -> List[Tool]:
    root = str(sandbox.project_root)
    p = policy or {}
    return [
        ExecTool(sandbox, p, audit_log),
        FileReadTool(sandbox, p, audit_log),
        FileWriteTool(sandbox, p, audit_log),
        FileListTool(sandbox, p, audit_log),
        SearchCodeTool(root, searcher, p, audit_log),
        LogActivityTool(root, activity_log or ActivityLog(root), p, audit_log),
    ]


class ToolRegistry:
    """Ordered collection of tools, seeded with the built-ins.

    Registering a tool whose name already exists replaces it in place, so
    an MCP server can shadow a built-in without reordering the prompt.
    """

    def __init__(
        self,
        sandbox: Optional[ExecutionSandbox] = None,
        *,
        policy: Optional[Dict[str, Any]] = None,
        audit_log: Optional[str] = None,
        searcher: Optional[Searcher] = None,
        activity_log: Optional[ActivityLog] = None,
    ) -> None:
        self.sandbox = sandbox or ExecutionSandbox()
        self._tools: List[Tool] = build_builtin_tools(
            self.sandbox,
            policy=policy,
            audit_log=audit_log,
            searcher=searcher,
            activity_log=activity_log,
        )

    @property
    def tools(self) -> List[Tool]:
        return list(self._tools)

    def names(self) -> List[str]:
        return [t.name for t in self._tools]

    def get(self, name: str) -> Optional[Tool]:
        for tool in self._tools:
            if tool.name == name:
                return tool
        return None

    def register(self, tool: Tool) -> None:
        for index, existing in enumerate(self._tools):
            if existing.name == tool.name:
                self._tools[index] = tool
                return
        self._tools.append(tool)

    async def register_mcp_tools(self, client: MCPClient, server_names: Iterable[str]) -> int:
        """Discover and register the tools of each server.

        A failing server is logged and skipped. Returns how many tools were
        registered in total.
        """
        total = 0
        for server_name in server_names:
            try:
                infos = await client.list_tools(server_name)
            except Exception as exc:
                _log.error("Failed to register MCP tools from %s: %s", server_name, exc)
                continue
            for info in infos:
                self.register(MCPTool(client, server_name, info))
            total += len(infos)
            _log.info("Registered %d MCP tools from %s", len(infos), server_name)
        return total

    parse_tool_call = staticmethod(parse_tool_call)

    async def execute(self, name: str, args: Any = None) -> str:
        tool = self.get(name)
        if tool is None:
            return f"Error: Unknown tool: {name}"
        _log.debug("Executing tool %s", name)
        try:
            result = await tool.invoke(args)
        except Exception as exc:
            _log.exception("Tool %s raised", name)
            return f"Error: {exc}"
        return result.to_text()

    def system_prompt_addition(self) -> str:
        lines = "".join(f"{tool.describe()}\n" for tool in self._tools)
        return PROMPT_HEADER + lines + PROMPT_EXAMPLE
