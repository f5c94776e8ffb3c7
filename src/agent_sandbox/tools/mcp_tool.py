from __future__ import annotations

import json
import logging
from typing import Any

from agent_sandbox.core.tool_result import ToolResult
from agent_sandbox.errors import SandboxError
from agent_sandbox.mcp.client import MCPClient
from agent_sandbox.mcp.protocol import MCPToolInfo
from agent_sandbox.tools.base import Tool

_log = logging.getLogger(__name__)


def content_to_text(content: Any) -> str:
    """Flatten an MCP ``content`` payload into one string.

    A list of segments is joined on newlines (non-text segments contribute
    an empty line); a string passes through; anything else is JSON.
    """
    if isinstance(content, list):
        return "\n".join(
            str(seg.get("text") or "") if isinstance(seg, dict) else "" for seg in content
        )
    if isinstance(content, str):
        return content
    return json.dumps(content)


class MCPTool(Tool):
    """A tool discovered on an MCP server and proxied through the client."""

    def __init__(self, client: MCPClient, server_name: str, info: MCPToolInfo) -> None:
        self._client = client
        self.server_name = server_name
        self.info = info
        self.name = info.name
        self.description = info.description or "No description provided"
        self.usage = json.dumps(
            {"name": info.name, "arguments": info.input_schema.get("properties") or {}}
        )

    async def invoke(self, args: Any) -> ToolResult:
        try:
            content = await self._client.call_tool(self.server_name, self.name, args)
        except SandboxError as exc:
            return ToolResult.failure("MCP_ERROR", f"Error calling MCP tool {self.name}: {exc}")
        except Exception as exc:
            _log.exception("Unexpected failure calling MCP tool %s on %s", self.name, self.server_name)
            return ToolResult.failure("MCP_ERROR", f"Error calling MCP tool {self.name}: {exc}")
        return ToolResult.success(data={"output": content_to_text(content), "server": self.server_name})
