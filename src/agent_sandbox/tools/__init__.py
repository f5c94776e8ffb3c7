"""
agent_sandbox.tools
~~~~~~~~~~~~~~~~~~~
All tool classes in one place. Import from here so callers don't need to know
individual module paths.

Quick registration example::

    from agent_sandbox.tools import ToolRegistry

    registry = ToolRegistry(ExecutionSandbox("/workspace"))
    await registry.register_mcp_tools(client, ["github"])
    call = registry.parse_tool_call(reply)
    if call is not None:
        text = await registry.execute(call.name, call.args)
"""
from __future__ import annotations

from agent_sandbox.tools.base import BuiltinTool, Tool
from agent_sandbox.tools.exec_tool import ExecTool
from agent_sandbox.tools.file_list import FileListTool
from agent_sandbox.tools.file_read import FileReadTool
from agent_sandbox.tools.file_write import FileWriteTool
from agent_sandbox.tools.log_activity import LogActivityTool
from agent_sandbox.tools.mcp_tool import MCPTool, content_to_text
from agent_sandbox.tools.registry import ToolCall, ToolRegistry, build_builtin_tools, parse_tool_call
from agent_sandbox.tools.search_code import SearchCodeTool, SearchHit, TextSearcher

__all__ = [
    "Tool", "BuiltinTool", "MCPTool",
    "ExecTool", "FileReadTool", "FileWriteTool", "FileListTool",
    "SearchCodeTool", "SearchHit", "TextSearcher", "LogActivityTool",
    "ToolCall", "ToolRegistry", "build_builtin_tools", "parse_tool_call",
    "content_to_text",
]
