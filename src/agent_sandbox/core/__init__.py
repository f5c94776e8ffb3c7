"""Core subpackage - tool result envelope and guard middleware."""

from agent_sandbox.core.tool_guard import ToolGuard
from agent_sandbox.core.tool_result import ToolResult
