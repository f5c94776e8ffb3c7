"""MCP tool-server client: JSON-RPC over stdio or HTTP."""

from agent_sandbox.mcp.client import MCPClient
from agent_sandbox.mcp.framing import LineBuffer
from agent_sandbox.mcp.protocol import MCPToolInfo
from agent_sandbox.mcp.transports import HTTPConnection, MCPConnection, StdioConnection
