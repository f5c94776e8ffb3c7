from __future__ import annotations

import itertools
import logging
from typing import Any, Optional, Sequence

import httpx
from pydantic import ValidationError as PydanticValidationError

from agent_sandbox.errors import TransportError
from agent_sandbox.mcp.protocol import (
    METHOD_INITIALIZE,
    METHOD_INITIALIZED,
    METHOD_TOOLS_CALL,
    METHOD_TOOLS_LIST,
    MCPToolInfo,
    initialize_params,
)
from agent_sandbox.mcp.transports import HTTPConnection, MCPConnection, StdioConnection

_log = logging.getLogger(__name__)

CLIENT_NAME = "agent-sandbox"
CLIENT_VERSION = "0.1.0"


class MCPClient:
    """Owns every connection to external MCP tool servers.

    Each instance keeps its own connection table and request-id counter;
    nothing is shared between instances.
    """

    def __init__(
        self,
        client_name: str = CLIENT_NAME,
        client_version: str = CLIENT_VERSION,
        http_timeout: Optional[float] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.client_name = client_name
        self.client_version = client_version
        self._http_timeout = http_timeout
        self._http_transport = http_transport
        self._connections: dict[str, MCPConnection] = {}
        self._ids = itertools.count()

    def _next_id(self) -> int:
        return next(self._ids)

    # ── Connections ─────────────────────────────────────────────────────────

    async def connect(
        self,
        name: str,
        command: str,
        args: Sequence[str] = (),
        env: Optional[dict[str, str]] = None,
    ) -> None:
        """Spawn a stdio server and perform the MCP handshake.

        A failed spawn raises TransportError. A failed handshake is only
        logged: the child keeps running and the server stays registered.
        """
        _log.info("Connecting to MCP server %s: %s %s", name, command, " ".join(args))
        if name in self._connections:
            await self.disconnect(name)

        conn = await StdioConnection.spawn(name, command, list(args), self._next_id, env=env)
        self._connections[name] = conn

        try:
            await conn.request(METHOD_INITIALIZE, initialize_params(self.client_name, self.client_version))
            await conn.notify(METHOD_INITIALIZED)
        except Exception as exc:
            _log.error("Failed to initialize MCP server %s: %s", name, exc)

    async def connect_http(self, name: str, url: str, api_key: str) -> None:
        """Register an HTTP server and perform the MCP handshake.

        On handshake failure the registration is rolled back and the error
        is re-raised.
        """
        _log.info("Connecting to HTTP MCP server %s (%s)", name, url)
        if name in self._connections:
            await self.disconnect(name)

        conn = HTTPConnection(
            name,
            self._next_id,
            url=url,
            api_key=api_key,
            timeout=self._http_timeout,
            http_transport=self._http_transport,
        )
        self._connections[name] = conn

        try:
            await conn.request(METHOD_INITIALIZE, initialize_params(self.client_name, self.client_version))
        except Exception as exc:
            _log.error("Failed to initialize HTTP MCP server %s: %s", name, exc)
            self._connections.pop(name, None)
            raise

    async def disconnect(self, name: str) -> None:
        conn = self._connections.pop(name, None)
        if conn is None:
            return
        await conn.close()
        _log.info("Disconnected %s MCP server %s", conn.transport, name)

    async def close(self) -> None:
        for name in list(self._connections):
            await self.disconnect(name)

    def connected_servers(self) -> list[str]:
        return list(self._connections)

    def transport_of(self, name: str) -> str:
        return self._get(name, "transport").transport

    def _get(self, name: str, method: str) -> MCPConnection:
        conn = self._connections.get(name)
        if conn is None:
            raise TransportError(f"Server {name} not connected", server=name, method=method)
        return conn

    # ── Tools ───────────────────────────────────────────────────────────────

    async def list_tools(self, server_name: str) -> list[MCPToolInfo]:
        conn = self._get(server_name, METHOD_TOOLS_LIST)
        result = await conn.request(METHOD_TOOLS_LIST)
        raw_tools = result.get("tools", []) if isinstance(result, dict) else []

        tools: list[MCPToolInfo] = []
        for raw in raw_tools or []:
            try:
                tools.append(MCPToolInfo.model_validate(raw))
            except PydanticValidationError as exc:
                _log.warning("MCP server %s: skipping malformed tool descriptor: %s", server_name, exc)
        return tools

    async def call_tool(self, server_name: str, tool_name: str, arguments: Any) -> Any:
        """Invoke ``tool_name`` and return the reply's ``content`` payload."""
        conn = self._get(server_name, METHOD_TOOLS_CALL)
        result = await conn.request(
            METHOD_TOOLS_CALL,
            {"name": tool_name, "arguments": arguments if arguments is not None else {}},
        )
        if isinstance(result, dict):
            return result.get("content")
        return result
