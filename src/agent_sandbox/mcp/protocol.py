"""JSON-RPC 2.0 envelopes and MCP handshake constants."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

JSONRPC_VERSION = "2.0"
MCP_PROTOCOL_VERSION = "2024-11-05"

METHOD_INITIALIZE = "initialize"
METHOD_INITIALIZED = "notifications/initialized"
METHOD_TOOLS_LIST = "tools/list"
METHOD_TOOLS_CALL = "tools/call"


class MCPToolInfo(BaseModel):
    """A tool descriptor as returned by ``tools/list``."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str
    description: Optional[str] = None
    input_schema: dict[str, Any] = Field(default_factory=dict, alias="inputSchema")


def make_request(request_id: int, method: str, params: Optional[dict[str, Any]] = None) -> dict[str, Any]:
    message: dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "id": request_id, "method": method}
    if params is not None:
        message["params"] = params
    return message


def make_notification(method: str, params: Optional[dict[str, Any]] = None) -> dict[str, Any]:
    message: dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "method": method}
    if params is not None:
        message["params"] = params
    return message


def initialize_params(client_name: str, client_version: str) -> dict[str, Any]:
    return {
        "protocolVersion": MCP_PROTOCOL_VERSION,
        "capabilities": {"tools": {}},
        "clientInfo": {"name": client_name, "version": client_version},
    }


def is_response(message: Any) -> bool:
    """True for replies (an id plus result or error), False for requests/notifications."""
    return (
        isinstance(message, dict)
        and isinstance(message.get("id"), (int, str))
        and "method" not in message
        and ("result" in message or "error" in message)
    )
