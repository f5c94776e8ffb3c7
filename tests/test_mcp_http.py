"""Tests for the HTTP MCP transport using httpx.MockTransport."""

from __future__ import annotations

import json

import httpx
import pytest

from agent_sandbox.errors import ProtocolError, TransportError
from agent_sandbox.mcp.client import MCPClient
from agent_sandbox.mcp.protocol import MCP_PROTOCOL_VERSION

URL = "https://tools.example.com/mcp"


class FakeServer:
    """Records requests and answers them like a minimal MCP server."""

    def __init__(self, tools=None, status_code=200, fail_methods=()):
        self.requests = []
        self.tools = tools if tools is not None else [
            {"name": "weather", "description": "Current weather",
             "inputSchema": {"type": "object", "properties": {"city": {"type": "string"}}}},
        ]
        self.status_code = status_code
        self.fail_methods = set(fail_methods)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append((request, body))
        if self.status_code != 200:
            return httpx.Response(self.status_code, text="nope")

        method = body["method"]
        if method in self.fail_methods:
            return httpx.Response(200, json={
                "jsonrpc": "2.0", "id": body["id"],
                "error": {"code": -32000, "message": f"{method} exploded", "data": {"hint": "x"}},
            })
        if method == "initialize":
            result = {"protocolVersion": MCP_PROTOCOL_VERSION, "capabilities": {}}
        elif method == "tools/list":
            result = {"tools": self.tools}
        elif method == "tools/call":
            city = body["params"]["arguments"].get("city", "?")
            result = {"content": [{"type": "text", "text": f"Sunny in {city}"}]}
        else:
            result = {}
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})


def _client(server: FakeServer) -> MCPClient:
    return MCPClient(http_transport=httpx.MockTransport(server))


@pytest.mark.asyncio
async def test_connect_sends_initialize_with_bearer_token():
    server = FakeServer()
    client = _client(server)
    await client.connect_http("weather", URL, "secret-token")

    request, body = server.requests[0]
    assert request.headers["Authorization"] == "Bearer secret-token"
    assert request.headers["Content-Type"] == "application/json"
    assert str(request.url) == URL
    assert body["method"] == "initialize"
    assert body["params"]["protocolVersion"] == MCP_PROTOCOL_VERSION
    assert body["params"]["capabilities"] == {"tools": {}}
    assert body["params"]["clientInfo"]["name"] == "agent-sandbox"
    assert client.connected_servers() == ["weather"]
    assert client.transport_of("weather") == "http"


@pytest.mark.asyncio
async def test_list_and_call_tools():
    server = FakeServer()
    client = _client(server)
    await client.connect_http("weather", URL, "t")

    tools = await client.list_tools("weather")
    assert [t.name for t in tools] == ["weather"]
    assert tools[0].description == "Current weather"

    content = await client.call_tool("weather", "weather", {"city": "Oslo"})
    assert content == [{"type": "text", "text": "Sunny in Oslo"}]

    _, body = server.requests[-1]
    assert body["params"] == {"name": "weather", "arguments": {"city": "Oslo"}}


@pytest.mark.asyncio
async def test_request_ids_increase():
    server = FakeServer()
    client = _client(server)
    await client.connect_http("weather", URL, "t")
    await client.list_tools("weather")
    await client.list_tools("weather")
    ids = [body["id"] for _, body in server.requests]
    assert ids == sorted(ids)
    assert len(set(ids)) == len(ids)


@pytest.mark.asyncio
async def test_non_2xx_raises_transport_error_and_rolls_back():
    client = _client(FakeServer(status_code=503))
    with pytest.raises(TransportError) as exc_info:
        await client.connect_http("weather", URL, "t")
    assert "weather" in str(exc_info.value)
    assert "initialize" in str(exc_info.value)
    assert "503" in str(exc_info.value)
    assert client.connected_servers() == []


@pytest.mark.asyncio
async def test_jsonrpc_error_raises_protocol_error():
    server = FakeServer(fail_methods={"tools/call"})
    client = _client(server)
    await client.connect_http("weather", URL, "t")

    with pytest.raises(ProtocolError) as exc_info:
        await client.call_tool("weather", "weather", {})
    err = exc_info.value
    assert err.server == "weather"
    assert err.method == "tools/call"
    assert err.code == -32000
    assert err.data == {"hint": "x"}
    assert "tools/call exploded" in str(err)


@pytest.mark.asyncio
async def test_handshake_protocol_error_rolls_back():
    client = _client(FakeServer(fail_methods={"initialize"}))
    with pytest.raises(ProtocolError):
        await client.connect_http("weather", URL, "t")
    assert client.connected_servers() == []


@pytest.mark.asyncio
async def test_network_error_is_transport_error():
    def boom(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = MCPClient(http_transport=httpx.MockTransport(boom))
    with pytest.raises(TransportError, match="connection refused"):
        await client.connect_http("weather", URL, "t")


@pytest.mark.asyncio
async def test_invalid_json_reply():
    client = MCPClient(http_transport=httpx.MockTransport(lambda r: httpx.Response(200, text="<html>")))
    with pytest.raises(TransportError, match="not valid JSON"):
        await client.connect_http("weather", URL, "t")


@pytest.mark.asyncio
async def test_malformed_tool_descriptors_skipped():
    server = FakeServer(tools=[{"name": "ok"}, {"description": "no name"}, "junk"])
    client = _client(server)
    await client.connect_http("weather", URL, "t")
    tools = await client.list_tools("weather")
    assert [t.name for t in tools] == ["ok"]


@pytest.mark.asyncio
async def test_disconnect_drops_entry():
    client = _client(FakeServer())
    await client.connect_http("weather", URL, "t")
    await client.disconnect("weather")
    assert client.connected_servers() == []
    with pytest.raises(TransportError, match="Server weather not connected"):
        await client.call_tool("weather", "weather", {})
