"""Stdio and HTTP connections to MCP tool servers.

Both connection types expose the same ``request``/``notify``/``close``
surface so ``MCPClient`` never branches on transport.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

import httpx

from agent_sandbox.errors import ProtocolError, TransportError
from agent_sandbox.mcp.framing import LineBuffer
from agent_sandbox.mcp.protocol import is_response, make_notification, make_request

_log = logging.getLogger(__name__)

READ_CHUNK_SIZE = 64 * 1024


class MCPConnection(ABC):
    """One named connection to a tool server."""

    transport: str = ""

    def __init__(self, name: str, next_id: Callable[[], int]) -> None:
        self.name = name
        self._next_id = next_id

    @abstractmethod
    async def request(self, method: str, params: Optional[dict[str, Any]] = None) -> Any:
        """Send a call and return its ``result``.

        Raises:
            TransportError: the server could not be reached.
            ProtocolError: the server replied with a JSON-RPC error.
        """

    @abstractmethod
    async def notify(self, method: str, params: Optional[dict[str, Any]] = None) -> None:
        """Send a one-way notification; no reply is expected."""

    @abstractmethod
    async def close(self) -> None:
        ...


@dataclass
class PendingRequest:
    id: int
    method: str
    future: asyncio.Future


class StdioConnection(MCPConnection):
    """Line-delimited JSON-RPC over a child process's stdin/stdout.

    Replies are matched to callers by id through the pending map, so they may
    arrive in any order.
    """

    transport = "stdio"

    def __init__(
        self,
        name: str,
        next_id: Callable[[], int],
        stdin: Any,
        stdout: Optional[asyncio.StreamReader] = None,
        process: Optional[asyncio.subprocess.Process] = None,
    ) -> None:
        super().__init__(name, next_id)
        self._stdin = stdin
        self._stdout = stdout
        self._process = process
        self._buffer = LineBuffer()
        self._pending: dict[int, PendingRequest] = {}
        self._reader_task: Optional[asyncio.Task] = None
        self._closed = False
        self._eof = False

    @classmethod
    async def spawn(
        cls,
        name: str,
        command: str,
        args: Sequence[str],
        next_id: Callable[[], int],
        env: Optional[dict[str, str]] = None,
    ) -> "StdioConnection":
        """Start ``command`` with piped stdin/stdout and inherited stderr."""
        child_env = {**os.environ, **env} if env else None
        try:
            process = await asyncio.create_subprocess_exec(
                command,
                *args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=None,
                env=child_env,
            )
        except OSError as exc:
            raise TransportError(
                f"Failed to start MCP server {name} ({command}): {exc}", server=name
            ) from exc

        conn = cls(name, next_id, stdin=process.stdin, stdout=process.stdout, process=process)
        conn.start_reading()
        return conn

    @property
    def pending_ids(self) -> list[int]:
        return sorted(self._pending)

    def start_reading(self) -> None:
        if self._stdout is not None and self._reader_task is None:
            self._reader_task = asyncio.create_task(
                self._read_loop(), name=f"mcp-{self.name}-stdout"
            )

    async def _read_loop(self) -> None:
        assert self._stdout is not None
        try:
            while True:
                chunk = await self._stdout.read(READ_CHUNK_SIZE)
                if not chunk:
                    break
                self.feed(chunk)
        except Exception as exc:
            _log.error("MCP server %s: read loop failed: %s", self.name, exc)
        self._eof = True
        if not self._closed:
            _log.warning("MCP server %s closed its output stream", self.name)
            self._reject_pending(f"MCP server {self.name} closed the connection")

    def feed(self, chunk: bytes) -> None:
        """Process a raw chunk read from the child's stdout."""
        for line in self._buffer.feed(chunk):
            try:
                message = json.loads(line)
            except json.JSONDecodeError as exc:
                _log.warning("MCP server %s: dropping non-JSON line (%s): %.200s", self.name, exc, line)
                continue
            self._handle_message(message)

    def _handle_message(self, message: Any) -> None:
        if not is_response(message):
            _log.debug("MCP server %s: ignoring unsolicited message %.200s", self.name, message)
            return

        pending = self._pending.pop(message["id"], None)
        if pending is None or pending.future.done():
            _log.debug("MCP server %s: no pending request for id %r", self.name, message["id"])
            return

        if message.get("error") is not None:
            pending.future.set_exception(
                ProtocolError.from_error_object(message["error"], self.name, pending.method)
            )
        else:
            pending.future.set_result(message.get("result"))

    async def request(self, method: str, params: Optional[dict[str, Any]] = None) -> Any:
        if self._closed:
            raise TransportError(f"Server {self.name} not connected", server=self.name, method=method)
        if self._eof:
            raise TransportError(
                f"MCP server {self.name} closed the connection", server=self.name, method=method
            )

        request_id = self._next_id()
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = PendingRequest(request_id, method, future)
        try:
            await self._write(make_request(request_id, method, params), method)
            return await future
        finally:
            # Cancelled or failed callers must not leave an entry behind
            self._pending.pop(request_id, None)

    async def notify(self, method: str, params: Optional[dict[str, Any]] = None) -> None:
        if self._closed:
            return
        await self._write(make_notification(method, params), method)

    async def _write(self, message: dict[str, Any], method: str) -> None:
        data = (json.dumps(message) + "\n").encode("utf-8")
        try:
            self._stdin.write(data)
            await self._stdin.drain()
        except (OSError, RuntimeError) as exc:
            raise TransportError(
                f"Failed to write to MCP server {self.name} ({method}): {exc}",
                server=self.name,
                method=method,
            ) from exc

    def _reject_pending(self, reason: str) -> None:
        pending, self._pending = self._pending, {}
        for entry in pending.values():
            if not entry.future.done():
                entry.future.set_exception(
                    TransportError(reason, server=self.name, method=entry.method)
                )

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._reject_pending(f"MCP server {self.name} was disconnected")

        if self._reader_task is not None:
            self._reader_task.cancel()
            try:
                await self._reader_task
            except asyncio.CancelledError:
                pass
        self._buffer.clear()

        if self._process is not None and self._process.returncode is None:
            try:
                self._process.kill()
            except ProcessLookupError:
                pass
            await self._process.wait()


class HTTPConnection(MCPConnection):
    """Single-shot JSON-RPC over HTTP POST.

    Each call is paired with its reply by the HTTP exchange itself, so there
    is no pending map and nothing to close.
    """

    transport = "http"

    def __init__(
        self,
        name: str,
        next_id: Callable[[], int],
        url: str,
        api_key: str,
        timeout: Optional[float] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(name, next_id)
        self.url = url
        self._api_key = api_key
        self._timeout = httpx.Timeout(timeout)
        self._http_transport = http_transport

    async def request(self, method: str, params: Optional[dict[str, Any]] = None) -> Any:
        body = await self._post(make_request(self._next_id(), method, params), method)
        if not isinstance(body, dict):
            raise ProtocolError(
                f"MCP server {self.name} ({method}) returned a non-object reply",
                server=self.name,
                method=method,
            )
        if body.get("error") is not None:
            raise ProtocolError.from_error_object(body["error"], self.name, method)
        return body.get("result")

    async def notify(self, method: str, params: Optional[dict[str, Any]] = None) -> None:
        await self._post(make_notification(method, params), method, expect_body=False)

    async def _post(self, message: dict[str, Any], method: str, expect_body: bool = True) -> Any:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Authorization": f"Bearer {self._api_key}",
        }
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._http_transport
            ) as client:
                response = await client.post(self.url, json=message, headers=headers)
        except httpx.HTTPError as exc:
            raise TransportError(
                f"HTTP MCP request to {self.name} ({method}) failed: {exc}",
                server=self.name,
                method=method,
            ) from exc

        if not response.is_success:
            raise TransportError(
                f"HTTP MCP request to {self.name} ({method}) failed: "
                f"{response.status_code} {response.reason_phrase}",
                server=self.name,
                method=method,
            )
        if not expect_body:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise TransportError(
                f"HTTP MCP reply from {self.name} ({method}) is not valid JSON",
                server=self.name,
                method=method,
            ) from exc

    async def close(self) -> None:
        return None
