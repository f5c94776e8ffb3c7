"""Error taxonomy for the sandbox and tool layer."""

from __future__ import annotations

from typing import Any


class SandboxError(Exception):
    """Base class for every error raised by agent_sandbox."""


class ValidationError(SandboxError):
    """A command or argument was blocked before execution.

    Never partially applied; safe to retry once the input is corrected.
    """

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class TransportError(SandboxError):
    """Spawning a tool server or reaching it over HTTP failed."""

    def __init__(self, message: str, server: str | None = None, method: str | None = None) -> None:
        self.server = server
        self.method = method
        super().__init__(message)


class ProtocolError(SandboxError):
    """A tool server answered with a JSON-RPC error object."""

    def __init__(
        self,
        message: str,
        server: str | None = None,
        method: str | None = None,
        code: int | None = None,
        data: Any = None,
    ) -> None:
        self.server = server
        self.method = method
        self.code = code
        self.data = data
        super().__init__(message)

    @classmethod
    def from_error_object(cls, error: Any, server: str, method: str) -> "ProtocolError":
        if isinstance(error, dict):
            message = error.get("message") or str(error)
            return cls(
                f"MCP error from {server} ({method}): {message}",
                server=server,
                method=method,
                code=error.get("code"),
                data=error.get("data"),
            )
        return cls(f"MCP error from {server} ({method}): {error}", server=server, method=method)


class ExecutionError(SandboxError):
    """A spawned command exited non-zero, timed out or overflowed its output cap."""

    def __init__(self, message: str, output: str = "") -> None:
        self.output = output
        super().__init__(message)


class FilesystemError(SandboxError):
    """A path escaped the project root, was missing, or could not be accessed."""
