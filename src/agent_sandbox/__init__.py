"""Sandboxed command execution, MCP tool servers and tool dispatch for coding agents."""

__version__ = "0.1.0"
