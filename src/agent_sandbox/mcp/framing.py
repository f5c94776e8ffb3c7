"""Newline framing for the stdio transport."""

from __future__ import annotations


class LineBuffer:
    """Reassembles newline-delimited messages from arbitrary byte chunks.

    Bytes after the last newline are carried over to the next ``feed`` call,
    so a message split across reads (or a multi-byte character split across
    reads) comes out whole.
    """

    def __init__(self) -> None:
        self._carry = b""

    def feed(self, chunk: bytes) -> list[str]:
        """Append ``chunk`` and return every complete, non-blank line."""
        self._carry += chunk
        *complete, self._carry = self._carry.split(b"\n")
        lines = []
        for raw in complete:
            line = raw.decode("utf-8", errors="replace").rstrip("\r")
            if line.strip():
                lines.append(line)
        return lines

    @property
    def pending(self) -> bytes:
        """Bytes received after the last newline."""
        return self._carry

    def clear(self) -> None:
        self._carry = b""
