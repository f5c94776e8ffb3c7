from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class ToolResult:
    """Standard envelope for all tool responses.

    ``to_text()`` renders the single string handed back to the agent loop.
    """

    ok: bool
    error_code: Optional[str]
    message: str
    data: Dict[str, Any] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_error(self) -> bool:
        return not self.ok

    @property
    def output(self) -> str:
        """Returns data['output'] when present, otherwise the message."""
        value = self.data.get("output")
        return value if isinstance(value, str) else self.message

    def to_text(self) -> str:
        if not self.ok:
            text = self.message if self.message.startswith("Error") else f"Error: {self.message}"
            partial = self.data.get("output")
            if partial:
                text += f"\nOutput: {partial}"
            return text
        return self.output

    @classmethod
    def success(
        cls,
        data: Optional[Dict[str, Any]] = None,
        message: str = "",
        warnings: Optional[List[str]] = None,
    ) -> "ToolResult":
        return cls(
            ok=True,
            error_code=None,
            message=message,
            data=data or {},
            warnings=warnings or [],
        )

    @classmethod
    def failure(
        cls,
        error_code: str,
        message: str,
        data: Optional[Dict[str, Any]] = None,
        warnings: Optional[List[str]] = None,
    ) -> "ToolResult":
        return cls(
            ok=False,
            error_code=error_code,
            message=message,
            data=data or {},
            warnings=warnings or [],
        )
