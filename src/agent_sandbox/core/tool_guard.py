import datetime
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from agent_sandbox.core.tool_result import ToolResult

_log = logging.getLogger(__name__)


class ToolGuard:
    """Pre-flight checks shared by every built-in tool.

    Checks run in order: policy deny list, argument schema, path containment.
    The first failing check short-circuits with a failure ``ToolResult``.
    """

    def __init__(
        self,
        project_root: str,
        policy: Dict[str, Any],
        log_path: Optional[str] = None,
    ):
        self.project_root = Path(project_root).resolve()
        self.policy = policy
        self._log_path = log_path

    def check(
        self,
        tool_name: str,
        args: Dict[str, Any],
        schema: Optional[Dict[str, Any]] = None,
    ) -> Optional[ToolResult]:
        if tool_name in self.policy.get("deny_tools", []):
            result = ToolResult.failure(
                "DENIED_BY_POLICY", f"Tool '{tool_name}' is denied by policy."
            )
            self._audit(tool_name, result)
            return result

        if schema is not None:
            error = self._validate(args, schema)
            if error:
                result = ToolResult.failure("INVALID_ARGS", error)
                self._audit(tool_name, result)
                return result

        # Multi-line values are file contents, not paths
        path_arg = args.get("path")
        if isinstance(path_arg, str) and "\n" not in path_arg:
            try:
                (self.project_root / path_arg).resolve().relative_to(self.project_root)
            except ValueError:
                result = ToolResult.failure(
                    "PATH_OUTSIDE_PROJECT",
                    f"Path is outside of the project directory: {path_arg}",
                )
                self._audit(tool_name, result)
                return result

        self._audit(tool_name, None)
        return None

    def _audit(self, tool_name: str, result: Optional[ToolResult]) -> None:
        if result is not None:
            _log.warning("Tool call blocked: %s (%s)", tool_name, result.error_code)
        if self._log_path is None:
            return
        entry = {
            "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
            "tool_name": tool_name,
            "denied": result is not None,
            "error_code": result.error_code if result is not None else None,
        }
        with open(self._log_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry) + "\n")

    def _validate(self, args: Dict[str, Any], schema: Dict[str, Any]) -> Optional[str]:
        """Minimal JSON-schema-style validation (type + required)."""
        for field in schema.get("required", []):
            if field not in args:
                return f"Missing '{field}' argument"

        properties = schema.get("properties", {})
        type_map = {
            "string": str,
            "integer": int,
            "number": (int, float),
            "boolean": bool,
            "array": list,
            "object": dict,
        }
        for key, value in args.items():
            if key not in properties:
                continue
            expected_type = properties[key].get("type")
            if expected_type in type_map and not isinstance(value, type_map[expected_type]):
                return (
                    f"Field '{key}' expected type '{expected_type}', "
                    f"got {type(value).__name__}."
                )
        return None
