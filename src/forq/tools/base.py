"""Base types for tool system."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Optional

if TYPE_CHECKING:
    from forq.core.audit import AuditLog
    from forq.core.shell_session import ShellSession


@dataclass
class ToolContext:
    """Everything a tool body may touch besides its parameters."""

    cwd: Path
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("forq.tools"))
    audit: Optional["AuditLog"] = None
    # Only populated for tools declared with uses_shell=True.
    shell: Optional["ShellSession"] = None

    def resolve_path(self, raw: str) -> Path:
        path = Path(raw).expanduser()
        if not path.is_absolute():
            path = self.cwd / path
        return path.resolve()


@dataclass(frozen=True)
class Tool:
    """Definition of a tool available to the agent."""

    name: str
    description: str
    parameters: dict[str, Any]
    handler: Callable[[dict[str, Any], ToolContext], Any]
    requires_permission: bool = True
    uses_shell: bool = False

    def schema(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": {
                "type": "object",
                "properties": self.parameters.get("properties", {}),
                "required": self.parameters.get("required", []),
            },
        }


_TYPE_MAP = {
    "string": str,
    "integer": int,
    "number": (int, float),
    "boolean": bool,
    "array": list,
    "object": dict,
}


def validate_params(params: dict[str, Any], schema: dict[str, Any]) -> Optional[str]:
    """Minimal JSON-schema-style validation (type + required)."""
    for name in schema.get("required", []):
        if name not in params:
            return f"Missing required parameter: '{name}'"

    properties = schema.get("properties", {})
    for key, value in params.items():
        expected = properties.get(key, {}).get("type")
        if expected not in _TYPE_MAP:
            continue
        # bool is an int subclass; don't let True pass as a number
        if isinstance(value, bool) and expected in ("integer", "number"):
            return f"Parameter '{key}' expected type '{expected}', got bool."
        if not isinstance(value, _TYPE_MAP[expected]):
            return (
                f"Parameter '{key}' expected type '{expected}', "
                f"got {type(value).__name__}."
            )
    return None
