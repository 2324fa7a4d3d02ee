from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class ToolResult:
    """Standard envelope for every tool call outcome.

    ``result`` holds whatever the tool body returned, untouched. Failures carry
    an ``error_code`` from :mod:`forq.core.errors` and a human-readable message.
    """

    tool_name: str
    ok: bool
    result: Any = None
    error_code: Optional[str] = None
    message: str = ""

    @property
    def is_error(self) -> bool:
        return not self.ok

    @classmethod
    def success(cls, tool_name: str, result: Any = None) -> "ToolResult":
        return cls(tool_name=tool_name, ok=True, result=result)

    @classmethod
    def failure(cls, tool_name: str, error_code: str, message: str) -> "ToolResult":
        return cls(tool_name=tool_name, ok=False, error_code=error_code, message=message)

    def to_observation(self) -> str:
        """Render the result as JSON for the next model turn."""
        if self.ok:
            payload = {"tool": self.tool_name, "success": True, "result": self.result}
        else:
            payload = {
                "tool": self.tool_name,
                "success": False,
                "code": self.error_code,
                "error": self.message,
            }
        return json.dumps(payload, default=str, ensure_ascii=False)
