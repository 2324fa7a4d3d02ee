from __future__ import annotations

from typing import Any

from forq.core.errors import ToolExecutionError
from forq.tools.base import Tool, ToolContext

MAX_FILE_BYTES = 1_000_000

SCHEMA = {
    "properties": {
        "filePath": {"type": "string", "description": "Path to the file to read."},
    },
    "required": ["filePath"],
}


def read_file(params: dict[str, Any], context: ToolContext) -> dict[str, Any]:
    path = context.resolve_path(params["filePath"])
    if not path.exists():
        raise ToolExecutionError(f"File not found: {path}")
    if not path.is_file():
        raise ToolExecutionError(f"Path is not a file: {path}")
    if path.stat().st_size > MAX_FILE_BYTES:
        raise ToolExecutionError(f"File is larger than {MAX_FILE_BYTES} bytes: {path}")

    return {
        "filePath": str(path),
        "content": path.read_text(encoding="utf-8", errors="replace"),
    }


TOOL = Tool(
    name="readFile",
    description="Read the contents of a text file.",
    parameters=SCHEMA,
    handler=read_file,
)
