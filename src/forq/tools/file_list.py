from __future__ import annotations

from typing import Any

from forq.core.errors import ToolExecutionError
from forq.tools.base import Tool, ToolContext

MAX_ENTRIES = 1000

SCHEMA = {
    "properties": {
        "dirPath": {"type": "string", "description": "Directory to list. Defaults to '.'."},
    },
    "required": [],
}


def list_dir(params: dict[str, Any], context: ToolContext) -> dict[str, Any]:
    path = context.resolve_path(params.get("dirPath") or ".")
    if not path.exists():
        raise ToolExecutionError(f"Directory not found: {path}")
    if not path.is_dir():
        raise ToolExecutionError(f"Path is not a directory: {path}")

    children = sorted(path.iterdir(), key=lambda p: p.name)
    entries = [
        {"name": child.name, "type": "directory" if child.is_dir() else "file"}
        for child in children[:MAX_ENTRIES]
    ]
    return {
        "dirPath": str(path),
        "entries": entries,
        "truncated": len(children) > MAX_ENTRIES,
    }


TOOL = Tool(
    name="listDir",
    description="List the files and directories directly inside a directory.",
    parameters=SCHEMA,
    handler=list_dir,
)
