from __future__ import annotations

from typing import Any

from forq.core.errors import ToolExecutionError
from forq.tools.base import Tool, ToolContext

SCHEMA = {
    "properties": {
        "filePath": {"type": "string", "description": "Path of the file to create."},
        "content": {"type": "string", "description": "Full content of the new file."},
    },
    "required": ["filePath", "content"],
}


def create_file(params: dict[str, Any], context: ToolContext) -> dict[str, Any]:
    path = context.resolve_path(params["filePath"])
    if path.exists():
        raise ToolExecutionError(f"File already exists: {path}. Use editFile to change it.")

    content: str = params["content"]
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return {"filePath": str(path), "bytes": len(content.encode("utf-8"))}


TOOL = Tool(
    name="createFile",
    description="Create a new file with the given content. Parent directories are created as needed.",
    parameters=SCHEMA,
    handler=create_file,
)
