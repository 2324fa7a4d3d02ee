from __future__ import annotations

from typing import Any

from forq.core.errors import ToolExecutionError
from forq.tools.base import Tool, ToolContext

SCHEMA = {
    "properties": {
        "filePath": {"type": "string", "description": "Path to the file to edit."},
        "oldString": {
            "type": "string",
            "description": "Exact substring to find and replace. Must occur exactly once.",
        },
        "newString": {"type": "string", "description": "Replacement text."},
    },
    "required": ["filePath", "oldString", "newString"],
}


def edit_file(params: dict[str, Any], context: ToolContext) -> dict[str, Any]:
    path = context.resolve_path(params["filePath"])
    old: str = params["oldString"]
    new: str = params["newString"]

    if not old:
        raise ToolExecutionError("oldString must not be empty")
    if not path.exists():
        raise ToolExecutionError(f"File not found: {path}")
    if not path.is_file():
        raise ToolExecutionError(f"Path is not a file: {path}")

    original = path.read_text(encoding="utf-8", errors="replace")
    count = original.count(old)
    if count == 0:
        raise ToolExecutionError(
            "oldString was not found in the file. Use readFile to inspect current content."
        )
    if count > 1:
        raise ToolExecutionError(
            f"oldString matched {count} times. Make it more specific so it matches exactly once."
        )

    path.write_text(original.replace(old, new, 1), encoding="utf-8")

    old_lines = old.count("\n") + 1
    new_lines = new.count("\n") + 1
    return {
        "filePath": str(path),
        "oldLines": old_lines,
        "newLines": new_lines,
        "netLineChange": new_lines - old_lines,
    }


TOOL = Tool(
    name="editFile",
    description=(
        "Edit an existing file by replacing an exact string with new content. "
        "oldString must match exactly once; use readFile first if unsure."
    ),
    parameters=SCHEMA,
    handler=edit_file,
)
