from __future__ import annotations

from typing import Any

from forq.core.errors import ToolExecutionError
from forq.tools.base import Tool, ToolContext

SCHEMA = {
    "properties": {
        "command": {"type": "string", "description": "Shell command to execute."},
        "timeout": {
            "type": "number",
            "description": "Timeout in seconds. Defaults to the configured shell timeout (120).",
        },
    },
    "required": ["command"],
}


def run_bash(params: dict[str, Any], context: ToolContext) -> dict[str, Any]:
    if context.shell is None:
        raise ToolExecutionError("No shell session is attached to this context")

    command: str = params["command"]
    if not command.strip():
        raise ToolExecutionError("command must not be empty")

    timeout = params.get("timeout")
    if timeout is not None and timeout <= 0:
        raise ToolExecutionError("timeout must be greater than 0")

    output = context.shell.execute(command, timeout=timeout)
    if output.exit_code != 0:
        context.logger.info("Command %r exited with %d", command, output.exit_code)
    return output.to_dict()


TOOL = Tool(
    name="bash",
    description=(
        "Execute a command in a persistent shell session. Working directory and "
        "exported variables carry over between calls. A non-zero exit code is "
        "reported in the result, not as a failure."
    ),
    parameters=SCHEMA,
    handler=run_bash,
    requires_permission=True,
    uses_shell=True,
)
