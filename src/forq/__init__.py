"""forq - terminal AI agent with permission-gated tools."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("forq")
except PackageNotFoundError:
    __version__ = "0.0.0"

from forq.config import ConfigError, ForqConfig, load_config
from forq.core.audit import AuditEvent, AuditLog
from forq.core.pipeline import ToolPipeline
from forq.core.protocol import ToolCall, extract_tool_calls
from forq.core.shell_session import ShellSession
from forq.core.tool_result import ToolResult
from forq.core.permissions import PermissionGate
from forq.state.permissions import PermissionStore, PermissionType
from forq.tools import Tool, ToolContext, ToolRegistry, build_registry
