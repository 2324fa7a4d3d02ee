"""
forq.tools
~~~~~~~~~~
Tool contract, registry, and the built-in tools.

Tools are declared in an explicit list of ``module:attribute`` specs rather
than discovered by scanning a directory. Extra specs (from config) are loaded
after the built-ins and may not shadow them::

    from forq.tools import build_registry

    registry = build_registry(audit, extra=["my_pkg.tools:TOOLS"])
    schemas = registry.schema()
"""
from __future__ import annotations

from typing import Iterable, Optional

from forq.core.audit import AuditLog
from forq.tools.base import Tool, ToolContext, validate_params
from forq.tools.registry import ToolRegistry

BUILTIN_TOOLS = [
    "forq.tools.file_list:TOOL",
    "forq.tools.file_read:TOOL",
    "forq.tools.file_write:TOOL",
    "forq.tools.file_edit:TOOL",
    "forq.tools.shell:TOOL",
]

__all__ = [
    "BUILTIN_TOOLS",
    "Tool",
    "ToolContext",
    "ToolRegistry",
    "build_registry",
    "validate_params",
]


def build_registry(audit: Optional[AuditLog] = None, extra: Iterable[str] = ()) -> ToolRegistry:
    registry = ToolRegistry(audit=audit)
    registry.load([*BUILTIN_TOOLS, *extra])
    return registry
