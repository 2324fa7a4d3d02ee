"""Registry of tool descriptors, with explicit spec-list loading."""

from __future__ import annotations

import importlib
import logging
from typing import Any, Iterable, Optional

from forq.core.audit import AuditEvent, AuditLog
from forq.tools.base import Tool

_log = logging.getLogger(__name__)


class ToolRegistry:
    """Holds the tools available to one agent session.

    Registration is first-wins: a second tool with an existing name is logged
    and ignored.
    """

    def __init__(self, audit: Optional[AuditLog] = None) -> None:
        self._tools: dict[str, Tool] = {}
        self._audit = audit

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def register(self, tool: Tool) -> bool:
        if tool.name in self._tools:
            _log.error("Tool with name %r is already registered", tool.name)
            if self._audit:
                self._audit.record(AuditEvent.TOOL_REGISTRATION_REJECTED, name=tool.name)
            return False
        self._tools[tool.name] = tool
        if self._audit:
            self._audit.record(AuditEvent.TOOL_REGISTERED, name=tool.name)
        return True

    def get(self, name: str) -> Optional[Tool]:
        return self._tools.get(name)

    def all(self) -> list[Tool]:
        return list(self._tools.values())

    def names(self) -> list[str]:
        return list(self._tools)

    def schema(self) -> list[dict[str, Any]]:
        """AI-facing description of every registered tool."""
        return [t.schema() for t in self._tools.values()]

    def openai_schema(self) -> list[dict[str, Any]]:
        return [{"type": "function", "function": t.schema()} for t in self._tools.values()]

    def describe(self) -> str:
        return "\n".join(f"- {t.name}: {t.description}" for t in self._tools.values())

    def load(self, specs: Iterable[str]) -> int:
        """Register tools from ``module:attribute`` specs.

        The attribute may be a Tool, a list of Tools, or a zero-argument
        callable returning either. A spec that fails to import or yields
        something else is logged and skipped.

        Returns:
            Number of tools newly registered.
        """
        loaded = 0
        for spec in specs:
            try:
                tools = _resolve_spec(spec)
            except Exception as e:
                _log.error("Failed to load tool from %s: %s", spec, e)
                if self._audit:
                    self._audit.record(AuditEvent.TOOL_LOAD_FAILED, spec=spec, error=str(e))
                continue
            for tool in tools:
                if self.register(tool):
                    loaded += 1
        if self._audit:
            self._audit.record(AuditEvent.TOOLS_LOADED, count=len(self._tools))
        return loaded


def _resolve_spec(spec: str) -> list[Tool]:
    module_name, sep, attr = spec.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Tool spec must look like 'package.module:attribute', got {spec!r}")

    obj = getattr(importlib.import_module(module_name), attr)
    if callable(obj) and not isinstance(obj, Tool):
        obj = obj()

    tools = list(obj) if isinstance(obj, (list, tuple)) else [obj]
    for tool in tools:
        if not isinstance(tool, Tool):
            raise TypeError(f"{spec} provided {type(tool).__name__}, expected Tool")
    return tools
