"""Permission gatekeeper: decides when a tool call needs a human answer."""

from __future__ import annotations

import logging
from typing import Any, Callable, Literal, Optional

from forq.core.audit import AuditEvent, AuditLog
from forq.state.permissions import PermissionStore, PermissionType
from forq.tools.base import Tool

_log = logging.getLogger(__name__)

_MAX_REASON_DISPLAY = 200

PERMISSION_TYPES: dict[str, PermissionType] = {
    "listDir": PermissionType.FILE_SYSTEM,
    "readFile": PermissionType.FILE_SYSTEM,
    "editFile": PermissionType.FILE_SYSTEM,
    "deleteFile": PermissionType.FILE_SYSTEM,
    "createFile": PermissionType.FILE_SYSTEM,
    "fileSearch": PermissionType.FILE_SYSTEM,
    "ripgrepSearch": PermissionType.FILE_SYSTEM,
    "bash": PermissionType.SHELL_COMMAND,
    "semanticEmbed": PermissionType.EMBEDDING,
    "semanticSearch": PermissionType.EMBEDDING,
    "readSemanticSearchFiles": PermissionType.EMBEDDING,
}

# Parameter naming the path a grant is scoped to. Tools absent here get a
# global (scope-less) grant; for bash that means one approval covers every
# later command in the session.
SCOPE_PARAMETERS: dict[str, str] = {
    "listDir": "dirPath",
    "readFile": "filePath",
    "editFile": "filePath",
    "deleteFile": "filePath",
    "createFile": "filePath",
}

PromptCallback = Callable[[str, PermissionType, Optional[str], Optional[str]], bool]


def _truncate(text: str) -> str:
    if len(text) <= _MAX_REASON_DISPLAY:
        return text
    return text[:_MAX_REASON_DISPLAY] + f"... ({len(text)} chars)"


def input_prompt(
    tool_name: str,
    permission_type: PermissionType,
    scope: Optional[str],
    reason: Optional[str],
) -> bool:
    """Ask on stdin. Anything but y/yes, including EOF, is a denial."""
    print(f"\nPermission required: {tool_name} ({permission_type.value})")
    print(f"  scope: {scope or 'global'}")
    if reason:
        print(f"  {reason}")
    try:
        response = input(f"Allow {tool_name}? [y/N]: ").strip().lower()
    except EOFError:
        return False
    return response in ("y", "yes")


class PermissionGate:
    """Checks the store, prompts when needed, and persists grants.

    Denials are not remembered: the same call prompts again next time.
    """

    def __init__(
        self,
        store: PermissionStore,
        audit: Optional[AuditLog] = None,
        prompt: Optional[PromptCallback] = None,
        unknown_tool_permission: Literal["filesystem", "deny"] = "filesystem",
    ) -> None:
        self.store = store
        self._audit = audit
        self._prompt = prompt or input_prompt
        self.unknown_tool_permission = unknown_tool_permission

    def permission_type_for(self, tool_name: str) -> Optional[PermissionType]:
        """Classify a tool. ``None`` means the tool is unknown and denied by policy."""
        if tool_name in PERMISSION_TYPES:
            return PERMISSION_TYPES[tool_name]
        if self.unknown_tool_permission == "deny":
            return None
        return PermissionType.FILE_SYSTEM

    def scope_for(self, tool_name: str, params: dict[str, Any]) -> Optional[str]:
        key = SCOPE_PARAMETERS.get(tool_name)
        if key is None:
            return None
        value = params.get(key)
        return str(value) if value is not None else None

    def reason_for(self, tool_name: str, params: dict[str, Any]) -> Optional[str]:
        if tool_name == "bash":
            return _truncate(f"Execute command: {params.get('command', '')}")
        scope = self.scope_for(tool_name, params)
        if scope:
            return f"Access path: {scope}"
        return None

    def has_permission(
        self, tool_name: str, permission_type: PermissionType, scope: Optional[str] = None
    ) -> bool:
        return self.store.has_permission(tool_name, permission_type, scope)

    def request_permission(
        self,
        tool_name: str,
        permission_type: PermissionType,
        scope: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> bool:
        """Block on a human answer; persist the grant before returning True."""
        granted = bool(self._prompt(tool_name, permission_type, scope, reason))
        fields = {"tool": tool_name, "type": permission_type.value, "scope": scope or "global"}
        if granted:
            self.store.grant(tool_name, permission_type, scope)
            if self._audit:
                self._audit.record(AuditEvent.PERMISSION_GRANTED, **fields)
        else:
            _log.info("Permission denied for %s (%s)", tool_name, scope or "global")
            if self._audit:
                self._audit.record(AuditEvent.PERMISSION_DENIED, **fields)
        return granted

    def check(self, tool: Tool, params: dict[str, Any]) -> bool:
        """Return True when ``tool`` may run with ``params``."""
        if not tool.requires_permission:
            return True

        permission_type = self.permission_type_for(tool.name)
        if permission_type is None:
            _log.warning("Denying unclassified tool %r by policy", tool.name)
            if self._audit:
                self._audit.record(AuditEvent.PERMISSION_DENIED, tool=tool.name,
                                   reason="unclassified tool")
            return False

        scope = self.scope_for(tool.name, params)
        if self.has_permission(tool.name, permission_type, scope):
            if self._audit:
                self._audit.record(
                    AuditEvent.PERMISSION_ALREADY_GRANTED,
                    tool=tool.name,
                    type=permission_type.value,
                    scope=scope or "global",
                )
            return True

        return self.request_permission(
            tool.name, permission_type, scope, self.reason_for(tool.name, params)
        )
