"""Append-only audit trail for registrations, permission decisions, and executions."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

_log = logging.getLogger(__name__)


class AuditEvent(str, Enum):
    TOOL_REGISTERED = "tool_registered"
    TOOL_REGISTRATION_REJECTED = "tool_registration_rejected"
    TOOL_LOAD_FAILED = "tool_load_failed"
    TOOLS_LOADED = "tools_loaded"
    TOOL_CALL_PARSE_FAILED = "tool_call_parse_failed"
    PERMISSION_ALREADY_GRANTED = "permission_already_granted"
    PERMISSION_GRANTED = "permission_granted"
    PERMISSION_DENIED = "permission_denied"
    TOOL_NOT_FOUND = "tool_not_found"
    TOOL_VALIDATION_FAILED = "tool_validation_failed"
    EXECUTION_DENIED = "execution_denied"
    EXECUTION_STARTED = "execution_started"
    EXECUTION_COMPLETED = "execution_completed"
    EXECUTION_FAILED = "execution_failed"
    SHELL_SPAWNED = "shell_spawned"
    SHELL_COMMAND_REJECTED = "shell_command_rejected"
    SHELL_TIMEOUT = "shell_timeout"
    SHELL_EXITED = "shell_exited"


@dataclass
class AuditLogEntry:
    timestamp: str
    event: AuditEvent
    fields: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"timestamp": self.timestamp, "event": self.event.value, **self.fields}


class AuditLog:
    """Structured event sink.

    Entries are kept in memory for the session and, when ``path`` is given,
    appended to a JSON-lines file. The file is never rewritten.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path
        self.entries: list[AuditLogEntry] = []
        if path is not None:
            path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path | None:
        return self._path

    def record(self, event: AuditEvent, **fields: Any) -> AuditLogEntry:
        entry = AuditLogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            event=event,
            fields=fields,
        )
        self.entries.append(entry)
        _log.info("%s %s", event.value, fields)
        if self._path is not None:
            with open(self._path, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry.to_dict(), default=str) + "\n")
        return entry

    def events(self) -> list[AuditEvent]:
        return [e.event for e in self.entries]
