"""Sequential, permission-gated execution of extracted tool calls."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import replace
from pathlib import Path
from typing import Callable, Iterable, Optional

from forq.core.audit import AuditEvent, AuditLog
from forq.core.errors import (
    EXECUTION_ERROR,
    NOT_FOUND,
    PERMISSION_DENIED,
    VALIDATION_ERROR,
    FatalError,
    ForqError,
)
from forq.core.permissions import PermissionGate
from forq.core.protocol import ToolCall
from forq.core.shell_session import ShellSession
from forq.core.tool_result import ToolResult
from forq.tools.base import ToolContext, validate_params
from forq.tools.registry import ToolRegistry

_log = logging.getLogger(__name__)

_MAX_PARAM_LOG = 500


def _params_for_log(params: dict) -> str:
    text = json.dumps(params, default=str, ensure_ascii=False)
    if len(text) > _MAX_PARAM_LOG:
        text = text[:_MAX_PARAM_LOG] + f"... ({len(text)} chars)"
    return text


class ToolPipeline:
    """Runs tool calls one at a time: lookup, validate, permission, execute, audit.

    Every fault inside a call becomes a failed ToolResult. Only FatalError
    escapes, since it means the session cannot continue.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        gate: PermissionGate,
        audit: Optional[AuditLog] = None,
        shell: Optional[ShellSession] = None,
        cwd: Optional[Path] = None,
    ) -> None:
        self.registry = registry
        self.gate = gate
        self.audit = audit or AuditLog()
        self.cwd = Path(cwd or os.getcwd()).resolve()
        self.shell = shell or ShellSession(self.cwd, audit=self.audit)
        self.context = ToolContext(cwd=self.cwd, logger=logging.getLogger("forq.tools"),
                                   audit=self.audit)

    def __enter__(self) -> "ToolPipeline":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        self.shell.close()

    def cancel(self) -> None:
        """Abandon an in-flight shell wait. Other tool bodies run to completion."""
        self.shell.cancel()

    def execute(self, call: ToolCall) -> ToolResult:
        name, params = call.name, call.parameters

        tool = self.registry.get(name)
        if tool is None:
            _log.error("Tool %r not found", name)
            self.audit.record(AuditEvent.TOOL_NOT_FOUND, tool=name)
            return ToolResult.failure(name, NOT_FOUND, f'Tool "{name}" not found')

        error = validate_params(params, tool.parameters)
        if error:
            self.audit.record(AuditEvent.TOOL_VALIDATION_FAILED, tool=name, error=error)
            return ToolResult.failure(name, VALIDATION_ERROR, error)

        try:
            allowed = self.gate.check(tool, params)
        except FatalError:
            raise
        except Exception as e:
            _log.exception("Permission check for %r failed", name)
            self.audit.record(AuditEvent.EXECUTION_FAILED, tool=name, error=str(e))
            return ToolResult.failure(name, EXECUTION_ERROR, f"Permission check failed: {e}")

        if not allowed:
            self.audit.record(AuditEvent.EXECUTION_DENIED, tool=name,
                              reason="Permission denied by user")
            return ToolResult.failure(name, PERMISSION_DENIED, "Permission denied by user")

        self.audit.record(AuditEvent.EXECUTION_STARTED, tool=name,
                          parameters=_params_for_log(params))

        context = self.context
        if tool.uses_shell:
            context = replace(context, cwd=Path(self.shell.cwd), shell=self.shell)

        try:
            result = tool.handler(params, context)
        except FatalError:
            raise
        except Exception as e:
            code = e.error_code if isinstance(e, ForqError) else EXECUTION_ERROR
            message = str(e) or type(e).__name__
            if isinstance(e, ForqError):
                _log.warning("Tool %r failed: %s", name, message)
            else:
                _log.exception("Tool %r raised", name)
            self.audit.record(AuditEvent.EXECUTION_FAILED, tool=name, code=code, error=message)
            return ToolResult.failure(name, code, message)

        self.audit.record(AuditEvent.EXECUTION_COMPLETED, tool=name, success=True)
        return ToolResult.success(name, result)

    def execute_all(
        self,
        calls: Iterable[ToolCall],
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> list[ToolResult]:
        """Run calls strictly in order. Stops before the next call once should_stop() is true."""
        results = []
        for call in calls:
            if should_stop is not None and should_stop():
                _log.info("Stopping tool execution before %r", call.name)
                break
            results.append(self.execute(call))
        return results
