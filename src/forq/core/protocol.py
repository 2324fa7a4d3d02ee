"""Extract ``<tool:NAME>{...}</tool>`` calls from free-form model output.

Blocks are scanned left to right. The payload is located with a
string-aware balanced-delimiter scan, so nested objects and a literal
``</tool>`` inside a JSON string do not end the block early. A block whose
payload cannot be parsed is logged and skipped; scanning carries on.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from forq.core.audit import AuditEvent, AuditLog

_log = logging.getLogger(__name__)

OPEN_TAG = "<tool:"
CLOSE_TAG = "</tool>"

_CLOSERS = {"{": "}", "[": "]"}


@dataclass
class ToolCall:
    name: str
    parameters: dict[str, Any] = field(default_factory=dict)


def _skip_ws(text: str, i: int) -> int:
    while i < len(text) and text[i].isspace():
        i += 1
    return i


def _scan_balanced(text: str, start: int) -> int:
    """Return the index just past the delimiter closing ``text[start]``, or -1."""
    stack: list[str] = []
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in _CLOSERS:
            stack.append(_CLOSERS[ch])
        elif ch in "}]":
            if not stack or stack.pop() != ch:
                return -1
            if not stack:
                return i + 1
    return -1


def _parse_payload(payload: str) -> dict[str, Any]:
    if not payload:
        return {}
    parameters = json.loads(payload)
    if not isinstance(parameters, dict):
        raise ValueError(f"payload must be a JSON object, got {type(parameters).__name__}")
    return parameters


def _skipped(audit: Optional[AuditLog], name: str, reason: str) -> None:
    _log.warning("Failed to parse tool call %r: %s", name, reason)
    if audit:
        audit.record(AuditEvent.TOOL_CALL_PARSE_FAILED, name=name, error=reason)


def extract_tool_calls(text: str, audit: Optional[AuditLog] = None) -> list[ToolCall]:
    """Return the tool calls in ``text`` in order of appearance.

    Text without any blocks yields an empty list.
    """
    calls: list[ToolCall] = []
    pos = 0
    while True:
        start = text.find(OPEN_TAG, pos)
        if start == -1:
            break
        name_start = start + len(OPEN_TAG)
        name_end = text.find(">", name_start)
        if name_end == -1:
            break
        name = text[name_start:name_end]
        if not name or any(ch.isspace() for ch in name):
            pos = name_start
            continue

        body_start = name_end + 1
        i = _skip_ws(text, body_start)

        if text.startswith(CLOSE_TAG, i):
            calls.append(ToolCall(name=name))
            pos = i + len(CLOSE_TAG)
            continue

        if i < len(text) and text[i] in _CLOSERS:
            end = _scan_balanced(text, i)
            if end != -1:
                close = _skip_ws(text, end)
                if text.startswith(CLOSE_TAG, close):
                    try:
                        calls.append(ToolCall(name=name, parameters=_parse_payload(text[i:end])))
                    except ValueError as e:
                        _skipped(audit, name, str(e))
                    pos = close + len(CLOSE_TAG)
                    continue

        # Payload is not a well-formed literal; resync on the next closing tag.
        close = text.find(CLOSE_TAG, body_start)
        if close == -1:
            _skipped(audit, name, "unterminated tool block")
            break
        _skipped(audit, name, f"malformed payload: {text[body_start:close].strip()[:200]!r}")
        pos = close + len(CLOSE_TAG)

    return calls
