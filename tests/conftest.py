"""Shared pytest fixtures and helpers for forq tests."""

from __future__ import annotations

import shutil
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from forq.core.audit import AuditLog
from forq.core.permissions import PermissionGate
from forq.core.pipeline import ToolPipeline
from forq.core.shell_session import ShellSession
from forq.core.tool_result import ToolResult
from forq.state.permissions import PermissionStore
from forq.tools import build_registry

BASH = shutil.which("bash")

requires_bash = pytest.mark.skipif(BASH is None, reason="bash is not available")


@pytest.fixture
def workspace(tmp_path):
    """A temporary directory that acts as the working directory."""
    ws = tmp_path / "workspace"
    ws.mkdir()
    return ws


@pytest.fixture
def audit():
    return AuditLog()


@pytest.fixture
def store():
    return PermissionStore()


@pytest.fixture
def prompt():
    """Permission prompt that approves by default; set return_value to deny."""
    return MagicMock(return_value=True)


@pytest.fixture
def gate(store, audit, prompt):
    return PermissionGate(store, audit=audit, prompt=prompt)


@pytest.fixture
def registry(audit):
    return build_registry(audit)


@pytest.fixture
def shell(workspace, audit):
    session = ShellSession(workspace, shell_path=BASH or "/bin/bash", audit=audit,
                           default_timeout=10)
    yield session
    session.close()


@pytest.fixture
def pipeline(registry, gate, audit, shell, workspace):
    with ToolPipeline(registry, gate, audit=audit, shell=shell, cwd=workspace) as p:
        yield p


# ── Plain helper functions ─────────────────────────────────────────────────
# Each test file imports these directly:
#   from conftest import assert_ok, assert_fail, make_file

def make_file(workspace: Path, relative_path: str, content: str = "hello\n") -> Path:
    p = workspace / relative_path
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(content, encoding="utf-8")
    return p


def assert_ok(result: ToolResult) -> None:
    assert result.ok, f"Expected ok=True but got error: {result.error_code}: {result.message}"


def assert_fail(result: ToolResult, error_code: str | None = None) -> None:
    assert not result.ok, f"Expected ok=False but result succeeded: {result.result!r}"
    assert result.message, "Failure results must carry a message"
    if error_code:
        assert result.error_code == error_code, (
            f"Expected error_code={error_code!r}, got {result.error_code!r}"
        )
