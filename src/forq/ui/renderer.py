"""Rich terminal output helpers for the CLI."""

from __future__ import annotations

import io
import json
from typing import Optional

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Confirm
from rich.rule import Rule
from rich.syntax import Syntax
from rich.text import Text

from forq.core.protocol import ToolCall
from forq.core.tool_result import ToolResult
from forq.state.permissions import PermissionType

_MAX_ARG_DISPLAY = 50
_MAX_RESULT_LINES = 40


class Renderer:
    """Render markdown and styled status/error output in terminal."""

    def __init__(self, output_file: io.TextIOBase | None = None) -> None:
        if output_file is not None:
            self.console = Console(file=output_file, force_terminal=False, highlight=False)
        else:
            self.console = Console()

    def render_markdown(self, text: str) -> None:
        self.console.print(Markdown(text))

    def render_assistant(self, text: str) -> None:
        if text.strip():
            self.console.print(Text("forq", style="bold green"))
            self.render_markdown(text)

    def print_error(self, message: str) -> None:
        """Print a styled error message."""
        self.console.print(f"[red]{escape(message)}[/red]", highlight=False)

    def print_info(self, message: str) -> None:
        """Print a styled informational message."""
        self.console.print(f"[dim]{escape(message)}[/dim]", highlight=False)

    def print_warning(self, message: str) -> None:
        """Print a styled warning message."""
        self.console.print(f"[yellow]{escape(message)}[/yellow]", highlight=False)

    def print_success(self, message: str) -> None:
        """Print a styled success message."""
        self.console.print(f"[green]{escape(message)}[/green]", highlight=False)

    def render_separator(self) -> None:
        self.console.print(Rule(style="dim"))

    def render_tool_call(self, call: ToolCall) -> None:
        """Render a compact inline display for a tool call about to run."""
        self.console.print(f"[bold cyan]◆[/bold cyan] [cyan]{escape(call.name)}[/cyan]")
        for key, value in call.parameters.items():
            value_str = str(value)
            if len(value_str) > _MAX_ARG_DISPLAY:
                value_str = value_str[: _MAX_ARG_DISPLAY - 3] + "..."
            self.console.print(f"  [dim]{escape(str(key))}[/dim]: {escape(value_str)}", highlight=False)

    def render_tool_result(self, result: ToolResult) -> None:
        if not result.ok:
            self.print_error(f"  ✗ {result.error_code}: {result.message}")
            return

        payload = result.result
        if isinstance(payload, dict) and "exitCode" in payload:
            body = (payload.get("stdout") or "") + (payload.get("stderr") or "")
            style = "green" if payload["exitCode"] == 0 else "yellow"
            self.console.print(f"  [{style}]exit {payload['exitCode']}[/{style}]", highlight=False)
            if body.strip():
                self._print_clipped(body, "text")
            return

        self.print_success("  ✓ done")
        if payload is not None:
            self._print_clipped(json.dumps(payload, indent=2, default=str, ensure_ascii=False), "json")

    def _print_clipped(self, text: str, lexer: str) -> None:
        lines = text.rstrip("\n").splitlines()
        if len(lines) > _MAX_RESULT_LINES:
            lines = lines[:_MAX_RESULT_LINES] + [f"... ({len(lines) - _MAX_RESULT_LINES} more lines)"]
        self.console.print(Syntax("\n".join(lines), lexer, theme="ansi_dark", word_wrap=True))

    def render_banner(self, version: str) -> None:
        content = Text.assemble(("forq", "bold cyan"), ("  v" + version, "dim"))
        self.console.print(Panel(content, border_style="cyan dim", expand=False, padding=(0, 2)))

    def ask_permission(
        self,
        tool_name: str,
        permission_type: PermissionType,
        scope: Optional[str],
        reason: Optional[str],
    ) -> bool:
        """Permission prompt for PermissionGate. Defaults to No."""
        self.console.print(
            f"\n[bold yellow]Permission required[/bold yellow]: [cyan]{escape(tool_name)}[/cyan] "
            f"[dim]({permission_type.value}, scope: {escape(scope or 'global')})[/dim]",
            highlight=False,
        )
        if reason:
            self.console.print(f"  {reason}", highlight=False, markup=False)
        try:
            return Confirm.ask("Allow?", default=False, console=self.console)
        except EOFError:
            return False
