"""forq CLI entry point."""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Optional

import click
from prompt_toolkit import PromptSession
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.history import FileHistory
from rich.markup import escape
from rich.table import Table

from forq import __version__
from forq.config import ConfigError, ForqConfig, apply_cli_overrides, load_config
from forq.core.agent import Agent
from forq.core.audit import AuditLog
from forq.core.errors import FatalError
from forq.core.llm import LLMClient
from forq.core.permissions import PermissionGate
from forq.core.pipeline import ToolPipeline
from forq.core.shell_session import ShellSession
from forq.state.permissions import PermissionStore
from forq.tools import build_registry
from forq.tools.registry import ToolRegistry
from forq.ui.interrupt import InterruptHandler
from forq.ui.renderer import Renderer

USER_PROMPT = "forq> "

SLASH_COMMANDS = {
    "/help": "Display this help message",
    "/clear": "Clear the console",
    "/exit": "Exit the REPL",
    "/reset": "Reset the conversation",
    "/tools": "List available tools",
    "/permissions": "List persisted permission grants",
}


def setup_logging(config: ForqConfig) -> None:
    """Send log records to the log file; the terminal is reserved for the renderer."""
    config.log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(config.log_file, encoding="utf-8")
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    )
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(config.log_level)
    logging.getLogger("LiteLLM").setLevel(logging.WARNING)


def handle_slash_command(
    text: str,
    agent: Agent,
    registry: ToolRegistry,
    store: PermissionStore,
    renderer: Renderer,
) -> Optional[bool]:
    """Run a REPL command.

    Returns:
        None if ``text`` is not a slash command, False to exit, True otherwise.
    """
    if not text.startswith("/"):
        return None

    command = text.split()[0]
    if command == "/help":
        table = Table(title="Available Commands", show_header=True, header_style="bold cyan")
        table.add_column("Command", style="cyan")
        table.add_column("Description")
        for name, help_text in SLASH_COMMANDS.items():
            table.add_row(name, help_text)
        renderer.console.print(table)
    elif command == "/clear":
        renderer.console.clear()
    elif command == "/exit":
        return False
    elif command == "/reset":
        agent.reset()
        renderer.print_warning("Conversation reset.")
    elif command == "/tools":
        for tool in registry.all():
            renderer.console.print(f"[cyan]{escape(tool.name)}[/cyan] - {escape(tool.description)}",
                                   highlight=False)
    elif command == "/permissions":
        if not store.records:
            renderer.print_info("No permissions granted yet.")
        for record in store.records:
            renderer.console.print(
                f"[cyan]{escape(record.tool)}[/cyan] {record.type.value} "
                f"[dim]{escape(record.scope or 'global')} · {record.timestamp:%Y-%m-%d %H:%M}[/dim]",
                highlight=False,
            )
    else:
        renderer.print_error(f"Unknown command: {command}. Type /help for available commands.")
    return True


@click.command()
@click.option("--config", "config_path", type=click.Path(dir_okay=False, path_type=Path),
              default=None, help="Path to config.yaml (default: ~/.forq/config.yaml)")
@click.option("--model", default=None, help="Override LLM model (e.g., gpt-4o-mini)")
@click.option("--api-base", default=None, help="Override the model API base URL")
@click.option("--cwd", type=click.Path(exists=True, file_okay=False, path_type=Path),
              default=None, help="Working directory for tools (default: current directory)")
def main(config_path: Optional[Path], model: Optional[str], api_base: Optional[str],
         cwd: Optional[Path]) -> None:
    """AI agent for your terminal, with permission-gated tools."""
    try:
        config = apply_cli_overrides(load_config(config_path), model=model, api_base=api_base)
    except ConfigError as e:
        click.echo(str(e), err=True)
        sys.exit(1)

    setup_logging(config)
    renderer = Renderer()
    renderer.render_banner(__version__)

    workdir = (cwd or Path(os.getcwd())).resolve()
    audit = AuditLog(config.audit_log_file)
    try:
        store = PermissionStore(config.permissions_file).load()
    except FatalError as e:
        click.echo(str(e), err=True)
        sys.exit(1)

    gate = PermissionGate(
        store,
        audit=audit,
        prompt=renderer.ask_permission,
        unknown_tool_permission=config.unknown_tool_permission,
    )
    registry = build_registry(audit, extra=config.extra_tools)
    shell = ShellSession(
        workdir,
        shell_path=config.shell_path,
        deny_patterns=config.deny_patterns,
        default_timeout=config.shell_timeout_sec,
        audit=audit,
    )
    interrupts = InterruptHandler()
    pipeline = ToolPipeline(registry, gate, audit=audit, shell=shell, cwd=workdir)
    interrupts.add_callback(pipeline.cancel)
    agent = Agent(
        LLMClient(config),
        pipeline,
        registry,
        renderer=renderer,
        max_iterations=config.max_iterations,
        is_interrupted=interrupts.is_interrupted,
    )

    renderer.print_info(f"Model: {config.model}")
    renderer.print_info(f"Loaded tools: {', '.join(registry.names())}")
    renderer.print_info("Type /help for available commands.")

    config.history_file.parent.mkdir(parents=True, exist_ok=True)
    session = PromptSession(
        history=FileHistory(str(config.history_file)),
        completer=WordCompleter(list(SLASH_COMMANDS), sentence=True),
    )

    try:
        while True:
            try:
                text = session.prompt(USER_PROMPT)
            except KeyboardInterrupt:
                renderer.print_info("Use Ctrl+D or type /exit to quit.")
                continue
            except EOFError:
                break

            text = text.strip()
            if not text:
                continue

            outcome = handle_slash_command(text, agent, registry, store, renderer)
            if outcome is False:
                break
            if outcome is True:
                continue

            try:
                with interrupts:
                    agent.run(text)
                if interrupts.is_interrupted():
                    renderer.print_warning("Interrupted.")
            except KeyboardInterrupt:
                renderer.print_warning("Interrupted.")
            except ConnectionError as e:
                renderer.print_error(str(e))
    except FatalError as e:
        logging.getLogger(__name__).critical("Fatal error: %s", e)
        renderer.print_error(f"Fatal: {e}")
        sys.exit(1)
    finally:
        agent.close()
        pipeline.close()
        renderer.print_warning("Goodbye!")
