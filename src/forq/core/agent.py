"""Agent - conversation loop feeding tool results back to the model."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Callable, Optional

from forq.core.pipeline import ToolPipeline
from forq.core.protocol import extract_tool_calls
from forq.core.tool_result import ToolResult
from forq.tools.registry import ToolRegistry

_log = logging.getLogger(__name__)

BASE_SYSTEM_PROMPT = (
    "You are forq, an AI assistant working in the user's terminal. "
    "You can inspect and change files and run shell commands through tools. "
    "Every tool call may require the user's permission."
)

TOOL_SYNTAX = (
    'To use a tool, respond with the syntax: <tool:toolName>{"param1": "value1"}</tool>\n'
    "You may issue several tool calls in one reply; they run in order. "
    "Tool results are sent back to you in the next message."
)


def build_system_prompt(registry: ToolRegistry, base: str = BASE_SYSTEM_PROMPT) -> str:
    return (
        f"{base}\n\nYou have access to the following tools:\n"
        f"{registry.describe()}\n\n{TOOL_SYNTAX}"
    )


def format_observation(results: list[ToolResult]) -> str:
    lines = ["Tool results:"]
    lines.extend(r.to_observation() for r in results)
    return "\n".join(lines)


class Agent:
    """Runs query -> extract -> execute rounds until the model stops calling tools."""

    def __init__(
        self,
        llm_client,
        pipeline: ToolPipeline,
        registry: ToolRegistry,
        renderer=None,
        max_iterations: int = 20,
        is_interrupted: Optional[Callable[[], bool]] = None,
    ) -> None:
        self.llm_client = llm_client
        self.pipeline = pipeline
        self.registry = registry
        self.renderer = renderer
        self.max_iterations = max_iterations
        self._is_interrupted = is_interrupted or (lambda: False)
        self.messages: list[dict] = [
            {"role": "system", "content": build_system_prompt(registry)}
        ]
        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="forq-llm")

    def reset(self) -> None:
        """Drop the conversation, keeping only the system prompt."""
        del self.messages[1:]

    def close(self) -> None:
        # An abandoned query may still be running; don't wait for it.
        self._executor.shutdown(wait=False)

    def _query(self) -> Optional[str]:
        """Ask the model in a worker thread. Returns None if interrupted while waiting."""
        future = self._executor.submit(self.llm_client.complete, list(self.messages))
        while True:
            try:
                return future.result(timeout=0.1)
            except FutureTimeout:
                if self._is_interrupted():
                    future.cancel()
                    _log.info("Abandoned in-flight model query")
                    return None

    def run(self, user_input: str) -> str:
        """Handle one user turn. Returns the final assistant text."""
        self.messages.append({"role": "user", "content": user_input})

        for _ in range(self.max_iterations):
            if self._is_interrupted():
                self.messages.append({"role": "assistant", "content": "[Interrupted by user]"})
                return ""

            reply = self._query()
            if reply is None:
                self.messages.append({"role": "assistant", "content": "[Interrupted by user]"})
                return ""
            self.messages.append({"role": "assistant", "content": reply})
            if self.renderer:
                self.renderer.render_assistant(reply)

            calls = extract_tool_calls(reply, audit=self.pipeline.audit)
            if not calls:
                return reply

            results = []
            for call in calls:
                if self._is_interrupted():
                    break
                if self.renderer:
                    self.renderer.render_tool_call(call)
                result = self.pipeline.execute(call)
                if self.renderer:
                    self.renderer.render_tool_result(result)
                results.append(result)

            self.messages.append({"role": "user", "content": format_observation(results)})
            if len(results) < len(calls):
                _log.info("Interrupted after %d of %d tool calls", len(results), len(calls))
                return ""

        _log.warning("Stopped after %d iterations without a final answer", self.max_iterations)
        if self.renderer:
            self.renderer.print_warning(
                f"Stopped: agent exceeded {self.max_iterations} iterations without finishing."
            )
        return ""
