"""One long-lived shell process per agent session.

Directory changes and exported variables persist between calls because every
command is evaluated by the same shell. The command text is handed to
``eval`` as one quoted word, so a syntax error fails that call only. The end
of each command's output is detected with a per-call sentinel echoed on both
stdout and stderr; the stdout sentinel also carries the exit status and the
shell's ``$PWD``.
"""

from __future__ import annotations

import logging
import os
import queue
import re
import shlex
import signal
import subprocess
import threading
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from forq.core.audit import AuditEvent, AuditLog
from forq.core.errors import (
    CommandCancelledError,
    CommandDeniedError,
    CommandTimeoutError,
    ShellSpawnError,
    ShellUnavailableError,
)
from forq.utils import truncate_output

_log = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SEC = 120.0
MAX_SPAWN_FAILURES = 3
_POLL_INTERVAL = 0.1

DESTRUCTIVE_PATTERNS = [
    r"\brm\s+-[a-z]*r[a-z]*f",
    r"\brm\s+-[a-z]*f[a-z]*r",
    r"\brm\s+-r\s+",
    r"\brm\s+--no-preserve-root",
    r"\bmkfs",
    r"\bshred\b",
    r"\bdd\s+if=",
    r">\s*/dev/(sd|hd|nvme|disk)",
    r"\bshutdown\b",
    r"\breboot\b",
    r"curl\s+.*\|\s*(bash|sh|zsh)\b",
    r"wget\s+.*\|\s*(bash|sh|zsh)\b",
    r":\(\)\s*\{\s*:\s*\|\s*:\s*&\s*\}\s*;\s*:",
    r"\bchmod\s+-R\s+777\s+/(\s|$)",
    r">\s*/etc/",
]


@dataclass
class CommandOutput:
    command: str
    exit_code: int
    stdout: str
    stderr: str
    cwd: str

    def to_dict(self) -> dict:
        return {
            "command": self.command,
            "exitCode": self.exit_code,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "cwd": self.cwd,
        }


class ShellSession:
    """Persistent shell backing the ``bash`` tool.

    The process is spawned lazily on the first :meth:`execute`. Callers must
    not run commands concurrently; the pipeline guarantees this.
    """

    def __init__(
        self,
        cwd: Path | str,
        shell_path: str = "/bin/bash",
        env: Optional[dict[str, str]] = None,
        deny_patterns: Iterable[str] = (),
        default_timeout: float = DEFAULT_TIMEOUT_SEC,
        max_output_chars: int = 30000,
        audit: Optional[AuditLog] = None,
    ) -> None:
        self.cwd = str(cwd)
        self.shell_path = shell_path
        self.env: dict[str, str] = dict(env) if env is not None else {}
        self._base_env = env
        self.default_timeout = default_timeout
        self.max_output_chars = max_output_chars
        self._audit = audit
        self._patterns = [
            re.compile(p, re.IGNORECASE) for p in [*DESTRUCTIVE_PATTERNS, *deny_patterns]
        ]
        self._proc: Optional[subprocess.Popen] = None
        self._queue: "queue.Queue[tuple[str, Optional[str]]]" = queue.Queue()
        self._cancel = threading.Event()
        self._spawn_failures = 0
        self.spawn_count = 0

    # ── lifecycle ──────────────────────────────────────────────────────────

    @property
    def alive(self) -> bool:
        return self._proc is not None and self._proc.poll() is None

    @property
    def pid(self) -> Optional[int]:
        return self._proc.pid if self._proc is not None else None

    def _spawn(self) -> None:
        env = dict(self._base_env) if self._base_env is not None else dict(os.environ)
        cwd = self.cwd if os.path.isdir(self.cwd) else os.getcwd()
        try:
            proc = subprocess.Popen(
                [self.shell_path],
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=cwd,
                env=env,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
                start_new_session=True,
            )
        except OSError as e:
            self._spawn_failures += 1
            _log.error("Failed to spawn shell %s (%d/%d): %s",
                       self.shell_path, self._spawn_failures, MAX_SPAWN_FAILURES, e)
            if self._spawn_failures >= MAX_SPAWN_FAILURES:
                raise ShellUnavailableError(
                    f"Could not start {self.shell_path} after {self._spawn_failures} attempts: {e}"
                ) from e
            raise ShellSpawnError(f"Could not start shell {self.shell_path}: {e}") from e

        self._spawn_failures = 0
        self.spawn_count += 1
        self._proc = proc
        self.cwd = cwd
        self.env = env
        # Fresh queue per process so a killed shell's readers cannot leak lines.
        self._queue = queue.Queue()
        for name, stream in (("stdout", proc.stdout), ("stderr", proc.stderr)):
            threading.Thread(
                target=_pump, args=(stream, name, self._queue), daemon=True
            ).start()

        _log.info("Spawned shell %s (pid %d) in %s", self.shell_path, proc.pid, cwd)
        if self._audit:
            self._audit.record(AuditEvent.SHELL_SPAWNED, pid=proc.pid, cwd=cwd,
                               respawn=self.spawn_count > 1)

    def _ensure_process(self) -> subprocess.Popen:
        if not self.alive:
            if self._proc is not None:
                _log.warning("Shell (pid %d) is no longer running; respawning", self._proc.pid)
                self._reap()
            self._spawn()
        assert self._proc is not None
        return self._proc

    def _kill(self) -> None:
        proc = self._proc
        if proc is None:
            return
        if proc.poll() is None:
            try:
                os.killpg(os.getpgid(proc.pid), signal.SIGKILL)
            except (OSError, ProcessLookupError):
                proc.kill()
        self._reap()

    def _reap(self) -> None:
        proc, self._proc = self._proc, None
        if proc is None:
            return
        for stream in (proc.stdin, proc.stdout, proc.stderr):
            try:
                if stream is not None:
                    stream.close()
            except OSError:
                pass
        try:
            proc.wait(timeout=5)
        except subprocess.TimeoutExpired:
            _log.warning("Shell (pid %d) did not exit after kill", proc.pid)

    def close(self) -> None:
        """Terminate the shell. A later execute() starts a new one."""
        if self._proc is None:
            return
        proc = self._proc
        if proc.poll() is None:
            try:
                proc.stdin.write("exit\n")
                proc.stdin.flush()
                proc.wait(timeout=2)
            except (OSError, ValueError, subprocess.TimeoutExpired):
                pass
        self._kill()

    def __enter__(self) -> "ShellSession":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ── commands ───────────────────────────────────────────────────────────

    def check_command(self, command: str) -> Optional[str]:
        """Return the deny-list pattern ``command`` matches, if any."""
        for pattern in self._patterns:
            if pattern.search(command):
                return pattern.pattern
        return None

    def cancel(self) -> None:
        """Abandon the in-flight wait, if any. Safe to call from another thread."""
        self._cancel.set()

    def execute(self, command: str, timeout: Optional[float] = None) -> CommandOutput:
        """Run ``command`` in the persistent shell and collect its output.

        A non-zero exit status is returned in the result, not raised.

        Raises:
            CommandDeniedError: command matched the deny-list; nothing ran.
            CommandTimeoutError: no sentinel within ``timeout``; shell killed.
            CommandCancelledError: cancel() was called; shell killed.
            ShellSpawnError / ShellUnavailableError: the shell could not start.
        """
        pattern = self.check_command(command)
        if pattern is not None:
            _log.warning("Rejected shell command %r (pattern %r)", command, pattern)
            if self._audit:
                self._audit.record(AuditEvent.SHELL_COMMAND_REJECTED, command=command,
                                   pattern=pattern)
            raise CommandDeniedError(command, pattern)

        timeout = self.default_timeout if timeout is None else timeout
        self._cancel.clear()
        marker = f"__FORQ_DONE_{uuid.uuid4().hex}__"
        script = (
            f"eval {shlex.quote(command)} < /dev/null\n"
            f"__forq_rc=$?\n"
            f"printf '%s %d %s\\n' '{marker}' \"$__forq_rc\" \"$PWD\"\n"
            f"printf '%s\\n' '{marker}' >&2\n"
        )

        proc = self._ensure_process()
        try:
            proc.stdin.write(script)
            proc.stdin.flush()
        except (BrokenPipeError, OSError, ValueError):
            _log.warning("Shell stdin closed; respawning and retrying once")
            self._kill()
            proc = self._ensure_process()
            proc.stdin.write(script)
            proc.stdin.flush()

        try:
            return self._collect(command, marker, timeout)
        except BaseException:
            # The command may still be running; its output must not reach the next call.
            self._kill()
            raise

    def _collect(self, command: str, marker: str, timeout: float) -> CommandOutput:
        stdout: list[str] = []
        stderr: list[str] = []
        exit_code: Optional[int] = None
        stdout_done = stderr_done = False
        deadline = time.monotonic() + timeout

        while not (stdout_done and stderr_done):
            if self._cancel.is_set():
                self._kill()
                raise CommandCancelledError(f"Command cancelled: {command}")
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                self._kill()
                if self._audit:
                    self._audit.record(AuditEvent.SHELL_TIMEOUT, command=command, timeout=timeout)
                raise CommandTimeoutError(command, timeout, "".join(stdout))
            try:
                stream, line = self._queue.get(timeout=min(_POLL_INTERVAL, remaining))
            except queue.Empty:
                continue

            if line is None:
                # EOF: the shell itself exited (e.g. `exit 3`).
                if stream == "stdout":
                    stdout_done = True
                else:
                    stderr_done = True
                continue

            if stream == "stdout":
                idx = line.find(marker)
                if idx == -1:
                    stdout.append(line)
                    continue
                stdout.append(line[:idx])
                status, _, cwd = line[idx + len(marker):].strip().partition(" ")
                exit_code = int(status)
                if cwd:
                    self.cwd = cwd
                stdout_done = True
            else:
                idx = line.find(marker)
                if idx == -1:
                    stderr.append(line)
                    continue
                stderr.append(line[:idx])
                stderr_done = True

        if exit_code is None:
            exit_code = self._proc.wait(timeout=5) if self._proc is not None else -1
            _log.info("Shell exited with status %d during %r", exit_code, command)
            if self._audit:
                self._audit.record(AuditEvent.SHELL_EXITED, command=command, exit_code=exit_code)
            self._reap()

        return CommandOutput(
            command=command,
            exit_code=exit_code,
            stdout=truncate_output("".join(stdout), self.max_output_chars),
            stderr=truncate_output("".join(stderr), self.max_output_chars),
            cwd=self.cwd,
        )


def _pump(stream, name: str, sink: "queue.Queue[tuple[str, Optional[str]]]") -> None:
    try:
        for line in iter(stream.readline, ""):
            sink.put((name, line))
    except (OSError, ValueError):
        pass
    finally:
        sink.put((name, None))
