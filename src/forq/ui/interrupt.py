"""Ctrl+C handling while the agent is working.

The first SIGINT during a turn sets a flag and fires callbacks (the pipeline
uses one to abandon a running shell command). A second SIGINT in the same
turn raises KeyboardInterrupt so a stuck tool body can still be escaped.
"""

import logging
import signal
from typing import Callable

_log = logging.getLogger(__name__)


class InterruptHandler:
    """Turns SIGINT into a flag plus callbacks instead of KeyboardInterrupt."""

    def __init__(self):
        self._interrupted = False
        self._callbacks: list[Callable[[], None]] = []
        self._previous_handler = None

    def is_interrupted(self) -> bool:
        return self._interrupted

    def clear(self) -> None:
        self._interrupted = False

    def interrupt(self) -> None:
        """Mark the current turn interrupted and notify callbacks."""
        self._interrupted = True
        for callback in self._callbacks:
            try:
                callback()
            except Exception:
                _log.exception("Interrupt callback %r failed", callback)

    def add_callback(self, callback: Callable[[], None]) -> None:
        self._callbacks.append(callback)

    def _on_sigint(self, signum, frame) -> None:
        if self._interrupted:
            _log.warning("Second interrupt; raising KeyboardInterrupt")
            raise KeyboardInterrupt
        _log.info("Interrupt requested")
        self.interrupt()

    def install(self) -> None:
        """Route SIGINT to this handler until uninstall()."""
        self._previous_handler = signal.signal(signal.SIGINT, self._on_sigint)

    def uninstall(self) -> None:
        if self._previous_handler is not None:
            signal.signal(signal.SIGINT, self._previous_handler)
            self._previous_handler = None

    def __enter__(self) -> "InterruptHandler":
        self.clear()
        self.install()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.uninstall()
