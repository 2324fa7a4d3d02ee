"""Error taxonomy shared by the codec, pipeline, and shell session."""

NOT_FOUND = "NOT_FOUND"
PERMISSION_DENIED = "PERMISSION_DENIED"
VALIDATION_ERROR = "VALIDATION_ERROR"
EXECUTION_ERROR = "EXECUTION_ERROR"
TIMEOUT = "TIMEOUT"
CANCELLED = "CANCELLED"


class ForqError(Exception):
    """Base class for errors that become a failed ToolResult."""

    error_code = EXECUTION_ERROR


class ToolValidationError(ForqError):
    """Raised when a tool call carries parameters the tool cannot accept."""

    error_code = VALIDATION_ERROR


class ToolExecutionError(ForqError):
    """Raised by tool bodies for expected, user-facing failures."""


class CommandDeniedError(ForqError):
    """Raised when a shell command matches the destructive-command deny-list."""

    error_code = PERMISSION_DENIED

    def __init__(self, command: str, pattern: str) -> None:
        super().__init__(f"Command rejected by deny-list pattern {pattern!r}: {command}")
        self.command = command
        self.pattern = pattern


class CommandTimeoutError(ForqError):
    """Raised when the completion sentinel is not observed in time."""

    error_code = TIMEOUT

    def __init__(self, command: str, timeout: float, partial_output: str = "") -> None:
        super().__init__(f"Command timed out after {timeout:g} seconds: {command}")
        self.command = command
        self.timeout = timeout
        self.partial_output = partial_output


class CommandCancelledError(ForqError):
    """Raised when a shell wait is abandoned by a user interrupt."""

    error_code = CANCELLED


class ShellSpawnError(ForqError):
    """Raised when the backing shell process could not be started."""


class FatalError(Exception):
    """Conditions that end the agent session instead of becoming results."""


class PermissionStoreError(FatalError):
    """Raised when the permission store file is unreadable or corrupt."""


class ShellUnavailableError(FatalError):
    """Raised after repeated failures to spawn any shell process."""
