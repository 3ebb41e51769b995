"""Exception hierarchy for task execution."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .lifecycle import ExitStatus


class TaskError(Exception):
    """Base exception for task errors."""
    pass


class ExecutableNotFound(TaskError):
    """The executable could not be located on disk or on PATH."""

    def __init__(self, executable: str):
        self.executable = executable
        super().__init__(f"Executable not found: {executable}")


class SpawnFailure(TaskError):
    """The operating system refused to create the process.

    Raised for permission errors, a missing working directory, resource
    exhaustion, or an executable that disappeared between resolution and
    spawn. The underlying ``OSError`` is chained as ``__cause__``.
    """

    def __init__(self, executable: str, reason: str):
        self.executable = executable
        self.reason = reason
        super().__init__(f"Failed to spawn {executable}: {reason}")


class TaskStateError(TaskError):
    """A task was asked to do something its lifecycle does not allow."""


class StreamRoleError(TaskError, ValueError):
    """A stream was assigned to a role it cannot serve."""


class TaskConfigError(TaskError, RuntimeError):
    """Raised when the taskpipe config file cannot be parsed."""


class RunError(TaskError):
    """A task run through :func:`taskpipe.shell.run` exited unsuccessfully."""

    def __init__(self, status: "ExitStatus", message: str | None = None):
        self.status = status
        if message is None:
            message = f"Task exited with {status.describe()}"
        self.message = message
        super().__init__(message)

    @property
    def exit_status(self) -> int:
        return self.status.code


class CaptureError(RunError):
    """A captured task exited unsuccessfully.

    The output collected before the failure is kept on ``captured`` so
    callers can still report what the program printed.
    """

    def __init__(self, status: "ExitStatus", captured):
        self.captured = captured
        detail = captured.stderr or captured.stdout
        message = f"Task exited with {status.describe()}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(status, message)
