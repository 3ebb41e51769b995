"""One-call runners built on :class:`taskpipe.task.Task`.

- ``run`` / ``run_bash``: run with inherited streams, raise on failure
- ``capture`` / ``capture_bash``: collect stdout and stderr, raise on failure
- ``exec_replace``: replace the current process with another program
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, NoReturn

from .exceptions import CaptureError, ExecutableNotFound, RunError, SpawnFailure
from .resolver import find_executable
from .streams import PipeStream
from .task import Task

logger = logging.getLogger(__name__)


def _strip_trailing_newline(text: str) -> str:
    """Drop exactly one trailing newline, like shell command substitution."""
    if text.endswith("\r\n"):
        return text[:-2]
    if text.endswith("\n"):
        return text[:-1]
    return text


@dataclass(frozen=True)
class CaptureResult:
    """Output collected from a finished task."""

    raw_stdout: bytes
    raw_stderr: bytes
    encoding: str = "utf-8"

    @property
    def stdout(self) -> str:
        return _strip_trailing_newline(self.raw_stdout.decode(self.encoding, errors="replace"))

    @property
    def stderr(self) -> str:
        return _strip_trailing_newline(self.raw_stderr.decode(self.encoding, errors="replace"))


def run(
    executable: str,
    *args: str,
    cwd: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> None:
    """Run a program to completion with inherited stdin/stdout/stderr.

    Raises:
        ExecutableNotFound: If the executable cannot be resolved.
        SpawnFailure: If the process cannot be created.
        RunError: If the process exits unsuccessfully.
    """
    _run_task(Task(executable, args, cwd=cwd, env=env))


def run_bash(script: str, *, cwd: str | Path | None = None, env: Mapping[str, str] | None = None) -> None:
    """Run a one-line shell script; see :func:`run`."""
    _run_task(Task.bash(script, cwd=cwd, env=env))


def capture(
    executable: str,
    *args: str,
    cwd: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> CaptureResult:
    """Run a program and return what it wrote to stdout and stderr.

    Raises:
        ExecutableNotFound: If the executable cannot be resolved.
        SpawnFailure: If the process cannot be created.
        CaptureError: If the process exits unsuccessfully; the partial
            output is available as ``error.captured``.
    """
    stdout, stderr = PipeStream(), PipeStream()
    task = Task(executable, args, stdout=stdout, stderr=stderr, cwd=cwd, env=env)
    return _capture_task(task, stdout, stderr)


def capture_bash(
    script: str,
    *,
    cwd: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> CaptureResult:
    """Run a one-line shell script and capture its output; see :func:`capture`."""
    stdout, stderr = PipeStream(), PipeStream()
    task = Task.bash(script, stdout=stdout, stderr=stderr, cwd=cwd, env=env)
    return _capture_task(task, stdout, stderr)


def exec_replace(executable: str, *args: str, env: Mapping[str, str] | None = None) -> NoReturn:
    """Replace the current process image with *executable*.

    Never returns on success.

    Raises:
        ExecutableNotFound: If the executable cannot be resolved.
        SpawnFailure: If the OS refuses the exec.
    """
    merged = dict(os.environ)
    merged.update(env or {})
    path = find_executable(executable, merged.get("PATH", os.defpath))
    if path is None:
        raise ExecutableNotFound(executable)
    logger.debug("Replacing process with %s %s", path, list(args))
    try:
        os.execve(path, [executable, *args], merged)
    except OSError as e:
        raise SpawnFailure(executable, e.strerror or str(e)) from e


def _run_task(task: Task) -> None:
    task.run_sync()
    status = task.exit_status
    assert status is not None
    if not status.success:
        raise RunError(status)


def _capture_task(task: Task, stdout: PipeStream, stderr: PipeStream) -> CaptureResult:
    task.run_sync()
    result = CaptureResult(
        raw_stdout=stdout.read_all_bytes(),
        raw_stderr=stderr.read_all_bytes(),
        encoding=stdout.encoding,
    )
    status = task.exit_status
    assert status is not None
    if not status.success:
        raise CaptureError(status, result)
    return result


__all__ = [
    "CaptureResult",
    "capture",
    "capture_bash",
    "exec_replace",
    "run",
    "run_bash",
]
