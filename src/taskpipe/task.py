"""Task: one managed child process with stream wiring and lifecycle control.

This module handles:
    - Executable resolution against the task's effective PATH
    - Spawning with argv/env/cwd and stdin/stdout/stderr wired to streams
    - Synchronous and asynchronous runs, with a watcher thread per process
    - Suspend/resume/interrupt/terminate through POSIX signals

Two tasks form a pipeline when one PipeStream is the producer's stdout and
the consumer's stdin. Construct both tasks before running either.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import threading
from pathlib import Path
from typing import Callable, Iterable, Mapping

from .config import get_config
from .exceptions import ExecutableNotFound, SpawnFailure, TaskStateError
from .lifecycle import ExitStatus, TaskLifecycle, TaskState
from .resolver import find_executable
from .streams import InheritStream, StreamRole, TaskStream

logger = logging.getLogger(__name__)

TerminationCallback = Callable[[ExitStatus], None]


def _platform_signal(name: str) -> int | None:
    """Return the signal number for *name*, or None if the platform lacks it."""
    sig = getattr(signal, name, None)
    return int(sig) if sig is not None else None


# None where the platform has no such signal
_PAUSE_SIGNAL = _platform_signal("SIGSTOP")
_CONTINUE_SIGNAL = _platform_signal("SIGCONT")
_INTERRUPT_SIGNAL = _platform_signal("SIGINT")
_TERMINATE_SIGNAL = _platform_signal("SIGTERM")


class Task:
    """A child process together with its stream wiring.

    Args:
        executable: Bare name (looked up on PATH) or path to the program.
        args: Arguments passed after the executable.
        stdin: Stream feeding the process (default: inherit).
        stdout: Stream receiving standard output (default: inherit).
        stderr: Stream receiving standard error (default: inherit).
        cwd: Working directory (default: the current one).
        env: Variables layered over the inherited environment.
        on_termination: Called once with the ExitStatus after exit.

    Raises:
        StreamRoleError: If a stream cannot serve the role it is given.
    """

    def __init__(
        self,
        executable: str,
        args: Iterable[str] = (),
        *,
        stdin: TaskStream | None = None,
        stdout: TaskStream | None = None,
        stderr: TaskStream | None = None,
        cwd: str | Path | None = None,
        env: Mapping[str, str] | None = None,
        on_termination: TerminationCallback | None = None,
    ) -> None:
        self.executable = executable
        self.args: list[str] = [str(a) for a in args]
        self.cwd = Path(cwd) if cwd is not None else None
        self.env: dict[str, str] = dict(env or {})
        self.on_termination = on_termination

        self.stdin = stdin if stdin is not None else InheritStream()
        self.stdout = stdout if stdout is not None else InheritStream()
        self.stderr = stderr if stderr is not None else InheritStream()
        self.stdin.attach(StreamRole.INPUT)
        self.stdout.attach(StreamRole.OUTPUT)
        self.stderr.attach(StreamRole.OUTPUT)

        self._lifecycle = TaskLifecycle(executable)
        self._lock = threading.RLock()
        self._launched = False
        self._process: subprocess.Popen | None = None
        self._exit_status: ExitStatus | None = None
        self._exited = threading.Event()
        self._watcher: threading.Thread | None = None

    @classmethod
    def bash(cls, script: str, **kwargs) -> Task:
        """Build a task running a one-line *script* through the configured shell."""
        return cls(get_config().shell, ["-c", script], **kwargs)

    # ── Introspection ─────────────────────────────────────────────

    @property
    def state(self) -> TaskState:
        return self._lifecycle.current

    @property
    def is_running(self) -> bool:
        """True once spawned and until the exit has been observed."""
        return self._lifecycle.is_live

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    @property
    def exit_status(self) -> ExitStatus | None:
        return self._exit_status

    @property
    def argv(self) -> list[str]:
        return [self.executable, *self.args]

    def environment(self) -> dict[str, str]:
        """Return the full environment the process is started with."""
        merged = dict(os.environ)
        merged.update(self.env)
        return merged

    # ── Running ───────────────────────────────────────────────────

    def run_sync(self) -> int:
        """Spawn the process and block until it exits.

        Returns:
            The exit code, or the signal number if it was killed by a signal.

        Raises:
            ExecutableNotFound: If the executable cannot be resolved.
            SpawnFailure: If the OS refuses to create the process.
            StreamRoleError: If a stream end handed to the child is already
                closed, e.g. a PipeStream reused after an earlier run.
            TaskStateError: If the task was already run.
        """
        self._launch()
        return self.finish()

    def run_async(self) -> None:
        """Spawn the process and return immediately.

        The caller must eventually call :meth:`finish` to reap it.
        """
        self._launch()

    def finish(self) -> int:
        """Block until the process exits and return its status code.

        Repeated calls return the recorded status without waiting again.

        Raises:
            TaskStateError: If the task was never started or its spawn failed.
        """
        with self._lock:
            started = self._process is not None
        if not started:
            raise TaskStateError(f"Task {self.executable} was never started")
        self._exited.wait()
        assert self._exit_status is not None
        return self._exit_status.code

    # ── Signal control ────────────────────────────────────────────

    def suspend(self) -> bool:
        """Pause the process. False if it is not running or the OS refuses."""
        return self._control(_PAUSE_SIGNAL, "pause", (TaskState.RUNNING,))

    def resume(self) -> bool:
        """Continue a suspended process. False if it is not suspended."""
        return self._control(_CONTINUE_SIGNAL, "proceed", (TaskState.SUSPENDED,))

    def interrupt(self) -> bool:
        """Send an interrupt without waiting for the process to exit."""
        return self._control(_INTERRUPT_SIGNAL, None, (TaskState.RUNNING, TaskState.SUSPENDED))

    def terminate(self) -> bool:
        """Ask the process to terminate without waiting for it to exit."""
        return self._control(_TERMINATE_SIGNAL, None, (TaskState.RUNNING, TaskState.SUSPENDED))

    # ── Internal ──────────────────────────────────────────────────

    def _control(self, sig: int | None, trigger: str | None, allowed: tuple[TaskState, ...]) -> bool:
        with self._lock:
            if self._lifecycle.current not in allowed or self._process is None:
                return False
            if sig is None:
                logger.debug("%s: signal not supported on this platform", self.executable)
                return False
            if self._process.returncode is not None:
                return False
            try:
                self._process.send_signal(sig)
            except OSError as e:
                logger.warning("Failed to signal %s (pid %s): %s", self.executable, self._process.pid, e)
                return False
            logger.debug("Sent %s to %s (pid %s)", signal.Signals(sig).name, self.executable, self._process.pid)
            if trigger is not None:
                return self._lifecycle.try_trigger(trigger)
            if self._lifecycle.current is TaskState.SUSPENDED and _CONTINUE_SIGNAL is not None:
                # A stopped process only acts on the pending signal once continued.
                try:
                    self._process.send_signal(_CONTINUE_SIGNAL)
                except OSError as e:
                    logger.debug("Could not continue %s after signalling: %s", self.executable, e)
                    return True
                self._lifecycle.try_trigger("proceed")
            return True

    def _launch(self) -> None:
        with self._lock:
            if self._launched:
                raise TaskStateError(f"Task {self.executable} has already been run")
            self._launched = True

        env = self.environment()
        try:
            path = find_executable(self.executable, env.get("PATH", os.defpath))
            if path is None:
                raise ExecutableNotFound(self.executable)
            process = self._spawn(path, env)
        except BaseException:
            self._release_streams()
            raise

        with self._lock:
            self._process = process
            self._lifecycle.spawn()
        self._release_streams()

        self._watcher = threading.Thread(
            target=self._watch,
            name=f"taskpipe-watch-{process.pid}",
            daemon=True,
        )
        self._watcher.start()

    def _spawn(self, path: str, env: dict[str, str]) -> subprocess.Popen:
        try:
            process = subprocess.Popen(
                [path, *self.args],
                stdin=self.stdin.child_handle(StreamRole.INPUT),
                stdout=self.stdout.child_handle(StreamRole.OUTPUT),
                stderr=self.stderr.child_handle(StreamRole.OUTPUT),
                cwd=self.cwd,
                env=env,
                close_fds=True,
            )
        except OSError as e:
            raise SpawnFailure(self.executable, e.strerror or str(e)) from e
        logger.debug("Spawned %s (pid %s) args=%s", path, process.pid, self.args)
        return process

    def _release_streams(self) -> None:
        self.stdin.release(StreamRole.INPUT)
        self.stdout.release(StreamRole.OUTPUT)
        self.stderr.release(StreamRole.OUTPUT)

    def _watch(self) -> None:
        assert self._process is not None
        returncode = self._process.wait()
        status = ExitStatus.from_returncode(returncode)
        with self._lock:
            self._exit_status = status
            self._lifecycle.reap()
        self._exited.set()
        logger.debug("%s (pid %s) exited with %s", self.executable, self._process.pid, status.describe())
        if self.on_termination is not None:
            self.on_termination(status)

    def __repr__(self) -> str:
        return f"Task({self.executable!r}, args={self.args!r}, state={self.state.value!r})"


__all__ = ["Task", "TerminationCallback"]
