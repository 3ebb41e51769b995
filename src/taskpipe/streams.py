"""Stream endpoints that a task's stdin, stdout and stderr can be wired to.

Variants:
    - PipeStream: OS pipe with independently closable ends; drained into
      memory when it receives a task's output
    - LineStream: delivers each complete output line to a LineConsumer
    - FileStream: a file opened for reading or writing
    - NullStream: discards output / supplies empty input
    - InheritStream: the parent's own descriptor (the default)

A task calls ``attach`` when it is constructed, ``child_handle`` to get the
value handed to ``subprocess.Popen``, and ``release`` right after the spawn
to close the parent's copy of that end.
"""

from __future__ import annotations

import logging
import os
import subprocess
import threading
from abc import ABC, abstractmethod
from enum import StrEnum
from pathlib import Path
from typing import Callable, Protocol, runtime_checkable

from .config import get_config
from .exceptions import StreamRoleError

logger = logging.getLogger(__name__)


class StreamRole(StrEnum):
    """Which side of a process a stream is wired to."""

    INPUT = "input"  # feeds the process's stdin
    OUTPUT = "output"  # receives the process's stdout or stderr


class TaskStream(ABC):
    """Base class for every stream a task can be wired to."""

    #: Can feed a process's stdin.
    readable: bool = False
    #: Can receive a process's stdout/stderr.
    writable: bool = False

    def supports(self, role: StreamRole) -> bool:
        return self.readable if role is StreamRole.INPUT else self.writable

    def attach(self, role: StreamRole) -> None:
        """Register this stream with a task for *role*.

        Raises:
            StreamRoleError: If the stream cannot serve *role*.
        """
        if not self.supports(role):
            raise StreamRoleError(f"{type(self).__name__} cannot be used as task {role.value}")

    @abstractmethod
    def child_handle(self, role: StreamRole) -> int | None:
        """Return the ``Popen`` argument for *role* (fd, DEVNULL, or None)."""

    def release(self, role: StreamRole) -> None:
        """Close the parent's copy of the end handed to the child."""


class InheritStream(TaskStream):
    """Share the parent's own stdin/stdout/stderr with the child."""

    readable = True
    writable = True

    def child_handle(self, role: StreamRole) -> int | None:
        return None

    def __repr__(self) -> str:
        return "InheritStream()"


class NullStream(TaskStream):
    """Discard output, or supply immediate end-of-input."""

    readable = True
    writable = True

    def child_handle(self, role: StreamRole) -> int | None:
        return subprocess.DEVNULL

    def __repr__(self) -> str:
        return "NullStream()"


class FileStream(TaskStream):
    """A file on disk, opened when the task spawns.

    Use :meth:`for_reading` for stdin and :meth:`for_writing` for output.
    The same instance may serve both stdout and stderr of one task; the file
    is opened once.
    """

    def __init__(self, path: str | Path, *, mode: str = "w"):
        if mode not in ("r", "w", "a"):
            raise ValueError(f"Unsupported FileStream mode: {mode!r}")
        self.path = Path(path)
        self.mode = mode
        self.readable = mode == "r"
        self.writable = mode != "r"
        self._fd: int | None = None

    @classmethod
    def for_reading(cls, path: str | Path) -> FileStream:
        return cls(path, mode="r")

    @classmethod
    def for_writing(cls, path: str | Path, append: bool = False) -> FileStream:
        return cls(path, mode="a" if append else "w")

    def child_handle(self, role: StreamRole) -> int | None:
        if self._fd is None:
            if self.mode == "r":
                flags = os.O_RDONLY
            elif self.mode == "a":
                flags = os.O_WRONLY | os.O_CREAT | os.O_APPEND
            else:
                flags = os.O_WRONLY | os.O_CREAT | os.O_TRUNC
            self._fd = os.open(self.path, flags, 0o666)
        return self._fd

    def release(self, role: StreamRole) -> None:
        if self._fd is not None:
            os.close(self._fd)
            self._fd = None

    def __repr__(self) -> str:
        return f"FileStream({str(self.path)!r}, mode={self.mode!r})"


class PipeStream(TaskStream):
    """Buffered OS pipe with both ends addressable.

    As a task's stdin, the parent writes with :meth:`write` and signals
    end-of-input with :meth:`close_write`. As a task's output, the parent's
    copy of the write end is closed at spawn and a background thread drains
    the read end into memory, so :meth:`read_all` returns everything the
    process wrote once it exits.

    Assigning one PipeStream as one task's stdout and another task's stdin
    builds a pipeline: the consumer task claims the read end when it is
    constructed, and no draining happens in this process.
    """

    readable = True
    writable = True

    def __init__(self, encoding: str | None = None):
        config = get_config()
        self.encoding = encoding or config.encoding
        self._chunk_size = config.read_chunk_size
        read_fd, write_fd = os.pipe()
        self._reader = os.fdopen(read_fd, "rb")
        self._writer = os.fdopen(write_fd, "wb")
        self._consumed_by_task = False
        self._buffer = bytearray()
        self._lock = threading.Lock()
        self._drainer: threading.Thread | None = None

    @property
    def read_fd(self) -> int:
        return self._reader.fileno()

    @property
    def write_closed(self) -> bool:
        return self._writer.closed

    def attach(self, role: StreamRole) -> None:
        super().attach(role)
        if role is StreamRole.INPUT:
            self._consumed_by_task = True

    def child_handle(self, role: StreamRole) -> int | None:
        end = self._reader if role is StreamRole.INPUT else self._writer
        if end.closed:
            side = "read" if role is StreamRole.INPUT else "write"
            raise StreamRoleError(f"Pipe {side} end is already closed")
        return end.fileno()

    def release(self, role: StreamRole) -> None:
        if role is StreamRole.INPUT:
            with self._lock:
                if not self._reader.closed:
                    self._reader.close()
            return
        self.close_write()
        if not self._consumed_by_task:
            self._start_drain()

    # ── Writing ───────────────────────────────────────────────────

    def write(self, text: str) -> None:
        """Write *text* followed by a newline."""
        self.write_bytes((text + "\n").encode(self.encoding))

    def write_bytes(self, data: bytes) -> None:
        """Write raw bytes to the pipe.

        Raises:
            BrokenPipeError: If the reading process has exited.
        """
        self._writer.write(data)
        self._writer.flush()

    def close_write(self) -> None:
        """Signal end-of-input to the reader. Safe to call repeatedly."""
        if not self._writer.closed:
            self._writer.close()

    # ── Reading ───────────────────────────────────────────────────

    def read_all_bytes(self) -> bytes:
        """Block until the write end closes, then return every byte read.

        Returns empty content when another task owns the read end.
        """
        if self._drainer is not None:
            self._drainer.join()
            with self._lock:
                return bytes(self._buffer)

        with self._lock:
            if self._consumed_by_task or self._reader.closed:
                return bytes(self._buffer)
            self._buffer += self._reader.read()
            self._reader.close()
            return bytes(self._buffer)

    def read_all(self) -> str:
        """Block until the write end closes, then return the decoded text."""
        return self.read_all_bytes().decode(self.encoding, errors="replace")

    def close(self) -> None:
        """Close both ends (waiting for any drainer to finish first)."""
        self.close_write()
        if self._drainer is not None:
            self._drainer.join()
            return
        with self._lock:
            if not self._reader.closed:
                self._reader.close()

    # ── Internal ──────────────────────────────────────────────────

    def _start_drain(self) -> None:
        with self._lock:
            if self._drainer is not None or self._reader.closed:
                return
            self._drainer = threading.Thread(
                target=self._drain,
                name=f"taskpipe-pipe-drain-{self.read_fd}",
                daemon=True,
            )
            self._drainer.start()

    def _drain(self) -> None:
        try:
            while True:
                chunk = self._reader.read1(self._chunk_size)
                if not chunk:
                    break
                with self._lock:
                    self._buffer += chunk
        finally:
            self._reader.close()
        logger.debug("Pipe drained (%d bytes)", len(self._buffer))

    def __repr__(self) -> str:
        return f"PipeStream(encoding={self.encoding!r})"


@runtime_checkable
class LineConsumer(Protocol):
    """Receives output one complete line at a time."""

    def consume_line(self, line: str) -> None:
        ...


class CallbackConsumer:
    """Adapts a plain ``callable(line)`` to the LineConsumer interface."""

    def __init__(self, callback: Callable[[str], None]):
        self.callback = callback

    def consume_line(self, line: str) -> None:
        self.callback(line)


class LineStream(TaskStream):
    """Output stream that hands each complete line to a consumer.

    A background thread started at construction reads the pipe and calls
    ``consumer.consume_line`` once per line, in arrival order and never
    concurrently. Lines arrive without their trailing newline; a final
    unterminated line is delivered at end-of-input.

    If the consumer raises, the stream logs it, keeps draining so the
    process is never blocked, and :meth:`wait` re-raises the first error.
    """

    writable = True

    def __init__(self, consumer: LineConsumer | Callable[[str], None], encoding: str | None = None):
        if not isinstance(consumer, LineConsumer):
            consumer = CallbackConsumer(consumer)
        self.consumer: LineConsumer = consumer
        self.encoding = encoding or get_config().encoding
        self.lines_delivered = 0
        read_fd, write_fd = os.pipe()
        self._write_fd: int | None = write_fd
        self._reader = os.fdopen(read_fd, "rb")
        self._write_lock = threading.Lock()
        self._error: Exception | None = None
        self._worker = threading.Thread(
            target=self._pump,
            name=f"taskpipe-line-stream-{read_fd}",
            daemon=True,
        )
        self._worker.start()

    def child_handle(self, role: StreamRole) -> int | None:
        with self._write_lock:
            if self._write_fd is None:
                raise StreamRoleError("Line stream is already closed")
            return self._write_fd

    def release(self, role: StreamRole) -> None:
        self.close()

    def close(self) -> None:
        """Close the write end so the worker sees end-of-input."""
        with self._write_lock:
            if self._write_fd is not None:
                os.close(self._write_fd)
                self._write_fd = None

    def wait(self) -> None:
        """Block until the source is closed and every line was delivered.

        Raises:
            Exception: The first exception raised by the consumer, if any.
        """
        self._worker.join()
        if self._error is not None:
            raise self._error

    @property
    def done(self) -> bool:
        return not self._worker.is_alive()

    def _pump(self) -> None:
        with self._reader:
            for raw in self._reader:
                line = raw.decode(self.encoding, errors="replace")
                if line.endswith("\n"):
                    line = line[:-1]
                self._deliver(line)

    def _deliver(self, line: str) -> None:
        try:
            self.consumer.consume_line(line)
        except Exception as exc:
            logger.exception("Line consumer %r failed; continuing to drain", self.consumer)
            if self._error is None:
                self._error = exc
        finally:
            self.lines_delivered += 1

    def __repr__(self) -> str:
        return f"LineStream(consumer={self.consumer!r})"


__all__ = [
    "CallbackConsumer",
    "FileStream",
    "InheritStream",
    "LineConsumer",
    "LineStream",
    "NullStream",
    "PipeStream",
    "StreamRole",
    "TaskStream",
]
