"""
taskpipe
========

Spawn external programs, wire their standard streams to pipes, line
consumers, files or other programs, and control them while they run.

Usage:
    from taskpipe import PipeStream, Task

    output = PipeStream()
    task = Task("ls", ["-1"], stdout=output)
    task.run_sync()
    print(output.read_all())

Pipelines share one PipeStream between a producer's stdout and a consumer's
stdin::

    connector, matches = PipeStream(), PipeStream()
    ls = Task("ls", [path], stdout=connector)
    grep = Task("grep", ["Pipe"], stdin=connector, stdout=matches)
    ls.run_async()
    grep.run_async()
    matches.read_all()
"""

from __future__ import annotations

# Configuration
from .config import TaskpipeConfig, get_config, load_config

# Exceptions
from .exceptions import (
    CaptureError,
    ExecutableNotFound,
    RunError,
    SpawnFailure,
    StreamRoleError,
    TaskConfigError,
    TaskError,
    TaskStateError,
)

# Lifecycle
from .lifecycle import ExitStatus, TaskState

# Resolution
from .resolver import find_executable

# Streams
from .streams import (
    CallbackConsumer,
    FileStream,
    InheritStream,
    LineConsumer,
    LineStream,
    NullStream,
    PipeStream,
    StreamRole,
    TaskStream,
)

# Tasks
from .task import Task

# Convenience runners
from .shell import (
    CaptureResult,
    capture,
    capture_bash,
    exec_replace,
    run,
    run_bash,
)

__version__ = "0.1.0"

__all__ = [
    # Configuration
    "TaskpipeConfig",
    "get_config",
    "load_config",
    # Exceptions
    "TaskError",
    "ExecutableNotFound",
    "SpawnFailure",
    "TaskStateError",
    "StreamRoleError",
    "TaskConfigError",
    "RunError",
    "CaptureError",
    # Lifecycle
    "ExitStatus",
    "TaskState",
    # Resolution
    "find_executable",
    # Streams
    "TaskStream",
    "StreamRole",
    "InheritStream",
    "NullStream",
    "FileStream",
    "PipeStream",
    "LineStream",
    "LineConsumer",
    "CallbackConsumer",
    # Tasks
    "Task",
    # Convenience runners
    "CaptureResult",
    "run",
    "run_bash",
    "capture",
    "capture_bash",
    "exec_replace",
]
