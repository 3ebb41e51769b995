"""Task lifecycle state machine and exit status record.

Provides:
- TaskState: the four lifecycle states of a task.
- ExitStatus: immutable record of how a process terminated.
- TaskLifecycle: model object that a ``transitions.Machine`` attaches its
  ``state`` attribute and trigger methods to.

Legal moves::

    created --spawn--> running --pause--> suspended --proceed--> running
    running/suspended --reap--> exited

``exited`` is terminal.
"""

from __future__ import annotations

import logging
import signal
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from transitions import Machine, MachineError

logger = logging.getLogger(__name__)


class TaskState(StrEnum):
    """Lifecycle states of a task."""

    CREATED = "created"
    RUNNING = "running"
    SUSPENDED = "suspended"
    EXITED = "exited"


LIVE_STATES: frozenset[str] = frozenset({TaskState.RUNNING, TaskState.SUSPENDED})

TRANSITIONS: list[dict[str, Any]] = [
    {"trigger": "spawn", "source": TaskState.CREATED.value, "dest": TaskState.RUNNING.value},
    {"trigger": "pause", "source": TaskState.RUNNING.value, "dest": TaskState.SUSPENDED.value},
    {"trigger": "proceed", "source": TaskState.SUSPENDED.value, "dest": TaskState.RUNNING.value},
    {
        "trigger": "reap",
        "source": [TaskState.RUNNING.value, TaskState.SUSPENDED.value],
        "dest": TaskState.EXITED.value,
    },
]


@dataclass(frozen=True)
class ExitStatus:
    """How a process terminated.

    ``code`` is the exit code (0-255) for a normal exit, or the raw signal
    number when ``signaled`` is True.
    """

    code: int
    signaled: bool = False

    @classmethod
    def from_returncode(cls, returncode: int) -> ExitStatus:
        """Build from a ``Popen.returncode`` (negative means killed by signal)."""
        if returncode < 0:
            return cls(code=-returncode, signaled=True)
        return cls(code=returncode)

    @property
    def success(self) -> bool:
        return self.code == 0 and not self.signaled

    def describe(self) -> str:
        if not self.signaled:
            return f"exit code {self.code}"
        try:
            name = signal.Signals(self.code).name
        except ValueError:
            return f"signal {self.code}"
        return f"signal {self.code} ({name})"

    def __int__(self) -> int:
        return self.code


class TaskLifecycle:
    """Model object for the task state machine.

    ``Machine`` sets ``state`` and attaches the ``spawn``, ``pause``,
    ``proceed`` and ``reap`` trigger methods at construction time.

    Attributes:
        label: Name used in log messages (usually the executable).
        state: Current state name, managed by the machine.
    """

    def __init__(self, label: str) -> None:
        self.label = label
        # Machine sets this to the initial state during construction.
        self.state: str = ""
        self._machine = Machine(
            model=self,
            states=[s.value for s in TaskState],
            transitions=TRANSITIONS,
            initial=TaskState.CREATED.value,
            auto_transitions=False,
            send_event=True,
            after_state_change="on_state_change",
        )

    def on_state_change(self, event: Any) -> None:
        """Log every transition (``after_state_change`` callback)."""
        transition = getattr(event, "transition", None)
        source = getattr(transition, "source", "?")
        logger.debug("%s: %s -> %s", self.label, source, self.state)

    @property
    def current(self) -> TaskState:
        return TaskState(self.state)

    @property
    def is_live(self) -> bool:
        """True while a spawned process has not been observed to exit."""
        return self.state in LIVE_STATES

    def try_trigger(self, trigger_name: str) -> bool:
        """Fire *trigger_name*; return False instead of raising if illegal."""
        try:
            return getattr(self, trigger_name)()
        except MachineError:
            return False

    def get_triggers(self) -> list[str]:
        """Return the trigger names legal from the current state."""
        return self._machine.get_triggers(self.state)


__all__ = [
    "ExitStatus",
    "LIVE_STATES",
    "TaskLifecycle",
    "TaskState",
    "TRANSITIONS",
]
