"""User configuration for taskpipe.

The configuration is stored in ``<taskpipe home>/config.yaml`` under the
``task`` key::

    task:
      shell: zsh
      encoding: utf-8
      read_chunk_size: 65536

Every key is optional; a missing file means defaults.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from functools import lru_cache
from pathlib import Path

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from .exceptions import TaskConfigError

logger = logging.getLogger(__name__)

DEFAULT_SHELL = "bash"
DEFAULT_ENCODING = "utf-8"
DEFAULT_READ_CHUNK_SIZE = 65536


@dataclass(frozen=True)
class TaskpipeConfig:
    """Defaults applied to every task.

    Attributes:
        shell: Executable used by ``Task.bash`` and the ``*_bash`` runners
        encoding: Text encoding for pipe and line streams
        read_chunk_size: Bytes requested per read by pipe drainers
    """

    shell: str = DEFAULT_SHELL
    encoding: str = DEFAULT_ENCODING
    read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE


def _is_windows() -> bool:
    return os.name == "nt"


def get_taskpipe_home() -> Path:
    """Return the directory holding the taskpipe config file.

    Resolution order:
    1. TASKPIPE_HOME environment variable (all platforms)
    2. ~/.taskpipe/ on macOS/Linux
    3. the per-user config dir on Windows (via platformdirs)
    """
    if env_home := os.environ.get("TASKPIPE_HOME"):
        return Path(env_home)

    if _is_windows():
        from platformdirs import user_config_dir

        return Path(user_config_dir("taskpipe"))

    return Path.home() / ".taskpipe"


def load_config(home: Path | None = None) -> TaskpipeConfig:
    """Load configuration from ``config.yaml`` in the taskpipe home.

    Args:
        home: Directory to read from (defaults to :func:`get_taskpipe_home`)

    Returns:
        TaskpipeConfig instance (defaults if not configured)

    Raises:
        TaskConfigError: If the file exists but is not valid YAML, or a
            value has the wrong type.
    """
    config_file = (home or get_taskpipe_home()) / "config.yaml"
    if not config_file.exists():
        return TaskpipeConfig()

    yaml = YAML(typ="safe")
    try:
        with open(config_file, "r", encoding="utf-8") as f:
            data = yaml.load(f) or {}
    except (OSError, YAMLError) as e:
        raise TaskConfigError(f"Invalid YAML in {config_file}: {e}") from e

    section = data.get("task") if isinstance(data, dict) else None
    if not section:
        return TaskpipeConfig()
    if not isinstance(section, dict):
        raise TaskConfigError(f"Invalid 'task' section in {config_file}: expected a mapping")

    known = {f.name for f in fields(TaskpipeConfig)}
    values: dict[str, object] = {}
    for key, value in section.items():
        if key not in known:
            logger.warning("Ignoring unknown key task.%s in %s", key, config_file)
            continue
        values[key] = value

    shell = values.get("shell", DEFAULT_SHELL)
    encoding = values.get("encoding", DEFAULT_ENCODING)
    chunk = values.get("read_chunk_size", DEFAULT_READ_CHUNK_SIZE)
    if not isinstance(shell, str) or not shell.strip():
        raise TaskConfigError(f"Invalid task.shell in {config_file}: expected a non-empty string")
    if not isinstance(encoding, str) or not encoding.strip():
        raise TaskConfigError(f"Invalid task.encoding in {config_file}: expected a non-empty string")
    if isinstance(chunk, bool) or not isinstance(chunk, int) or chunk <= 0:
        raise TaskConfigError(f"Invalid task.read_chunk_size in {config_file}: expected a positive integer")

    return TaskpipeConfig(shell=shell.strip(), encoding=encoding.strip(), read_chunk_size=chunk)


@lru_cache(maxsize=1)
def get_config() -> TaskpipeConfig:
    """Return the process-wide configuration, loading it on first use."""
    return load_config()


def reset_config_cache() -> None:
    """Forget the cached configuration (for testing only)."""
    get_config.cache_clear()


__all__ = [
    "TaskpipeConfig",
    "get_taskpipe_home",
    "load_config",
    "get_config",
    "reset_config_cache",
]
