"""Shared skip markers for the taskpipe tests."""

from __future__ import annotations

import shutil
import signal
import sys

import pytest

POSIX = sys.platform != "win32"

requires_posix = pytest.mark.skipif(not POSIX, reason="requires POSIX processes and signals")


def require_binaries(*names: str):
    """Skip marker for tests that shell out to *names*."""
    missing = [name for name in names if shutil.which(name) is None]
    return pytest.mark.skipif(bool(missing), reason=f"not on PATH: {', '.join(missing)}")


def sigint_deliverable() -> bool:
    """SIGINT ignored by this process is also ignored by its children."""
    return POSIX and signal.getsignal(signal.SIGINT) is not signal.SIG_IGN
