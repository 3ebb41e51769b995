"""
Executable Resolution
=====================

Maps an executable reference (a bare name such as ``ls`` or a path such as
``/bin/ls`` or ``./build/tool``) to a concrete path that exists and carries
execute permission. Absence is an ordinary result (``None``); callers decide
whether that is an error.
"""

from __future__ import annotations

import os
import shutil


def find_executable(name: str, search_path: str | None = None) -> str | None:
    """
    Locate an executable by name or path.

    A reference containing a path separator is checked in place and returned
    unchanged if it is an executable file. A bare name is looked up in each
    directory of *search_path* in order, and the first executable hit wins.

    Args:
        name: Bare executable name or a path to one.
        search_path: ``os.pathsep``-separated directory list. Defaults to the
            ``PATH`` environment variable.

    Returns:
        The resolved path, or None if no executable matches.
    """
    if not name:
        return None
    if search_path is None:
        search_path = os.environ.get("PATH", os.defpath)
    return shutil.which(name, mode=os.F_OK | os.X_OK, path=search_path)


__all__ = ["find_executable"]
