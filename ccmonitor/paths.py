"""Path helpers shared by correlation, transcripts and display."""

from __future__ import annotations

import os
from typing import Optional


def normalize_directory(path: Optional[str]) -> Optional[str]:
    """Resolve symlinks and strip trailing slashes; None for empty input."""
    if not path:
        return None
    resolved = os.path.realpath(os.path.expanduser(path))
    if len(resolved) > 1:
        resolved = resolved.rstrip(os.sep) or os.sep
    return resolved


def shorten_path(path: str, max_len: int = 40) -> str:
    """Shorten a path for display, replacing home dir with ~."""
    home = os.path.expanduser("~")
    if path.startswith(home):
        path = "~" + path[len(home):]
    if len(path) > max_len:
        parts = path.split(os.sep)
        if len(parts) > 3:
            path = os.sep.join([parts[0], "...", *parts[-2:]])
    return path
