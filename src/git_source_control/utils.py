"""Formatting helpers for the CLI."""

import time
from pathlib import Path
from typing import Optional


def humanize_size(size: float) -> str:
    """Convert bytes to human-readable format."""
    for unit in ["B", "KB", "MB", "GB"]:
        if size < 1024.:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TB"


def humanize_timestamp(timestamp: float, now: Optional[float] = None) -> str:
    """Convert a unix timestamp to relative time.

    Examples:
        now - 30    -> "just now"
        now - 7200  -> "2 hours ago"
    """
    seconds = (now if now is not None else time.time()) - timestamp
    if seconds < 60:
        return "just now"
    for limit, size, unit in (
        (3600, 60, "minute"),
        (86400, 3600, "hour"),
        (604800, 86400, "day"),
        (2592000, 604800, "week"),
        (31536000, 2592000, "month"),
    ):
        if seconds < limit:
            count = int(seconds / size)
            return f"{count} {unit}{'s' if count != 1 else ''} ago"
    years = int(seconds / 31536000)
    return f"{years} year{'s' if years != 1 else ''} ago"


def display_path(filename: str, root: Optional[Path]) -> str:
    """Path relative to root when inside it, else unchanged."""
    if root is None:
        return filename
    path = Path(filename)
    if root in path.parents:
        return path.relative_to(root).as_posix()
    return filename
