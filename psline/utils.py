"""
Utility functions for psline.
"""
import re
from pathlib import Path, PurePath
from typing import Optional

_VERSION_PATTERN = re.compile(r"(\d+(?:\.\d+){0,3}(?:[-+][0-9A-Za-z.\-]+)?)")


def format_duration(milliseconds: int, show_milliseconds: bool = False) -> str:
    """
    Format a duration to a compact human-readable string.

    Args:
        milliseconds: Duration in milliseconds
        show_milliseconds: Append the millisecond remainder

    Returns:
        Formatted duration string (e.g., "1h2m3s")
    """
    seconds, millis = divmod(max(int(milliseconds), 0), 1000)
    minutes, seconds = divmod(seconds, 60)
    hours, minutes = divmod(minutes, 60)
    days, hours = divmod(hours, 24)

    parts = []
    for value, unit in ((days, "d"), (hours, "h"), (minutes, "m"), (seconds, "s")):
        if value or parts:
            parts.append(f"{value}{unit}")

    if show_milliseconds or not parts:
        parts.append(f"{millis}ms")

    return "".join(parts)


def contract_path(path: PurePath, top: PurePath, replacement: str) -> str:
    """
    Replace a leading directory of a path with a shorter label.

    Args:
        path: The path to contract
        top: The leading directory (e.g., the home directory)
        replacement: Label shown instead of ``top`` (e.g., "~")

    Returns:
        The contracted path as a string, or ``path`` unchanged if it is not
        inside ``top``
    """
    try:
        relative = path.relative_to(top)
    except ValueError:
        return str(path)

    if str(relative) in ("", "."):
        return replacement
    return f"{replacement}/{relative.as_posix()}"


def truncate_path(path: str, length: int) -> str:
    """
    Keep only the last ``length`` components of a slash separated path.

    Args:
        path: The path string
        length: Number of trailing components to keep; 0 keeps everything

    Returns:
        Truncated path string
    """
    if length <= 0:
        return path
    components = [part for part in path.split("/") if part]
    if len(components) <= length:
        return path
    return "/".join(components[-length:])


def parse_version(output: str) -> Optional[str]:
    """
    Extract the first version number from a tool's ``--version`` output.

    Args:
        output: Text printed by the tool (e.g., "Python 3.12.1")

    Returns:
        The version (e.g., "3.12.1"), or None if there is none
    """
    match = _VERSION_PATTERN.search(output)
    return match.group(1) if match else None


def read_text(path: Path) -> Optional[str]:
    """
    Read a small text file, returning None if it cannot be read.
    """
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return None
