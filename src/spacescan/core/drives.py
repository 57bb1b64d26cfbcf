"""Enumerate addressable volume roots."""

from __future__ import annotations

import logging
import os
import re
import string
import sys
from pathlib import Path

log = logging.getLogger(__name__)

_PROC_MOUNTS = Path("/proc/mounts")
_OCTAL_ESCAPE = re.compile(r"\\([0-7]{3})")


class DriveListError(Exception):
    """Raised when volume roots cannot be determined."""


def platform_root() -> str:
    """Default scan root for this platform."""
    return "C:\\" if sys.platform == "win32" else "/"


def complete_drive_spec(path: str) -> str:
    """Turn a bare drive spec such as ``D:`` into its root ``D:\\``."""
    if len(path) == 2 and path.endswith(":") and path[0].isalpha():
        return path + "\\"
    return path


def _windows_drives() -> list[str]:
    return [f"{letter}:" for letter in string.ascii_uppercase if os.path.exists(f"{letter}:\\")]


def _posix_mounts(mounts_file: Path) -> list[str]:
    """Mount points of real block devices, in mount-table order."""
    try:
        lines = mounts_file.read_text(encoding="utf-8").splitlines()
    except OSError as e:
        raise DriveListError(f"Failed to read {mounts_file}: {e}") from e

    roots: list[str] = []
    for line in lines:
        fields = line.split()
        if len(fields) < 2 or not fields[0].startswith("/dev/"):
            continue
        # Octal escapes such as \040 encode spaces in mount points.
        mount_point = _OCTAL_ESCAPE.sub(lambda m: chr(int(m.group(1), 8)), fields[1])
        if mount_point not in roots:
            roots.append(mount_point)
    return roots


def list_drives(mounts_file: Path = _PROC_MOUNTS) -> list[str]:
    """Return the volume roots a client may scan.

    Windows yields drive specs like ``C:``; elsewhere the mount points of
    block devices, falling back to ``/``.
    """
    if sys.platform == "win32":
        drives = _windows_drives()
    elif mounts_file.exists():
        drives = _posix_mounts(mounts_file) or ["/"]
    else:
        drives = ["/"]
    log.info("Found drives: %s", drives)
    return drives
