"""Recursive directory size aggregation."""

from __future__ import annotations

import asyncio
import logging
import os
import stat
from pathlib import Path

from spacescan.core.cancel import CancelToken

log = logging.getLogger(__name__)


def _read_level(path: Path | str) -> tuple[list[str], int]:
    """List one directory level.

    Returns the subdirectory paths to recurse into and the summed size of
    the regular files found directly in *path*. Raises ``OSError`` only if
    *path* itself cannot be opened; unreadable entries count as 0.
    """
    subdirs: list[str] = []
    file_bytes = 0
    with os.scandir(path) as it:
        for entry in it:
            try:
                if entry.is_dir(follow_symlinks=False):
                    subdirs.append(entry.path)
                    continue
                st = entry.stat()
                if stat.S_ISREG(st.st_mode):
                    file_bytes += st.st_size
            except OSError as e:
                log.debug("Skipped unreadable entry %s: %s", entry.path, e)
    return subdirs, file_bytes


async def aggregate_size(path: Path | str, cancel: CancelToken | None = None) -> int:
    """Return the total size in bytes of all regular files below *path*.

    Never raises: a directory that cannot be listed contributes 0 and
    does not affect its siblings. Subdirectories are aggregated
    concurrently and joined before the parent total is computed.

    If *cancel* is set while the walk is in flight the returned value is
    a partial sum and should be discarded.
    """
    if cancel is not None and cancel.is_set:
        return 0
    try:
        subdirs, total = await asyncio.to_thread(_read_level, path)
    except OSError as e:
        log.warning("Skipped inaccessible folder %s: %s", path, e)
        return 0

    if subdirs:
        sizes = await asyncio.gather(*(aggregate_size(d, cancel) for d in subdirs))
        total += sum(sizes)
    return total
