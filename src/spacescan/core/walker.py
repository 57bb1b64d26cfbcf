"""Depth-bounded directory traversal with per-folder reporting."""

from __future__ import annotations

import asyncio
import inspect
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Awaitable, Callable

from spacescan.core.aggregator import aggregate_size
from spacescan.core.cancel import CancelToken
from spacescan.models.folder_report import FolderReport

log = logging.getLogger(__name__)

Aggregator = Callable[[Path, "CancelToken | None"], Awaitable[int]]
FolderCallback = Callable[[FolderReport], "Awaitable[None] | None"]


class SinkClosed(Exception):
    """Raised by a sink whose consumer has gone away."""


class FolderSink(ABC):
    """Receiver for folder reports produced by :class:`DirectoryWalker`."""

    @abstractmethod
    async def emit(self, report: FolderReport) -> None:
        """Deliver one report. May raise :class:`SinkClosed`."""

    @property
    def is_open(self) -> bool:
        """Whether further reports are still wanted."""
        return True


class ListSink(FolderSink):
    """Collects reports in discovery order."""

    def __init__(self) -> None:
        self.reports: list[FolderReport] = []

    async def emit(self, report: FolderReport) -> None:
        self.reports.append(report)


class CallbackSink(FolderSink):
    """Adapts a plain or async callable to the sink interface."""

    def __init__(self, callback: FolderCallback) -> None:
        self._callback = callback

    async def emit(self, report: FolderReport) -> None:
        result = self._callback(report)
        if inspect.isawaitable(result):
            await result


def _list_subdirectories(path: Path) -> list[tuple[str, Path]]:
    """Return (name, path) of each immediate subdirectory, in listing order."""
    found: list[tuple[str, Path]] = []
    with os.scandir(path) as it:
        for entry in it:
            try:
                if entry.is_dir(follow_symlinks=False):
                    found.append((entry.name, Path(entry.path)))
            except OSError as e:
                log.debug("Skipped unreadable entry %s: %s", entry.path, e)
    return found


class DirectoryWalker:
    """Walks a tree depth-first, reporting every subdirectory's total size.

    The scan root itself is never reported. Its children are depth 1,
    and the walker keeps descending while ``depth < max_depth``. Each
    child is reported and then fully walked before its next sibling.
    """

    def __init__(self, aggregator: Aggregator = aggregate_size) -> None:
        self._aggregate = aggregator

    async def walk(
        self,
        root: Path | str,
        sink: FolderSink,
        max_depth: int = 1,
        *,
        depth: int = 1,
        prefix: str = "",
        cancel: CancelToken | None = None,
    ) -> int:
        """Walk *root* and push one report per subdirectory into *sink*.

        Returns the number of reports emitted. Stops quietly once the sink
        closes or *cancel* is set.
        """
        emitted = [0]
        try:
            await self._walk(Path(root), sink, max_depth, depth, prefix, cancel, emitted)
        except SinkClosed:
            log.info("Sink closed, stopping walk of %s", root)
        return emitted[0]

    async def _walk(
        self,
        path: Path,
        sink: FolderSink,
        max_depth: int,
        depth: int,
        prefix: str,
        cancel: CancelToken | None,
        emitted: list[int],
    ) -> None:
        try:
            children = await asyncio.to_thread(_list_subdirectories, path)
        except OSError as e:
            log.error("Failed to read %s: %s", path, e)
            return

        for entry_name, child in children:
            if not sink.is_open or (cancel is not None and cancel.is_set):
                return

            name = f"{prefix}/{entry_name}" if prefix else entry_name
            try:
                size = await self._aggregate(child, cancel)
                if cancel is not None and cancel.is_set:
                    return

                await sink.emit(FolderReport(name=name, size=size, path=child, depth=depth))
                emitted[0] += 1

                if depth < max_depth:
                    await self._walk(child, sink, max_depth, depth + 1, name, cancel, emitted)
            except SinkClosed:
                raise
            except Exception as e:
                log.warning("Skipped folder %s: %s", child, e)
