"""Non-streaming scan orchestration."""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path

from spacescan.core.aggregator import aggregate_size
from spacescan.core.walker import CallbackSink, DirectoryWalker, FolderCallback, ListSink
from spacescan.models.folder_report import FolderReport, ScanMode, ScanRequest, SizeSummary

log = logging.getLogger(__name__)


class ScanRootError(Exception):
    """Raised when the root of a scan request cannot be read at all."""


def check_root(path: Path | str) -> None:
    """Raise :class:`ScanRootError` unless *path* is a listable directory."""
    try:
        with os.scandir(path):
            pass
    except OSError as e:
        raise ScanRootError(f"Cannot scan {path}: {e.strerror or e}") from e


class ScanEngine:
    """Answers summary and list requests with a single result.

    Only failure to open the root is reported to the caller; everything
    below the root degrades silently to a size of 0.
    """

    def __init__(self, walker: DirectoryWalker | None = None) -> None:
        self.walker = walker or DirectoryWalker()

    async def summary(self, path: Path | str) -> SizeSummary:
        """Return the total size of *path*."""
        check_root(path)
        start = time.monotonic()
        size = await aggregate_size(path)
        log.info("Summary of %s: %d bytes in %.2fs", path, size, time.monotonic() - start)
        return SizeSummary(path=str(path), size=size)

    async def list(
        self,
        path: Path | str,
        max_depth: int = 1,
        on_result: FolderCallback | None = None,
    ) -> list[FolderReport]:
        """Return a report for every folder within *max_depth* of *path*.

        Args:
            path: Scan root. Never reported itself.
            max_depth: How many levels below the root to report.
            on_result: Optional callback fired as each folder is measured.

        Returns:
            Reports in discovery order (pre-order, depth-first).
        """
        check_root(path)
        sink = ListSink()
        if on_result is None:
            await self.walker.walk(path, sink, max_depth)
            return sink.reports

        forward = CallbackSink(on_result)

        async def _collect(report: FolderReport) -> None:
            await sink.emit(report)
            await forward.emit(report)

        await self.walker.walk(path, CallbackSink(_collect), max_depth)
        return sink.reports

    async def handle(self, request: ScanRequest) -> SizeSummary | list[FolderReport]:
        """Dispatch a non-streaming request by its mode."""
        log.info("Scanning %s (depth %d, mode %s)", request.root_path, request.max_depth, request.mode.value)
        if request.mode is ScanMode.SUMMARY:
            return await self.summary(request.root_path)
        if request.mode is ScanMode.LIST:
            return await self.list(request.root_path, request.max_depth)
        raise ValueError("Stream requests are served by ScanStreamSession")
