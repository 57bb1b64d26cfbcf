"""Streaming scan sessions.

A session drives one :class:`DirectoryWalker` run for one client and
pushes every folder report into a :class:`PushChannel` as soon as it is
measured. A keep-alive task runs alongside the walk so that idle proxies
do not tear down the connection during long scans.

Lifecycle::

    OPEN -> STREAMING -> COMPLETED
                      -> CANCELLED

Both terminal states are final. Nothing is pushed after either of them.
"""

from __future__ import annotations

import asyncio
import enum
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import AsyncIterator

from spacescan.core.cancel import CancelToken
from spacescan.core.walker import DirectoryWalker, FolderSink, SinkClosed
from spacescan.models.folder_report import FolderReport

log = logging.getLogger(__name__)

DEFAULT_KEEPALIVE_SECONDS = 30.0

KEEPALIVE_FRAME = ": keep-alive\n\n"
DONE_FRAME = "event: done\ndata: done\n\n"


class SessionState(enum.Enum):
    OPEN = "open"
    STREAMING = "streaming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


_TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.OPEN: frozenset({SessionState.STREAMING, SessionState.CANCELLED}),
    SessionState.STREAMING: frozenset({SessionState.COMPLETED, SessionState.CANCELLED}),
    SessionState.COMPLETED: frozenset(),
    SessionState.CANCELLED: frozenset(),
}


class SessionStateError(RuntimeError):
    """Raised on an illegal session state transition."""


class PushChannel(ABC):
    """One-directional, long-lived push transport for a single client.

    Implementations raise :class:`SinkClosed` from the send methods once
    the remote end is gone.
    """

    @abstractmethod
    async def send_folder(self, report: FolderReport) -> None:
        """Push one folder report."""

    @abstractmethod
    async def send_keepalive(self) -> None:
        """Push a no-op frame."""

    @abstractmethod
    async def send_done(self) -> None:
        """Push the end-of-stream marker."""

    @abstractmethod
    async def close(self) -> None:
        """Release the channel. Must be safe to call more than once."""


def format_folder_event(report: FolderReport) -> str:
    """Encode a report as a server-sent event frame."""
    return f"data: {json.dumps(report.to_dict())}\n\n"


class EventStreamChannel(PushChannel):
    """Buffers server-sent event frames for an HTTP response body.

    The queue is bounded so a slow reader throttles the walk instead of
    letting frames pile up in memory.
    """

    def __init__(self, maxsize: int = 64) -> None:
        self._queue: asyncio.Queue[str | None] = asyncio.Queue(maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def _put(self, frame: str) -> None:
        if self._closed:
            raise SinkClosed("event stream closed")
        await self._queue.put(frame)

    async def send_folder(self, report: FolderReport) -> None:
        await self._put(format_folder_event(report))

    async def send_keepalive(self) -> None:
        await self._put(KEEPALIVE_FRAME)

    async def send_done(self) -> None:
        await self._put(DONE_FRAME)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put_nowait(None)
        except asyncio.QueueFull:
            # Reader notices the closed flag once it drains the queue.
            pass

    async def frames(self) -> AsyncIterator[str]:
        """Yield frames until the channel is closed and drained."""
        while True:
            if self._closed and self._queue.empty():
                return
            frame = await self._queue.get()
            if frame is None:
                return
            yield frame


class ScanStreamSession(FolderSink):
    """Streams one scan to one client.

    The session is itself the walker's sink. :meth:`cancel` is what a
    transport calls when it learns the client disconnected.
    """

    def __init__(
        self,
        channel: PushChannel,
        root: Path | str,
        max_depth: int = 1,
        *,
        walker: DirectoryWalker | None = None,
        keepalive_interval: float = DEFAULT_KEEPALIVE_SECONDS,
    ) -> None:
        self.root = str(root)
        self.max_depth = max_depth
        self.state = SessionState.OPEN
        self.reports_sent = 0
        self._channel = channel
        self._walker = walker or DirectoryWalker()
        self._keepalive_interval = keepalive_interval
        self._cancel = CancelToken()

    @property
    def is_open(self) -> bool:
        return self.state is SessionState.STREAMING and not self._cancel.is_set

    @property
    def finished(self) -> bool:
        return self.state in (SessionState.COMPLETED, SessionState.CANCELLED)

    def _transition(self, new_state: SessionState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise SessionStateError(f"Cannot move session from {self.state.value} to {new_state.value}")
        log.debug("Session %s: %s -> %s", self.root, self.state.value, new_state.value)
        self.state = new_state

    async def emit(self, report: FolderReport) -> None:
        if not self.is_open:
            raise SinkClosed("session is no longer streaming")
        log.info("[stream] %s size: %d", report.name, report.size)
        await self._channel.send_folder(report)
        self.reports_sent += 1

    def cancel(self) -> None:
        """Mark the client as gone. No-op once the session has finished."""
        if self.finished:
            return
        self._cancel.set()
        self._transition(SessionState.CANCELLED)
        log.info("Stream for %s cancelled after %d folders", self.root, self.reports_sent)

    async def _keepalive(self) -> None:
        while True:
            try:
                await asyncio.wait_for(self._cancel.wait(), timeout=self._keepalive_interval)
                return
            except asyncio.TimeoutError:
                pass
            if not self.is_open:
                return
            log.info("Still scanning %s, be patient..", self.root)
            try:
                await self._channel.send_keepalive()
            except SinkClosed:
                return

    async def run(self) -> SessionState:
        """Stream the whole scan and return the terminal state reached."""
        if self.state is SessionState.CANCELLED:
            await self._channel.close()
            return self.state
        self._transition(SessionState.STREAMING)
        log.info("Streaming scan of %s (depth %d)", self.root, self.max_depth)

        walk_task = asyncio.create_task(
            self._walker.walk(self.root, self, self.max_depth, cancel=self._cancel)
        )
        keepalive_task = asyncio.create_task(self._keepalive())
        cancelled_task = asyncio.create_task(self._cancel.wait())
        tasks = [walk_task, keepalive_task, cancelled_task]

        try:
            await asyncio.wait({walk_task, cancelled_task}, return_when=asyncio.FIRST_COMPLETED)
            if walk_task.done() and self.state is SessionState.STREAMING:
                walk_task.result()
                # send_done can block on a full channel; a cancel must still win.
                done_task = asyncio.create_task(self._complete())
                tasks.append(done_task)
                await asyncio.wait({done_task, cancelled_task}, return_when=asyncio.FIRST_COMPLETED)
                if done_task.done():
                    done_task.result()
        finally:
            if self.state is SessionState.STREAMING:
                self.cancel()
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            await self._channel.close()

        return self.state

    async def _complete(self) -> None:
        try:
            await self._channel.send_done()
        except SinkClosed:
            self.cancel()
            return
        if self.state is SessionState.STREAMING:
            self._transition(SessionState.COMPLETED)
            log.info("Stream complete for %s (%d folders)", self.root, self.reports_sent)
