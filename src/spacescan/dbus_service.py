"""D-Bus service for desktop clients.

D-Bus methods use PascalCase per D-Bus convention, and type signatures
like "s" and "sst" are D-Bus protocol types, not Python syntax.

Streamed scans are pushed as signals tagged with the scan id returned by
``StartStream``. A client that goes away should call ``CancelStream``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid

from dbus_next.aio import MessageBus
from dbus_next.service import ServiceInterface, method, signal
from dbus_next import BusType

from spacescan.core.drives import DriveListError, list_drives
from spacescan.core.engine import ScanEngine, ScanRootError
from spacescan.core.session import PushChannel, ScanStreamSession, SessionState
from spacescan.core.walker import SinkClosed
from spacescan.models.folder_report import FolderReport
from spacescan.settings import Settings
from spacescan.utils import parse_depth

log = logging.getLogger(__name__)

_BUS_NAME = "io.github.spacescan"
_OBJECT_PATH = "/io/github/spacescan"
_INTERFACE = "io.github.spacescan.Scanner"


class DBusChannel(PushChannel):
    """Pushes one session's events as signals of *service*."""

    def __init__(self, service: SpaceScanDBusService, scan_id: str) -> None:
        self._service = service
        self._scan_id = scan_id
        self._closed = False

    def _check(self) -> None:
        if self._closed:
            raise SinkClosed(f"scan {self._scan_id} closed")

    async def send_folder(self, report: FolderReport) -> None:
        self._check()
        self._service.FolderScanned(self._scan_id, report.name, report.size)

    async def send_keepalive(self) -> None:
        self._check()
        self._service.KeepAlive(self._scan_id)

    async def send_done(self) -> None:
        self._check()
        self._service.StreamDone(self._scan_id)

    async def close(self) -> None:
        self._closed = True


# noinspection PyPep8Naming
class SpaceScanDBusService(ServiceInterface):
    """D-Bus service interface for spacescan."""

    def __init__(self, settings: Settings | None = None) -> None:
        super().__init__(_INTERFACE)
        self._settings = settings or Settings.instance()
        self._engine = ScanEngine()
        self._streams: dict[str, ScanStreamSession] = {}
        self._tasks: dict[str, asyncio.Task] = {}

    # ── plain helpers, shared by the D-Bus methods ──────────────────────

    async def summary_json(self, path: str) -> str:
        try:
            result = await self._engine.summary(path)
        except ScanRootError as e:
            log.error("Summary failed: %s", e)
            return json.dumps({"error": str(e)})
        return json.dumps(result.to_dict())

    async def list_json(self, path: str, depth: int) -> str:
        try:
            reports = await self._engine.list(path, parse_depth(depth))
        except ScanRootError as e:
            log.error("List failed: %s", e)
            return json.dumps({"error": str(e)})
        return json.dumps([r.to_dict() for r in reports])

    def start_stream(self, path: str, depth: int) -> str:
        """Start a streamed scan in the background and return its id."""
        scan_id = uuid.uuid4().hex
        session = ScanStreamSession(
            DBusChannel(self, scan_id),
            path,
            parse_depth(depth),
            walker=self._engine.walker,
            keepalive_interval=float(self._settings.get("stream.keepalive_seconds", 30)),
        )
        self._streams[scan_id] = session
        self._tasks[scan_id] = asyncio.get_running_loop().create_task(self._run_stream(scan_id, session))
        log.info("Started stream %s for %s", scan_id, path)
        return scan_id

    def cancel_stream(self, scan_id: str) -> bool:
        session = self._streams.get(scan_id)
        if session is None:
            return False
        session.cancel()
        return True

    async def _run_stream(self, scan_id: str, session: ScanStreamSession) -> None:
        try:
            state = await session.run()
            if state is SessionState.CANCELLED:
                self.StreamCancelled(scan_id)
        except Exception:
            log.exception("Stream %s failed", scan_id)
            self.StreamCancelled(scan_id)
        finally:
            self._streams.pop(scan_id, None)
            self._tasks.pop(scan_id, None)

    # ── D-Bus methods ───────────────────────────────────────────────────

    @method()
    def ListDrives(self) -> "s":  # type: ignore[override]
        """List scannable volume roots as JSON."""
        try:
            return json.dumps(list_drives())
        except DriveListError as e:
            log.warning("Failed to list drives: %s", e)
            return json.dumps({"error": "Failed to list drives"})

    @method()
    async def Summary(self, path: "s") -> "s":  # type: ignore[override]
        """Total size of *path* as JSON."""
        return await self.summary_json(path)

    @method()
    async def List(self, path: "s", depth: "u") -> "s":  # type: ignore[override]
        """Per-folder sizes under *path* as a JSON array."""
        return await self.list_json(path, depth)

    @method()
    def StartStream(self, path: "s", depth: "u") -> "s":  # type: ignore[override]
        """Start a streamed scan; results arrive as FolderScanned signals."""
        return self.start_stream(path, depth)

    @method()
    def CancelStream(self, scan_id: "s") -> "b":  # type: ignore[override]
        """Stop a streamed scan. Returns False for unknown ids."""
        return self.cancel_stream(scan_id)

    @signal()
    def FolderScanned(self, scan_id: str, name: str, size: int) -> "sst":  # type: ignore[override]
        return [scan_id, name, size]

    @signal()
    def KeepAlive(self, scan_id: str) -> "s":  # type: ignore[override]
        return scan_id

    @signal()
    def StreamDone(self, scan_id: str) -> "s":  # type: ignore[override]
        return scan_id

    @signal()
    def StreamCancelled(self, scan_id: str) -> "s":  # type: ignore[override]
        return scan_id


async def run_service() -> None:
    """Start the D-Bus service."""
    bus = await MessageBus(bus_type=BusType.SESSION).connect()
    service = SpaceScanDBusService()
    bus.export(_OBJECT_PATH, service)
    await bus.request_name(_BUS_NAME)
    log.info("D-Bus service started on %s", _BUS_NAME)
    await bus.wait_for_disconnect()


def start_service() -> None:
    """Entry point to start the D-Bus service."""
    asyncio.run(run_service())
