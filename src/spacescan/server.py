"""HTTP interface: JSON scan endpoints and a server-sent event stream."""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from spacescan.core.drives import DriveListError, complete_drive_spec, list_drives
from spacescan.core.engine import ScanEngine, ScanRootError
from spacescan.core.session import EventStreamChannel, ScanStreamSession
from spacescan.models.folder_report import ScanMode, ScanRequest, SizeSummary
from spacescan.settings import Settings
from spacescan.utils import parse_depth

log = logging.getLogger(__name__)

_STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

# Strong references to running stream sessions so they are not collected
# while the response is still being written.
_active_sessions: set[asyncio.Task] = set()


async def _event_stream(session: ScanStreamSession, channel: EventStreamChannel) -> AsyncIterator[str]:
    """Response body for one stream; cancels the session when the client leaves."""
    task = asyncio.create_task(session.run())
    _active_sessions.add(task)
    task.add_done_callback(_active_sessions.discard)
    try:
        async for frame in channel.frames():
            yield frame
    finally:
        session.cancel()
        log.info("[scan-stream] Endpoint closed for %s (%s)", session.root, session.state.value)


def create_app(settings: Settings | None = None, engine: ScanEngine | None = None) -> FastAPI:
    """Build the FastAPI application."""
    settings = settings or Settings.instance()
    engine = engine or ScanEngine()

    app = FastAPI(title="spacescan API", version="1.0.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get("server.cors_origins", []),
        allow_methods=["GET"],
        allow_credentials=False,
    )

    @app.get("/health")
    async def health_check():
        return {"status": "ok"}

    @app.get("/drives")
    def drives():
        """List the volume roots that can be scanned."""
        try:
            return list_drives()
        except DriveListError:
            log.exception("[drives] Failed to list drives")
            return JSONResponse(status_code=500, content={"error": "Failed to list drives"})

    @app.get("/scan")
    async def scan(path: str | None = None, depth: str | None = None, summary: str | None = None):
        """Scan a directory and return either its total size or per-folder sizes."""
        root = path or settings.get("scan.default_root")
        max_depth = parse_depth(depth, settings.get("scan.default_depth", 1))
        mode = ScanMode.SUMMARY if summary == "true" else ScanMode.LIST
        log.info("[scan] Scanning: %s depth: %d summary: %s", root, max_depth, mode is ScanMode.SUMMARY)

        try:
            result = await engine.handle(ScanRequest(root_path=root, max_depth=max_depth, mode=mode))
        except ScanRootError as e:
            log.error("[scan] Failed to scan: %s", e)
            return JSONResponse(status_code=500, content={"error": "Failed to scan directory."})

        if isinstance(result, SizeSummary):
            return result.to_dict()
        return [report.to_dict() for report in result]

    @app.get("/scan-stream")
    async def scan_stream(path: str | None = None, depth: str | None = None):
        """Stream folder sizes as server-sent events while they are computed."""
        root = complete_drive_spec(path) if path else settings.get("scan.default_root")
        max_depth = parse_depth(depth, settings.get("scan.default_depth", 1))
        log.info("[scan-stream] Request received for: %s depth: %d", root, max_depth)

        channel = EventStreamChannel()
        session = ScanStreamSession(
            channel,
            root,
            max_depth,
            walker=engine.walker,
            keepalive_interval=float(settings.get("stream.keepalive_seconds", 30)),
        )
        return StreamingResponse(
            _event_stream(session, channel),
            media_type="text/event-stream",
            headers=_STREAM_HEADERS,
        )

    return app


def serve(host: str | None = None, port: int | None = None) -> None:
    """Run the HTTP server in the foreground."""
    import uvicorn

    settings = Settings.instance()
    host = host or settings.get("server.host")
    port = port or settings.get("server.port")
    log.info("Server running on http://%s:%s", host, port)
    uvicorn.run(create_app(settings), host=host, port=port)
