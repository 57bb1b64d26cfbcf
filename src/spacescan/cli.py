"""CLI interface for spacescan."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
import time

import click

from spacescan.core.drives import DriveListError, complete_drive_spec, list_drives
from spacescan.core.engine import ScanEngine, ScanRootError
from spacescan.core.session import PushChannel, ScanStreamSession, SessionState
from spacescan.core.walker import SinkClosed
from spacescan.models.folder_report import FolderReport
from spacescan.settings import Settings
from spacescan.utils import bytes_to_human, format_elapsed


def _setup_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _format_folder(report: FolderReport) -> str:
    indent = "  " * report.depth
    size_str = click.style(f"{bytes_to_human(report.size):>10s}", fg="green", bold=True)
    return f"{indent}{size_str}  {report.name}"


class ConsoleChannel(PushChannel):
    """Prints streamed folders to the terminal as they arrive."""

    def __init__(self, as_json: bool = False) -> None:
        self._as_json = as_json
        self._closed = False

    def _echo(self, message: str, err: bool = False) -> None:
        if self._closed:
            raise SinkClosed("console closed")
        try:
            click.echo(message, err=err)
        except OSError as e:
            # e.g. stdout piped into `head`
            self._closed = True
            raise SinkClosed(f"console closed: {e}") from e

    async def send_folder(self, report: FolderReport) -> None:
        if self._as_json:
            self._echo(json.dumps(report.to_dict()))
        else:
            self._echo(_format_folder(report))

    async def send_keepalive(self) -> None:
        if not self._as_json:
            self._echo(click.style("  … still scanning", fg="bright_black"), err=True)

    async def send_done(self) -> None:
        if self._as_json:
            self._echo(json.dumps({"event": "done"}))
        elif self._closed:
            raise SinkClosed("console closed")

    async def close(self) -> None:
        self._closed = True


@click.group()
@click.option("-v", "--verbose", count=True, help="Increase verbosity (-v info, -vv debug)")
def main(verbose: int) -> None:
    """spacescan: find out where your disk space went."""
    _setup_logging(verbose)


# ── scan ─────────────────────────────────────────────────────────────────

@main.command()
@click.argument("path", required=False)
@click.option("--depth", "-d", default=None, type=click.IntRange(min=1), help="Levels below PATH to report")
@click.option("--summary", "-s", is_flag=True, help="Only print the total size of PATH")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def scan(path: str | None, depth: int | None, summary: bool, as_json: bool) -> None:
    """Measure PATH and report the size of each folder below it."""
    settings = Settings.instance()
    root = complete_drive_spec(path) if path else settings.get("scan.default_root")
    max_depth = depth or settings.get("scan.default_depth", 1)
    engine = ScanEngine()
    start = time.monotonic()

    # Human output prints each folder as soon as it is measured.
    on_result = None if as_json else (lambda report: click.echo(_format_folder(report)))

    try:
        if summary:
            result = asyncio.run(engine.summary(root))
        else:
            reports = asyncio.run(engine.list(root, max_depth, on_result=on_result))
    except ScanRootError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    elapsed = format_elapsed(time.monotonic() - start)

    if summary:
        if as_json:
            click.echo(json.dumps(result.to_dict(), indent=2))
        else:
            click.echo(f"\n{result.path}: {click.style(bytes_to_human(result.size), fg='green', bold=True)} ({elapsed})\n")
        return

    if as_json:
        click.echo(json.dumps([r.to_dict() for r in reports], indent=2))
        return

    if not reports:
        click.echo("No folders found.")
        return

    total = sum(r.size for r in reports if r.depth == 1)
    click.echo(f"\n{len(reports):,} folders, {click.style(bytes_to_human(total), fg='green', bold=True)} in subfolders ({elapsed})\n")


# ── stream ───────────────────────────────────────────────────────────────

@main.command()
@click.argument("path", required=False)
@click.option("--depth", "-d", default=None, type=click.IntRange(min=1), help="Levels below PATH to report")
@click.option("--json", "as_json", is_flag=True, help="Print one JSON object per folder")
def stream(path: str | None, depth: int | None, as_json: bool) -> None:
    """Print folder sizes under PATH as soon as each one is measured."""
    settings = Settings.instance()
    root = complete_drive_spec(path) if path else settings.get("scan.default_root")
    session = ScanStreamSession(
        ConsoleChannel(as_json),
        root,
        depth or settings.get("scan.default_depth", 1),
        keepalive_interval=float(settings.get("stream.keepalive_seconds", 30)),
    )
    try:
        state = asyncio.run(session.run())
    except KeyboardInterrupt:
        state = SessionState.CANCELLED
    if state is SessionState.CANCELLED:
        click.echo("Scan cancelled.", err=True)
        sys.exit(130)


# ── drives ───────────────────────────────────────────────────────────────

@main.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def drives(as_json: bool) -> None:
    """List the volume roots that can be scanned."""
    try:
        roots = list_drives()
    except DriveListError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    if as_json:
        click.echo(json.dumps(roots))
        return
    for root in roots:
        click.echo(f"  {click.style(root, fg='cyan', bold=True)}")


# ── serve ────────────────────────────────────────────────────────────────

@main.command()
@click.option("--host", default=None, help="Bind address (default from settings)")
@click.option("--port", "-p", default=None, type=int, help="Port (default from settings)")
def serve(host: str | None, port: int | None) -> None:
    """Run the HTTP API in the foreground."""
    from spacescan.server import serve as run_server

    run_server(host=host, port=port)


# ── service ──────────────────────────────────────────────────────────────

@main.group()
def service() -> None:
    """D-Bus service management."""


@service.command("start")
def service_start() -> None:
    """Start the D-Bus service in foreground."""
    from spacescan.dbus_service import start_service

    click.echo("Starting spacescan D-Bus service...")
    start_service()


# ── config ───────────────────────────────────────────────────────────────

@main.group()
def config() -> None:
    """Read and change settings."""


@config.command("get")
@click.argument("key")
def config_get(key: str) -> None:
    """Print the value of KEY (dot notation, e.g. server.port)."""
    value = Settings.instance().get(key)
    if value is None:
        click.echo(f"Setting '{key}' is not defined.", err=True)
        sys.exit(1)
    click.echo(json.dumps(value))


@config.command("set")
@click.argument("key")
@click.argument("value")
def config_set(key: str, value: str) -> None:
    """Set KEY to VALUE. VALUE is parsed as JSON when possible."""
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError:
        parsed = value
    settings = Settings.instance()
    settings.set(key, parsed)
    click.echo(f"{key} = {json.dumps(parsed)}  ({settings.path})")
