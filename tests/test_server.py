"""Tests for the HTTP interface."""

from __future__ import annotations

import asyncio
import json

import pytest
from fastapi.testclient import TestClient

import spacescan.server as server
from spacescan.core.aggregator import aggregate_size
from spacescan.core.drives import DriveListError
from spacescan.core.session import EventStreamChannel, ScanStreamSession, SessionState
from spacescan.core.walker import DirectoryWalker
from spacescan.settings import Settings


@pytest.fixture
def client(tmp_path, sample_tree, monkeypatch):
    monkeypatch.delenv("SPACESCAN_HOST", raising=False)
    monkeypatch.delenv("SPACESCAN_PORT", raising=False)
    settings = Settings(tmp_path / "settings.json")
    settings.set("scan.default_root", str(sample_tree))
    return TestClient(server.create_app(settings))


def _events(body: str) -> list[str]:
    return [chunk for chunk in body.split("\n\n") if chunk]


class TestJsonEndpoints:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_summary(self, client, sample_tree):
        resp = client.get("/scan", params={"path": str(sample_tree), "summary": "true"})
        assert resp.status_code == 200
        assert resp.json() == {"path": str(sample_tree), "size": 350}

    def test_list(self, client, sample_tree):
        resp = client.get("/scan", params={"path": str(sample_tree), "depth": "1"})
        assert resp.status_code == 200
        assert sorted(resp.json(), key=lambda d: d["name"]) == [
            {"name": "a", "size": 150},
            {"name": "b", "size": 200},
        ]

    def test_default_path_from_settings(self, client):
        assert client.get("/scan", params={"summary": "true"}).json()["size"] == 350

    @pytest.mark.parametrize("depth", ["abc", "0", "-2", ""])
    def test_bad_depth_falls_back_to_one(self, client, deep_tree, depth):
        resp = client.get("/scan", params={"path": str(deep_tree), "depth": depth})
        assert {d["name"] for d in resp.json()} == {"B", "C"}

    def test_deeper_list(self, client, deep_tree):
        resp = client.get("/scan", params={"path": str(deep_tree), "depth": "3"})
        assert {d["name"]: d["size"] for d in resp.json()} == {"B": 70, "B/D": 60, "B/D/E": 40, "C": 5}

    def test_missing_root_is_500(self, client, tmp_path):
        resp = client.get("/scan", params={"path": str(tmp_path / "missing")})
        assert resp.status_code == 500
        assert resp.json() == {"error": "Failed to scan directory."}

    def test_drives(self, client, monkeypatch):
        monkeypatch.setattr(server, "list_drives", lambda: ["/", "/mnt/data"])
        assert client.get("/drives").json() == ["/", "/mnt/data"]

    def test_drives_failure(self, client, monkeypatch):
        def boom():
            raise DriveListError("no mount table")

        monkeypatch.setattr(server, "list_drives", boom)
        resp = client.get("/drives")
        assert resp.status_code == 500
        assert resp.json() == {"error": "Failed to list drives"}


class TestStream:
    def test_streams_folders_then_done(self, client, sample_tree):
        resp = client.get("/scan-stream", params={"path": str(sample_tree), "depth": "1"})
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/event-stream")
        assert resp.headers["cache-control"] == "no-cache"

        events = _events(resp.text)
        assert events[-1] == "event: done\ndata: done"
        payloads = [json.loads(e[len("data: "):]) for e in events[:-1]]
        assert sorted(payloads, key=lambda d: d["name"]) == [
            {"name": "a", "size": 150},
            {"name": "b", "size": 200},
        ]

    def test_stream_is_depth_first(self, client, deep_tree):
        resp = client.get("/scan-stream", params={"path": str(deep_tree), "depth": "3"})
        names = [json.loads(e[6:])["name"] for e in _events(resp.text)[:-1]]
        assert names.index("B") < names.index("B/D") < names.index("B/D/E")
        assert len(names) == 4

    def test_missing_root_streams_only_done(self, client, tmp_path):
        resp = client.get("/scan-stream", params={"path": str(tmp_path / "missing")})
        assert _events(resp.text) == ["event: done\ndata: done"]

    def test_client_disconnect_cancels_session(self, deep_tree):
        async def slow_aggregate(path, cancel=None):
            await asyncio.sleep(0.2)
            return await aggregate_size(path, cancel)

        async def run():
            channel = EventStreamChannel()
            session = ScanStreamSession(channel, deep_tree, 3, walker=DirectoryWalker(aggregator=slow_aggregate))
            body = server._event_stream(session, channel)
            first = await body.__anext__()
            running = set(server._active_sessions)
            await body.aclose()
            done, pending = await asyncio.wait(running, timeout=2)
            return first, session, channel, pending

        first, session, channel, pending = asyncio.run(run())
        assert first.startswith("data: ")
        assert session.state is SessionState.CANCELLED
        assert session.reports_sent == 1
        assert channel.closed
        assert not pending
        assert not server._active_sessions

    def test_cors_header_for_configured_origin(self, client, sample_tree):
        resp = client.get(
            "/scan",
            params={"path": str(sample_tree), "summary": "true"},
            headers={"Origin": "http://localhost:3000"},
        )
        assert resp.headers["access-control-allow-origin"] == "http://localhost:3000"
