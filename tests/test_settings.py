"""Tests for the JSON settings store."""

from __future__ import annotations

import json

import pytest

from spacescan.settings import Settings


@pytest.fixture
def settings_file(tmp_path, monkeypatch):
    monkeypatch.delenv("SPACESCAN_HOST", raising=False)
    monkeypatch.delenv("SPACESCAN_PORT", raising=False)
    return tmp_path / "settings.json"


class TestSettings:
    def test_defaults_without_file(self, settings_file):
        settings = Settings(settings_file)
        assert settings.get("server.port") == 3001
        assert settings.get("stream.keepalive_seconds") == 30
        assert settings.get("scan.default_depth") == 1
        assert settings.get("server.cors_origins") == ["http://localhost:3000"]

    def test_unknown_key_returns_default(self, settings_file):
        assert Settings(settings_file).get("nope.nothing", "fallback") == "fallback"

    def test_set_persists(self, settings_file):
        Settings(settings_file).set("stream.keepalive_seconds", 5)
        assert json.loads(settings_file.read_text()) == {"stream": {"keepalive_seconds": 5}}
        assert Settings(settings_file).get("stream.keepalive_seconds") == 5

    def test_file_value_overrides_default(self, settings_file):
        settings_file.write_text(json.dumps({"scan": {"default_root": "/data"}}))
        settings = Settings(settings_file)
        assert settings.get("scan.default_root") == "/data"
        assert settings.get("scan.default_depth") == 1

    def test_corrupt_file_ignored(self, settings_file):
        settings_file.write_text("{not json")
        assert Settings(settings_file).get("server.port") == 3001

    def test_env_override(self, settings_file, monkeypatch):
        settings_file.write_text(json.dumps({"server": {"port": 9000}}))
        monkeypatch.setenv("SPACESCAN_PORT", "8123")
        monkeypatch.setenv("SPACESCAN_HOST", "0.0.0.0")
        settings = Settings(settings_file)
        assert settings.get("server.port") == 8123
        assert settings.get("server.host") == "0.0.0.0"

    def test_invalid_env_override_ignored(self, settings_file, monkeypatch):
        monkeypatch.setenv("SPACESCAN_PORT", "not-a-port")
        assert Settings(settings_file).get("server.port") == 3001

    def test_returned_defaults_are_copies(self, settings_file):
        settings = Settings(settings_file)
        settings.get("server.cors_origins").append("http://evil")
        assert settings.get("server.cors_origins") == ["http://localhost:3000"]

    def test_singleton_uses_xdg_config(self, isolate_settings):
        settings = Settings.instance()
        assert settings is Settings.instance()
        assert settings.path == isolate_settings
