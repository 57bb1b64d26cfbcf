"""Shared test fixtures."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from spacescan.settings import Settings


@pytest.fixture
def sample_tree(tmp_path):
    """root/{a/{x.txt:100, y.txt:50}, b/{z.txt:200}}"""
    root = tmp_path / "root"
    (root / "a").mkdir(parents=True)
    (root / "b").mkdir()
    (root / "a" / "x.txt").write_bytes(b"x" * 100)
    (root / "a" / "y.txt").write_bytes(b"y" * 50)
    (root / "b" / "z.txt").write_bytes(b"z" * 200)
    return root


@pytest.fixture
def deep_tree(tmp_path):
    """Three levels of nesting with a file at every level."""
    root = tmp_path / "deep"
    (root / "B" / "D" / "E").mkdir(parents=True)
    (root / "C").mkdir()
    (root / "top.bin").write_bytes(b"t" * 7)
    (root / "B" / "b.bin").write_bytes(b"b" * 10)
    (root / "B" / "D" / "d.bin").write_bytes(b"d" * 20)
    (root / "B" / "D" / "E" / "e.bin").write_bytes(b"e" * 40)
    (root / "C" / "c.bin").write_bytes(b"c" * 5)
    return root


@pytest.fixture
def deny_listing(monkeypatch):
    """Make ``os.scandir`` raise PermissionError for the given paths.

    Works even when the tests run as root, where chmod has no effect.
    """
    denied: set[str] = set()
    real_scandir = os.scandir

    def fake_scandir(path="."):
        if os.fspath(path) in denied:
            raise PermissionError(13, "Permission denied", os.fspath(path))
        return real_scandir(path)

    monkeypatch.setattr(os, "scandir", fake_scandir)

    def deny(*paths: Path) -> None:
        denied.update(os.fspath(p) for p in paths)

    return deny


@pytest.fixture
def isolate_settings(tmp_path_factory, monkeypatch):
    """Point the settings singleton at a temp config directory."""
    config_home = tmp_path_factory.mktemp("config")
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_home))
    monkeypatch.delenv("SPACESCAN_HOST", raising=False)
    monkeypatch.delenv("SPACESCAN_PORT", raising=False)
    monkeypatch.setattr(Settings, "_instance", None)
    return config_home / "spacescan" / "settings.json"

