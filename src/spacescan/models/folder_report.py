"""Scan request and result dataclasses."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path


class ScanMode(str, enum.Enum):
    """How the caller wants scan results delivered."""

    SUMMARY = "summary"
    LIST = "list"
    STREAM = "stream"


@dataclass(slots=True)
class FolderReport:
    """Size of one discovered directory.

    ``name`` is relative to the scan root and always joined with ``/``,
    whatever the host separator. ``path`` and ``depth`` are kept for
    diagnostics only and never leave the process.
    """

    name: str
    size: int
    path: Path | None = field(default=None, compare=False)
    depth: int = field(default=0, compare=False)

    def to_dict(self) -> dict[str, str | int]:
        return {"name": self.name, "size": self.size}


@dataclass(slots=True)
class SizeSummary:
    """Total recursive size of a single path."""

    path: str
    size: int

    def to_dict(self) -> dict[str, str | int]:
        return {"path": self.path, "size": self.size}


@dataclass(slots=True)
class ScanRequest:
    """A client's request to scan *root_path* down to *max_depth* levels."""

    root_path: str
    max_depth: int = 1
    mode: ScanMode = ScanMode.LIST

    def __post_init__(self) -> None:
        if self.max_depth < 1:
            raise ValueError(f"max_depth must be at least 1, got {self.max_depth}")
