"""spacescan data models."""

from spacescan.models.folder_report import FolderReport, ScanMode, ScanRequest, SizeSummary

__all__ = [
    "FolderReport",
    "ScanMode",
    "ScanRequest",
    "SizeSummary",
]
