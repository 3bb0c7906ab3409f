"""Corpus walking and rule-based issue detection."""

from .walker import iter_source_files, files_for_platform, PLATFORM_EXTENSIONS, DEFAULT_EXCLUDES
from .engine import (
    ScanResult,
    scan_project,
    scan_project_sync,
    scan_content,
    detect_file,
    lifecycle_issues,
)

__all__ = [
    "iter_source_files",
    "files_for_platform",
    "PLATFORM_EXTENSIONS",
    "DEFAULT_EXCLUDES",
    "ScanResult",
    "scan_project",
    "scan_project_sync",
    "scan_content",
    "detect_file",
    "lifecycle_issues",
]
