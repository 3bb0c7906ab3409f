"""Tools for the remediation agent."""

from .collector import IssueCollector
from .storage import Store, InMemoryStore, JsonFileStore
from .diff_engine import (
    DiffHunk,
    DiffResult,
    FileDiff,
    generate_diff,
    format_unified_diff,
    unified_diff,
    parse_unified_diff,
    parse_hunks,
    apply_hunks,
)

__all__ = [
    "IssueCollector",
    "Store",
    "InMemoryStore",
    "JsonFileStore",
    "DiffHunk",
    "DiffResult",
    "FileDiff",
    "generate_diff",
    "format_unified_diff",
    "unified_diff",
    "parse_unified_diff",
    "parse_hunks",
    "apply_hunks",
]
