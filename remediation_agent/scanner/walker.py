"""Corpus walker: lazily enumerates source files under a project root."""

import os
from typing import Dict, Iterable, Iterator, Optional, Set, Tuple

from ..models.issue import Platform
from ..utils.logging import get_logger

logger = get_logger(__name__)


DEFAULT_EXCLUDES = frozenset({
    ".git", ".svn", ".hg",
    "node_modules", "build", "dist",
    "Pods", ".gradle", ".idea", "DerivedData",
    ".dart_tool", "__pycache__",
    ".remediation-backups",
})

PLATFORM_EXTENSIONS: Dict[Platform, Tuple[str, ...]] = {
    Platform.IOS: (".swift", ".m"),
    Platform.ANDROID: (".kt", ".java"),
    Platform.FLUTTER: (".dart",),
    Platform.REACT_NATIVE: (".tsx", ".ts", ".jsx", ".js"),
    Platform.WEB: (".tsx", ".ts", ".jsx", ".js"),
}


def iter_source_files(
    root: str,
    extensions: Iterable[str],
    max_depth: int = 10,
    exclude_dirs: Optional[Iterable[str]] = None,
) -> Iterator[str]:
    """
    Yield absolute paths of files under `root` with one of `extensions`.

    The root is depth 0; directories deeper than `max_depth` are not entered.
    Each physical directory is visited once, so symlink loops terminate.
    Unreadable directories are skipped.

    Args:
        root: Project root directory
        extensions: File suffixes to match (e.g. ".ts")
        max_depth: Maximum directory depth to descend
        exclude_dirs: Directory names to skip (default: DEFAULT_EXCLUDES)

    Yields:
        Absolute file paths, in sorted order per directory
    """
    suffixes = tuple(extensions)
    excludes = DEFAULT_EXCLUDES if exclude_dirs is None else frozenset(exclude_dirs)
    seen: Set[Tuple[int, int]] = set()
    stack = [(os.path.abspath(root), 0)]

    while stack:
        directory, depth = stack.pop()
        try:
            st = os.stat(directory)
        except OSError as e:
            logger.debug(f"Cannot stat {directory}: {e}")
            continue
        key = (st.st_dev, st.st_ino)
        if key in seen:
            continue
        seen.add(key)

        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            logger.debug(f"Skipping unreadable directory {directory}: {e}")
            continue

        subdirs = []
        for entry in entries:
            try:
                is_dir = entry.is_dir()
            except OSError:
                continue
            if is_dir:
                if entry.name in excludes or depth + 1 > max_depth:
                    continue
                subdirs.append(os.path.join(directory, entry.name))
            elif entry.name.endswith(suffixes):
                yield os.path.join(directory, entry.name)

        # Reverse so subdirectories come off the stack in sorted order
        for sub in reversed(subdirs):
            stack.append((sub, depth + 1))


def files_for_platform(root: str, platform: Platform, max_depth: int = 10,
                       exclude_dirs: Optional[Iterable[str]] = None) -> Iterator[str]:
    """Yield source files matching the platform's extensions."""
    return iter_source_files(root, PLATFORM_EXTENSIONS[platform], max_depth, exclude_dirs)


def read_source(path: str) -> Optional[str]:
    """Read a source file as UTF-8, or None when unreadable/undecodable."""
    try:
        with open(path, "r", encoding="utf-8", newline="") as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as e:
        logger.debug(f"Skipping {path}: {e}")
        return None
