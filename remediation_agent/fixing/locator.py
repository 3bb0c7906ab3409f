"""Finds where a fix's original code lives in the current version of a file."""

import os
from dataclasses import dataclass
from difflib import SequenceMatcher
from typing import List, Optional

from ..errors import LocationDriftError
from ..models import LocateStrategy
from ..utils.logging import get_logger

logger = get_logger(__name__)

HASH_COMMENT_EXTENSIONS = {".py", ".rb", ".sh", ".yaml", ".yml"}


@dataclass
class Location:
    """Where a patch applies: lines[start:end] (0-based, end exclusive)."""
    strategy: LocateStrategy
    start: int
    end: int
    similarity: float = 1.0


def _trimmed(lines: List[str]) -> List[str]:
    return [l.strip() for l in lines]


class PatchLocator:
    """
    Locates a snippet with a fallback ladder.

    1. exact: the only window whose trimmed lines equal the trimmed snippet,
       or the copy sitting exactly at the expected start.
    2. anchored: among several exact copies, the one strictly nearest the
       expected start within `search_radius`; failing that, the most
       similar window within `search_radius`, accepted at
       `min_similarity` or above.
    3. manual: nothing matched, or several copies are equally near; the
       caller appends a manual-action block.
    """

    def __init__(self, context_before: int = 2, search_radius: int = 10,
                 min_similarity: float = 0.5, allow_manual: bool = True):
        self.context_before = context_before
        self.search_radius = search_radius
        self.min_similarity = min_similarity
        self.allow_manual = allow_manual

    def expected_start(self, reported_line: int, start_hint: Optional[int] = None) -> int:
        if start_hint is not None:
            return max(0, start_hint - 1)
        return max(0, reported_line - 1 - self.context_before)

    def locate(self, lines: List[str], original_code: str, reported_line: int,
               start_hint: Optional[int] = None) -> Location:
        """
        Find `original_code` in `lines`.

        Args:
            lines: Current file content split on newlines
            original_code: Snippet the fix was built against
            reported_line: Line of the issue when the fix was built
            start_hint: Line where the snippet started when the fix was built

        Returns:
            Location of the snippet, or a MANUAL location at end of file

        Raises:
            LocationDriftError: If nothing matched and manual fallback is disabled
        """
        snippet = original_code.split("\n")
        size = len(snippet)
        expected = self.expected_start(reported_line, start_hint)
        target = _trimmed(snippet)
        trimmed = _trimmed(lines)

        exact = [
            start for start in range(0, len(lines) - size + 1)
            if trimmed[start:start + size] == target
        ]
        if len(exact) == 1 or expected in exact:
            start = exact[0] if len(exact) == 1 else expected
            return Location(LocateStrategy.EXACT, start, start + size)
        if exact:
            ranked = sorted(exact, key=lambda s: abs(s - expected))
            distance = abs(ranked[0] - expected)
            if distance <= self.search_radius and abs(ranked[1] - expected) > distance:
                logger.info(f"Snippet occurs {len(exact)} times, using the one nearest line {expected + 1}")
                return Location(LocateStrategy.ANCHORED, ranked[0], ranked[0] + size)
            # Equally plausible copies: splicing any of them could hit the wrong one
            return self._unlocated(
                lines, reported_line, 1.0, f"{len(exact)} equally plausible matches"
            )

        best_start, best_ratio = -1, 0.0
        joined = "\n".join(target)
        low = max(0, expected - self.search_radius)
        high = min(len(lines) - size, expected + self.search_radius)
        for start in range(low, high + 1):
            candidate = "\n".join(trimmed[start:start + size])
            ratio = SequenceMatcher(None, joined, candidate, autojunk=False).ratio()
            if ratio > best_ratio:
                best_start, best_ratio = start, ratio
        if best_start >= 0 and best_ratio >= self.min_similarity:
            logger.info(f"Anchored match at line {best_start + 1} (similarity {best_ratio:.2f})")
            return Location(LocateStrategy.ANCHORED, best_start, best_start + size, best_ratio)
        return self._unlocated(lines, reported_line, best_ratio,
                               f"best similarity {best_ratio:.2f}")

    def _unlocated(self, lines: List[str], reported_line: int, similarity: float,
                   reason: str) -> Location:
        if not self.allow_manual:
            raise LocationDriftError(
                f"Could not locate fix target near line {reported_line} ({reason})"
            )
        logger.warning(f"Falling back to a manual fix block ({reason})")
        return Location(LocateStrategy.MANUAL, len(lines), len(lines), similarity)


def comment_prefix(file_path: str) -> str:
    ext = os.path.splitext(file_path)[1].lower()
    return "#" if ext in HASH_COMMENT_EXTENSIONS else "//"


def manual_block(file_path: str, title: str, line: int, suggested_code: str,
                 newline: str = "\n") -> List[str]:
    """Lines of a commented block describing a change that must be made by hand."""
    prefix = comment_prefix(file_path)
    block = [
        f"{prefix} MANUAL FIX REQUIRED: {title}",
        f"{prefix} Originally reported at line {line}. Suggested code:",
    ]
    block.extend(f"{prefix}   {l}" for l in suggested_code.split("\n"))
    block.append(f"{prefix} END MANUAL FIX")
    if newline == "\r\n":
        block = [l + "\r" for l in block]
    return block


def splice(content: str, location: Location, replacement: str, file_path: str = "",
           title: str = "", reported_line: int = 0) -> str:
    """
    Apply `replacement` at `location` and return the new file content.

    Line endings follow the file: a CRLF file keeps CRLF on replaced lines,
    and a trailing newline is preserved.
    """
    lines = content.split("\n")
    crlf = any(l.endswith("\r") for l in lines)

    if location.strategy == LocateStrategy.MANUAL:
        trailing = content.endswith("\n")
        body = lines[:-1] if trailing else lines
        block = manual_block(file_path, title, reported_line, replacement,
                             "\r\n" if crlf else "\n")
        if body and body[-1].rstrip("\r"):
            block.insert(0, "\r" if crlf else "")
        new_lines = body + block + ([""] if trailing else [])
        return "\n".join(new_lines)

    new_segment = replacement.split("\n")
    if crlf:
        new_segment = [l if l.endswith("\r") else l + "\r" for l in new_segment]
        # The final file line may legitimately lack a CR
        if location.end == len(lines) and not lines[-1].endswith("\r"):
            new_segment[-1] = new_segment[-1].rstrip("\r")
    return "\n".join(lines[:location.start] + new_segment + lines[location.end:])
