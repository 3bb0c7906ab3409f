"""Line diff generation, unified-diff formatting and parsing, and hunk application.

Two algorithms share one output contract (ordered hunks of `-`/`+` lines
that reconstruct the modified text exactly):

- `heuristic`: two cursors with a short lookahead for pure insertions and
  deletions. Fast and predictable, but not minimal.
- `lcs`: `difflib.SequenceMatcher` opcodes. Minimal in the common case.
"""

from dataclasses import dataclass, field
from difflib import SequenceMatcher
from typing import List, Optional, Tuple
import re

LOOKAHEAD = 3

ALGORITHMS = ("heuristic", "lcs")

HUNK_HEADER = re.compile(r'^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@(.*)$')


@dataclass
class DiffHunk:
    """A contiguous run of removed/added (and optionally context) lines."""
    old_start: int
    old_count: int
    new_start: int
    new_count: int
    lines: List[str] = field(default_factory=list)  # Prefixed with '-', '+' or ' '

    @property
    def header(self) -> str:
        return f"@@ -{self.old_start},{self.old_count} +{self.new_start},{self.new_count} @@"

    @property
    def removed(self) -> List[str]:
        return [l[1:] for l in self.lines if l.startswith('-')]

    @property
    def added(self) -> List[str]:
        return [l[1:] for l in self.lines if l.startswith('+')]

    @property
    def old_lines(self) -> List[str]:
        """Lines this hunk expects in the original (context and removed)."""
        return [l[1:] for l in self.lines if l[:1] in ('-', ' ')]

    @property
    def new_lines(self) -> List[str]:
        """Lines this hunk produces (context and added)."""
        return [l[1:] for l in self.lines if l[:1] in ('+', ' ')]


@dataclass
class DiffResult:
    """Ordered hunks turning one text into another."""
    hunks: List[DiffHunk]
    algorithm: str = "heuristic"

    @property
    def is_empty(self) -> bool:
        return not self.hunks

    @property
    def added_count(self) -> int:
        return sum(len(h.added) for h in self.hunks)

    @property
    def removed_count(self) -> int:
        return sum(len(h.removed) for h in self.hunks)


@dataclass
class FileDiff:
    """All hunks for a single file in a parsed unified diff."""
    old_path: Optional[str]
    new_path: str
    hunks: List[DiffHunk]


# Edit script operations: ('=', old_index, new_index), ('-', old_index, None), ('+', None, new_index)
Op = Tuple[str, Optional[int], Optional[int]]


def _heuristic_ops(a: List[str], b: List[str]) -> List[Op]:
    ops: List[Op] = []
    i = j = 0
    n, m = len(a), len(b)
    while i < n or j < m:
        if i < n and j < m and a[i] == b[j]:
            ops.append(('=', i, j))
            i += 1
            j += 1
        elif i >= n:
            ops.append(('+', None, j))
            j += 1
        elif j >= m:
            ops.append(('-', i, None))
            i += 1
        else:
            ins = next((k for k in range(j + 1, min(m, j + 1 + LOOKAHEAD)) if b[k] == a[i]), None)
            dele = next((k for k in range(i + 1, min(n, i + 1 + LOOKAHEAD)) if a[k] == b[j]), None)
            if ins is not None and (dele is None or ins - j <= dele - i):
                ops.extend(('+', None, k) for k in range(j, ins))
                j = ins
            elif dele is not None:
                ops.extend(('-', k, None) for k in range(i, dele))
                i = dele
            else:
                ops.append(('-', i, None))
                ops.append(('+', None, j))
                i += 1
                j += 1
    return ops


def _lcs_ops(a: List[str], b: List[str]) -> List[Op]:
    ops: List[Op] = []
    matcher = SequenceMatcher(None, a, b, autojunk=False)
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == 'equal':
            ops.extend(('=', i1 + k, j1 + k) for k in range(i2 - i1))
            continue
        ops.extend(('-', k, None) for k in range(i1, i2))
        ops.extend(('+', None, k) for k in range(j1, j2))
    return ops


def _hunks_from_ops(ops: List[Op], a: List[str], b: List[str]) -> List[DiffHunk]:
    hunks = []
    old_pos = new_pos = 0  # Lines consumed so far on each side
    run_removed: List[str] = []
    run_added: List[str] = []
    run_old = run_new = 0

    def flush():
        if not run_removed and not run_added:
            return
        old_count, new_count = len(run_removed), len(run_added)
        hunks.append(DiffHunk(
            old_start=run_old + 1 if old_count else run_old,
            old_count=old_count,
            new_start=run_new + 1 if new_count else run_new,
            new_count=new_count,
            lines=['-' + l for l in run_removed] + ['+' + l for l in run_added],
        ))
        run_removed.clear()
        run_added.clear()

    for op, i, j in ops:
        if op == '=':
            flush()
            old_pos += 1
            new_pos += 1
            continue
        if not run_removed and not run_added:
            run_old, run_new = old_pos, new_pos
        if op == '-':
            run_removed.append(a[i])
            old_pos += 1
        else:
            run_added.append(b[j])
            new_pos += 1
    flush()
    return hunks


def generate_diff(original: str, modified: str, algorithm: str = "heuristic") -> DiffResult:
    """
    Compute a line diff between two texts.

    Lines are split on '\\n' only, so trailing newlines and '\\r' survive a
    round trip through `apply_hunks`.

    Args:
        original: Original text
        modified: Modified text
        algorithm: "heuristic" (approximate, not minimal) or "lcs"

    Returns:
        DiffResult with ordered hunks (no context lines)
    """
    if algorithm not in ALGORITHMS:
        raise ValueError(f"Unknown diff algorithm: {algorithm}")
    a = original.split('\n')
    b = modified.split('\n')
    ops = _heuristic_ops(a, b) if algorithm == "heuristic" else _lcs_ops(a, b)
    return DiffResult(hunks=_hunks_from_ops(ops, a, b), algorithm=algorithm)


def format_unified_diff(result: DiffResult, filename: str = "file") -> str:
    """
    Render a DiffResult as unified diff text.

    Args:
        result: Diff to render
        filename: Path shown in the `--- a/` and `+++ b/` headers

    Returns:
        Unified diff text, empty string for an empty diff
    """
    if result.is_empty:
        return ""
    out = [f"--- a/{filename}", f"+++ b/{filename}"]
    for hunk in result.hunks:
        out.append(hunk.header)
        out.extend(hunk.lines)
    return '\n'.join(out)


def unified_diff(original: str, modified: str, filename: str = "file",
                 algorithm: str = "heuristic") -> str:
    """Diff two texts and render the result in one call."""
    return format_unified_diff(generate_diff(original, modified, algorithm), filename)


def parse_unified_diff(diff_text: str) -> List[FileDiff]:
    """
    Parse unified diff text into FileDiff objects.

    Hunk bodies are consumed by the counts in their headers, so a removed
    line that itself starts with '--' is never mistaken for a file header.

    Args:
        diff_text: Unified diff, optionally with `diff --git` lines

    Returns:
        List of FileDiff objects containing parsed hunks
    """
    if not diff_text or not diff_text.strip():
        return []

    file_diffs: List[FileDiff] = []
    current: Optional[FileDiff] = None
    lines = diff_text.split('\n')
    idx = 0

    def ensure_file() -> FileDiff:
        nonlocal current
        if current is None:
            current = FileDiff(old_path=None, new_path="", hunks=[])
            file_diffs.append(current)
        return current

    while idx < len(lines):
        line = lines[idx]
        idx += 1

        git_match = re.match(r'^diff --git a/(.*) b/(.*)$', line)
        if git_match:
            current = FileDiff(old_path=git_match.group(1), new_path=git_match.group(2), hunks=[])
            file_diffs.append(current)
            continue

        if line.startswith('--- '):
            path = line[4:]
            path = None if path == '/dev/null' else re.sub(r'^a/', '', path)
            if current is None or current.hunks:
                current = FileDiff(old_path=path, new_path="", hunks=[])
                file_diffs.append(current)
            else:
                current.old_path = path
            continue

        if line.startswith('+++ '):
            target = ensure_file()
            target.new_path = re.sub(r'^b/', '', line[4:])
            continue

        header = HUNK_HEADER.match(line)
        if not header:
            continue

        old_count = int(header.group(2)) if header.group(2) is not None else 1
        new_count = int(header.group(4)) if header.group(4) is not None else 1
        hunk = DiffHunk(
            old_start=int(header.group(1)),
            old_count=old_count,
            new_start=int(header.group(3)),
            new_count=new_count,
        )
        remaining_old, remaining_new = old_count, new_count
        while (remaining_old > 0 or remaining_new > 0) and idx < len(lines):
            body = lines[idx]
            idx += 1
            if body.startswith('\\'):
                continue  # "\ No newline at end of file"
            prefix = body[:1]
            if prefix == '-':
                remaining_old -= 1
            elif prefix == '+':
                remaining_new -= 1
            else:
                # Context line; some tools strip the space of blank context lines
                if prefix != ' ':
                    body = ' ' + body
                remaining_old -= 1
                remaining_new -= 1
            hunk.lines.append(body)
        if remaining_old > 0 or remaining_new > 0:
            raise ValueError(f"Truncated hunk: {hunk.header}")
        ensure_file().hunks.append(hunk)

    return file_diffs


def parse_hunks(diff_text: str) -> List[DiffHunk]:
    """Parse a single-file unified diff into its hunks."""
    return [h for fd in parse_unified_diff(diff_text) for h in fd.hunks]


def apply_hunks(original: str, hunks: List[DiffHunk]) -> str:
    """
    Apply hunks to `original`, reconstructing the modified text.

    Raises:
        ValueError: If a hunk's old lines do not match the original
    """
    a = original.split('\n')
    out: List[str] = []
    pos = 0
    for hunk in sorted(hunks, key=lambda h: h.old_start):
        start = hunk.old_start - 1 if hunk.old_count else hunk.old_start
        if start < pos or start + hunk.old_count > len(a):
            raise ValueError(f"Hunk out of range: {hunk.header}")
        expected = hunk.old_lines
        if a[start:start + hunk.old_count] != expected:
            raise ValueError(f"Hunk does not apply: {hunk.header}")
        out.extend(a[pos:start])
        out.extend(hunk.new_lines)
        pos = start + hunk.old_count
    out.extend(a[pos:])
    return '\n'.join(out)
