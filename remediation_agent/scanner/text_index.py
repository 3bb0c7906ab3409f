"""Lightweight text scanning helpers shared by the rules.

Rules work on raw source text. These helpers give them line/column lookup,
brace matching and a mask of comment and string-literal regions so that
matches inside them can be ignored.
"""

import bisect
from typing import List, Optional, Tuple


class LineIndex:
    """Maps character offsets to 1-based line and column numbers."""

    def __init__(self, content: str):
        self.content = content
        self._starts = [0]
        pos = content.find("\n")
        while pos != -1:
            self._starts.append(pos + 1)
            pos = content.find("\n", pos + 1)

    @property
    def line_count(self) -> int:
        return len(self._starts)

    def line_of(self, offset: int) -> int:
        return bisect.bisect_right(self._starts, offset)

    def position(self, offset: int) -> Tuple[int, int]:
        """Return (line, column), both 1-based."""
        line = self.line_of(offset)
        return line, offset - self._starts[line - 1] + 1

    def line_start(self, line: int) -> int:
        return self._starts[line - 1]

    def line_text(self, line: int) -> str:
        start = self._starts[line - 1]
        end = self._starts[line] - 1 if line < len(self._starts) else len(self.content)
        return self.content[start:end].rstrip("\r")

    def snippet(self, line: int, before: int = 0, after: int = 0) -> str:
        first = max(1, line - before)
        last = min(self.line_count, line + after)
        return "\n".join(self.line_text(n) for n in range(first, last + 1))


class TextMask:
    """Marks offsets that fall inside comments or string literals.

    Handles `//` line comments, `/* */` blocks, and quoted strings (single,
    double or backtick) with backslash escapes. Swift/Dart
    triple-quoted strings are treated as a run of ordinary strings, which is
    close enough for pattern matching.
    """

    def __init__(self, content: str):
        self.content = content
        self._regions: List[Tuple[int, int]] = []
        self._scan()
        self._region_starts = [r[0] for r in self._regions]

    def _scan(self) -> None:
        text = self.content
        n = len(text)
        i = 0
        while i < n:
            ch = text[i]
            nxt = text[i + 1] if i + 1 < n else ""
            if ch == "/" and nxt == "/":
                end = text.find("\n", i)
                end = n if end == -1 else end
                self._regions.append((i, end))
                i = end
            elif ch == "/" and nxt == "*":
                end = text.find("*/", i + 2)
                end = n if end == -1 else end + 2
                self._regions.append((i, end))
                i = end
            elif ch in ("'", '"', "`"):
                j = i + 1
                while j < n:
                    if text[j] == "\\":
                        j += 2
                        continue
                    if text[j] == ch:
                        break
                    if text[j] == "\n" and ch != "`":
                        break
                    j += 1
                end = min(j + 1, n)
                self._regions.append((i, end))
                i = end
            else:
                i += 1

    def is_masked(self, offset: int) -> bool:
        idx = bisect.bisect_right(self._region_starts, offset) - 1
        if idx < 0:
            return False
        start, end = self._regions[idx]
        return start <= offset < end

    def in_comment(self, offset: int) -> bool:
        idx = bisect.bisect_right(self._region_starts, offset) - 1
        if idx < 0:
            return False
        start, end = self._regions[idx]
        return start <= offset < end and self.content.startswith(("//", "/*"), start)

    def code_only(self) -> str:
        """Content with masked regions blanked to spaces (newlines kept)."""
        chars = list(self.content)
        for start, end in self._regions:
            for k in range(start, end):
                if chars[k] != "\n":
                    chars[k] = " "
        return "".join(chars)


def find_matching_brace(content: str, open_pos: int, mask: Optional[TextMask] = None) -> int:
    """Return the offset of the brace closing the one at `open_pos`, or -1."""
    pairs = {"{": "}", "(": ")", "[": "]"}
    opener = content[open_pos]
    closer = pairs.get(opener)
    if closer is None:
        return -1
    depth = 0
    for i in range(open_pos, len(content)):
        if mask is not None and mask.is_masked(i):
            continue
        ch = content[i]
        if ch == opener:
            depth += 1
        elif ch == closer:
            depth -= 1
            if depth == 0:
                return i
    return -1


def block_after(content: str, start: int, mask: Optional[TextMask] = None) -> Tuple[int, int]:
    """Return (open, close) offsets of the first `{...}` block at or after `start`.

    Returns (-1, -1) when no block is found. An unterminated block runs to the
    end of the content.
    """
    pos = start
    while True:
        pos = content.find("{", pos)
        if pos == -1:
            return -1, -1
        if mask is None or not mask.is_masked(pos):
            break
        pos += 1
    end = find_matching_brace(content, pos, mask)
    return pos, (len(content) if end == -1 else end)


def enclosing_block(content: str, offset: int, mask: Optional[TextMask] = None) -> Tuple[int, int]:
    """Return (open, close) offsets of the innermost `{...}` block containing `offset`."""
    depth = 0
    for i in range(offset - 1, -1, -1):
        if mask is not None and mask.is_masked(i):
            continue
        ch = content[i]
        if ch == "}":
            depth += 1
        elif ch == "{":
            if depth == 0:
                end = find_matching_brace(content, i, mask)
                return i, (len(content) if end == -1 else end)
            depth -= 1
    return 0, len(content)
