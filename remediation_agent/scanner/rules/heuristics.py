"""Heuristic tier: low-precision rules enabled only for deep analysis.

Both rules rely on bounded lookahead and report many false positives by
construction. Issues they produce carry `heuristic=True`.
"""

import re
from typing import List, Optional

from ...models.issue import Issue, IssueKind, Platform, RuleCategory, Severity
from .base import Rule, SourceText, register

ALL_PLATFORMS = tuple(Platform)

LOOKAHEAD = 200


@register
class InfiniteLoopRule(Rule):
    rule_id = "heuristic-infinite-loop"
    platforms = ALL_PLATFORMS
    category = RuleCategory.HEURISTIC
    kind = IssueKind.INFINITE_LOOP
    severity = Severity.CRITICAL
    title = "Potential infinite loop"
    description = "Loop without apparent exit condition"
    suggestion = "Add break condition or refactor loop"
    heuristic = True

    PATTERN = r"\bwhile\s*\(\s*true\s*\)|\bfor\s*\(\s*;\s*;\s*\)|\bwhile\s+true\b"

    def check(self, source: SourceText, platform: Optional[Platform] = None) -> List[Issue]:
        issues = []
        for m in source.finditer(self.PATTERN):
            ahead = source.code[m.start():m.start() + LOOKAHEAD]
            if re.search(r"\b(?:break|return)\b", ahead):
                continue
            issues.append(self.issue_at(
                source, m.start(), platform,
                context="Loop control",
                possible_cause="Loop may never terminate",
                reproducibility="always",
            ))
        return issues


@register
class DeadCodeRule(Rule):
    rule_id = "heuristic-dead-code"
    platforms = ALL_PLATFORMS
    category = RuleCategory.HEURISTIC
    kind = IssueKind.UNUSED_CODE
    severity = Severity.LOW
    title = "Dead code after return"
    description = "Code after return statement is unreachable"
    suggestion = "Remove unreachable code"
    heuristic = True

    PATTERN = r"\breturn\b[^;\n{}]*;[ \t]*\r?\n\s*(?P<next>[A-Za-z_]\w*)"
    LABELS = {"case", "default"}

    def check(self, source: SourceText, platform: Optional[Platform] = None) -> List[Issue]:
        issues = []
        code = source.code
        for m in source.finditer(self.PATTERN):
            if m.group("next") in self.LABELS:
                continue
            line_start = code.rfind("\n", 0, m.start()) + 1
            # A braceless `if (x) return;` does not end the block
            if re.search(r"\b(?:if|else)\b|=>", code[line_start:m.start()]):
                continue
            issues.append(self.issue_at(
                source, m.start("next"), platform,
                context="Unreachable code",
                possible_cause="Code after return will never execute",
                reproducibility="always",
            ))
        return issues
