"""Loose typing rules (TypeScript)."""

import re
from typing import List, Optional

from ...models.issue import Issue, IssueKind, Platform, RuleCategory, Severity
from .base import JS_PLATFORMS, Rule, SourceText, register

LINT_SUPPRESSION = re.compile(r"eslint-disable|@ts-ignore|@ts-expect-error|no-explicit-any")


@register
class AnyTypeRule(Rule):
    rule_id = "ts-any-type"
    platforms = JS_PLATFORMS
    category = RuleCategory.TYPE_MISMATCH
    kind = IssueKind.TYPE_MISMATCH
    severity = Severity.LOW
    title = "Usage of any type"
    description = "Using any type bypasses TypeScript type checking"
    suggestion = "Replace any with specific type or unknown"

    def check(self, source: SourceText, platform: Optional[Platform] = None) -> List[Issue]:
        issues = []
        for m in source.finditer(r":\s*any\b"):
            line, _ = source.index.position(m.start())
            previous = source.line_text(line - 1) if line > 1 else ""
            suppressed = bool(
                LINT_SUPPRESSION.search(source.line_text(line))
                or LINT_SUPPRESSION.search(previous)
            )
            issues.append(self.issue_at(
                source, m.start(), platform,
                severity=Severity.INFO if suppressed else None,
                context="Type annotation",
                possible_cause="May hide type errors that would be caught at compile time",
                reproducibility="always",
                suppressed=suppressed,
            ))
        return issues
