"""Race condition rules (React Native / Web)."""

import re
from typing import List, Optional, Tuple

from ...models.issue import Issue, IssueKind, Platform, RuleCategory, Severity
from ..text_index import find_matching_brace
from .base import JS_PLATFORMS, Rule, SourceText, register

ASYNC_FUNCTION = (
    r"\basync\s+function\b[^{]*\{"
    r"|\basync\s*\([^)]*\)\s*(?::\s*[^={]+)?=>\s*\{"
    r"|\basync\s+\w+\s*=>\s*\{"
    r"|\basync\s+\w+\s*\([^)]*\)\s*(?::\s*[^{]+)?\{"
)

STATE_UPDATE = r"\bset(?:State|[A-Z]\w*)\s*\(|\bthis\.state\s*="

MOUNT_GUARDS = ("isMounted", "mounted", "signal", "aborted", "cancelled", "canceled", "isActive", "ignore")


def async_bodies(source: SourceText) -> List[Tuple[int, int, int]]:
    """Return (start, body_open, body_close) for each async function."""
    bodies = []
    for m in source.finditer(ASYNC_FUNCTION):
        open_pos = m.end() - 1
        close = find_matching_brace(source.code, open_pos)
        bodies.append((m.start(), open_pos, len(source.code) if close == -1 else close))
    return bodies


@register
class AsyncStateUpdateRule(Rule):
    rule_id = "react-async-state-update"
    platforms = JS_PLATFORMS
    category = RuleCategory.RACE_CONDITION
    kind = IssueKind.RACE_CONDITION
    severity = Severity.HIGH
    title = "Async state update without mount check"
    description = "Async operation updates state without checking if component is still mounted"
    suggestion = "Add isMounted check or use AbortController"

    def check(self, source: SourceText, platform: Optional[Platform] = None) -> List[Issue]:
        issues = []
        for _, open_pos, close in async_bodies(source):
            body = source.code[open_pos + 1:close]
            awaited = re.search(r"\bawait\b", body)
            if not awaited:
                continue
            if any(guard in body for guard in MOUNT_GUARDS):
                continue
            update = re.compile(STATE_UPDATE).search(body, awaited.end())
            if not update:
                continue
            issues.append(self.issue_at(
                source, open_pos + 1 + update.start(), platform,
                context="Async state update",
                possible_cause="Component may unmount before async operation completes",
                reproducibility="intermittent",
            ))
        return issues


@register
class ConsecutiveSetStateRule(Rule):
    rule_id = "react-consecutive-setstate"
    platforms = JS_PLATFORMS
    category = RuleCategory.RACE_CONDITION
    kind = IssueKind.RACE_CONDITION
    severity = Severity.MEDIUM
    title = "Multiple setState calls"
    description = "Multiple setState calls may cause race condition or batching issues"
    suggestion = "Combine into single setState call or use functional updates"

    PATTERN = r"\bsetState\s*\([^;]*?\)\s*;\s*setState\s*\("
    FUNCTIONAL = r"\bsetState\s*\(\s*(?:\w+|\([^)]*\))\s*=>"

    def check(self, source: SourceText, platform: Optional[Platform] = None) -> List[Issue]:
        issues = []
        for m in source.finditer(self.PATTERN):
            if re.search(self.FUNCTIONAL, source.code[m.start():m.end() + 40]):
                issues.append(self.issue_at(
                    source, m.start(), platform,
                    severity=Severity.LOW,
                    mitigation="functional_updates",
                    context="State updates",
                ))
                continue
            issues.append(self.issue_at(
                source, m.start(), platform,
                context="State updates",
                possible_cause="State updates may not batch correctly",
                reproducibility="intermittent",
            ))
        return issues


@register
class SharedMutableStateRule(Rule):
    rule_id = "react-shared-mutable-state"
    platforms = JS_PLATFORMS
    category = RuleCategory.RACE_CONDITION
    kind = IssueKind.RACE_CONDITION
    severity = Severity.HIGH
    title = "Shared mutable state in async context"
    description = "Mutable variable is accessed/modified in async context"
    suggestion = "Use proper synchronization or immutable state pattern"

    LOCKS = r"\b(?:Mutex|mutex|Lock|lock|Semaphore|semaphore|runExclusive)\b"

    def check(self, source: SourceText, platform: Optional[Platform] = None) -> List[Issue]:
        issues = []
        bodies = async_bodies(source)
        if not bodies:
            return issues
        locked = source.search(self.LOCKS) is not None
        # Module level declarations start at column 1
        for m in source.finditer(r"^let\s+(\w+)\s*=", re.MULTILINE):
            name = re.escape(m.group(1))
            mutation = re.compile(rf"(?<![\w.]){name}\s*(?:[+\-*/%]?=(?!=)|\+\+|--)|(?:\+\+|--){name}\b")
            mutated = any(
                mutation.search(source.code, open_pos + 1, close)
                for _, open_pos, close in bodies
            )
            if not mutated:
                continue
            issues.append(self.issue_at(
                source, m.start(), platform,
                severity=Severity.MEDIUM if locked else None,
                variable=m.group(1),
                context="Async modification",
                possible_cause="Multiple async operations may access same variable",
                reproducibility="intermittent",
            ))
        return issues
