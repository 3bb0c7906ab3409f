"""State inconsistency rules."""

import re
from typing import List, Optional

from ...models.issue import Issue, IssueKind, Platform, RuleCategory, Severity
from .base import JS_PLATFORMS, Rule, SourceText, register


@register
class DerivedStateRule(Rule):
    rule_id = "react-derived-state"
    platforms = JS_PLATFORMS
    category = RuleCategory.STATE_INCONSISTENCY
    kind = IssueKind.STATE_INCONSISTENCY
    severity = Severity.MEDIUM
    title = "Derived state may become stale"
    suggestion = "Use useEffect to sync state with props, or compute value directly from props"

    def check(self, source: SourceText, platform: Optional[Platform] = None) -> List[Issue]:
        issues = []
        for m in source.finditer(r"\buseState\s*\(\s*props\.(\w+)\s*\)"):
            prop = m.group(1)
            # A syncing effect lists the prop in its dependency array
            if source.search(rf"\[[^\]]*\bprops\.{re.escape(prop)}\b[^\]]*\]\s*\)"):
                continue
            issues.append(self.issue_at(
                source, m.start(), platform,
                description=f"State initialized from props.{prop} but may not update when prop changes",
                prop=prop,
                context="Props to state",
                possible_cause="useState only uses initial value, subsequent prop changes are ignored",
                reproducibility="always",
            ))
        return issues


@register
class ConditionalSetStateRule(Rule):
    rule_id = "react-conditional-setstate"
    platforms = JS_PLATFORMS
    category = RuleCategory.STATE_INCONSISTENCY
    kind = IssueKind.STATE_INCONSISTENCY
    severity = Severity.LOW
    title = "Conditional state update without else branch"
    description = "State is updated conditionally which may lead to inconsistent states"
    suggestion = "Ensure all state paths are handled, or document expected behavior"

    PATTERN = r"\bif\s*\(([^)]+)\)\s*\{[^{}]*\bset(?:State|[A-Z]\w*)\s*\([^{}]*\}(?!\s*else)"

    def check(self, source: SourceText, platform: Optional[Platform] = None) -> List[Issue]:
        issues = []
        for m in source.finditer(self.PATTERN):
            condition = m.group(1)
            if "state" not in condition and "State" not in condition:
                continue
            issues.append(self.issue_at(
                source, m.start(), platform,
                code=source.content[m.start():m.end()][:100],
                context="Conditional update",
                possible_cause="State may remain in unexpected state when condition is false",
                reproducibility="always",
            ))
        return issues


@register
class FlutterSetStateAfterAwaitRule(Rule):
    rule_id = "flutter-setstate-after-await"
    platforms = (Platform.FLUTTER,)
    category = RuleCategory.STATE_INCONSISTENCY
    kind = IssueKind.STATE_INCONSISTENCY
    severity = Severity.HIGH
    title = "setState after async operation"
    description = "setState called after await without checking mounted state"
    suggestion = "Check if (mounted) before calling setState after await"

    PATTERN = r"\bawait\s+[^;]+;([\s\S]{0,50}?)(?P<call>\bsetState)\s*\("

    def check(self, source: SourceText, platform: Optional[Platform] = None) -> List[Issue]:
        issues = []
        checked_elsewhere = source.contains("mounted")
        for m in source.finditer(self.PATTERN):
            if "mounted" in m.group(1):
                continue
            issues.append(self.issue_at(
                source, m.start("call"), platform,
                severity=Severity.MEDIUM if checked_elsewhere else None,
                context="Async setState",
                possible_cause="Widget may be disposed before setState is called",
                reproducibility="intermittent",
            ))
        return issues
