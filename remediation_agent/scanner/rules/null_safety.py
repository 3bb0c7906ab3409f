"""Null safety rules."""

import re
from typing import List, Optional

from ...models.issue import Issue, IssueKind, Platform, RuleCategory, Severity
from .base import JS_PLATFORMS, Rule, SourceText, register

SWIFT_NOT_OPTIONALS = {"try", "as", "NSObject"}


@register
class NonNullAssertionRule(Rule):
    rule_id = "ts-non-null-assertion"
    platforms = JS_PLATFORMS
    category = RuleCategory.NULL_SAFETY
    kind = IssueKind.NULL_REFERENCE
    severity = Severity.MEDIUM
    title = "Non-null assertion operator"
    suggestion = "Use optional chaining (?.) or proper null check"

    def check(self, source: SourceText, platform: Optional[Platform] = None) -> List[Issue]:
        issues = []
        for m in source.finditer(r"\b(\w+)!\."):
            issues.append(self.issue_at(
                source, m.start(), platform,
                description=f"Force unwrap of {m.group(1)} may cause runtime error if null",
                variable=m.group(1),
                context="Force unwrap",
                possible_cause="Value may be null at runtime despite assertion",
                reproducibility="intermittent",
            ))
        return issues


@register
class SwiftForceUnwrapRule(Rule):
    rule_id = "swift-force-unwrap"
    platforms = (Platform.IOS,)
    category = RuleCategory.NULL_SAFETY
    kind = IssueKind.NULL_REFERENCE
    severity = Severity.MEDIUM
    title = "Force unwrap of optional"
    suggestion = "Use if let, guard let, or nil coalescing (??) instead"

    IMPLICIT_DECL = re.compile(r"\b(?:var|let)\s+\w+\s*:\s*[\w.<>\[\]]*$")

    def check(self, source: SourceText, platform: Optional[Platform] = None) -> List[Issue]:
        issues = []
        code = source.code
        for m in source.finditer(r"\b(\w+)!(?!=)"):
            name = m.group(1)
            if name in SWIFT_NOT_OPTIONALS:
                continue
            line_start = code.rfind("\n", 0, m.start()) + 1
            if self.IMPLICIT_DECL.search(code[line_start:m.end() - 1]):
                issues.append(self.issue_at(
                    source, m.start(), platform,
                    severity=Severity.LOW,
                    title="Implicitly unwrapped optional",
                    description=f"{name} is declared implicitly unwrapped and crashes if read while nil",
                    variable=name,
                    context="Implicitly unwrapped declaration",
                ))
                continue
            issues.append(self.issue_at(
                source, m.start(), platform,
                description=f"Force unwrap of {name} may cause crash if nil",
                variable=name,
                context="Force unwrap",
                possible_cause="Optional value may be nil at runtime",
                reproducibility="intermittent",
            ))
        return issues


@register
class KotlinNotNullAssertionRule(Rule):
    rule_id = "kotlin-not-null-assertion"
    platforms = (Platform.ANDROID,)
    category = RuleCategory.NULL_SAFETY
    kind = IssueKind.NULL_REFERENCE
    severity = Severity.MEDIUM
    title = "Not-null assertion operator"
    suggestion = "Use safe call (?.) or null check"

    def check(self, source: SourceText, platform: Optional[Platform] = None) -> List[Issue]:
        issues = []
        for m in source.finditer(r"\b(\w+)!!"):
            issues.append(self.issue_at(
                source, m.start(), platform,
                description=f"Not-null assertion on {m.group(1)} may throw NPE",
                variable=m.group(1),
                context="Not-null assertion",
                possible_cause="Value may be null at runtime",
                reproducibility="intermittent",
            ))
        return issues


@register
class UnsafeAccessAfterCheckRule(Rule):
    rule_id = "js-access-outside-check"
    platforms = JS_PLATFORMS
    category = RuleCategory.NULL_SAFETY
    kind = IssueKind.NULL_REFERENCE
    severity = Severity.LOW
    title = "Potential unsafe access after null check"
    suggestion = "Ensure access is within null-check block or add guard clause"

    PATTERN = r"\bif\s*\(\s*(\w+)\s*\)\s*\{([^{}]*)\}(?!\s*else)([\s\S]{0,50}?)(?<![\w.])\1\."

    def check(self, source: SourceText, platform: Optional[Platform] = None) -> List[Issue]:
        issues = []
        for m in source.finditer(self.PATTERN):
            block = m.group(2)
            if re.search(r"\b(?:return|throw)\b", block):
                continue
            name = m.group(1)
            access = m.end() - len(name) - 1
            issues.append(self.issue_at(
                source, access, platform,
                description=f"{name} accessed outside of null-check block",
                variable=name,
                context="Null check scope",
                possible_cause="Variable may be null when accessed outside if block",
                reproducibility="always",
            ))
        return issues
