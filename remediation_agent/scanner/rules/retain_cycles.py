"""Retain cycle rules (iOS)."""

import re
from typing import List, Optional

from ...models.issue import Issue, IssueKind, Platform, RuleCategory, Severity
from ..text_index import find_matching_brace
from .base import Rule, SourceText, register

# Context preceding a closure that suggests it escapes
ESCAPING_HINTS = ("Task", "async", "completion", "@escaping", "DispatchQueue", "sink")

FUNC_BODY = re.compile(
    r"\b(?:if|guard|else|for|while|switch|do|catch|repeat|defer)\b[^{]*$|"
    r"\bfunc\b[^{]*$|"
    r"\b(?:init|deinit|get|set|willSet|didSet)\b[^{]*$|\b(?:class|struct|enum|extension|protocol)\b[^{]*$")


@register
class EscapingClosureSelfRule(Rule):
    rule_id = "ios-closure-strong-self"
    platforms = (Platform.IOS,)
    category = RuleCategory.RETAIN_CYCLE
    kind = IssueKind.RETAIN_CYCLE
    severity = Severity.MEDIUM
    title = "Potential retain cycle in closure"
    description = "Closure captures self strongly which may cause a retain cycle"
    suggestion = "Use [weak self] or [unowned self] to prevent retain cycle"
    object_type = "Closure"

    def check(self, source: SourceText, platform: Optional[Platform] = None) -> List[Issue]:
        issues = []
        code = source.code
        for m in re.finditer(r"\{", code):
            open_pos = m.start()
            close = find_matching_brace(code, open_pos)
            if close == -1:
                continue
            body = code[open_pos + 1:close]
            # Innermost closure only: nested closures are checked on their own
            if "{" in body or "self." not in body:
                continue
            if re.match(r"\s*\[\s*(?:weak|unowned)(?:\(\w+\))?\s+self", body):
                continue
            line_start = code.rfind("\n", 0, open_pos) + 1
            if FUNC_BODY.search(code[line_start:open_pos]):
                continue
            before = code[max(0, open_pos - 100):open_pos]
            if not any(hint in before for hint in ESCAPING_HINTS):
                continue
            issues.append(self.issue_at(
                source, open_pos, platform,
                code=source.content[open_pos:close + 1][:100],
                retain_cycle=["self", "closure"],
            ))
        return issues


@register
class StrongDelegateRule(Rule):
    rule_id = "ios-strong-delegate"
    platforms = (Platform.IOS,)
    category = RuleCategory.RETAIN_CYCLE
    kind = IssueKind.RETAIN_CYCLE
    severity = Severity.MEDIUM
    title = "Delegate should be weak"
    description = "Delegate property should be weak to prevent retain cycle"
    suggestion = "Make delegate property weak: weak var delegate: DelegateProtocol?"
    object_type = "Delegate"

    PATTERN = r"^[ \t]*((?:@\w+\s+)*(?:(?:private|fileprivate|internal|public|open)(?:\(set\))?\s+)*)var\s+(\w*[dD]elegate\w*)\s*:\s*[\w.]+"

    def check(self, source: SourceText, platform: Optional[Platform] = None) -> List[Issue]:
        issues = []
        for m in source.finditer(self.PATTERN, re.MULTILINE):
            var_pos = m.start(2)
            issues.append(self.issue_at(
                source, var_pos, platform,
                retain_cycle=["self", m.group(2)],
                property=m.group(2),
            ))
        return issues
