"""Rule interface and static registry."""

import re
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional, Tuple, Type

from ...models.issue import Issue, IssueKind, Platform, RuleCategory, Severity
from ..text_index import LineIndex, TextMask

JS_PLATFORMS = (Platform.REACT_NATIVE, Platform.WEB)


class SourceText:
    """A file's content plus the indexes rules need, built once per file."""

    def __init__(self, content: str, path: str = ""):
        self.content = content
        self.path = path
        self.index = LineIndex(content)
        self.mask = TextMask(content)
        # Same length as content, comments and strings blanked out
        self.code = self.mask.code_only()

    def contains(self, needle: str) -> bool:
        """True when `needle` appears outside comments and strings."""
        return needle in self.code

    def search(self, pattern: str, flags: int = 0) -> Optional[re.Match]:
        return re.search(pattern, self.code, flags)

    def finditer(self, pattern: str, flags: int = 0) -> Iterable[re.Match]:
        return re.finditer(pattern, self.code, flags)

    def line_text(self, line: int) -> str:
        return self.index.line_text(line)


class Rule:
    """
    A single detector for one defect pattern.

    Subclasses declare their metadata as class attributes and implement
    `check`. Detection is a pure function of the file content.
    """

    rule_id: str = ""
    platforms: Tuple[Platform, ...] = ()
    category: RuleCategory = RuleCategory.HEURISTIC
    kind: IssueKind = IssueKind.LEAK
    severity: Severity = Severity.MEDIUM
    title: str = ""
    description: str = ""
    suggestion: str = ""
    object_type: Optional[str] = None
    heuristic: bool = False

    def detect(self, content: str, file_path: str = "",
               platform: Optional[Platform] = None) -> List[Issue]:
        """Run the rule over raw file content."""
        return self.check(SourceText(content, file_path), platform)

    def check(self, source: SourceText, platform: Optional[Platform] = None) -> List[Issue]:
        raise NotImplementedError

    def issue_at(
        self,
        source: SourceText,
        offset: int,
        platform: Optional[Platform] = None,
        severity: Optional[Severity] = None,
        title: Optional[str] = None,
        description: Optional[str] = None,
        code: Optional[str] = None,
        suggestion: Optional[str] = None,
        **details,
    ) -> Issue:
        """Build an Issue located at a character offset of the source."""
        line, column = source.index.position(offset)
        if self.object_type and "object_type" not in details:
            details["object_type"] = self.object_type
        if platform is None and len(self.platforms) == 1:
            platform = self.platforms[0]
        return Issue(
            kind=self.kind,
            severity=severity or self.severity,
            title=title or self.title,
            description=description or self.description,
            file=source.path,
            line=line,
            column=column,
            code=code if code is not None else source.line_text(line).strip(),
            suggestion=suggestion or self.suggestion or None,
            rule_id=self.rule_id,
            category=self.category,
            platform=platform,
            heuristic=self.heuristic,
            details=details,
        )


_REGISTRY: "OrderedDict[str, Rule]" = OrderedDict()
_BY_KEY: Dict[Tuple[Platform, RuleCategory], List[Rule]] = {}


def register(cls: Type[Rule]) -> Type[Rule]:
    """Class decorator adding a rule to the static registry."""
    if not cls.rule_id:
        raise ValueError(f"Rule {cls.__name__} has no rule_id")
    if cls.rule_id in _REGISTRY:
        raise ValueError(f"Duplicate rule id: {cls.rule_id}")
    rule = cls()
    _REGISTRY[cls.rule_id] = rule
    for platform in cls.platforms:
        _BY_KEY.setdefault((platform, cls.category), []).append(rule)
    return cls


def get_rules(
    platform: Platform,
    categories: Optional[Iterable[RuleCategory]] = None,
    include_heuristics: bool = False,
) -> List[Rule]:
    """
    Return registered rules for a platform, in registration order.

    Args:
        platform: Target platform
        categories: Restrict to these categories (default: all)
        include_heuristics: Include the low-precision heuristic tier

    Returns:
        Rule instances
    """
    wanted = set(categories) if categories else None
    rules = []
    for rule in _REGISTRY.values():
        if platform not in rule.platforms:
            continue
        if rule.heuristic:
            # The heuristic tier is gated by the flag alone
            if not include_heuristics:
                continue
        elif wanted is not None and rule.category not in wanted:
            continue
        rules.append(rule)
    return rules


def rules_for(platform: Platform, category: RuleCategory) -> List[Rule]:
    """Registry lookup by (platform, category) key."""
    return list(_BY_KEY.get((platform, category), []))


def get_rule(rule_id: str) -> Rule:
    return _REGISTRY[rule_id]


def all_rules() -> List[Rule]:
    return list(_REGISTRY.values())
