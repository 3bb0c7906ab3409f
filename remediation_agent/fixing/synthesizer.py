"""Turns detected issues into reviewable fix suggestions."""

import os
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..config import RemediationConfig, DEFAULT_REMEDIATION_CONFIG
from ..errors import NotFoundError
from ..models import (
    AlternativeFix,
    Fix,
    ImpactInfo,
    Issue,
    IssueKind,
    Platform,
    Severity,
)
from ..scanner.walker import read_source
from ..tools.diff_engine import unified_diff
from ..tools.storage import Store
from ..utils.logging import get_logger
from .templates import CLOSURE_PARAMS, Rewrite, TemplateContext, templates_for, indent_of, match_near

logger = get_logger(__name__)

TEST_MARKERS = (".test.", ".spec.", "Test.", "Tests.", "_test.")


@dataclass
class SuggestionSummary:
    """Result of a batch suggestion pass."""
    suggestions: List[Fix] = field(default_factory=list)
    by_confidence: Dict[str, int] = field(default_factory=lambda: {"high": 0, "medium": 0, "low": 0})
    by_severity: Dict[str, int] = field(default_factory=dict)
    skipped: int = 0  # Issues without an applicable template

    @property
    def total(self) -> int:
        return len(self.suggestions)


def resolve_path(file_path: str, project_path: Optional[str] = None) -> str:
    if project_path and not os.path.isabs(file_path):
        return os.path.join(project_path, file_path)
    return file_path


def occurrences(lines: List[str], snippet: List[str]) -> int:
    """Number of windows of `lines` equal to `snippet`, compared on trimmed lines."""
    target = [l.strip() for l in snippet]
    trimmed = [l.strip() for l in lines]
    size = len(target)
    return sum(1 for start in range(len(trimmed) - size + 1) if trimmed[start:start + size] == target)


def narrow(rewrite: Rewrite, lines: Optional[List[str]] = None) -> Rewrite:
    """
    Shrink a rewrite to the lines it actually changes.

    At least one original line is kept as the anchor for pure insertions.
    Fixes for nearby issues in one file then touch disjoint regions and
    cannot overwrite each other.

    The kept original must still identify its place: it needs a line with
    an identifier (a lone `}` matches any closing brace) and, when the file
    `lines` are given, must occur exactly once in them. Unchanged lines
    around the change are taken back until both hold.
    """
    old = rewrite.original.split("\n")
    new = rewrite.suggested.split("\n")
    head = 0
    while head < len(old) - 1 and head < len(new) - 1 and old[head] == new[head]:
        head += 1
    tail = 0
    while (tail < len(old) - head - 1 and tail < len(new) - head - 1
           and old[-1 - tail] == new[-1 - tail]):
        tail += 1

    def distinctive() -> bool:
        kept = old[head:len(old) - tail]
        if not any(re.search(r"\w", l) for l in kept):
            return False
        return lines is None or occurrences(lines, kept) <= 1

    while not distinctive() and (head or tail):
        if head and head >= tail:
            head -= 1
        else:
            tail -= 1

    return Rewrite(
        start_line=rewrite.start_line + head,
        original="\n".join(old[head:len(old) - tail]),
        suggested="\n".join(new[head:len(new) - tail]),
        confidence=rewrite.confidence,
    )


class FixSynthesizer:
    """
    Builds Fix records from issues using the template registry.

    Each call re-reads the issue's file so suggestions reflect the file as it
    is now, falling back to the snippet captured at detection time when the
    file cannot be read.
    """

    def __init__(
        self,
        context_before: int = 2,
        context_after: int = 5,
        diff_algorithm: str = "heuristic",
        project_path: Optional[str] = None,
    ):
        self.context_before = context_before
        self.context_after = context_after
        self.diff_algorithm = diff_algorithm
        self.project_path = project_path

    @classmethod
    def from_config(cls, config: RemediationConfig, project_path: Optional[str] = None) -> "FixSynthesizer":
        return cls(
            context_before=config.context_before,
            context_after=config.context_after,
            diff_algorithm=config.diff_algorithm,
            project_path=project_path,
        )

    def _context(self, issue: Issue, platform: Platform) -> Optional[TemplateContext]:
        path = resolve_path(issue.file, self.project_path)
        content = read_source(path) if os.path.isfile(path) else None
        if content is not None:
            lines = content.split("\n")
            issue_index = issue.line - 1
            if not 0 <= issue_index < len(lines):
                logger.warning(f"Issue line {issue.line} beyond end of {path}")
                return None
            start = max(0, issue_index - self.context_before)
            end = min(len(lines), issue_index + self.context_after + 1)
            return TemplateContext(issue, platform, lines, start, end, issue_index)

        if not issue.code:
            return None
        logger.debug(f"Using captured snippet for {issue.file}:{issue.line}")
        lines = issue.code.split("\n")
        return TemplateContext(issue, platform, lines, 0, len(lines), 0, from_disk=False)

    def synthesize(self, issue: Issue, platform: Optional[Platform] = None) -> Optional[Fix]:
        """
        Build a fix for one issue.

        Args:
            issue: Detected issue
            platform: Target platform, defaults to the issue's own platform

        Returns:
            Pending Fix, or None when no template applies
        """
        platform = platform or issue.platform
        if platform is None:
            return None
        candidates = templates_for(issue, platform)
        if not candidates:
            return None
        ctx = self._context(issue, platform)
        if ctx is None:
            return None

        for entry in candidates:
            try:
                rewrite = entry.build(ctx)
            except (IndexError, ValueError):
                logger.debug(f"Template {entry.template_id} could not handle {issue.location}")
                continue
            if rewrite is None or rewrite.suggested == rewrite.original:
                continue
            return self._make_fix(issue, platform, ctx, entry.template_id,
                                  rewrite.confidence or entry.confidence, narrow(rewrite, ctx.lines))
        return None

    def _make_fix(self, issue: Issue, platform: Platform, ctx: TemplateContext,
                  template_id: str, confidence: int, rewrite: Rewrite) -> Fix:
        filename = os.path.basename(issue.file)
        return Fix(
            issue_id=issue.id,
            title=f"Fix: {issue.title}",
            description=issue.suggestion or issue.description,
            confidence=confidence,
            file=issue.file,
            line=issue.line,
            start_line=rewrite.start_line,
            original_code=rewrite.original,
            suggested_code=rewrite.suggested,
            diff=unified_diff(rewrite.original, rewrite.suggested, filename, self.diff_algorithm),
            alternatives=self.alternatives_for(issue, platform, ctx),
            impact=analyze_impact(issue, resolve_path(issue.file, self.project_path)),
            template_id=template_id,
            project_path=self.project_path,
        )

    def alternatives_for(self, issue: Issue, platform: Platform,
                         ctx: TemplateContext) -> List[AlternativeFix]:
        """Other valid mitigations for the issue, each with its tradeoff."""
        alternatives = []
        line = ctx.issue_line
        filename = os.path.basename(issue.file)

        def add(description: str, new_line: str, tradeoffs: str):
            if new_line == line:
                return
            alternatives.append(AlternativeFix(
                description=description,
                suggested_code=new_line,
                tradeoffs=tradeoffs,
                diff=unified_diff(line, new_line, filename, self.diff_algorithm),
            ))

        if issue.kind == IssueKind.RETAIN_CYCLE and issue.rule_id == "ios-closure-strong-self":
            m = match_near(line, r"\{", issue.column)
            if m:
                rest = line[m.end():]
                capture = " [unowned self]" if CLOSURE_PARAMS.match(rest) else " [unowned self] in"
                add("Use [unowned self] instead of [weak self]",
                    line[:m.end()] + capture + rest,
                    "Faster than weak, but crashes if self is deallocated")

        if issue.kind == IssueKind.NULL_REFERENCE:
            m = match_near(line, r"\b(\w+)(!!|!)\.(\w+)", issue.column)
            if m and platform in (Platform.REACT_NATIVE, Platform.WEB):
                expr = f"{m.group(1)}?.{m.group(3)}"
                add("Use nullish coalescing with a default value",
                    line[:m.start()] + f"({expr} ?? defaultValue)" + line[m.end():],
                    "Simpler but may hide issues if default is not appropriate")
            elif m and platform == Platform.IOS:
                expr = f"{m.group(1)}?.{m.group(3)}"
                add("Use nil coalescing with a default value",
                    line[:m.start()] + f"({expr} ?? defaultValue)" + line[m.end():],
                    "Simpler but may hide issues if default is not appropriate")
                add("Unwrap with guard let",
                    f"{indent_of(line)}guard let {m.group(1)} = {m.group(1)} else {{ return }}\n"
                    + line[:m.end(1)] + line[m.end(1) + 1:],
                    "Exits early, so the rest of the scope never sees a nil value")
            elif m and platform == Platform.ANDROID:
                expr = f"{m.group(1)}?.{m.group(3)}"
                add("Use the elvis operator with a default value",
                    line[:m.start()] + f"({expr} ?: defaultValue)" + line[m.end():],
                    "Simpler but may hide issues if default is not appropriate")

        if issue.kind == IssueKind.RACE_CONDITION and platform in (Platform.REACT_NATIVE, Platform.WEB):
            add("Cancel the request with AbortController",
                f"{indent_of(line)}const controller = new AbortController();\n{line}",
                "More explicit but requires handling abort errors")

        if issue.kind == IssueKind.TYPE_MISMATCH:
            m = match_near(line, r":(\s*)any\b", issue.column)
            if m:
                add("Declare a specific type or interface",
                    line[:m.start()] + f":{m.group(1)}SpecificType" + line[m.end():],
                    "Most precise, but the type has to be written and maintained")

        return alternatives


def analyze_impact(issue: Issue, file_path: str) -> ImpactInfo:
    """Estimate the blast radius of fixing `issue`."""
    if issue.severity == Severity.CRITICAL:
        risk = "high"
    elif issue.severity == Severity.HIGH:
        risk = "medium"
    else:
        risk = "low"

    stem = os.path.splitext(os.path.basename(file_path))[0]
    directory = os.path.dirname(file_path) or "."
    tests = []
    if stem and os.path.isdir(directory):
        for name in sorted(os.listdir(directory)):
            if name.startswith(stem) and any(marker in name for marker in TEST_MARKERS):
                tests.append(os.path.join(directory, name))

    return ImpactInfo(
        files_affected=[issue.file],
        tests_affected=tests,
        risk_level=risk,
        breaking_change=issue.kind in (IssueKind.TYPE_MISMATCH, IssueKind.STATE_INCONSISTENCY),
        requires_retest=True,
    )


def suggest_fixes(
    issues: List[Issue],
    platform: Optional[Platform] = None,
    max_suggestions: int = 50,
    project_path: Optional[str] = None,
    store: Optional[Store] = None,
    config: Optional[RemediationConfig] = None,
) -> SuggestionSummary:
    """
    Synthesize fixes for a batch of issues.

    Args:
        issues: Issues to fix, in priority order
        platform: Target platform, defaults to each issue's platform
        max_suggestions: Stop after this many fixes
        project_path: Root used to resolve relative issue paths
        store: Optional store; suggested fixes are saved as pending
        config: Remediation configuration (context window and diff algorithm)

    Returns:
        SuggestionSummary grouped by confidence band and severity
    """
    config = config or DEFAULT_REMEDIATION_CONFIG
    synthesizer = FixSynthesizer.from_config(config, project_path)
    summary = SuggestionSummary()
    severities: Counter = Counter()

    for issue in issues:
        if summary.total >= max_suggestions:
            break
        fix = synthesizer.synthesize(issue, platform)
        if fix is None:
            summary.skipped += 1
            continue
        summary.suggestions.append(fix)
        summary.by_confidence[fix.confidence_band] += 1
        severities[issue.severity.value] += 1

    summary.by_severity = dict(severities)
    if store is not None:
        by_id = {issue.id: issue for issue in issues}
        for fix in summary.suggestions:
            # A fix may only reference an issue the store already holds
            try:
                store.get_issue(fix.issue_id)
            except NotFoundError:
                store.save(by_id[fix.issue_id], project_path)
        store.save_all(summary.suggestions, project_path)
    logger.info(
        f"Suggested {summary.total} fixes for {len(issues)} issues ({summary.skipped} without template)"
    )
    return summary
