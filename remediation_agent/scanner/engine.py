"""Scan driver: runs the rule engine over a project in parallel."""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from tqdm import tqdm

from ..config import ScanConfig, DEFAULT_SCAN_CONFIG
from ..models import AppStructure, Issue, IssueKind, Platform, RuleCategory, Severity
from ..tools.collector import IssueCollector
from ..tools.storage import Store
from ..utils.logging import get_logger
from ..utils.metrics import ScanMetrics, calculate_scan_metrics, generate_recommendations
from .rules import Rule, SourceText, get_rules
from .walker import PLATFORM_EXTENSIONS, iter_source_files, read_source, DEFAULT_EXCLUDES

logger = get_logger(__name__)

STRUCTURE_RULE_ID = "structure-lifecycle-cleanup"


@dataclass
class ScanResult:
    """Outcome of one scan pass."""
    project_path: str
    platform: Platform
    issues: List[Issue] = field(default_factory=list)
    files_scanned: int = 0
    files_skipped: int = 0
    cancelled: bool = False
    duration_ms: int = 0
    recommendations: List[str] = field(default_factory=list)

    @property
    def metrics(self) -> ScanMetrics:
        return calculate_scan_metrics(
            self.issues, self.files_scanned, self.files_skipped, self.duration_ms
        )

    @property
    def summary(self) -> dict:
        return self.metrics.summary()


def detect_in_content(content: str, file_path: str, platform: Platform,
                      rules: Iterable[Rule]) -> List[Issue]:
    """
    Run rules over one file's content.

    A rule that raises is logged and skipped; the other rules still run.
    """
    source = SourceText(content, file_path)
    issues = []
    for rule in rules:
        try:
            issues.extend(rule.check(source, platform))
        except Exception:
            logger.exception(f"Rule {rule.rule_id} failed on {file_path}")
    return issues


def detect_file(path: str, platform: Platform, rules: Iterable[Rule]) -> Optional[List[Issue]]:
    """Run rules over a file on disk. Returns None when the file cannot be read."""
    content = read_source(path)
    if content is None:
        return None
    return detect_in_content(content, path, platform, rules)


def lifecycle_issues(structure: AppStructure) -> List[Issue]:
    """Flag components whose lifecycle registers subscriptions but never cleans up."""
    issues = []
    for component in structure.all_components:
        has_subscriptions = any(l.subscriptions for l in component.lifecycle)
        has_cleanup = any(l.has_cleanup for l in component.lifecycle)
        if not has_subscriptions or has_cleanup:
            continue
        issues.append(Issue(
            kind=IssueKind.LEAK,
            severity=Severity.HIGH,
            title=f"{component.name} - Missing lifecycle cleanup",
            description=f"Component {component.name} has subscriptions but no cleanup in lifecycle",
            file=component.path,
            line=1,
            suggestion="Add cleanup logic in appropriate lifecycle method",
            rule_id=STRUCTURE_RULE_ID,
            category=RuleCategory.LEAK,
            platform=structure.platform,
            heuristic=True,
            details={
                "object_type": component.type,
                "subscriptions": [s for l in component.lifecycle for s in l.subscriptions],
            },
        ))
    return issues


def _rule_order(rules: List[Rule]):
    order = {rule.rule_id: i for i, rule in enumerate(rules)}

    def key(issue: Issue):
        return (issue.file, issue.line, issue.column or 0, order.get(issue.rule_id, len(order)))

    return key


def resolve_rules(platform: Platform, config: ScanConfig) -> List[Rule]:
    categories = [RuleCategory(c) for c in config.categories] if config.categories else None
    return get_rules(platform, categories, include_heuristics=config.include_heuristics)


async def scan_project(
    project_path: str,
    platform: Platform,
    config: Optional[ScanConfig] = None,
    structure: Optional[AppStructure] = None,
    cancel_event=None,
    store: Optional[Store] = None,
) -> ScanResult:
    """
    Scan a project tree for defect patterns.

    Files are checked in worker threads, bounded by
    `config.max_parallel_scans`. Setting `cancel_event` stops the scan
    between files; issues already collected are kept.

    Args:
        project_path: Root of the project to scan
        platform: Target platform (selects extensions and rules)
        config: Scan configuration
        structure: Optional App Structure; its `source_files` replace the walk
        cancel_event: Object with `is_set()` (threading or asyncio Event)
        store: Optional store to persist detected issues

    Returns:
        ScanResult with issues sorted by file, line and column
    """
    config = config or DEFAULT_SCAN_CONFIG
    started = time.monotonic()
    rules = resolve_rules(platform, config)

    if structure is not None and structure.source_files is not None:
        files = list(structure.source_files)
    else:
        excludes = set(DEFAULT_EXCLUDES) | set(config.extra_excludes)
        files = list(iter_source_files(
            project_path, PLATFORM_EXTENSIONS[platform], config.max_depth, excludes
        ))

    logger.info(f"Scanning {len(files)} files with {len(rules)} rules ({platform.value})")

    collector: IssueCollector[Issue] = IssueCollector()
    semaphore = asyncio.Semaphore(max(1, config.max_parallel_scans))
    skipped = 0
    pbar = tqdm(total=len(files), desc="Scanning", unit="file", disable=not config.show_progress)

    async def scan_one(path: str) -> None:
        nonlocal skipped
        async with semaphore:
            if cancel_event is not None and cancel_event.is_set():
                skipped += 1
                return
            found = await asyncio.to_thread(detect_file, path, platform, rules)
            if found is None:
                skipped += 1
            else:
                collector.extend(found)
            pbar.update(1)

    try:
        await asyncio.gather(*(scan_one(path) for path in files))
    finally:
        pbar.close()

    issues = collector.values
    if structure is not None and config.include_heuristics:
        issues.extend(lifecycle_issues(structure))
    issues.sort(key=_rule_order(rules))

    cancelled = cancel_event is not None and cancel_event.is_set()
    if cancelled:
        logger.warning(f"Scan cancelled after {collector.files_processed} files")

    if store is not None:
        store.save_all(issues, project_path)

    result = ScanResult(
        project_path=project_path,
        platform=platform,
        issues=issues,
        files_scanned=collector.files_processed,
        files_skipped=skipped,
        cancelled=cancelled,
        duration_ms=int((time.monotonic() - started) * 1000),
        recommendations=generate_recommendations(issues, platform),
    )
    logger.info(
        f"Scan complete: {len(issues)} issues in {result.files_scanned} files "
        f"({result.files_skipped} skipped)"
    )
    return result


def scan_project_sync(project_path: str, platform: Platform, **kwargs) -> ScanResult:
    """Synchronous wrapper around scan_project."""
    return asyncio.run(scan_project(project_path, platform, **kwargs))


def scan_content(content: str, platform: Platform, file_path: str = "",
                 config: Optional[ScanConfig] = None) -> List[Issue]:
    """Scan an in-memory source text with the configured rules."""
    config = config or DEFAULT_SCAN_CONFIG
    rules = resolve_rules(platform, config)
    issues = detect_in_content(content, file_path, platform, rules)
    issues.sort(key=_rule_order(rules))
    return issues
