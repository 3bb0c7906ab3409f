"""Metrics and recommendations for scans and remediation runs."""

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..models import Fix, FixStatus, Issue, IssueKind, Platform, Severity


@dataclass
class ScanMetrics:
    """Scan metrics calculated from detected issues."""

    # Basic counts
    total_issues: int = 0
    files_scanned: int = 0
    files_skipped: int = 0
    heuristic_issues: int = 0

    # Severity breakdown
    critical_count: int = 0
    high_count: int = 0
    medium_count: int = 0
    low_count: int = 0
    info_count: int = 0

    by_kind: Dict[str, int] = field(default_factory=dict)

    # Timing
    scan_duration_ms: Optional[int] = None

    @property
    def blocking_count(self) -> int:
        return self.critical_count + self.high_count

    def summary(self) -> dict:
        return {
            "total_issues": self.total_issues,
            "by_kind": dict(self.by_kind),
            "by_severity": {
                "critical": self.critical_count,
                "high": self.high_count,
                "medium": self.medium_count,
                "low": self.low_count,
                "info": self.info_count,
            },
            "heuristic": self.heuristic_issues,
            "files_scanned": self.files_scanned,
        }


@dataclass
class FixMetrics:
    """Remediation metrics calculated from fixes."""

    total_fixes: int = 0
    high_confidence: int = 0    # >= 80
    medium_confidence: int = 0  # >= 50
    low_confidence: int = 0
    by_status: Dict[str, int] = field(default_factory=dict)

    @property
    def applied(self) -> int:
        return self.by_status.get(FixStatus.APPLIED.value, 0)

    @property
    def apply_rate(self) -> float:
        attempted = self.applied + self.by_status.get(FixStatus.FAILED.value, 0)
        return self.applied / attempted if attempted else 0.0


def calculate_scan_metrics(
    issues: List[Issue],
    files_scanned: int = 0,
    files_skipped: int = 0,
    duration_ms: Optional[int] = None
) -> ScanMetrics:
    """
    Calculate scan metrics from detected issues.

    Args:
        issues: Issues found by the scan
        files_scanned: Number of files read and checked
        files_skipped: Number of unreadable or cancelled files
        duration_ms: Scan duration in milliseconds

    Returns:
        ScanMetrics object with calculated statistics
    """
    severity_counts = Counter(i.severity for i in issues)
    return ScanMetrics(
        total_issues=len(issues),
        files_scanned=files_scanned,
        files_skipped=files_skipped,
        heuristic_issues=sum(1 for i in issues if i.heuristic),
        critical_count=severity_counts[Severity.CRITICAL],
        high_count=severity_counts[Severity.HIGH],
        medium_count=severity_counts[Severity.MEDIUM],
        low_count=severity_counts[Severity.LOW],
        info_count=severity_counts[Severity.INFO],
        by_kind=dict(Counter(i.kind.value for i in issues)),
        scan_duration_ms=duration_ms,
    )


def calculate_fix_metrics(fixes: List[Fix]) -> FixMetrics:
    """Calculate confidence and status breakdowns for fixes."""
    bands = Counter(f.confidence_band for f in fixes)
    return FixMetrics(
        total_fixes=len(fixes),
        high_confidence=bands["high"],
        medium_confidence=bands["medium"],
        low_confidence=bands["low"],
        by_status=dict(Counter(f.status.value for f in fixes)),
    )


PLATFORM_TOOLS = {
    Platform.IOS: "Use Instruments Leaks tool for runtime memory analysis",
    Platform.ANDROID: "Use Android Studio Memory Profiler and LeakCanary for runtime detection",
    Platform.FLUTTER: "Use Flutter DevTools Memory view for runtime analysis",
    Platform.REACT_NATIVE: "Use Flipper Memory plugin for runtime memory analysis",
    Platform.WEB: "Use the browser DevTools Memory panel to confirm leaks at runtime",
}


def generate_recommendations(issues: List[Issue], platform: Optional[Platform] = None) -> List[str]:
    """
    Derive follow-up recommendations from the kinds of issues found.

    Args:
        issues: Detected issues
        platform: Target platform, adds a platform-specific tooling hint

    Returns:
        Recommendation strings, most general first
    """
    recommendations = []
    kinds = {i.kind for i in issues}

    if IssueKind.LEAK in kinds:
        recommendations.append(
            "Review all subscription and listener registrations - ensure they are properly cleaned up"
        )
    if IssueKind.RETAIN_CYCLE in kinds:
        recommendations.append("Use weak references for delegates and closures that capture self")
    if IssueKind.UNCLOSED_RESOURCE in kinds:
        recommendations.append("Implement proper dispose/cleanup methods for all controllers and streams")
    if IssueKind.RACE_CONDITION in kinds:
        recommendations.append("Implement proper async/await patterns with cancellation support")
        recommendations.append("Use React useEffect cleanup or AbortController for async operations")
    if IssueKind.STATE_INCONSISTENCY in kinds:
        recommendations.append("Consider using state machines for complex state logic")
    if IssueKind.NULL_REFERENCE in kinds:
        recommendations.append("Enable strict null checks in TypeScript/Swift/Kotlin")
        recommendations.append("Use optional chaining and nullish coalescing operators")
    if IssueKind.TYPE_MISMATCH in kinds:
        recommendations.append("Avoid using any type - prefer unknown or specific types")

    if len(issues) > 10:
        recommendations.append("Consider implementing a centralized subscription management pattern")
    if sum(1 for i in issues if i.severity.rank >= Severity.HIGH.rank) > 5:
        recommendations.append("Consider code review focused on async patterns and state management")

    if issues and platform in PLATFORM_TOOLS:
        recommendations.append(PLATFORM_TOOLS[platform])

    return recommendations


def format_metrics_report(metrics: ScanMetrics) -> str:
    """
    Format scan metrics as a human-readable report.

    Args:
        metrics: ScanMetrics object

    Returns:
        Formatted report string
    """
    lines = [
        "## Scan Metrics",
        "",
        "### Summary",
        f"- Files scanned: {metrics.files_scanned}",
        f"- Files skipped: {metrics.files_skipped}",
        f"- Issues found: {metrics.total_issues}",
        f"- Heuristic issues: {metrics.heuristic_issues}",
        "",
        "### Severity Breakdown",
        f"- Critical: {metrics.critical_count}",
        f"- High: {metrics.high_count}",
        f"- Medium: {metrics.medium_count}",
        f"- Low: {metrics.low_count}",
        f"- Info: {metrics.info_count}",
    ]

    if metrics.by_kind:
        lines.append("")
        lines.append("### By Kind")
        for kind, count in sorted(metrics.by_kind.items(), key=lambda kv: (-kv[1], kv[0])):
            lines.append(f"- {kind}: {count}")

    if metrics.scan_duration_ms:
        duration_sec = metrics.scan_duration_ms / 1000
        lines.append("")
        lines.append("### Performance")
        lines.append(f"- Scan duration: {duration_sec:.2f}s")

    return "\n".join(lines)
