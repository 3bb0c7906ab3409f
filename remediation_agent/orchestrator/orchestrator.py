"""End-to-end remediation run: scan, suggest, confirm, apply."""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple, Union

from ..config import (
    RemediationConfig,
    ScanConfig,
    DEFAULT_REMEDIATION_CONFIG,
    DEFAULT_SCAN_CONFIG,
)
from ..errors import InvalidStateError
from ..fixing import FixLifecycle, PatchApplier, suggest_fixes
from ..fixing.applier import ApplyResult, FileLockRegistry
from ..models import AppStructure, ConfirmAction, Fix, FixStatus, Issue, Platform
from ..scanner import scan_project
from ..tools.storage import InMemoryStore, Store
from ..utils.logging import get_logger
from .executor import PatchExecutor, summarize

logger = get_logger(__name__)

CONFIRM_MODES = ("auto", "batch", "interactive")

# A callback answers with an action, or (ConfirmAction.MODIFY, replacement code)
ConfirmDecision = Union[ConfirmAction, Tuple[ConfirmAction, Optional[str]]]
ConfirmCallback = Callable[[Fix], ConfirmDecision]


@dataclass
class RemediationRun:
    """Plain-data outcome of one orchestrated run."""
    project_path: str
    platform: Platform
    issues: List[Issue] = field(default_factory=list)
    fixes: List[Fix] = field(default_factory=list)
    applications: List[ApplyResult] = field(default_factory=list)
    summary: Dict[str, object] = field(default_factory=dict)


class RemediationOrchestrator:
    """
    Runs the full detection and remediation pipeline for one project.

    Features:
    - Parallel scan and fix synthesis
    - Confirmation by policy (auto), deferred review (batch) or callback (interactive)
    - Per-file serialized application of the confirmed fixes
    """

    def __init__(
        self,
        store: Optional[Store] = None,
        scan_config: Optional[ScanConfig] = None,
        config: Optional[RemediationConfig] = None,
    ):
        self.store = store or InMemoryStore().open()
        self.scan_config = scan_config or DEFAULT_SCAN_CONFIG
        self.config = config or DEFAULT_REMEDIATION_CONFIG
        self.locks = FileLockRegistry()
        self.lifecycle = FixLifecycle(self.store)
        self.applier = PatchApplier(self.store, self.config, self.locks, self.lifecycle)
        self.executor = PatchExecutor(self.applier, self.config)

    def _confirm(self, fixes: List[Fix], mode: str,
                 callback: Optional[ConfirmCallback]) -> Dict[str, int]:
        counts = {"confirmed": 0, "rejected": 0, "pending": 0}
        for fix in fixes:
            if mode == "auto":
                if fix.confidence >= self.config.auto_confirm_threshold:
                    self.lifecycle.confirm(fix.id, ConfirmAction.APPROVE,
                                           reason="auto-confirmed by confidence")
                    counts["confirmed"] += 1
                else:
                    counts["pending"] += 1
                continue

            if mode == "batch":
                counts["pending"] += 1
                continue

            decision = callback(fix)
            modified_code = None
            if isinstance(decision, tuple):
                decision, modified_code = decision
            if decision is None:
                counts["pending"] += 1
                continue
            self.lifecycle.confirm(fix.id, ConfirmAction(decision), modified_code)
            counts["rejected" if decision == ConfirmAction.REJECT else "confirmed"] += 1
        return counts

    async def run(
        self,
        project_path: str,
        platform: Platform,
        structure: Optional[AppStructure] = None,
        confirm_mode: Optional[str] = None,
        confirm_callback: Optional[ConfirmCallback] = None,
        dry_run: bool = False,
        cancel_event=None,
    ) -> RemediationRun:
        """
        Scan a project, suggest fixes, confirm them and apply the confirmed ones.

        In batch mode fixes are stored as pending and nothing is applied; they
        are reviewed later (`confirm` then `apply`).

        Args:
            project_path: Root of the project
            platform: Target platform
            structure: Optional App Structure from a structure provider
            confirm_mode: auto, batch or interactive (default from config)
            confirm_callback: Decision callback, required for interactive mode
            dry_run: Compute diffs for confirmed fixes without writing
            cancel_event: Stops the scan between files when set

        Returns:
            RemediationRun with issues, fixes, apply results and a summary
        """
        mode = confirm_mode or self.config.confirm_mode
        if mode not in CONFIRM_MODES:
            raise ValueError(f"Unknown confirm mode: {mode}")
        if mode == "interactive" and confirm_callback is None:
            raise ValueError("interactive mode requires a confirm_callback")

        scan = await scan_project(
            project_path, platform, self.scan_config, structure, cancel_event, self.store
        )
        issues = sorted(scan.issues, key=lambda i: -i.severity.rank)
        suggestions = suggest_fixes(
            issues, platform, self.config.max_suggestions, project_path, self.store, self.config
        )
        confirmations = self._confirm(suggestions.suggestions, mode, confirm_callback)

        confirmed_ids = [
            f.id for f in suggestions.suggestions
            if self.store.get_fix(f.id).status == FixStatus.CONFIRMED
        ]
        applications: List[ApplyResult] = []
        if confirmed_ids and not scan.cancelled:
            outcome = await self.executor.apply_fixes(confirmed_ids, dry_run=dry_run)
            applications = outcome["results"]

        fixes = [self.store.get_fix(f.id) for f in suggestions.suggestions]
        summary = {
            "scan": scan.summary,
            "suggestions": {
                "total": suggestions.total,
                "by_confidence": suggestions.by_confidence,
                "by_severity": suggestions.by_severity,
                "without_template": suggestions.skipped,
            },
            "confirmation": confirmations,
            "apply": summarize(applications),
            "cancelled": scan.cancelled,
            "recommendations": scan.recommendations,
        }
        logger.info(
            f"Run complete: {len(scan.issues)} issues, {suggestions.total} fixes, "
            f"{summary['apply']['successful']} applied"
        )
        return RemediationRun(
            project_path=project_path,
            platform=platform,
            issues=scan.issues,
            fixes=fixes,
            applications=applications,
            summary=summary,
        )

    def rollback_all(self, project_path: Optional[str] = None) -> List[str]:
        """Roll back every applied fix of a project, newest first."""
        applied = self.store.list("fix", project_path, status=FixStatus.APPLIED)
        rolled_back = []
        for fix in sorted(applied, key=lambda f: f.applied_at or "", reverse=True):
            try:
                self.applier.rollback(fix.id)
                rolled_back.append(fix.id)
            except (InvalidStateError, KeyError, OSError) as e:
                logger.error(f"Rollback failed for fix {fix.id[:8]}: {e}")
        return rolled_back
