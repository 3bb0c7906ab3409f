"""Batch patch execution."""

import asyncio
from collections import defaultdict
from typing import Dict, List, Optional, Set

from ..config import RemediationConfig, DEFAULT_REMEDIATION_CONFIG
from ..errors import NotFoundError, RemediationError
from ..fixing.applier import ApplyResult, PatchApplier
from ..fixing.synthesizer import FixSynthesizer
from ..models import ConfirmAction, LocateStrategy
from ..tools.storage import Store
from ..utils.logging import get_logger
from .planner import ApplyPlan, ApplyPlanner

logger = get_logger(__name__)


class PatchExecutor:
    """
    Executes apply plans.

    Handles:
    - Sequential application within a file
    - Concurrent files, bounded by `max_parallel_applies`
    - Stopping the batch on the first failure when asked to
    - Re-synthesizing a fix whose region overlaps a fix already written
      in the same batch, or refusing it when that is not possible
    """

    def __init__(self, applier: PatchApplier, config: Optional[RemediationConfig] = None):
        self.applier = applier
        self.config = config or applier.config or DEFAULT_REMEDIATION_CONFIG
        self.planner = ApplyPlanner()

    async def apply(self, fix_id: str, dry_run: bool = False) -> ApplyResult:
        """
        Apply a single fix in a worker thread.

        The write is shielded, so cancelling the caller never interrupts a
        file write halfway. Remediation errors become failed results.
        """
        task = asyncio.ensure_future(asyncio.to_thread(self.applier.apply, fix_id, dry_run=dry_run))
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            # Let the write finish before propagating the cancellation
            if not task.done():
                await asyncio.wait([task])
            raise
        except RemediationError as e:
            return ApplyResult(
                fix_id=fix_id,
                success=False,
                strategy=e.application.strategy if e.application else None,
                application=e.application,
                error=str(e),
            )

    def _refresh(self, fix_id: str) -> Optional[str]:
        """
        Rebuild a fix against its file as it is now.

        Used when a fix overlapping this one was just written, so the
        captured original code no longer describes the file.

        Returns:
            None when the fix was rebuilt, otherwise why it was not
        """
        store = self.applier.store
        fix = store.get_fix(fix_id)
        if fix.confirmation is not None and fix.confirmation.action == ConfirmAction.MODIFY:
            return "reviewer-modified code overlaps a fix applied in this batch"
        try:
            issue = store.get_issue(fix.issue_id)
        except NotFoundError:
            return f"issue {fix.issue_id} of an overlapping fix is gone"
        fresh = FixSynthesizer.from_config(self.config, fix.project_path).synthesize(issue)
        if fresh is None or fresh.template_id != fix.template_id:
            return "overlaps a fix applied in this batch and cannot be rebuilt"
        store.update(fix_id, {
            "start_line": fresh.start_line,
            "original_code": fresh.original_code,
            "suggested_code": fresh.suggested_code,
            "diff": fresh.diff,
        })
        logger.info(f"Rebuilt fix {fix_id[:8]} after an overlapping fix was applied")
        return None

    async def _apply_overlapping(self, fix_id: str, dry_run: bool) -> ApplyResult:
        try:
            reason = await asyncio.to_thread(self._refresh, fix_id)
            if reason is not None:
                return await asyncio.to_thread(self.applier.refuse, fix_id, reason)
        except RemediationError as e:
            return ApplyResult(fix_id, False, application=e.application, error=str(e))
        return await self.apply(fix_id, dry_run=dry_run)

    async def execute_plan(self, plan: ApplyPlan, stop_on_failure: Optional[bool] = None,
                           dry_run: bool = False) -> List[ApplyResult]:
        """
        Execute an apply plan.

        Args:
            plan: Plan from ApplyPlanner
            stop_on_failure: Skip fixes not yet started after a failure
                (default from config `stop_on_error`)
            dry_run: Compute diffs without writing

        Returns:
            ApplyResult for every fix in the plan, in plan order
        """
        if stop_on_failure is None:
            stop_on_failure = self.config.stop_on_error
        semaphore = asyncio.Semaphore(max(1, self.config.max_parallel_applies))
        results: Dict[str, ApplyResult] = {}
        stopped = False
        partners: Dict[str, Set[str]] = defaultdict(set)
        for a, b in plan.overlapping:
            partners[a].add(b)
            partners[b].add(a)

        async def run_file(path: str, fix_ids: List[str]) -> None:
            nonlocal stopped
            written: Set[str] = set()
            async with semaphore:
                for fix_id in fix_ids:
                    if stopped:
                        results[fix_id] = ApplyResult(
                            fix_id, False, error="Skipped after an earlier failure", skipped=True
                        )
                        continue
                    if partners[fix_id] & written:
                        result = await self._apply_overlapping(fix_id, dry_run)
                    else:
                        result = await self.apply(fix_id, dry_run=dry_run)
                    results[fix_id] = result
                    if result.success and not result.dry_run:
                        written.add(fix_id)
                    if not result.success:
                        logger.error(f"Fix {fix_id[:8]} failed in {path}: {result.error}")
                        if stop_on_failure:
                            logger.warning("Stopping apply plan due to failure")
                            stopped = True

        await asyncio.gather(*(run_file(path, ids) for path, ids in plan.file_groups.items()))
        return [results[fix_id] for fix_id in plan.order]

    async def apply_fixes(self, fix_ids: List[str], stop_on_failure: Optional[bool] = None,
                          dry_run: bool = False) -> Dict[str, object]:
        """Plan and apply a list of fixes; returns results and a summary."""
        fixes = [self.applier.store.get_fix(fix_id) for fix_id in fix_ids]
        plan = self.planner.plan(fixes)
        if plan.overlapping:
            logger.warning(
                f"{len(plan.overlapping)} fix pairs target overlapping lines; "
                "later ones are rebuilt after the first is written"
            )
        results = await self.execute_plan(plan, stop_on_failure, dry_run)
        return {"results": results, "summary": summarize(results)}

    async def apply_all_confirmed(self, project_path: Optional[str] = None,
                                  stop_on_failure: Optional[bool] = None,
                                  dry_run: bool = False) -> Dict[str, object]:
        """Apply every confirmed fix of a project."""
        fix_ids = [f.id for f in self.applier.store.confirmed_fixes(project_path)]
        logger.info(f"Applying {len(fix_ids)} confirmed fixes")
        return await self.apply_fixes(fix_ids, stop_on_failure, dry_run)


def summarize(results: List[ApplyResult]) -> Dict[str, int]:
    return {
        "total": len(results),
        "successful": sum(1 for r in results if r.success),
        "failed": sum(1 for r in results if not r.success and not r.skipped),
        "skipped": sum(1 for r in results if r.skipped),
        "manual": sum(1 for r in results if r.success and r.strategy == LocateStrategy.MANUAL),
    }


def apply_fixes(store: Store, fix_ids: List[str], config: Optional[RemediationConfig] = None,
                stop_on_error: Optional[bool] = None, dry_run: bool = False) -> Dict[str, object]:
    """Synchronous batch apply."""
    executor = PatchExecutor(PatchApplier(store, config), config)
    return asyncio.run(executor.apply_fixes(fix_ids, stop_on_error, dry_run))


def apply_all_confirmed(store: Store, project_path: Optional[str] = None,
                        config: Optional[RemediationConfig] = None,
                        dry_run: bool = False) -> Dict[str, object]:
    """Synchronous wrapper around PatchExecutor.apply_all_confirmed."""
    executor = PatchExecutor(PatchApplier(store, config), config)
    return asyncio.run(executor.apply_all_confirmed(project_path, dry_run=dry_run))
