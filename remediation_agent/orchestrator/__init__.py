"""Batch application planning/execution and end-to-end runs."""

from .planner import ApplyPlan, ApplyPlanner
from .executor import PatchExecutor, apply_fixes, apply_all_confirmed, summarize
from .orchestrator import RemediationOrchestrator, RemediationRun, CONFIRM_MODES

__all__ = [
    "ApplyPlan",
    "ApplyPlanner",
    "PatchExecutor",
    "apply_fixes",
    "apply_all_confirmed",
    "summarize",
    "RemediationOrchestrator",
    "RemediationRun",
    "CONFIRM_MODES",
]
