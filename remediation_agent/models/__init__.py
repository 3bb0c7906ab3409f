"""Data models for detection and remediation."""

from .issue import (
    Severity,
    IssueKind,
    Platform,
    RuleCategory,
    Issue,
    new_id,
    now_iso,
)
from .fix import (
    FixStatus,
    ConfirmAction,
    LocateStrategy,
    AlternativeFix,
    ImpactInfo,
    FixConfirmation,
    Fix,
    PatchApplication,
)
from .structure import (
    LifecycleInfo,
    ComponentInfo,
    ApiInfo,
    AppStructure,
)

__all__ = [
    "Severity",
    "IssueKind",
    "Platform",
    "RuleCategory",
    "Issue",
    "new_id",
    "now_iso",
    "FixStatus",
    "ConfirmAction",
    "LocateStrategy",
    "AlternativeFix",
    "ImpactInfo",
    "FixConfirmation",
    "Fix",
    "PatchApplication",
    "LifecycleInfo",
    "ComponentInfo",
    "ApiInfo",
    "AppStructure",
]
