"""Data models for fix suggestions and patch applications."""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import List, Optional

from .issue import new_id, now_iso


class FixStatus(Enum):
    """Lifecycle status of a fix."""
    PENDING = "pending"           # Suggested, awaiting confirmation
    CONFIRMED = "confirmed"       # Approved (or modified), ready to apply
    REJECTED = "rejected"         # Declined by a reviewer or policy
    APPLIED = "applied"           # Written to disk
    FAILED = "failed"             # Apply attempt failed, file restored
    ROLLED_BACK = "rolled_back"   # Restored from backup after applying

    @property
    def is_terminal(self) -> bool:
        return self in (FixStatus.REJECTED, FixStatus.FAILED, FixStatus.ROLLED_BACK)


class ConfirmAction(Enum):
    """Reviewer decision on a pending fix."""
    APPROVE = "approve"
    REJECT = "reject"
    MODIFY = "modify"


class LocateStrategy(Enum):
    """How a patch found its target in the current file."""
    EXACT = "exact"
    ANCHORED = "anchored"
    MANUAL = "manual"


@dataclass
class AlternativeFix:
    """A different valid mitigation with its tradeoff."""
    description: str
    suggested_code: str
    tradeoffs: str
    diff: str = ""


@dataclass
class ImpactInfo:
    """Estimated blast radius of applying a fix."""
    files_affected: List[str] = field(default_factory=list)
    tests_affected: List[str] = field(default_factory=list)
    risk_level: str = "low"  # low, medium, high
    breaking_change: bool = False
    requires_retest: bool = True


@dataclass
class FixConfirmation:
    """A reviewer's decision on a fix."""
    fix_id: str
    action: ConfirmAction
    modified_code: Optional[str] = None
    reason: Optional[str] = None
    confirmed_at: str = field(default_factory=now_iso)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["action"] = self.action.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "FixConfirmation":
        data = dict(data)
        data["action"] = ConfirmAction(data["action"])
        return cls(**data)


@dataclass
class Fix:
    """A synthesized, diffable code transformation addressing one issue."""
    issue_id: str                  # Lookup only, the issue is not owned
    title: str
    description: str
    confidence: int                # 0-100, static per template
    file: str
    line: int                      # Line of the issue
    original_code: str
    suggested_code: str
    diff: str = ""
    start_line: Optional[int] = None  # Line where original_code begins
    alternatives: List[AlternativeFix] = field(default_factory=list)
    impact: ImpactInfo = field(default_factory=ImpactInfo)
    status: FixStatus = FixStatus.PENDING
    template_id: str = ""
    confirmation: Optional[FixConfirmation] = None
    retry_of: Optional[str] = None
    project_path: Optional[str] = None
    id: str = field(default_factory=new_id)
    created_at: str = field(default_factory=now_iso)
    confirmed_at: Optional[str] = None
    applied_at: Optional[str] = None
    rolled_back_at: Optional[str] = None

    @property
    def code_to_apply(self) -> str:
        """Suggested code, or the reviewer's replacement for a modify confirmation."""
        if (
            self.confirmation is not None
            and self.confirmation.action == ConfirmAction.MODIFY
            and self.confirmation.modified_code
        ):
            return self.confirmation.modified_code
        return self.suggested_code

    @property
    def confidence_band(self) -> str:
        if self.confidence >= 80:
            return "high"
        if self.confidence >= 50:
            return "medium"
        return "low"

    def confirmation_prompt(self) -> str:
        """Render a plain-text review prompt for this fix."""
        lines = [
            f"Fix {self.id[:8]}: {self.title}",
            f"File: {self.file}:{self.line}",
            f"Description: {self.description}",
            f"Confidence: {self.confidence}%",
            "",
            "Current code:",
        ]
        lines.extend(f"  | {line}" for line in self.original_code.split("\n"))
        lines.append("")
        lines.append("Suggested code:")
        lines.extend(f"  | {line}" for line in self.suggested_code.split("\n"))

        if self.diff:
            lines.append("")
            lines.append("Diff:")
            lines.extend(f"  {line}" for line in self.diff.split("\n"))

        lines.append("")
        lines.append("Impact:")
        lines.append(f"  - Files affected: {len(self.impact.files_affected)}")
        lines.append(f"  - Risk level: {self.impact.risk_level}")
        lines.append(f"  - Breaking change: {'yes' if self.impact.breaking_change else 'no'}")

        if self.alternatives:
            lines.append("")
            lines.append("Alternatives:")
            for i, alt in enumerate(self.alternatives, 1):
                lines.append(f"  {i}. {alt.description}")
                lines.append(f"     Tradeoffs: {alt.tradeoffs}")

        lines.append("")
        lines.append("Actions: approve | reject | modify")
        return "\n".join(lines)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        data["confirmation"] = self.confirmation.to_dict() if self.confirmation else None
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Fix":
        data = dict(data)
        data["status"] = FixStatus(data["status"])
        data["alternatives"] = [AlternativeFix(**a) for a in data.get("alternatives") or []]
        data["impact"] = ImpactInfo(**(data.get("impact") or {}))
        if data.get("confirmation"):
            data["confirmation"] = FixConfirmation.from_dict(data["confirmation"])
        return cls(**data)


@dataclass(frozen=True)
class PatchApplication:
    """Audit record of one apply attempt."""
    fix_id: str
    success: bool
    backup_path: Optional[str] = None
    error: Optional[str] = None
    strategy: Optional[LocateStrategy] = None
    id: str = field(default_factory=new_id)
    applied_at: str = field(default_factory=now_iso)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["strategy"] = self.strategy.value if self.strategy else None
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "PatchApplication":
        data = dict(data)
        if data.get("strategy"):
            data["strategy"] = LocateStrategy(data["strategy"])
        return cls(**data)
