"""Data models for detected issues."""

import uuid
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any


class Severity(Enum):
    """Issue severity levels."""
    CRITICAL = "critical"   # Crashes, leaked contexts
    HIGH = "high"           # Leaks, races on live state
    MEDIUM = "medium"       # Likely bugs
    LOW = "low"             # Suspicious patterns
    INFO = "info"           # Informational

    @property
    def rank(self) -> int:
        """Numeric rank, higher is more severe."""
        return _SEVERITY_RANK[self]

    def lowered(self, steps: int = 1) -> "Severity":
        """Return the severity `steps` levels lower (never below INFO)."""
        order = sorted(Severity, key=lambda s: s.rank)
        return order[max(0, self.rank - steps)]


_SEVERITY_RANK = {
    Severity.INFO: 0,
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}


class IssueKind(Enum):
    """Kinds of defect patterns the rules can report."""
    LEAK = "leak"
    RETAIN_CYCLE = "retain_cycle"
    UNCLOSED_RESOURCE = "unclosed_resource"
    RACE_CONDITION = "race_condition"
    STATE_INCONSISTENCY = "state_inconsistency"
    NULL_REFERENCE = "null_reference"
    TYPE_MISMATCH = "type_mismatch"
    UNHANDLED_ERROR = "unhandled_error"
    PERFORMANCE_BOTTLENECK = "performance_bottleneck"
    UNUSED_CODE = "unused_code"
    INFINITE_LOOP = "infinite_loop"
    DEPRECATED_API = "deprecated_api"
    SECURITY_VULNERABILITY = "security_vulnerability"


class Platform(Enum):
    """Supported application platforms."""
    IOS = "ios"
    ANDROID = "android"
    FLUTTER = "flutter"
    REACT_NATIVE = "react-native"
    WEB = "web"

    @property
    def is_javascript(self) -> bool:
        return self in (Platform.REACT_NATIVE, Platform.WEB)


class RuleCategory(Enum):
    """Rule groupings used by the rule registry."""
    LEAK = "leak"
    RETAIN_CYCLE = "retain_cycle"
    RACE_CONDITION = "race_condition"
    STATE_INCONSISTENCY = "state_inconsistency"
    NULL_SAFETY = "null_safety"
    TYPE_MISMATCH = "type_mismatch"
    HEURISTIC = "heuristic"


def new_id() -> str:
    """Generate a unique record id."""
    return uuid.uuid4().hex


def now_iso() -> str:
    return datetime.now().isoformat()


@dataclass(frozen=True)
class Issue:
    """A single detected defect-pattern occurrence at a file/line."""
    kind: IssueKind
    severity: Severity
    title: str
    description: str
    file: str
    line: int
    column: Optional[int] = None
    code: Optional[str] = None        # Evidence snippet
    suggestion: Optional[str] = None
    rule_id: str = ""
    category: Optional[RuleCategory] = None
    platform: Optional[Platform] = None
    heuristic: bool = False           # Low-precision tier, filterable downstream
    details: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=new_id)
    detected_at: str = field(default_factory=now_iso)

    @property
    def object_type(self) -> Optional[str]:
        return self.details.get("object_type")

    @property
    def location(self) -> str:
        return f"{self.file}:{self.line}"

    def to_dict(self) -> dict:
        data = asdict(self)
        data["kind"] = self.kind.value
        data["severity"] = self.severity.value
        data["category"] = self.category.value if self.category else None
        data["platform"] = self.platform.value if self.platform else None
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Issue":
        data = dict(data)
        data["kind"] = IssueKind(data["kind"])
        data["severity"] = Severity(data["severity"])
        if data.get("category"):
            data["category"] = RuleCategory(data["category"])
        if data.get("platform"):
            data["platform"] = Platform(data["platform"])
        return cls(**data)
