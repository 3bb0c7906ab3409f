"""Configuration for the remediation agent."""

from dataclasses import dataclass, field
from typing import List, Optional
import os


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() == "true"


@dataclass
class ScanConfig:
    """Configuration for a detection pass."""

    # Target
    platform: Optional[str] = None       # ios, android, flutter, react-native, web
    analysis_depth: str = "basic"        # basic, deep (deep enables heuristic rules)
    categories: List[str] = field(default_factory=list)  # Empty means all categories

    # Corpus walk
    max_depth: int = 10
    extra_excludes: List[str] = field(default_factory=list)

    # Parallel processing
    max_parallel_scans: int = 8
    show_progress: bool = False

    @property
    def include_heuristics(self) -> bool:
        return self.analysis_depth == "deep"

    @classmethod
    def from_env(cls) -> "ScanConfig":
        """Create config from environment variables."""
        categories = os.environ.get("REMEDIATION_CATEGORIES", "")
        excludes = os.environ.get("REMEDIATION_EXCLUDES", "")
        return cls(
            platform=os.environ.get("REMEDIATION_PLATFORM") or None,
            analysis_depth=os.environ.get("REMEDIATION_ANALYSIS_DEPTH", "basic"),
            categories=[c.strip() for c in categories.split(",") if c.strip()],
            max_depth=int(os.environ.get("REMEDIATION_MAX_DEPTH", "10")),
            extra_excludes=[e.strip() for e in excludes.split(",") if e.strip()],
            max_parallel_scans=int(os.environ.get("REMEDIATION_MAX_PARALLEL_SCANS", "8")),
            show_progress=_env_bool("REMEDIATION_SHOW_PROGRESS", "false"),
        )


@dataclass
class RemediationConfig:
    """Configuration for fix synthesis and patch application."""

    # Synthesis
    context_before: int = 2
    context_after: int = 5
    max_suggestions: int = 50
    diff_algorithm: str = "heuristic"    # heuristic, lcs

    # Application safety
    backup: bool = True
    validate: bool = True
    anchor_min_similarity: float = 0.5
    anchor_search_radius: int = 10
    allow_manual_fallback: bool = True

    # Automation
    confirm_mode: str = "batch"          # auto, batch, interactive
    auto_confirm_threshold: int = 90     # Minimum confidence for auto-confirm
    stop_on_error: bool = False
    max_parallel_applies: int = 4

    # Persistence
    store_root: str = field(
        default_factory=lambda: os.path.join(os.path.expanduser("~"), ".remediation-agent")
    )

    @classmethod
    def from_env(cls) -> "RemediationConfig":
        """Create config from environment variables."""
        defaults = cls()
        return cls(
            max_suggestions=int(os.environ.get("REMEDIATION_MAX_SUGGESTIONS", "50")),
            diff_algorithm=os.environ.get("REMEDIATION_DIFF_ALGORITHM", "heuristic"),
            backup=_env_bool("REMEDIATION_BACKUP", "true"),
            validate=_env_bool("REMEDIATION_VALIDATE", "true"),
            anchor_min_similarity=float(os.environ.get("REMEDIATION_ANCHOR_MIN_SIMILARITY", "0.5")),
            allow_manual_fallback=_env_bool("REMEDIATION_ALLOW_MANUAL_FALLBACK", "true"),
            confirm_mode=os.environ.get("REMEDIATION_CONFIRM_MODE", "batch"),
            auto_confirm_threshold=int(os.environ.get("REMEDIATION_AUTO_CONFIRM_THRESHOLD", "90")),
            stop_on_error=_env_bool("REMEDIATION_STOP_ON_ERROR", "false"),
            max_parallel_applies=int(os.environ.get("REMEDIATION_MAX_PARALLEL_APPLIES", "4")),
            store_root=os.environ.get("REMEDIATION_STORE_ROOT", defaults.store_root),
        )


# Default configurations
DEFAULT_SCAN_CONFIG = ScanConfig()
DEFAULT_REMEDIATION_CONFIG = RemediationConfig()
