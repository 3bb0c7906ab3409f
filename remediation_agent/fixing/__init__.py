"""Fix synthesis, patch application and the fix state machine."""

from .templates import TEMPLATES, FixTemplate, Rewrite, TemplateContext, templates_for
from .synthesizer import FixSynthesizer, SuggestionSummary, analyze_impact, suggest_fixes
from .locator import Location, PatchLocator, manual_block, splice
from .validation import check_syntax
from .lifecycle import TRANSITIONS, FixLifecycle, can_transition
from .applier import ApplyResult, FileLockRegistry, PatchApplier, backup_path_for

__all__ = [
    "TEMPLATES",
    "FixTemplate",
    "Rewrite",
    "TemplateContext",
    "templates_for",
    "FixSynthesizer",
    "SuggestionSummary",
    "analyze_impact",
    "suggest_fixes",
    "Location",
    "PatchLocator",
    "manual_block",
    "splice",
    "check_syntax",
    "TRANSITIONS",
    "FixLifecycle",
    "can_transition",
    "ApplyResult",
    "FileLockRegistry",
    "PatchApplier",
    "backup_path_for",
]
