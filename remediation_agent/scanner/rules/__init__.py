"""Detection rules. Importing this package registers every rule."""

from .base import (
    Rule,
    SourceText,
    register,
    get_rules,
    get_rule,
    rules_for,
    all_rules,
)
from . import leaks, retain_cycles, races, state, null_safety, types, heuristics  # noqa: F401

__all__ = [
    "Rule",
    "SourceText",
    "register",
    "get_rules",
    "get_rule",
    "rules_for",
    "all_rules",
]
