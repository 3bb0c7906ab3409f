"""Post-patch syntax sanity check."""

from dataclasses import dataclass
from typing import Dict, List, Optional

from ..scanner.text_index import TextMask

PAIRS = {"{": "}", "(": ")", "[": "]"}


@dataclass
class SyntaxCheck:
    balance: Dict[str, int]  # Net open count per bracket kind

    @property
    def balanced(self) -> bool:
        return all(v == 0 for v in self.balance.values())


def bracket_balance(content: str) -> Dict[str, int]:
    """Net count of each opening bracket, ignoring comments and strings."""
    code = TextMask(content).code_only()
    balance = {}
    for opener, closer in PAIRS.items():
        balance[opener] = code.count(opener) - code.count(closer)
    return balance


def check_syntax(content: str, baseline: Optional[str] = None) -> List[str]:
    """
    Check a patched file for bracket imbalance.

    When `baseline` (the pre-patch content) is given, only imbalance the
    patch introduced is reported.

    Returns:
        List of problems, empty when the content passes
    """
    after = SyntaxCheck(bracket_balance(content))
    before = SyntaxCheck(bracket_balance(baseline)) if baseline is not None else None
    problems = []
    for opener, closer in PAIRS.items():
        expected = before.balance[opener] if before else 0
        delta = after.balance[opener] - expected
        if delta > 0:
            problems.append(f"{delta} unclosed '{opener}'")
        elif delta < 0:
            problems.append(f"{-delta} unmatched '{closer}'")
    return problems
