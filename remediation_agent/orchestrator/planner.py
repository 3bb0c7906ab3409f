"""Apply planning: groups fixes per file and orders them within a file."""

import os
from collections import OrderedDict, defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from ..models import Fix
from ..fixing.synthesizer import resolve_path


@dataclass
class ApplyPlan:
    """Execution plan for a batch of fixes."""
    file_groups: Dict[str, List[str]] = field(default_factory=OrderedDict)  # path -> fix ids
    overlapping: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def order(self) -> List[str]:
        return [fix_id for ids in self.file_groups.values() for fix_id in ids]

    @property
    def total_fixes(self) -> int:
        return sum(len(ids) for ids in self.file_groups.values())

    @property
    def parallel_groups(self) -> List[List[str]]:
        """
        Waves of fix ids that can be applied concurrently.

        Wave N holds the N-th fix of every file, so no wave touches a file
        twice.
        """
        waves: List[List[str]] = []
        for ids in self.file_groups.values():
            for i, fix_id in enumerate(ids):
                if i == len(waves):
                    waves.append([])
                waves[i].append(fix_id)
        return waves


def fix_span(fix: Fix) -> Tuple[int, int]:
    """First and last line of the region the fix replaces."""
    start = fix.start_line if fix.start_line is not None else fix.line
    return start, start + max(1, fix.original_code.count("\n") + 1) - 1


class ApplyPlanner:
    """
    Plans the order in which fixes are written.

    Fixes touching the same file are applied one after another, bottom of
    the file first, so an applied fix never shifts the lines of a fix that
    has not been applied yet. Different files are independent.
    """

    def group_by_file(self, fixes: List[Fix]) -> Dict[str, List[Fix]]:
        groups: Dict[str, List[Fix]] = defaultdict(list)
        for fix in fixes:
            path = os.path.abspath(resolve_path(fix.file, fix.project_path))
            groups[path].append(fix)
        return groups

    def overlapping_pairs(self, fixes: List[Fix]) -> List[Tuple[str, str]]:
        """Pairs of fixes in the same file whose target regions overlap."""
        pairs = []
        for group in self.group_by_file(fixes).values():
            spans = sorted(((fix_span(f), f.id) for f in group))
            for i in range(len(spans)):
                (start_a, end_a), id_a = spans[i]
                for j in range(i + 1, len(spans)):
                    (start_b, _), id_b = spans[j]
                    if start_b > end_a:
                        break
                    pairs.append((id_a, id_b))
        return pairs

    def plan(self, fixes: List[Fix]) -> ApplyPlan:
        groups = self.group_by_file(fixes)
        file_groups: Dict[str, List[str]] = OrderedDict()
        for path in sorted(groups):
            ordered = sorted(groups[path], key=lambda f: (-fix_span(f)[0], f.created_at, f.id))
            file_groups[path] = [f.id for f in ordered]
        return ApplyPlan(file_groups=file_groups, overlapping=self.overlapping_pairs(fixes))
