"""Append-only collector for issues produced by parallel scan workers."""

import threading
from typing import Dict, Generic, Iterable, List, TypeVar

T = TypeVar('T')


class IssueCollector(Generic[T]):
    """
    Collects worker outputs in structured form.

    Workers build a local list per file and hand it over in one call, so
    the lock is taken once per file rather than once per issue.
    """

    def __init__(self):
        self._values: List[T] = []
        self._lock = threading.Lock()
        self._files = 0

    def store(self, value: T) -> Dict[str, int]:
        """Store a single value."""
        return self.extend([value])

    def extend(self, values: Iterable[T]) -> Dict[str, int]:
        """Store a batch of values from one worker."""
        batch = list(values)
        with self._lock:
            self._values.extend(batch)
            self._files += 1
            total = len(self._values)
        return {"stored": len(batch), "total": total}

    @property
    def values(self) -> List[T]:
        """Get copy of stored values."""
        with self._lock:
            return self._values.copy()

    @property
    def files_processed(self) -> int:
        return self._files

    def clear(self):
        """Clear all stored values."""
        with self._lock:
            self._values.clear()
            self._files = 0

    def __len__(self) -> int:
        return len(self._values)
