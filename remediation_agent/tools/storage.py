"""Persistent store for issues, fixes and patch applications."""

import copy
import json
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import replace
from typing import Any, Dict, List, Optional, Union

from ..errors import InvalidStateError, NotFoundError, PatchIOError
from ..models import Fix, FixStatus, Issue, PatchApplication
from ..utils.logging import get_logger

logger = get_logger(__name__)

Record = Union[Issue, Fix, PatchApplication]

RECORD_KINDS = OrderedDict([
    ("issue", Issue),
    ("fix", Fix),
    ("application", PatchApplication),
])

# Append-only kinds: update() is refused
IMMUTABLE_KINDS = {"issue", "application"}

DEFAULT_STORE_ROOT = os.path.join(os.path.expanduser("~"), ".remediation-agent")


def kind_of(record: Record) -> str:
    for kind, cls in RECORD_KINDS.items():
        if isinstance(record, cls):
            return kind
    raise TypeError(f"Unsupported record type: {type(record).__name__}")


class Store(ABC):
    """
    Storage interface, injected into the components that persist records.

    Lifecycle is `open(root)`, then reads and writes, then `close()`.
    Records are returned as fresh copies, so callers never share state
    through the store.
    """

    @abstractmethod
    def open(self, root: Optional[str] = None) -> "Store":
        ...

    @abstractmethod
    def close(self) -> None:
        ...

    @abstractmethod
    def save(self, record: Record, project_path: Optional[str] = None) -> Record:
        ...

    @abstractmethod
    def get(self, record_id: str) -> Record:
        ...

    @abstractmethod
    def list(self, kind: Optional[str] = None, project_path: Optional[str] = None,
             **filters: Any) -> List[Record]:
        ...

    @abstractmethod
    def update(self, record_id: str, patch: Dict[str, Any]) -> Record:
        ...

    @abstractmethod
    def delete(self, record_id: str) -> None:
        ...

    def __enter__(self) -> "Store":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # Convenience queries shared by all implementations

    def save_all(self, records: List[Record], project_path: Optional[str] = None) -> List[Record]:
        return [self.save(r, project_path) for r in records]

    def get_issue(self, issue_id: str) -> Issue:
        return self._get_typed(issue_id, Issue)

    def get_fix(self, fix_id: str) -> Fix:
        return self._get_typed(fix_id, Fix)

    def _get_typed(self, record_id: str, cls: type):
        record = self.get(record_id)
        if not isinstance(record, cls):
            raise NotFoundError(f"{cls.__name__} not found: {record_id}")
        return record

    def pending_fixes(self, project_path: Optional[str] = None) -> List[Fix]:
        return self.list("fix", project_path, status=FixStatus.PENDING)

    def confirmed_fixes(self, project_path: Optional[str] = None) -> List[Fix]:
        return self.list("fix", project_path, status=FixStatus.CONFIRMED)

    def applications_for(self, fix_id: str) -> List[PatchApplication]:
        return self.list("application", fix_id=fix_id)

    def orphaned_fixes(self, project_path: Optional[str] = None) -> List[Fix]:
        """Fixes whose issue no longer exists."""
        issue_ids = {i.id for i in self.list("issue", project_path)}
        return [f for f in self.list("fix", project_path) if f.issue_id not in issue_ids]

    def stats(self, project_path: Optional[str] = None) -> Dict[str, int]:
        fixes = self.list("fix", project_path)
        return {
            "total_issues": len(self.list("issue", project_path)),
            "total_fixes": len(fixes),
            "pending_fixes": sum(1 for f in fixes if f.status == FixStatus.PENDING),
            "confirmed_fixes": sum(1 for f in fixes if f.status == FixStatus.CONFIRMED),
            "applied_fixes": sum(1 for f in fixes if f.status == FixStatus.APPLIED),
            "failed_fixes": sum(1 for f in fixes if f.status == FixStatus.FAILED),
        }

    def clear_project(self, project_path: str) -> int:
        """Delete every record belonging to a project. Returns the count removed."""
        removed = 0
        for kind in RECORD_KINDS:
            for record in self.list(kind, project_path):
                self.delete(record.id)
                removed += 1
        return removed


class InMemoryStore(Store):
    """Dict-backed store. Records are kept serialized to avoid aliasing."""

    def __init__(self):
        self._lock = threading.RLock()
        # kind -> id -> {"project_path": ..., "data": {...}}
        self._tables: Dict[str, "OrderedDict[str, dict]"] = {
            kind: OrderedDict() for kind in RECORD_KINDS
        }
        self._is_open = False

    def open(self, root: Optional[str] = None) -> "Store":
        self._is_open = True
        return self

    def close(self) -> None:
        self._is_open = False

    def _flush(self, kind: str) -> None:
        """Hook for persistent subclasses."""

    def _locate(self, record_id: str) -> str:
        for kind, table in self._tables.items():
            if record_id in table:
                return kind
        raise NotFoundError(f"Record not found: {record_id}")

    @staticmethod
    def _load(kind: str, entry: dict) -> Record:
        # Nested details/impact must not be shared with the stored entry
        return RECORD_KINDS[kind].from_dict(copy.deepcopy(entry["data"]))

    def save(self, record: Record, project_path: Optional[str] = None) -> Record:
        kind = kind_of(record)
        if project_path is None and isinstance(record, Fix):
            project_path = record.project_path
        data = record.to_dict()
        with self._lock:
            existing = self._tables[kind].get(record.id)
            if existing is not None and kind in IMMUTABLE_KINDS and existing["data"] != data:
                raise InvalidStateError(f"{kind} records are immutable: {record.id}")
            if project_path is None and existing is not None:
                project_path = existing["project_path"]
            self._tables[kind][record.id] = {
                "project_path": project_path,
                "data": data,
            }
            self._flush(kind)
        return record

    def get(self, record_id: str) -> Record:
        with self._lock:
            kind = self._locate(record_id)
            return self._load(kind, self._tables[kind][record_id])

    def list(self, kind: Optional[str] = None, project_path: Optional[str] = None,
             **filters: Any) -> List[Record]:
        kinds = [kind] if kind else list(RECORD_KINDS)
        results = []
        with self._lock:
            for k in kinds:
                if k not in self._tables:
                    raise ValueError(f"Unknown record kind: {k}")
                for entry in self._tables[k].values():
                    if project_path is not None and entry["project_path"] != project_path:
                        continue
                    record = self._load(k, entry)
                    if all(getattr(record, name, None) == value for name, value in filters.items()):
                        results.append(record)
        return results

    def update(self, record_id: str, patch: Dict[str, Any]) -> Record:
        with self._lock:
            kind = self._locate(record_id)
            if kind in IMMUTABLE_KINDS:
                raise InvalidStateError(f"{kind} records cannot be updated: {record_id}")
            entry = self._tables[kind][record_id]
            record = replace(self._load(kind, entry), **patch)
            entry["data"] = record.to_dict()
            self._flush(kind)
            return record

    def delete(self, record_id: str) -> None:
        with self._lock:
            kind = self._locate(record_id)
            del self._tables[kind][record_id]
            self._flush(kind)


class JsonFileStore(InMemoryStore):
    """
    JSON-file store: one file per record kind under the store root.

    Every mutation rewrites the affected file through a temp file and
    `os.replace`, so a crash never leaves a half-written file.
    """

    FILE_NAMES = {"issue": "issues.json", "fix": "fixes.json", "application": "applications.json"}

    def __init__(self, root: Optional[str] = None):
        super().__init__()
        self.root = root or DEFAULT_STORE_ROOT

    def open(self, root: Optional[str] = None) -> "Store":
        if root:
            self.root = root
        try:
            os.makedirs(self.root, exist_ok=True)
        except OSError as e:
            raise PatchIOError(f"Cannot create store root {self.root}: {e}") from e

        with self._lock:
            for kind, name in self.FILE_NAMES.items():
                path = os.path.join(self.root, name)
                self._tables[kind] = OrderedDict()
                if not os.path.exists(path):
                    continue
                try:
                    with open(path, "r", encoding="utf-8") as f:
                        payload = json.load(f)
                except (OSError, ValueError) as e:
                    raise PatchIOError(f"Cannot read store file {path}: {e}") from e
                for entry in payload.get("records", []):
                    self._tables[kind][entry["data"]["id"]] = entry

        logger.debug(f"Opened store at {self.root}")
        return super().open(root)

    def _flush(self, kind: str) -> None:
        path = os.path.join(self.root, self.FILE_NAMES[kind])
        payload = {"records": list(self._tables[kind].values())}
        try:
            fd, tmp_path = tempfile.mkstemp(dir=self.root, prefix=".tmp-", suffix=".json")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(payload, f, indent=2, ensure_ascii=False)
                os.replace(tmp_path, path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise PatchIOError(f"Cannot write store file {path}: {e}") from e
