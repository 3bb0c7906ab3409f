"""Applies confirmed fixes to files, with backups, validation and rollback."""

import os
import shutil
import tempfile
import threading
import time
from dataclasses import dataclass
from typing import Dict, Optional

from ..config import RemediationConfig, DEFAULT_REMEDIATION_CONFIG
from ..errors import (
    LocationDriftError,
    NotConfirmedError,
    NotFoundError,
    PatchIOError,
    InvalidStateError,
    ValidationError,
)
from ..models import Fix, FixStatus, LocateStrategy, PatchApplication
from ..tools.diff_engine import unified_diff
from ..tools.storage import Store
from ..utils.logging import get_logger
from .lifecycle import FixLifecycle
from .locator import PatchLocator, splice
from .synthesizer import resolve_path
from .validation import check_syntax

logger = get_logger(__name__)

BACKUP_DIR = ".remediation-backups"


class FileLockRegistry:
    """One lock per absolute path; writes to a file are serialized through it."""

    def __init__(self):
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def lock_for(self, path: str) -> threading.Lock:
        key = os.path.abspath(path)
        with self._guard:
            if key not in self._locks:
                self._locks[key] = threading.Lock()
            return self._locks[key]


@dataclass
class ApplyResult:
    """Outcome of one apply call."""
    fix_id: str
    success: bool
    strategy: Optional[LocateStrategy] = None
    diff: str = ""
    dry_run: bool = False
    application: Optional[PatchApplication] = None
    backup_path: Optional[str] = None
    error: Optional[str] = None
    skipped: bool = False  # Not attempted (batch stopped early)


def backup_path_for(path: str) -> str:
    """`<dir>/.remediation-backups/<name>.<epoch_ms>.bak`, unique per call."""
    directory = os.path.join(os.path.dirname(os.path.abspath(path)), BACKUP_DIR)
    name = os.path.basename(path)
    stamp = int(time.time() * 1000)
    candidate = os.path.join(directory, f"{name}.{stamp}.bak")
    while os.path.exists(candidate):
        stamp += 1
        candidate = os.path.join(directory, f"{name}.{stamp}.bak")
    return candidate


def atomic_write(path: str, data: bytes) -> None:
    """Write to a temp file beside `path`, then rename it into place."""
    directory = os.path.dirname(os.path.abspath(path))
    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".tmp-")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        if os.path.exists(path):
            shutil.copymode(path, tmp_path)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


class PatchApplier:
    """
    Writes confirmed fixes into their target files.

    The target is re-located in the current file content at apply time, so
    fixes survive edits made since synthesis (see PatchLocator). All
    reads and writes of a file happen under that file's lock.
    """

    def __init__(self, store: Store, config: Optional[RemediationConfig] = None,
                 locks: Optional[FileLockRegistry] = None,
                 lifecycle: Optional[FixLifecycle] = None):
        self.store = store
        self.config = config or DEFAULT_REMEDIATION_CONFIG
        self.locks = locks or FileLockRegistry()
        self.lifecycle = lifecycle or FixLifecycle(store)
        self.locator = PatchLocator(
            context_before=self.config.context_before,
            search_radius=self.config.anchor_search_radius,
            min_similarity=self.config.anchor_min_similarity,
            allow_manual=self.config.allow_manual_fallback,
        )

    def _failure(self, fix: Fix, error_cls, message: str,
                 strategy: Optional[LocateStrategy] = None,
                 backup_path: Optional[str] = None) -> Exception:
        """Record a failed attempt, mark the fix failed and build the error to raise."""
        application = PatchApplication(
            fix_id=fix.id,
            success=False,
            backup_path=backup_path,
            error=message,
            strategy=strategy,
        )
        self.store.save(application, fix.project_path)
        self.lifecycle.mark_failed(fix.id)
        logger.error(f"Fix {fix.id[:8]} failed: {message}")
        return error_cls(message, application=application)

    def apply(self, fix_id: str, backup: Optional[bool] = None,
              validate: Optional[bool] = None, dry_run: bool = False) -> ApplyResult:
        """
        Apply a confirmed fix.

        Args:
            fix_id: Fix to apply
            backup: Copy the file aside before writing (default from config)
            validate: Run the syntax sanity check after writing (default from config)
            dry_run: Return the diff without touching the file or the fix

        Returns:
            ApplyResult with the locate strategy and the file diff

        Raises:
            NotFoundError: Unknown fix
            NotConfirmedError: Fix is not in confirmed state
            PatchIOError: The file could not be read, backed up or written
            LocationDriftError: Target not found and manual fallback disabled
            ValidationError: The patched file failed validation; it was restored
        """
        backup = self.config.backup if backup is None else backup
        validate = self.config.validate if validate is None else validate

        fix = self.store.get_fix(fix_id)
        path = resolve_path(fix.file, fix.project_path)

        with self.locks.lock_for(path):
            fix = self.store.get_fix(fix_id)
            if fix.status != FixStatus.CONFIRMED:
                raise NotConfirmedError(f"Fix {fix_id} is {fix.status.value}, not confirmed")

            try:
                with open(path, "rb") as f:
                    raw = f.read()
                content = raw.decode("utf-8")
            except (OSError, UnicodeDecodeError) as e:
                raise self._failure(fix, PatchIOError, f"Cannot read {path}: {e}") from e

            try:
                location = self.locator.locate(
                    content.split("\n"), fix.original_code, fix.line, fix.start_line
                )
            except LocationDriftError as e:
                raise self._failure(fix, LocationDriftError, str(e)) from e

            new_content = splice(content, location, fix.code_to_apply, path, fix.title, fix.line)
            diff = unified_diff(content, new_content, os.path.basename(path),
                                self.config.diff_algorithm)
            if dry_run:
                return ApplyResult(fix_id, True, location.strategy, diff, dry_run=True)

            backup_path = None
            if backup:
                backup_path = backup_path_for(path)
                try:
                    os.makedirs(os.path.dirname(backup_path), exist_ok=True)
                    shutil.copy2(path, backup_path)
                except OSError as e:
                    raise self._failure(
                        fix, PatchIOError, f"Cannot back up {path}: {e}", location.strategy
                    ) from e
                logger.debug(f"Backed up {path} to {backup_path}")

            try:
                atomic_write(path, new_content.encode("utf-8"))
            except OSError as e:
                raise self._failure(
                    fix, PatchIOError, f"Cannot write {path}: {e}", location.strategy, backup_path
                ) from e

            if validate:
                problems = check_syntax(new_content, content)
                if problems:
                    try:
                        atomic_write(path, raw)
                    except OSError as e:
                        raise self._failure(
                            fix, PatchIOError, f"Cannot restore {path}: {e}",
                            location.strategy, backup_path,
                        ) from e
                    logger.warning(f"Restored {path} after failed validation")
                    raise self._failure(
                        fix, ValidationError,
                        f"Validation failed for {path}: {', '.join(problems)}",
                        location.strategy, backup_path,
                    )

            application = PatchApplication(
                fix_id=fix.id,
                success=True,
                backup_path=backup_path,
                strategy=location.strategy,
            )
            self.store.save(application, fix.project_path)
            self.lifecycle.mark_applied(fix.id)

        if location.strategy == LocateStrategy.MANUAL:
            logger.warning(f"Fix {fix_id[:8]} needs manual action in {path}")
        else:
            logger.info(f"Applied fix {fix_id[:8]} to {path} ({location.strategy.value})")
        return ApplyResult(fix_id, True, location.strategy, diff,
                           application=application, backup_path=backup_path)

    def refuse(self, fix_id: str, message: str) -> ApplyResult:
        """Mark a confirmed fix failed without touching its file."""
        fix = self.store.get_fix(fix_id)
        path = resolve_path(fix.file, fix.project_path)
        with self.locks.lock_for(path):
            error = self._failure(fix, InvalidStateError, message)
        return ApplyResult(fix_id, False, application=error.application, error=message)

    def rollback(self, fix_id: str) -> Fix:
        """
        Restore the file from the backup taken when the fix was applied.

        Raises:
            NotFoundError: Unknown fix, or no backup was taken
            InvalidStateError: Fix is not applied
            PatchIOError: The backup could not be copied back
        """
        fix = self.store.get_fix(fix_id)
        path = resolve_path(fix.file, fix.project_path)

        with self.locks.lock_for(path):
            fix = self.store.get_fix(fix_id)
            if fix.status != FixStatus.APPLIED:
                raise InvalidStateError(f"Fix {fix_id} is {fix.status.value}, not applied")
            backups = [a for a in self.store.applications_for(fix_id) if a.success and a.backup_path]
            if not backups:
                raise NotFoundError(f"No backup recorded for fix {fix_id}")
            backup_path = backups[-1].backup_path
            try:
                with open(backup_path, "rb") as f:
                    data = f.read()
                atomic_write(path, data)
                shutil.copystat(backup_path, path)
            except OSError as e:
                raise PatchIOError(f"Cannot restore {path} from {backup_path}: {e}") from e
            fix = self.lifecycle.mark_rolled_back(fix_id)

        logger.info(f"Rolled back fix {fix_id[:8]} from {backup_path}")
        return fix
