"""Fix status state machine."""

import threading
from dataclasses import replace
from typing import Dict, List, Optional, Set

from ..errors import InvalidStateError
from ..models import ConfirmAction, Fix, FixConfirmation, FixStatus, now_iso, new_id
from ..tools.storage import Store
from ..utils.logging import get_logger

logger = get_logger(__name__)

TRANSITIONS: Dict[FixStatus, Set[FixStatus]] = {
    FixStatus.PENDING: {FixStatus.CONFIRMED, FixStatus.REJECTED},
    FixStatus.CONFIRMED: {FixStatus.APPLIED, FixStatus.FAILED},
    FixStatus.APPLIED: {FixStatus.ROLLED_BACK},
}

TIMESTAMP_FIELDS = {
    FixStatus.CONFIRMED: "confirmed_at",
    FixStatus.APPLIED: "applied_at",
    FixStatus.ROLLED_BACK: "rolled_back_at",
}


def can_transition(current: FixStatus, target: FixStatus) -> bool:
    return target in TRANSITIONS.get(current, set())


class FixLifecycle:
    """
    Drives fixes through pending -> confirmed -> applied -> rolled_back.

    Every transition is a read-check-write on the store under one lock, so
    two callers can never both move the same fix out of a state.
    """

    def __init__(self, store: Store):
        self.store = store
        self._lock = threading.RLock()

    def transition(self, fix_id: str, target: FixStatus, **changes) -> Fix:
        """
        Move a fix to `target`.

        Raises:
            NotFoundError: If the fix does not exist
            InvalidStateError: If the transition is not allowed
        """
        with self._lock:
            fix = self.store.get_fix(fix_id)
            if not can_transition(fix.status, target):
                raise InvalidStateError(
                    f"Fix {fix_id} cannot move from {fix.status.value} to {target.value}"
                )
            patch = {"status": target, **changes}
            stamp = TIMESTAMP_FIELDS.get(target)
            if stamp and stamp not in patch:
                patch[stamp] = now_iso()
            updated = self.store.update(fix_id, patch)
            logger.debug(f"Fix {fix_id[:8]}: {fix.status.value} -> {target.value}")
            return updated

    def confirm(self, fix_id: str, action: ConfirmAction, modified_code: Optional[str] = None,
                reason: Optional[str] = None) -> Fix:
        """
        Record a reviewer decision on a pending fix.

        Approve and modify move the fix to confirmed; reject moves it to
        rejected. A modify decision must carry the replacement code.
        """
        if isinstance(action, str):
            action = ConfirmAction(action)
        if action == ConfirmAction.MODIFY and not modified_code:
            raise ValueError("modify requires modified_code")
        confirmation = FixConfirmation(
            fix_id=fix_id,
            action=action,
            modified_code=modified_code if action == ConfirmAction.MODIFY else None,
            reason=reason,
        )
        target = FixStatus.REJECTED if action == ConfirmAction.REJECT else FixStatus.CONFIRMED
        fix = self.transition(fix_id, target, confirmation=confirmation)
        logger.info(f"Fix {fix_id[:8]} {action.value}d" if action != ConfirmAction.MODIFY
                    else f"Fix {fix_id[:8]} confirmed with modifications")
        return fix

    def confirm_batch(self, fix_ids: List[str], action: ConfirmAction = ConfirmAction.APPROVE,
                      reason: Optional[str] = None) -> Dict[str, object]:
        """
        Apply one decision to several fixes.

        Fixes that cannot be confirmed are reported, not raised.
        """
        confirmed, errors = [], []
        for fix_id in fix_ids:
            try:
                confirmed.append(self.confirm(fix_id, action, reason=reason))
            except (InvalidStateError, KeyError) as e:
                errors.append({"fix_id": fix_id, "error": str(e)})
        return {"confirmed": confirmed, "errors": errors}

    def mark_applied(self, fix_id: str) -> Fix:
        return self.transition(fix_id, FixStatus.APPLIED)

    def mark_failed(self, fix_id: str) -> Fix:
        return self.transition(fix_id, FixStatus.FAILED)

    def mark_rolled_back(self, fix_id: str) -> Fix:
        return self.transition(fix_id, FixStatus.ROLLED_BACK)

    def retry(self, fix_id: str) -> Fix:
        """
        Create a fresh pending copy of a failed fix.

        The failed fix stays as it is for the audit trail; the copy points
        back at it through `retry_of`.
        """
        with self._lock:
            fix = self.store.get_fix(fix_id)
            if fix.status != FixStatus.FAILED:
                raise InvalidStateError(
                    f"Only failed fixes can be retried, {fix_id} is {fix.status.value}"
                )
            fresh = replace(
                fix,
                id=new_id(),
                status=FixStatus.PENDING,
                confirmation=None,
                retry_of=fix.id,
                created_at=now_iso(),
                confirmed_at=None,
                applied_at=None,
                rolled_back_at=None,
            )
            self.store.save(fresh, fix.project_path)
            logger.info(f"Fix {fix_id[:8]} retried as {fresh.id[:8]}")
            return fresh
