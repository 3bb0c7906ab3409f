"""Exception hierarchy for detection and remediation."""

from typing import Optional

from .models.fix import PatchApplication


class RemediationError(Exception):
    """Base class for all remediation errors."""

    def __init__(self, message: str, application: Optional[PatchApplication] = None):
        super().__init__(message)
        self.application = application


class PatchIOError(RemediationError, OSError):
    """Reading, writing, backing up or restoring a target file failed."""


class NotFoundError(RemediationError, KeyError):
    """A referenced issue, fix or backup does not exist."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class InvalidStateError(RemediationError):
    """A fix is not in a state that allows the requested transition."""


class NotConfirmedError(InvalidStateError):
    """Apply was requested for a fix that has not been confirmed."""


class LocationDriftError(RemediationError):
    """The patch target could not be located in the current file."""


class ValidationError(RemediationError):
    """The patched file failed the post-write syntax sanity check."""
