"""
Application-level exceptions.

Only DeviceUnavailable is user-visible as a blocking condition; the others
degrade the current cycle and never touch the session summary.
"""

from __future__ import annotations


class VoteGuardError(Exception):
    """Base class for all VoteGuard errors."""


class DeviceUnavailable(VoteGuardError):
    """Capture device cannot be acquired (permission denied or no device)."""


class NotReady(VoteGuardError):
    """Capture device is open but has not produced a first frame yet."""


class ClassificationUnavailable(VoteGuardError):
    """Transport or service failure calling the external vision model."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedObservation(VoteGuardError):
    """Classifier replied, but no valid observation could be parsed from the reply."""
