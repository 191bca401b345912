"""
Core cross-cutting pieces shared by sampler, classifier, scheduler and API.
"""

from backend_voteguard.core.exceptions import (
    ClassificationUnavailable,
    DeviceUnavailable,
    MalformedObservation,
    NotReady,
    VoteGuardError,
)

__all__ = [
    "ClassificationUnavailable",
    "DeviceUnavailable",
    "MalformedObservation",
    "NotReady",
    "VoteGuardError",
]
