"""
Data models for the session anomaly-risk pipeline.

Observation (one validated classifier result), PriorContext (face-presence
carry-over), RiskReport (per-cycle score, status, flags), SessionSummary
(cumulative, monotonic until reset) and VoteRiskSnapshot (what a cast vote
carries as metadata). Wire keys are camelCase, matching the classifier and
presentation contracts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class RiskStatus(str, Enum):
    NORMAL = "normal"
    WARNING = "warning"
    FLAGGED = "flagged"


@dataclass(frozen=True)
class Observation:
    """
    Validated output of one classification cycle. Always fully populated.

    confidence is advisory only and is never used in scoring.
    """

    face_count: int
    camera_blocked: bool
    high_motion: bool
    environment_stable: bool
    confidence: int = 50

    @property
    def face_detected(self) -> bool:
        return self.face_count >= 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "faceCount": self.face_count,
            "cameraBlocked": self.camera_blocked,
            "highMotion": self.high_motion,
            "environmentStable": self.environment_stable,
            "confidence": self.confidence,
        }


# Substituted whenever a reply cannot be parsed; chosen so a parse failure never raises risk.
DEFAULT_SAFE_OBSERVATION = Observation(
    face_count=1,
    camera_blocked=False,
    high_motion=False,
    environment_stable=True,
    confidence=50,
)


@dataclass(frozen=True)
class PriorContext:
    """Face-presence state carried from one cycle into the next classification request."""

    face_detected: bool
    face_count: int

    @classmethod
    def from_observation(cls, observation: Observation) -> PriorContext:
        return cls(face_detected=observation.face_detected, face_count=observation.face_count)

    def describe(self) -> str:
        """One-line summary sent to the classifier alongside the frame."""
        presence = "detected" if self.face_detected else "not detected"
        return f"Face was {presence}, face count was {self.face_count}"

    def to_dict(self) -> dict[str, Any]:
        return {"faceDetected": self.face_detected, "faceCount": self.face_count}


@dataclass(frozen=True)
class RiskReport:
    """
    Per-cycle scoring result. Transient; superseded every cycle.

    anomaly_flags is ordered by rule evaluation order and may repeat within a cycle.
    """

    risk_score: int
    status: RiskStatus
    face_detected: bool
    face_lost: bool
    anomaly_flags: list[str]
    observation: Observation

    def to_event(self) -> dict[str, Any]:
        """Cycle result event for the presentation binding and vote collaborator."""
        return {
            "faceCount": self.observation.face_count,
            "faceDetected": self.face_detected,
            "faceLost": self.face_lost,
            "cameraBlocked": self.observation.camera_blocked,
            "highMotion": self.observation.high_motion,
            "anomalyFlags": list(self.anomaly_flags),
            "riskScore": self.risk_score,
            "status": self.status.value,
        }


@dataclass(frozen=True)
class VoteRiskSnapshot:
    """Read-only session snapshot attached to a cast vote as non-blocking metadata."""

    risk_score: int
    anomaly_flags: bool
    flag_details: list[str]
    analysis_count: int
    is_flagged: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "riskScore": self.risk_score,
            "anomalyFlags": self.anomaly_flags,
            "flagDetails": list(self.flag_details),
            "analysisCount": self.analysis_count,
            "isFlagged": self.is_flagged,
        }


@dataclass(frozen=True)
class SessionSummary:
    """
    Cumulative risk state for one voting session.

    max_risk_score and flag_history only grow until reset. flag_history holds
    each distinct flag once, in first-seen order.
    """

    max_risk_score: int = 0
    flag_history: tuple[str, ...] = field(default_factory=tuple)
    analysis_count: int = 0
    is_flagged: bool = False
    last_risk_score: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "maxRiskScore": self.max_risk_score,
            "flagHistory": list(self.flag_history),
            "analysisCount": self.analysis_count,
            "isFlagged": self.is_flagged,
            "lastRiskScore": self.last_risk_score,
        }
