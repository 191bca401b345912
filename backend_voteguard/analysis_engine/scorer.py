"""
Risk scoring — deterministic, additive weighted rules.

Each rule is independent; every rule that matches contributes its weight and
its human-readable flag, in the fixed order below. A face that was present in
the prior cycle and is gone now matches both "no face" and "suddenly
disappeared" (20 + 30); that compounding is the intended policy.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from backend_voteguard.analysis_engine.models import (
    Observation,
    PriorContext,
    RiskReport,
    RiskStatus,
)

MAX_RISK_SCORE = 100
# Status tiers: score strictly above the bound moves to the next tier.
FLAGGED_ABOVE = 50
WARNING_ABOVE = 25

WEIGHT_MULTIPLE_FACES = 40
WEIGHT_NO_FACE = 20
WEIGHT_FACE_LOST = 30
WEIGHT_CAMERA_BLOCKED = 30
WEIGHT_HIGH_MOTION = 20
WEIGHT_ENVIRONMENT_UNSTABLE = 10

FLAG_NO_FACE = "No face detected"
FLAG_FACE_LOST = "Face suddenly disappeared"
FLAG_CAMERA_BLOCKED = "Camera appears blocked"
FLAG_HIGH_MOTION = "Unusual motion detected"
FLAG_ENVIRONMENT_UNSTABLE = "Environment instability detected"


@dataclass(frozen=True)
class RiskSignal:
    """One matched rule: its weight and the flag text it contributes."""

    rule_name: str
    weight: int
    flag: str


def _check_multiple_faces(obs: Observation, prior: PriorContext | None) -> RiskSignal | None:
    if obs.face_count > 1:
        return RiskSignal(
            "multiple_faces",
            WEIGHT_MULTIPLE_FACES,
            f"Multiple faces detected: {obs.face_count}",
        )
    return None


def _check_no_face(obs: Observation, prior: PriorContext | None) -> RiskSignal | None:
    if obs.face_count == 0:
        return RiskSignal("no_face", WEIGHT_NO_FACE, FLAG_NO_FACE)
    return None


def _check_face_lost(obs: Observation, prior: PriorContext | None) -> RiskSignal | None:
    if is_face_lost(obs, prior):
        return RiskSignal("face_lost", WEIGHT_FACE_LOST, FLAG_FACE_LOST)
    return None


def _check_camera_blocked(obs: Observation, prior: PriorContext | None) -> RiskSignal | None:
    if obs.camera_blocked:
        return RiskSignal("camera_blocked", WEIGHT_CAMERA_BLOCKED, FLAG_CAMERA_BLOCKED)
    return None


def _check_high_motion(obs: Observation, prior: PriorContext | None) -> RiskSignal | None:
    if obs.high_motion:
        return RiskSignal("high_motion", WEIGHT_HIGH_MOTION, FLAG_HIGH_MOTION)
    return None


def _check_environment_unstable(obs: Observation, prior: PriorContext | None) -> RiskSignal | None:
    if not obs.environment_stable:
        return RiskSignal(
            "environment_unstable",
            WEIGHT_ENVIRONMENT_UNSTABLE,
            FLAG_ENVIRONMENT_UNSTABLE,
        )
    return None


RULES: tuple[Callable[[Observation, PriorContext | None], RiskSignal | None], ...] = (
    _check_multiple_faces,
    _check_no_face,
    _check_face_lost,
    _check_camera_blocked,
    _check_high_motion,
    _check_environment_unstable,
)


def is_face_lost(obs: Observation, prior: PriorContext | None) -> bool:
    """True when the prior cycle saw a face and this one sees none."""
    return prior is not None and prior.face_detected and obs.face_count == 0


def status_for_score(risk_score: int) -> RiskStatus:
    if risk_score > FLAGGED_ABOVE:
        return RiskStatus.FLAGGED
    if risk_score > WARNING_ABOVE:
        return RiskStatus.WARNING
    return RiskStatus.NORMAL


def evaluate_signals(obs: Observation, prior: PriorContext | None) -> list[RiskSignal]:
    """Run every rule in order; return the ones that matched."""
    signals: list[RiskSignal] = []
    for check in RULES:
        signal = check(obs, prior)
        if signal is not None:
            signals.append(signal)
    return signals


def score(observation: Observation, prior: PriorContext | None = None) -> RiskReport:
    """
    Score one observation against the prior cycle's face-presence context.

    Args:
        observation: Validated classifier output for this cycle.
        prior: Face-presence state from the previous completed cycle, or None
            at the start of a session.

    Returns:
        RiskReport with risk_score in [0, 100], its status tier, and the
        flags of every matched rule in evaluation order.
    """
    signals = evaluate_signals(observation, prior)
    risk_score = min(MAX_RISK_SCORE, sum(s.weight for s in signals))
    return RiskReport(
        risk_score=risk_score,
        status=status_for_score(risk_score),
        face_detected=observation.face_detected,
        face_lost=is_face_lost(observation, prior),
        anomaly_flags=[s.flag for s in signals],
        observation=observation,
    )
