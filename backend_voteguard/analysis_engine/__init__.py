"""
Analysis engine package — per-cycle risk scoring and session aggregation.

Consumes validated classifier observations, applies the weighted rule set,
and folds the results into a monotonic session summary.
"""

from backend_voteguard.analysis_engine.models import (
    DEFAULT_SAFE_OBSERVATION,
    Observation,
    PriorContext,
    RiskReport,
    RiskStatus,
    SessionSummary,
    VoteRiskSnapshot,
)
from backend_voteguard.analysis_engine.scorer import (
    RiskSignal,
    evaluate_signals,
    score,
    status_for_score,
)
from backend_voteguard.analysis_engine.aggregator import SessionAggregator

__all__ = [
    "DEFAULT_SAFE_OBSERVATION",
    "Observation",
    "PriorContext",
    "RiskReport",
    "RiskStatus",
    "SessionSummary",
    "VoteRiskSnapshot",
    "RiskSignal",
    "evaluate_signals",
    "score",
    "status_for_score",
    "SessionAggregator",
]
