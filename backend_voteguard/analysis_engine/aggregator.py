"""
Session aggregator — the single owner of cross-cycle state.

Folds successive RiskReports into a SessionSummary and keeps the PriorContext
for the next classification request. The worst state ever observed is
preserved until an explicit reset (camera stop / teardown): a clean frame after
a coerced one never lowers max_risk_score or removes a flag.
"""

from __future__ import annotations

from backend_voteguard.analysis_engine.models import (
    PriorContext,
    RiskReport,
    SessionSummary,
    VoteRiskSnapshot,
)
from backend_voteguard.analysis_engine.scorer import FLAGGED_ABOVE
from backend_voteguard.voteguard_logging import get_logger

logger = get_logger(__name__)


class SessionAggregator:
    """Cumulative, monotonic risk state for one voting session."""

    def __init__(self) -> None:
        self._max_risk_score = 0
        self._last_risk_score = 0
        # dict keys as an insertion-ordered set
        self._flag_history: dict[str, None] = {}
        self._analysis_count = 0
        self._prior: PriorContext | None = None

    @property
    def prior_context(self) -> PriorContext | None:
        """Face-presence state of the most recent completed cycle; None before the first."""
        return self._prior

    @property
    def analysis_count(self) -> int:
        return self._analysis_count

    def apply(self, report: RiskReport) -> SessionSummary:
        """Fold one cycle's report into the session and return the new summary."""
        self._max_risk_score = max(self._max_risk_score, report.risk_score)
        self._last_risk_score = report.risk_score
        for flag in report.anomaly_flags:
            self._flag_history.setdefault(flag, None)
        self._analysis_count += 1
        self._prior = PriorContext.from_observation(report.observation)
        summary = self.summary()
        if report.anomaly_flags:
            logger.debug(
                "session_flags_recorded",
                risk_score=report.risk_score,
                max_risk_score=summary.max_risk_score,
                anomaly_flags=report.anomaly_flags,
                distinct_flags=len(summary.flag_history),
            )
        return summary

    def summary(self) -> SessionSummary:
        return SessionSummary(
            max_risk_score=self._max_risk_score,
            flag_history=tuple(self._flag_history),
            analysis_count=self._analysis_count,
            is_flagged=self._max_risk_score > FLAGGED_ABOVE,
            last_risk_score=self._last_risk_score,
        )

    def snapshot(self) -> VoteRiskSnapshot:
        """Snapshot for the vote-submission collaborator; advisory only."""
        return VoteRiskSnapshot(
            risk_score=self._max_risk_score,
            anomaly_flags=len(self._flag_history) > 0,
            flag_details=list(self._flag_history),
            analysis_count=self._analysis_count,
            is_flagged=self._max_risk_score > FLAGGED_ABOVE,
        )

    def reset(self) -> None:
        """Clear summary and prior context. Only called on session teardown."""
        if self._analysis_count:
            logger.info(
                "session_aggregator_reset",
                analysis_count=self._analysis_count,
                max_risk_score=self._max_risk_score,
            )
        self._max_risk_score = 0
        self._last_risk_score = 0
        self._flag_history = {}
        self._analysis_count = 0
        self._prior = None
