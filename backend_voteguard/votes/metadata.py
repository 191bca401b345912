"""
Vote-submission contract: attach the session risk snapshot to a vote.

The snapshot is opaque, advisory metadata for reviewers. Submission never
depends on it: a flagged session's vote is recorded exactly like any other
(coercion-resistant), and nothing here can refuse or delay a vote.
"""

from __future__ import annotations

from typing import Any, Mapping

from backend_voteguard.analysis_engine.models import VoteRiskSnapshot
from backend_voteguard.voteguard_logging import get_logger

logger = get_logger(__name__)

RISK_METADATA_KEY = "riskMetadata"


def empty_snapshot() -> VoteRiskSnapshot:
    """Snapshot used when no monitoring session ran (camera off or unavailable)."""
    return VoteRiskSnapshot(
        risk_score=0,
        anomaly_flags=False,
        flag_details=[],
        analysis_count=0,
        is_flagged=False,
    )


def attach_risk_metadata(
    vote: Mapping[str, Any],
    snapshot: VoteRiskSnapshot | None,
) -> dict[str, Any]:
    """
    Return a copy of the vote payload with the risk snapshot under riskMetadata.

    Never raises because of risk content and never alters any other vote field.
    A re-cast vote simply carries the snapshot current at its own cast time.
    """
    snap = snapshot or empty_snapshot()
    record = dict(vote)
    record[RISK_METADATA_KEY] = snap.to_dict()
    if snap.is_flagged:
        logger.info(
            "vote_flagged_for_review",
            election_id=record.get("electionId"),
            risk_score=snap.risk_score,
            anomaly_flags=snap.flag_details,
            analysis_count=snap.analysis_count,
        )
    return record
