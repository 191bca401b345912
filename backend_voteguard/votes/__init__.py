"""
Vote-submission collaborator contract — advisory risk metadata on cast votes.
"""

from backend_voteguard.votes.metadata import (
    RISK_METADATA_KEY,
    attach_risk_metadata,
    empty_snapshot,
)

__all__ = ["RISK_METADATA_KEY", "attach_risk_metadata", "empty_snapshot"]
