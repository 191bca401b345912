"""
Structured logging for Backend VoteGuard.

JSON logs with timestamp, session_id, event_type, anomaly_flags.
Use get_logger() in all modules for aggregation-friendly output.
"""

from backend_voteguard.voteguard_logging.logger import bind_session, get_logger

__all__ = ["bind_session", "get_logger"]
