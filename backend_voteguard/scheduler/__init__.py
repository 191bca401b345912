"""
Scheduler — periodic capture/classify/score/aggregate cycles for a session.
"""

from backend_voteguard.scheduler.engine import (
    AnalysisScheduler,
    CycleResult,
    MonitorStatus,
    SchedulerConfig,
)

__all__ = ["AnalysisScheduler", "CycleResult", "MonitorStatus", "SchedulerConfig"]
