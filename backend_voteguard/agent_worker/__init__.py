"""
Agent worker: headless session monitor runtime.
"""

from backend_voteguard.agent_worker.runtime import build_scheduler, run_monitor

__all__ = ["build_scheduler", "run_monitor"]
