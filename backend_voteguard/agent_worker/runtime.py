"""
Headless session monitor.

Runs one capture session without the HTTP surface: opens the camera, drives
analysis cycles on the configured cadence, logs every cycle result and stops
cleanly on KeyboardInterrupt/SIGTERM. The final session snapshot is logged on
exit so an operator can see what a vote cast now would carry.

Usage: python -m backend_voteguard.agent_worker.runtime
"""

from __future__ import annotations

import asyncio
import signal
import sys

import httpx

from backend_voteguard.classifier.adapter import ClassifierAdapter
from backend_voteguard.config import Settings, get_settings
from backend_voteguard.core.exceptions import DeviceUnavailable
from backend_voteguard.sampler.frame_sampler import FrameSampler
from backend_voteguard.scheduler.engine import AnalysisScheduler, CycleResult
from backend_voteguard.voteguard_logging import bind_session, get_logger

logger = get_logger(__name__)


def build_scheduler(
    settings: Settings,
    *,
    client: httpx.AsyncClient | None = None,
) -> AnalysisScheduler:
    """Wire sampler, classifier and scheduler from settings. Does not open the camera."""
    sampler = FrameSampler(settings.capture, jpeg_quality=settings.classifier.jpeg_quality)
    classifier = ClassifierAdapter(settings.classifier, client=client)
    return AnalysisScheduler(sampler, classifier, config=settings.scheduler)


def log_cycle(result: CycleResult) -> None:
    """Subscriber: one structured log line per completed cycle."""
    event = result.report.to_event()
    logger.info(
        "monitor_cycle",
        session_id=result.session_id,
        cycle=result.cycle,
        risk_score=event["riskScore"],
        status=event["status"],
        anomaly_flags=event["anomalyFlags"],
        max_risk_score=result.summary.max_risk_score,
        is_flagged=result.summary.is_flagged,
    )


async def run_monitor(
    scheduler: AnalysisScheduler,
    *,
    duration_sec: float | None = None,
) -> None:
    """
    Start the scheduler and block until SIGINT/SIGTERM (or duration_sec elapses),
    then stop it. DeviceUnavailable from start() propagates to the caller.
    """
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            # Windows or not in main thread
            pass

    unsubscribe = scheduler.subscribe(log_cycle)
    try:
        await scheduler.start()
        session_log = bind_session(scheduler.session_id or "")
        session_log.info("monitor_session_started", interval_sec=scheduler.config.interval_sec)
        try:
            if duration_sec is None:
                await stop_event.wait()
            else:
                await asyncio.wait_for(stop_event.wait(), timeout=duration_sec)
        except asyncio.TimeoutError:
            pass
        snapshot = scheduler.snapshot()
        session_log.info("monitor_session_snapshot", **snapshot.to_dict())
    finally:
        await scheduler.shutdown()
        unsubscribe()
        for sig in installed:
            loop.remove_signal_handler(sig)


def main() -> int:
    """CLI entrypoint: load settings from env and monitor until interrupted."""
    try:
        settings = get_settings()
        if not settings.classifier.api_key:
            logger.warning("monitor_no_api_key", message="GEMINI_API_KEY not set; cycles will be skipped")
        asyncio.run(run_monitor(build_scheduler(settings)))
        return 0
    except DeviceUnavailable as e:
        logger.error("monitor_camera_unavailable", error=str(e))
        return 2
    except KeyboardInterrupt:
        logger.info("monitor_shutdown_signal")
        return 0
    except Exception as e:
        logger.exception("monitor_fatal", error=str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
