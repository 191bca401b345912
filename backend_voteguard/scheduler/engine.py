"""
Analysis scheduler: owned start/stop/tick lifecycle for one capture session.

Each tick runs one cycle: capture -> classify -> score -> aggregate -> publish.
Single asyncio event loop, no locks: at most one cycle is in flight, and a tick
that fires while a cycle is outstanding is skipped rather than queued. Because
cycles never overlap, reports are applied in the order their cycles started.

stop() cancels the timer, releases the device and resets the aggregator. A
cycle whose classification resolves after stop() (or after a restart) belongs
to an old session generation and is discarded, not applied.
"""

from __future__ import annotations

import asyncio
import inspect
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from backend_voteguard.analysis_engine.aggregator import SessionAggregator
from backend_voteguard.analysis_engine.models import (
    Observation,
    PriorContext,
    RiskReport,
    SessionSummary,
    VoteRiskSnapshot,
)
from backend_voteguard.analysis_engine.scorer import score
from backend_voteguard.classifier.adapter import Classifier
from backend_voteguard.core.exceptions import ClassificationUnavailable, DeviceUnavailable, NotReady
from backend_voteguard.sampler.frame_sampler import FrameSampler
from backend_voteguard.voteguard_logging import get_logger

logger = get_logger(__name__)

DEFAULT_INTERVAL_SEC = 3.0
DEFAULT_INITIAL_DELAY_SEC = 1.0
MIN_INTERVAL_SEC = 0.1


class MonitorStatus(str, Enum):
    """Presentation status: idle / analyzing plus the last report's tier."""

    IDLE = "idle"
    ANALYZING = "analyzing"
    NORMAL = "normal"
    WARNING = "warning"
    FLAGGED = "flagged"


@dataclass
class SchedulerConfig:
    """Cycle cadence and preview switch; all values come from Settings."""

    interval_sec: float = DEFAULT_INTERVAL_SEC
    initial_delay_sec: float = DEFAULT_INITIAL_DELAY_SEC
    preview_enabled: bool = True

    def __post_init__(self) -> None:
        self.interval_sec = max(MIN_INTERVAL_SEC, float(self.interval_sec))
        self.initial_delay_sec = max(0.0, float(self.initial_delay_sec))


@dataclass(frozen=True)
class CycleResult:
    """What subscribers receive after every completed cycle."""

    session_id: str
    cycle: int
    report: RiskReport
    summary: SessionSummary

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "cycle": self.cycle,
            "event": self.report.to_event(),
            "summary": self.summary.to_dict(),
        }


Subscriber = Callable[[CycleResult], Any]
Scorer = Callable[[Observation, PriorContext | None], RiskReport]


class AnalysisScheduler:
    """
    Drives periodic analysis cycles for one capture session.

    Must be started and stopped from within a running event loop.
    """

    def __init__(
        self,
        sampler: FrameSampler,
        classifier: Classifier,
        *,
        config: SchedulerConfig | None = None,
        aggregator: SessionAggregator | None = None,
        scorer: Scorer = score,
    ) -> None:
        self._sampler = sampler
        self._classifier = classifier
        self._config = config or SchedulerConfig()
        self._aggregator = aggregator or SessionAggregator()
        self._scorer = scorer
        self._subscribers: list[Subscriber] = []

        self._active = False
        self._starting = False
        # serializes device open/release across start() and shutdown()
        self._device_lock = asyncio.Lock()
        self._generation = 0
        self._session_id: str | None = None
        self._timer: asyncio.Task[None] | None = None
        self._in_flight: asyncio.Task[CycleResult | None] | None = None

        self._status = MonitorStatus.IDLE
        self._last_report: RiskReport | None = None
        self._last_error: str | None = None
        self._ticks_fired = 0
        self._skipped_ticks = 0
        self._cycles_completed = 0

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def config(self) -> SchedulerConfig:
        return self._config

    @property
    def sampler(self) -> FrameSampler:
        return self._sampler

    @property
    def aggregator(self) -> SessionAggregator:
        return self._aggregator

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @property
    def status(self) -> MonitorStatus:
        return self._status

    @property
    def in_flight(self) -> bool:
        return self._in_flight is not None and not self._in_flight.done()

    @property
    def ticks_fired(self) -> int:
        return self._ticks_fired

    @property
    def skipped_ticks(self) -> int:
        return self._skipped_ticks

    @property
    def cycles_completed(self) -> int:
        return self._cycles_completed

    def snapshot(self) -> VoteRiskSnapshot:
        return self._aggregator.snapshot()

    def state(self) -> dict[str, Any]:
        """Everything a presentation layer needs to render indicators."""
        return {
            "active": self._active,
            "sessionId": self._session_id,
            "status": self._status.value,
            "isAnalyzing": self.in_flight,
            "previewEnabled": self._config.preview_enabled,
            "lastError": self._last_error,
            "lastEvent": self._last_report.to_event() if self._last_report else None,
            "summary": self._aggregator.summary().to_dict(),
            "ticksFired": self._ticks_fired,
            "skippedTicks": self._skipped_ticks,
            "cyclesCompleted": self._cycles_completed,
        }

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register a cycle-result callback (sync or async); returns an unsubscribe function."""
        self._subscribers.append(subscriber)

        def _unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """
        Acquire the device and schedule cycles. Idempotent while active.

        A start() arriving while another is opening the device waits for that
        one and reports its outcome. A stop() issued while the device is still
        opening wins: the device is released and the session is not activated.

        Raises:
            DeviceUnavailable: the session stays inactive; retry is the caller's call.
        """
        if self._active:
            return
        if self._starting:
            async with self._device_lock:
                pass
            if not self._active and self._last_error:
                raise DeviceUnavailable(self._last_error)
            return
        self._starting = True
        generation = self._generation
        try:
            async with self._device_lock:
                try:
                    await asyncio.to_thread(self._sampler.start)
                except DeviceUnavailable as e:
                    self._last_error = str(e) or "camera unavailable"
                    logger.warning("scheduler_start_failed", error=self._last_error)
                    raise
                if generation != self._generation:
                    await asyncio.to_thread(self._sampler.stop)
                    logger.info("scheduler_start_cancelled")
                    return
                self._activate()
        finally:
            self._starting = False

    def _activate(self) -> None:
        self._generation += 1
        self._active = True
        self._session_id = uuid.uuid4().hex
        self._status = MonitorStatus.IDLE
        self._last_error = None
        self._last_report = None
        self._ticks_fired = 0
        self._skipped_ticks = 0
        self._cycles_completed = 0
        self._timer = asyncio.get_running_loop().create_task(
            self._run_timer(self._generation),
            name=f"analysis-timer-{self._session_id[:8]}",
        )
        logger.info(
            "scheduler_started",
            session_id=self._session_id,
            interval_sec=self._config.interval_sec,
            initial_delay_sec=self._config.initial_delay_sec,
        )

    def stop(self) -> None:
        """
        Cancel the timer, release the device, reset the session. Always safe to call.

        Releasing joins the camera reader thread; coroutines should await
        shutdown() instead so the event loop is not blocked.
        """
        self._teardown()
        self._sampler.stop()

    async def shutdown(self) -> None:
        """stop() for coroutines: session state is torn down at once, the device is released in a worker thread."""
        self._teardown()
        async with self._device_lock:
            await asyncio.to_thread(self._sampler.stop)

    def _teardown(self) -> None:
        timer, self._timer = self._timer, None
        if timer is not None and not timer.done():
            timer.cancel()
        was_active = self._active
        self._active = False
        # any cycle still awaiting the classifier, or a start() still opening
        # the device, now belongs to a dead generation
        self._generation += 1
        self._aggregator.reset()
        self._status = MonitorStatus.IDLE
        self._last_report = None
        self._last_error = None
        if was_active:
            logger.info(
                "scheduler_stopped",
                session_id=self._session_id,
                ticks_fired=self._ticks_fired,
                skipped_ticks=self._skipped_ticks,
                cycles_completed=self._cycles_completed,
                in_flight_discarded=self.in_flight,
            )
        self._session_id = None

    def tick(self) -> bool:
        """
        Start one cycle unless one is already in flight.

        Returns True if a cycle was started, False if inactive or skipped.
        """
        if not self._active:
            return False
        self._ticks_fired += 1
        if self.in_flight:
            self._skipped_ticks += 1
            logger.debug(
                "tick_skipped_in_flight",
                session_id=self._session_id,
                tick=self._ticks_fired,
                skipped_ticks=self._skipped_ticks,
            )
            return False
        task = asyncio.get_running_loop().create_task(
            self._run_cycle(self._generation, self._ticks_fired)
        )
        self._in_flight = task
        task.add_done_callback(self._on_cycle_done)
        return True

    async def wait_idle(self) -> None:
        """Wait until the in-flight cycle (if any) has finished."""
        task = self._in_flight
        if task is not None and not task.done():
            await asyncio.wait({task})

    def _on_cycle_done(self, task: asyncio.Task[CycleResult | None]) -> None:
        if self._in_flight is task:
            self._in_flight = None

    async def _run_timer(self, generation: int) -> None:
        """First tick after initial_delay, then on a fixed interval grid measured from start."""
        loop = asyncio.get_running_loop()
        interval = self._config.interval_sec
        started = loop.time()
        try:
            await asyncio.sleep(self._config.initial_delay_sec)
            while self._active and generation == self._generation:
                self.tick()
                elapsed = loop.time() - started
                next_slot = int(elapsed // interval) + 1
                await asyncio.sleep(max(0.0, started + next_slot * interval - loop.time()))
        except asyncio.CancelledError:
            logger.debug("scheduler_timer_cancelled", generation=generation)
            raise

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    async def _run_cycle(self, generation: int, cycle: int) -> CycleResult | None:
        session_id = self._session_id or ""
        try:
            image = self._sampler.capture_still()
        except NotReady as e:
            logger.debug("cycle_skipped_not_ready", session_id=session_id, cycle=cycle, reason=str(e))
            return None
        except Exception as e:
            logger.exception("cycle_failed", session_id=session_id, cycle=cycle, stage="capture", error=str(e))
            return None

        prior = self._aggregator.prior_context
        previous_status = self._status
        self._status = MonitorStatus.ANALYZING
        try:
            observation = await self._classifier.classify(image, prior)
        except ClassificationUnavailable as e:
            if generation != self._generation:
                return None
            self._status = MonitorStatus.WARNING
            self._last_error = str(e)
            logger.warning(
                "cycle_classification_unavailable",
                session_id=session_id,
                cycle=cycle,
                error=str(e),
                status_code=e.status_code,
            )
            return None
        except Exception as e:
            if generation != self._generation:
                return None
            self._status = previous_status
            logger.exception("cycle_failed", session_id=session_id, cycle=cycle, error=str(e))
            return None

        if generation != self._generation:
            logger.info("cycle_discarded_stale", session_id=session_id, cycle=cycle)
            return None

        report = self._scorer(observation, prior)
        summary = self._aggregator.apply(report)
        self._last_report = report
        self._last_error = None
        self._status = MonitorStatus(report.status.value)
        self._cycles_completed += 1
        result = CycleResult(session_id=session_id, cycle=cycle, report=report, summary=summary)

        log = logger.info if report.anomaly_flags else logger.debug
        log(
            "cycle_completed",
            session_id=session_id,
            cycle=cycle,
            risk_score=report.risk_score,
            status=report.status.value,
            anomaly_flags=report.anomaly_flags,
            max_risk_score=summary.max_risk_score,
            analysis_count=summary.analysis_count,
            confidence=observation.confidence,
        )
        await self._publish(result)
        return result

    async def _publish(self, result: CycleResult) -> None:
        for subscriber in list(self._subscribers):
            try:
                out = subscriber(result)
                if inspect.isawaitable(out):
                    await out
            except Exception as e:
                logger.warning(
                    "cycle_subscriber_failed",
                    session_id=result.session_id,
                    subscriber=getattr(subscriber, "__name__", repr(subscriber)),
                    error=str(e),
                )
