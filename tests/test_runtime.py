"""
Tests for the headless monitor runtime (agent_worker.runtime).
"""

from __future__ import annotations

import asyncio
from unittest.mock import patch

from conftest import NO_FACE, DeviceFactory, FakeClassifier, build_test_scheduler

from backend_voteguard.agent_worker.runtime import build_scheduler, log_cycle, main, run_monitor
from backend_voteguard.classifier.adapter import ClassifierAdapter
from backend_voteguard.config import Settings
from backend_voteguard.core.exceptions import DeviceUnavailable
from backend_voteguard.scheduler.engine import SchedulerConfig


def test_build_scheduler_wires_settings():
    settings = Settings()
    scheduler = build_scheduler(settings)
    assert scheduler.config is settings.scheduler
    assert scheduler.sampler.config is settings.capture
    assert scheduler.sampler.is_active is False
    assert isinstance(scheduler._classifier, ClassifierAdapter)


def test_run_monitor_runs_cycles_then_stops(device_factory):
    classifier = FakeClassifier([NO_FACE])
    config = SchedulerConfig(interval_sec=0.1, initial_delay_sec=0.0)
    scheduler = build_test_scheduler(classifier, device_factory, config)

    with patch("backend_voteguard.agent_worker.runtime.log_cycle", wraps=log_cycle) as logged:
        asyncio.run(run_monitor(scheduler, duration_sec=0.25))

    assert classifier.calls >= 1
    assert logged.call_count >= 1
    assert scheduler.is_active is False
    assert device_factory.devices[0].released is True


def test_main_returns_2_when_camera_unavailable():
    unavailable = DeviceFactory(open_error=DeviceUnavailable("no camera"))

    def fake_build(settings):
        return build_test_scheduler(FakeClassifier(), unavailable)

    with patch("backend_voteguard.agent_worker.runtime.build_scheduler", side_effect=fake_build):
        assert main() == 2
