"""
Pytest fixtures for VoteGuard tests.

No camera and no network: FakeDevice stands in for the OpenCV capture device and
FakeClassifier for the Gemini adapter. FakeClassifier can hold every call on an
asyncio.Event so tests control exactly when a classification resolves.
"""

from __future__ import annotations

import asyncio
import json
import threading
from typing import Any

import cv2
import numpy as np
import pytest

from backend_voteguard.analysis_engine.models import Observation, PriorContext
from backend_voteguard.core.exceptions import DeviceUnavailable
from backend_voteguard.sampler.camera import CaptureConfig
from backend_voteguard.sampler.frame_sampler import FrameSampler
from backend_voteguard.scheduler.engine import AnalysisScheduler, SchedulerConfig

CLEAN = Observation(face_count=1, camera_blocked=False, high_motion=False, environment_stable=True, confidence=90)
NO_FACE = Observation(face_count=0, camera_blocked=False, high_motion=False, environment_stable=True, confidence=90)
TWO_FACES_BLOCKED = Observation(face_count=2, camera_blocked=True, high_motion=False, environment_stable=True)


def make_frame(width: int = 64, height: int = 48) -> np.ndarray:
    """Small BGR frame with a gradient so JPEG encoding has something to do."""
    row = np.linspace(0, 255, width, dtype=np.uint8)
    gray = np.tile(row, (height, 1))
    return np.dstack([gray, gray, gray])


def make_jpeg(width: int = 64, height: int = 48) -> bytes:
    ok, buf = cv2.imencode(".jpg", make_frame(width, height))
    assert ok
    return buf.tobytes()


def gemini_envelope(text: str) -> dict[str, Any]:
    """generateContent response envelope with a single text part."""
    return {"candidates": [{"content": {"parts": [{"text": text}], "role": "model"}}]}


def observation_reply(**fields: Any) -> str:
    payload = {
        "faceCount": 1,
        "cameraBlocked": False,
        "highMotion": False,
        "environmentStable": True,
        "confidence": 85,
    }
    payload.update(fields)
    return json.dumps(payload)


class FakeDevice:
    """FrameSource double: serves a fixed frame (or None), records open/release."""

    def __init__(
        self,
        config: CaptureConfig,
        *,
        frame: np.ndarray | None = None,
        open_error: Exception | None = None,
        open_gate: threading.Event | None = None,
        frame_error: Exception | None = None,
    ) -> None:
        self.config = config
        self.frame = frame
        self.open_error = open_error
        self.open_gate = open_gate
        self.frame_error = frame_error
        self.opened = False
        self.released = False
        self.release_thread: int | None = None

    def open(self) -> None:
        if self.open_gate is not None:
            self.open_gate.wait(timeout=5)
        if self.open_error is not None:
            raise self.open_error
        self.opened = True

    def latest_frame(self) -> np.ndarray | None:
        if self.frame_error is not None:
            raise self.frame_error
        return None if self.frame is None else self.frame.copy()

    def release(self) -> None:
        self.released = True
        self.release_thread = threading.get_ident()


class DeviceFactory:
    """device_factory for FrameSampler; keeps every device it built."""

    def __init__(
        self,
        *,
        frame: np.ndarray | None = None,
        open_error: Exception | None = None,
        open_gate: threading.Event | None = None,
        frame_error: Exception | None = None,
    ) -> None:
        self.frame = make_frame() if frame is None else frame
        self.open_error = open_error
        self.open_gate = open_gate
        self.frame_error = frame_error
        self.no_frame = False
        self.devices: list[FakeDevice] = []

    def __call__(self, config: CaptureConfig) -> FakeDevice:
        device = FakeDevice(
            config,
            frame=None if self.no_frame else self.frame,
            open_error=self.open_error,
            open_gate=self.open_gate,
            frame_error=self.frame_error,
        )
        self.devices.append(device)
        return device


class FakeClassifier:
    """
    Classifier double. Returns observations in order (the last one repeats),
    or raises error. While gate is set to an unset asyncio.Event, calls block.
    """

    def __init__(self, observations: list[Observation] | None = None, error: Exception | None = None) -> None:
        self.observations = list(observations or [CLEAN])
        self.error = error
        self.gate: asyncio.Event | None = None
        self.priors: list[PriorContext | None] = []
        self.images: list[Any] = []
        self.active = 0
        self.max_active = 0

    async def classify(self, image: bytes | str, prior: PriorContext | None = None) -> Observation:
        self.priors.append(prior)
        self.images.append(image)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.error is not None:
                raise self.error
            idx = min(len(self.priors) - 1, len(self.observations) - 1)
            return self.observations[idx]
        finally:
            self.active -= 1

    @property
    def calls(self) -> int:
        return len(self.priors)


# Timer never fires on its own in tests that drive tick() by hand
MANUAL_TICKS = SchedulerConfig(interval_sec=3600.0, initial_delay_sec=3600.0)


def build_test_scheduler(
    classifier: FakeClassifier | None = None,
    factory: DeviceFactory | None = None,
    config: SchedulerConfig | None = None,
) -> AnalysisScheduler:
    sampler = FrameSampler(CaptureConfig(), device_factory=factory or DeviceFactory())
    return AnalysisScheduler(sampler, classifier or FakeClassifier(), config=config or MANUAL_TICKS)


@pytest.fixture
def device_factory():
    return DeviceFactory()


@pytest.fixture
def fake_classifier():
    return FakeClassifier()


@pytest.fixture
def jpeg_bytes():
    return make_jpeg()


@pytest.fixture
def unavailable_factory():
    return DeviceFactory(open_error=DeviceUnavailable("camera 0 could not be opened"))


@pytest.fixture(autouse=True)
def _clear_voteguard_env(monkeypatch):
    """Tests never pick up a developer's real API key or cadence overrides."""
    for name in (
        "GEMINI_API_KEY",
        "GEMINI_MODEL",
        "GEMINI_BASE_URL",
        "CLASSIFIER_TIMEOUT_SEC",
        "CLASSIFIER_JPEG_QUALITY",
        "CLASSIFIER_MAX_IMAGE_SIDE",
        "VOTEGUARD_ANALYSIS_INTERVAL_MS",
        "VOTEGUARD_INITIAL_DELAY_MS",
        "VOTEGUARD_CAPTURE_WIDTH",
        "VOTEGUARD_CAPTURE_HEIGHT",
        "VOTEGUARD_FACING_MODE",
        "VOTEGUARD_DEVICE_INDEX",
        "VOTEGUARD_PREVIEW_ENABLED",
        "API_HOST",
        "API_PORT",
    ):
        monkeypatch.delenv(name, raising=False)
