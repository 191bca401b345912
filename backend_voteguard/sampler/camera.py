"""
OpenCV capture device.

A background reader thread pulls frames continuously and keeps only the most
recent one, so a still is always the live view rather than a stale buffered
frame. The device is owned by the FrameSampler for the whole session.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Protocol

import cv2
import numpy as np

from backend_voteguard.core.exceptions import DeviceUnavailable
from backend_voteguard.voteguard_logging import get_logger

logger = get_logger(__name__)

FACING_USER = "user"
FACING_ENVIRONMENT = "environment"
# Default device index per facing mode when no explicit index is configured
FACING_DEVICE_INDEX: dict[str, int] = {
    FACING_USER: 0,
    FACING_ENVIRONMENT: 1,
}
DEFAULT_WIDTH = 640
DEFAULT_HEIGHT = 480
READ_RETRY_SLEEP_SEC = 0.05
READER_JOIN_TIMEOUT_SEC = 2.0


@dataclass
class CaptureConfig:
    """Capture resolution, facing mode and optional explicit device index."""

    width: int = DEFAULT_WIDTH
    height: int = DEFAULT_HEIGHT
    facing_mode: str = FACING_USER
    device_index: int | None = None

    def __post_init__(self) -> None:
        self.width = max(1, int(self.width))
        self.height = max(1, int(self.height))
        mode = (self.facing_mode or FACING_USER).strip().lower()
        self.facing_mode = mode if mode in FACING_DEVICE_INDEX else FACING_USER

    def resolve_device_index(self) -> int:
        if self.device_index is not None:
            return self.device_index
        return FACING_DEVICE_INDEX[self.facing_mode]


class FrameSource(Protocol):
    """Capture device contract used by the FrameSampler."""

    def open(self) -> None: ...

    def latest_frame(self) -> np.ndarray | None: ...

    def release(self) -> None: ...


class OpenCVCamera:
    """cv2.VideoCapture wrapper with a latest-frame reader thread."""

    def __init__(self, config: CaptureConfig, *, backend: int | None = None) -> None:
        self._config = config
        self._backend = backend
        self._capture: Any = None
        self._frame: np.ndarray | None = None
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._reader: threading.Thread | None = None

    def open(self) -> None:
        """
        Open the device and start the reader thread.

        Raises:
            DeviceUnavailable: device missing, busy or permission denied.
        """
        index = self._config.resolve_device_index()
        if self._backend is not None:
            capture = cv2.VideoCapture(index, self._backend)
        else:
            capture = cv2.VideoCapture(index)
        if not capture.isOpened():
            capture.release()
            raise DeviceUnavailable(f"camera {index} could not be opened")
        capture.set(cv2.CAP_PROP_FRAME_WIDTH, self._config.width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self._config.height)
        self._capture = capture
        self._stop.clear()
        with self._lock:
            self._frame = None
        self._reader = threading.Thread(
            target=self._read_loop,
            name=f"camera-reader-{index}",
            daemon=True,
        )
        self._reader.start()
        logger.info(
            "camera_opened",
            device_index=index,
            facing_mode=self._config.facing_mode,
            width=self._config.width,
            height=self._config.height,
        )

    def _read_loop(self) -> None:
        capture = self._capture
        while not self._stop.is_set():
            ok, frame = capture.read()
            if not ok:
                time.sleep(READ_RETRY_SLEEP_SEC)
                continue
            with self._lock:
                self._frame = frame

    def latest_frame(self) -> np.ndarray | None:
        with self._lock:
            return None if self._frame is None else self._frame.copy()

    def release(self) -> None:
        self._stop.set()
        reader, self._reader = self._reader, None
        if reader is not None:
            reader.join(timeout=READER_JOIN_TIMEOUT_SEC)
        capture, self._capture = self._capture, None
        if capture is not None:
            capture.release()
            logger.info("camera_released")
        with self._lock:
            self._frame = None
