"""
Frame sampler: owns the capture device and produces JPEG stills on demand.

Only the sampler acquires and releases the device. Periodic scheduling of
capture cycles lives in backend_voteguard.scheduler.
"""

from __future__ import annotations

from typing import Callable

import cv2

from backend_voteguard.core.exceptions import DeviceUnavailable, NotReady
from backend_voteguard.sampler.camera import CaptureConfig, FrameSource, OpenCVCamera
from backend_voteguard.voteguard_logging import get_logger

logger = get_logger(__name__)

STILL_JPEG_QUALITY = 70


class FrameSampler:
    """
    start() acquires the device (idempotent), stop() releases it (always safe),
    capture_still() encodes the latest frame as JPEG bytes.
    """

    def __init__(
        self,
        config: CaptureConfig | None = None,
        *,
        device_factory: Callable[[CaptureConfig], FrameSource] | None = None,
        jpeg_quality: int = STILL_JPEG_QUALITY,
    ) -> None:
        self._config = config or CaptureConfig()
        self._device_factory = device_factory or OpenCVCamera
        self._jpeg_quality = max(1, min(100, int(jpeg_quality)))
        self._device: FrameSource | None = None

    @property
    def config(self) -> CaptureConfig:
        return self._config

    @property
    def is_active(self) -> bool:
        return self._device is not None

    def start(self) -> None:
        """
        Acquire the capture device.

        Raises:
            DeviceUnavailable: permission denied or no device.
        """
        if self._device is not None:
            return
        device = self._device_factory(self._config)
        try:
            device.open()
        except DeviceUnavailable:
            logger.warning("sampler_device_unavailable", facing_mode=self._config.facing_mode)
            raise
        except (OSError, cv2.error) as e:
            logger.warning("sampler_device_unavailable", facing_mode=self._config.facing_mode, error=str(e))
            raise DeviceUnavailable(str(e)) from e
        self._device = device
        logger.info("sampler_started", facing_mode=self._config.facing_mode)

    def stop(self) -> None:
        device, self._device = self._device, None
        if device is None:
            return
        device.release()
        logger.info("sampler_stopped")

    def capture_still(self) -> bytes:
        """
        Encode the most recent frame as JPEG.

        Raises:
            NotReady: sampler not started, or no frame produced yet.
        """
        device = self._device
        if device is None:
            raise NotReady("sampler is not active")
        frame = device.latest_frame()
        if frame is None:
            raise NotReady("no frame captured yet")
        ok, buf = cv2.imencode(".jpg", frame, [cv2.IMWRITE_JPEG_QUALITY, self._jpeg_quality])
        if not ok:
            raise NotReady("frame could not be encoded")
        return buf.tobytes()
