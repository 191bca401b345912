"""
Tests for FrameSampler and the OpenCV capture device (no real camera).
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from conftest import DeviceFactory

from backend_voteguard.core.exceptions import DeviceUnavailable, NotReady
from backend_voteguard.sampler.camera import CaptureConfig, OpenCVCamera
from backend_voteguard.sampler.frame_sampler import FrameSampler


def test_capture_before_start_is_not_ready():
    sampler = FrameSampler(device_factory=DeviceFactory())
    with pytest.raises(NotReady, match="not active"):
        sampler.capture_still()


def test_start_is_idempotent(device_factory):
    """Second start() while active does not open another device."""
    sampler = FrameSampler(device_factory=device_factory)
    sampler.start()
    sampler.start()
    assert sampler.is_active is True
    assert len(device_factory.devices) == 1
    assert device_factory.devices[0].opened is True


def test_capture_still_returns_jpeg(device_factory):
    sampler = FrameSampler(device_factory=device_factory)
    sampler.start()
    still = sampler.capture_still()
    assert still[:2] == b"\xff\xd8"


def test_no_frame_yet_is_not_ready():
    factory = DeviceFactory()
    factory.no_frame = True
    sampler = FrameSampler(device_factory=factory)
    sampler.start()
    with pytest.raises(NotReady, match="no frame"):
        sampler.capture_still()


def test_stop_releases_and_is_always_safe(device_factory):
    sampler = FrameSampler(device_factory=device_factory)
    sampler.stop()
    sampler.start()
    sampler.stop()
    sampler.stop()
    assert sampler.is_active is False
    assert device_factory.devices[0].released is True
    with pytest.raises(NotReady):
        sampler.capture_still()


def test_device_unavailable_propagates(unavailable_factory):
    sampler = FrameSampler(device_factory=unavailable_factory)
    with pytest.raises(DeviceUnavailable):
        sampler.start()
    assert sampler.is_active is False


def test_os_error_wrapped_as_device_unavailable():
    """Permission errors from the OS surface as DeviceUnavailable."""
    sampler = FrameSampler(device_factory=DeviceFactory(open_error=PermissionError("denied")))
    with pytest.raises(DeviceUnavailable, match="denied"):
        sampler.start()
    assert sampler.is_active is False


def test_capture_config_facing_mode_and_index():
    assert CaptureConfig().resolve_device_index() == 0
    assert CaptureConfig(facing_mode="environment").resolve_device_index() == 1
    assert CaptureConfig(facing_mode="ENVIRONMENT ").facing_mode == "environment"
    assert CaptureConfig(facing_mode="sideways").facing_mode == "user"
    assert CaptureConfig(facing_mode="environment", device_index=3).resolve_device_index() == 3


def test_opencv_camera_not_opened_raises():
    """VideoCapture that fails isOpened() is released and reported as DeviceUnavailable."""
    capture = MagicMock()
    capture.isOpened.return_value = False
    with patch("backend_voteguard.sampler.camera.cv2.VideoCapture", return_value=capture) as vc:
        camera = OpenCVCamera(CaptureConfig(facing_mode="environment"))
        with pytest.raises(DeviceUnavailable, match="camera 1"):
            camera.open()
    vc.assert_called_once_with(1)
    capture.release.assert_called_once()


def test_opencv_camera_open_sets_resolution_and_releases():
    capture = MagicMock()
    capture.isOpened.return_value = True
    capture.read.return_value = (False, None)
    with patch("backend_voteguard.sampler.camera.cv2.VideoCapture", return_value=capture):
        camera = OpenCVCamera(CaptureConfig(width=320, height=240))
        camera.open()
        try:
            assert camera.latest_frame() is None
        finally:
            camera.release()
    set_calls = [c.args for c in capture.set.call_args_list]
    assert set_calls[0][1] == 320
    assert set_calls[1][1] == 240
    capture.release.assert_called_once()
