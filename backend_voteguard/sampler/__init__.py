"""
Sampler package — capture device ownership and still-image snapshots.
"""

from backend_voteguard.sampler.camera import CaptureConfig, FrameSource, OpenCVCamera
from backend_voteguard.sampler.frame_sampler import FrameSampler

__all__ = ["CaptureConfig", "FrameSource", "OpenCVCamera", "FrameSampler"]
