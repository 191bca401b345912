"""
Application settings.

Responsibilities:
- Load configuration from environment variables and the project .env file.
- Provide defaults for every optional value (no defaults hidden elsewhere).
- Expose typed sub-configs for the sampler, classifier, scheduler and API.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from backend_voteguard.classifier.adapter import (
    DEFAULT_BASE_URL,
    DEFAULT_JPEG_QUALITY,
    DEFAULT_MAX_IMAGE_SIDE,
    DEFAULT_MODEL,
    DEFAULT_TIMEOUT_SEC,
    ClassifierConfig,
)
from backend_voteguard.config.env import (
    env_bool,
    env_float,
    env_int,
    env_optional_int,
    env_str,
    load_voteguard_env,
)
from backend_voteguard.sampler.camera import DEFAULT_HEIGHT, DEFAULT_WIDTH, FACING_USER, CaptureConfig
from backend_voteguard.scheduler.engine import SchedulerConfig

DEFAULT_ANALYSIS_INTERVAL_MS = 3000
DEFAULT_INITIAL_DELAY_MS = 1000
DEFAULT_API_HOST = "0.0.0.0"
DEFAULT_API_PORT = 8000


@dataclass
class Settings:
    """All runtime configuration, grouped by consumer."""

    capture: CaptureConfig = field(default_factory=CaptureConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    api_host: str = DEFAULT_API_HOST
    api_port: int = DEFAULT_API_PORT
    log_level: str = "INFO"


def get_settings() -> Settings:
    """
    Return the current application settings, read fresh from the environment.

    Intervals are configured in milliseconds (as the capture UI expresses
    them) and converted to seconds for the scheduler.
    """
    load_voteguard_env()
    capture = CaptureConfig(
        width=env_int("VOTEGUARD_CAPTURE_WIDTH", DEFAULT_WIDTH),
        height=env_int("VOTEGUARD_CAPTURE_HEIGHT", DEFAULT_HEIGHT),
        facing_mode=env_str("VOTEGUARD_FACING_MODE", FACING_USER),
        device_index=env_optional_int("VOTEGUARD_DEVICE_INDEX"),
    )
    classifier = ClassifierConfig(
        api_key=env_str("GEMINI_API_KEY"),
        model=env_str("GEMINI_MODEL", DEFAULT_MODEL),
        base_url=env_str("GEMINI_BASE_URL", DEFAULT_BASE_URL),
        timeout_sec=env_float("CLASSIFIER_TIMEOUT_SEC", DEFAULT_TIMEOUT_SEC),
        jpeg_quality=env_int("CLASSIFIER_JPEG_QUALITY", DEFAULT_JPEG_QUALITY),
        max_image_side=env_int("CLASSIFIER_MAX_IMAGE_SIDE", DEFAULT_MAX_IMAGE_SIDE),
    )
    scheduler = SchedulerConfig(
        interval_sec=env_int("VOTEGUARD_ANALYSIS_INTERVAL_MS", DEFAULT_ANALYSIS_INTERVAL_MS) / 1000.0,
        initial_delay_sec=env_int("VOTEGUARD_INITIAL_DELAY_MS", DEFAULT_INITIAL_DELAY_MS) / 1000.0,
        preview_enabled=env_bool("VOTEGUARD_PREVIEW_ENABLED", True),
    )
    return Settings(
        capture=capture,
        classifier=classifier,
        scheduler=scheduler,
        api_host=env_str("API_HOST", DEFAULT_API_HOST),
        api_port=env_int("API_PORT", DEFAULT_API_PORT),
        log_level=env_str("LOG_LEVEL", "INFO").upper(),
    )
