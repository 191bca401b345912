"""
Classifier adapter: one still image + prior context -> one Observation.

Sends the frame and a constrained instruction to the Gemini generateContent
REST endpoint and turns the free-form reply into a validated Observation.

Failure policy:
- transport/auth/service failure -> ClassificationUnavailable (cycle abandoned,
  nothing substituted);
- reply received but unparsable -> default-safe Observation.
No automatic retries; the scheduler's next tick is the retry.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from backend_voteguard.analysis_engine.models import Observation, PriorContext
from backend_voteguard.classifier.image import prepare_image, to_base64
from backend_voteguard.classifier.parser import parse_observation
from backend_voteguard.core.exceptions import ClassificationUnavailable
from backend_voteguard.voteguard_logging import get_logger

logger = get_logger(__name__)

DEFAULT_MODEL = "gemini-1.5-flash"
DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_TIMEOUT_SEC = 15.0
DEFAULT_TEMPERATURE = 0.1
DEFAULT_MAX_OUTPUT_TOKENS = 256
DEFAULT_JPEG_QUALITY = 70
DEFAULT_MAX_IMAGE_SIDE = 640
MIN_IMAGE_SIDE = 64
_ERROR_BODY_PREVIEW_CHARS = 300

ANALYSIS_PROMPT = """You are an anomaly detection system for a voting application. Analyze this camera frame and respond ONLY with a valid JSON object (no markdown, no explanation).

Detect these observable conditions:
1. How many human faces are visible? (count them precisely)
2. Is there any indication the camera is blocked or covered?
3. Is there significant motion blur suggesting forced/violent movement?
4. Are there any signs of environmental instability (e.g., shaking, obstruction)?

Previous frame state: {prior_state}

Respond with ONLY this JSON structure:
{{
  "faceCount": <number of faces visible, 0 if none>,
  "cameraBlocked": <true if camera appears blocked/covered/dark>,
  "highMotion": <true if significant motion blur or shaking detected>,
  "environmentStable": <true if environment appears stable>,
  "confidence": <0-100 confidence in analysis>
}}"""

NO_PRIOR_STATE = "No previous state"


class Classifier(Protocol):
    """Anything that can turn a still + prior context into an Observation."""

    async def classify(
        self,
        image: bytes | str,
        prior: PriorContext | None = None,
    ) -> Observation: ...


@dataclass
class ClassifierConfig:
    """
    Config for the external vision model call.

    jpeg_quality / max_image_side bound the request payload; temperature and
    max_output_tokens keep the reply short and close to deterministic.
    """

    api_key: str = ""
    model: str = DEFAULT_MODEL
    base_url: str = DEFAULT_BASE_URL
    timeout_sec: float = DEFAULT_TIMEOUT_SEC
    temperature: float = DEFAULT_TEMPERATURE
    max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS
    jpeg_quality: int = DEFAULT_JPEG_QUALITY
    max_image_side: int = DEFAULT_MAX_IMAGE_SIDE

    def __post_init__(self) -> None:
        self.base_url = self.base_url.rstrip("/")
        self.timeout_sec = max(1.0, float(self.timeout_sec))
        self.jpeg_quality = max(1, min(100, int(self.jpeg_quality)))
        self.max_image_side = max(MIN_IMAGE_SIDE, int(self.max_image_side))

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"


def build_prompt(prior: PriorContext | None) -> str:
    """Constrained instruction for the model, including the prior-state line."""
    return ANALYSIS_PROMPT.format(prior_state=prior.describe() if prior else NO_PRIOR_STATE)


def build_request_body(prompt: str, image_b64: str, config: ClassifierConfig) -> dict[str, Any]:
    return {
        "contents": [
            {
                "parts": [
                    {"text": prompt},
                    {"inline_data": {"mime_type": "image/jpeg", "data": image_b64}},
                ]
            }
        ],
        "generationConfig": {
            "temperature": config.temperature,
            "maxOutputTokens": config.max_output_tokens,
        },
    }


def extract_reply_text(envelope: Any) -> str:
    """Return candidates[0].content.parts[0].text, or '' when the envelope has none."""
    if not isinstance(envelope, dict):
        return ""
    candidates = envelope.get("candidates") or []
    if not candidates or not isinstance(candidates[0], dict):
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    if not parts or not isinstance(parts[0], dict):
        return ""
    text = parts[0].get("text")
    return text if isinstance(text, str) else ""


class ClassifierAdapter:
    """
    Gemini-backed classifier.

    Pass an httpx.AsyncClient to reuse connections (or to inject a mock
    transport in tests); otherwise a short-lived client is opened per call.
    """

    def __init__(
        self,
        config: ClassifierConfig,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._client = client

    @property
    def config(self) -> ClassifierConfig:
        return self._config

    async def classify(
        self,
        image: bytes | str,
        prior: PriorContext | None = None,
    ) -> Observation:
        """
        Classify one still.

        Raises:
            ClassificationUnavailable: missing credentials, network error,
                timeout, non-2xx status or a non-JSON response envelope.
            ValueError: the still itself is empty or undecodable.
        """
        if not self._config.api_key:
            raise ClassificationUnavailable("classifier API key not configured")
        # cv2 decode/resize/encode stays off the event loop
        jpeg = await asyncio.to_thread(
            prepare_image,
            image,
            max_side=self._config.max_image_side,
            jpeg_quality=self._config.jpeg_quality,
        )
        body = build_request_body(build_prompt(prior), to_base64(jpeg), self._config)
        envelope = await self._post(body)
        text = extract_reply_text(envelope)
        observation = parse_observation(text)
        logger.debug(
            "classifier_observation",
            observation=observation.to_dict(),
            prior=prior.to_dict() if prior else None,
            image_bytes=len(jpeg),
        )
        return observation

    async def _post(self, body: dict[str, Any]) -> Any:
        headers = {
            "Content-Type": "application/json",
            "x-goog-api-key": self._config.api_key,
        }
        try:
            if self._client is not None:
                resp = await self._client.post(
                    self._config.endpoint,
                    json=body,
                    headers=headers,
                    timeout=self._config.timeout_sec,
                )
            else:
                async with httpx.AsyncClient(timeout=self._config.timeout_sec) as client:
                    resp = await client.post(self._config.endpoint, json=body, headers=headers)
        except httpx.TimeoutException as e:
            logger.warning("classifier_timeout", model=self._config.model, error=str(e))
            raise ClassificationUnavailable("classifier request timed out") from e
        except httpx.HTTPError as e:
            logger.warning("classifier_transport_error", model=self._config.model, error=str(e))
            raise ClassificationUnavailable(f"classifier request failed: {e}") from e

        if resp.status_code >= 400:
            logger.warning(
                "classifier_http_error",
                model=self._config.model,
                status_code=resp.status_code,
                body_preview=resp.text[:_ERROR_BODY_PREVIEW_CHARS],
            )
            raise ClassificationUnavailable(
                f"AI analysis failed (HTTP {resp.status_code})",
                status_code=resp.status_code,
            )
        try:
            return resp.json()
        except ValueError as e:
            logger.warning("classifier_envelope_not_json", model=self._config.model)
            raise ClassificationUnavailable("classifier returned a non-JSON envelope") from e
