"""
Defensive parsing of the classifier's free-form reply.

The reply is untrusted text: the model may wrap its JSON in prose or markdown
fences. The first well-formed JSON object is located and validated against a
strict schema; anything else degrades to DEFAULT_SAFE_OBSERVATION so that a
parse failure pulls the pipeline toward "normal", never toward a false alarm.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, ValidationError

from backend_voteguard.analysis_engine.models import DEFAULT_SAFE_OBSERVATION, Observation
from backend_voteguard.core.exceptions import MalformedObservation
from backend_voteguard.voteguard_logging import get_logger

logger = get_logger(__name__)

_decoder = json.JSONDecoder()
_REPLY_PREVIEW_CHARS = 200


class ObservationPayload(BaseModel):
    """Schema for the JSON object the model is instructed to return."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    face_count: StrictInt = Field(..., ge=0, alias="faceCount")
    camera_blocked: StrictBool = Field(..., alias="cameraBlocked")
    high_motion: StrictBool = Field(..., alias="highMotion")
    environment_stable: StrictBool = Field(..., alias="environmentStable")
    # advisory only; optional so a reply without it keeps its scoring fields
    confidence: StrictInt = Field(50, ge=0, le=100)

    def to_observation(self) -> Observation:
        return Observation(
            face_count=self.face_count,
            camera_blocked=self.camera_blocked,
            high_motion=self.high_motion,
            environment_stable=self.environment_stable,
            confidence=self.confidence,
        )


def extract_json_object(text: str) -> dict[str, Any] | None:
    """Return the first well-formed JSON object embedded in text, or None."""
    idx = text.find("{")
    while idx != -1:
        try:
            obj, _ = _decoder.raw_decode(text, idx)
        except json.JSONDecodeError:
            idx = text.find("{", idx + 1)
            continue
        if isinstance(obj, dict):
            return obj
        idx = text.find("{", idx + 1)
    return None


def parse_observation_strict(text: str) -> Observation:
    """
    Parse and validate a reply.

    Raises:
        MalformedObservation: no JSON object found, or it fails the schema.
    """
    payload = extract_json_object(text or "")
    if payload is None:
        raise MalformedObservation("No JSON found in response")
    try:
        return ObservationPayload.model_validate(payload).to_observation()
    except ValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
        raise MalformedObservation(f"invalid fields: {', '.join(fields)}") from e


def parse_observation(text: str) -> Observation:
    """Parse a reply, substituting the default-safe observation on any failure."""
    try:
        return parse_observation_strict(text)
    except MalformedObservation as e:
        logger.warning(
            "classifier_reply_malformed",
            error=str(e),
            reply_preview=(text or "")[:_REPLY_PREVIEW_CHARS],
            substituted=DEFAULT_SAFE_OBSERVATION.to_dict(),
        )
        return DEFAULT_SAFE_OBSERVATION
