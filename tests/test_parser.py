"""
Tests for classifier reply parsing: JSON extraction from free text, schema
validation, default-safe substitution.
"""

from __future__ import annotations

import pytest

from backend_voteguard.analysis_engine.models import DEFAULT_SAFE_OBSERVATION
from backend_voteguard.analysis_engine.scorer import score
from backend_voteguard.classifier.parser import (
    extract_json_object,
    parse_observation,
    parse_observation_strict,
)
from backend_voteguard.core.exceptions import MalformedObservation

VALID = '{"faceCount": 2, "cameraBlocked": false, "highMotion": true, "environmentStable": true, "confidence": 77}'


def test_plain_json_reply():
    obs = parse_observation(VALID)
    assert obs.face_count == 2
    assert obs.camera_blocked is False
    assert obs.high_motion is True
    assert obs.environment_stable is True
    assert obs.confidence == 77


def test_markdown_fenced_reply():
    """Models often ignore 'no markdown'; fenced JSON is still accepted."""
    obs = parse_observation(f"```json\n{VALID}\n```")
    assert obs.face_count == 2


def test_json_wrapped_in_prose():
    obs = parse_observation(f"Here is my analysis: {VALID} Let me know if you need more.")
    assert obs.high_motion is True


def test_skips_leading_non_json_braces():
    """A stray brace before the real object is skipped, not fatal."""
    obs = parse_observation("{oops} " + VALID)
    assert obs.face_count == 2


def test_extra_fields_ignored():
    text = VALID[:-1] + ', "notes": "one person"}'
    assert parse_observation_strict(text).confidence == 77


def test_missing_confidence_defaults_to_50():
    text = '{"faceCount": 1, "cameraBlocked": false, "highMotion": false, "environmentStable": true}'
    assert parse_observation_strict(text).confidence == 50


def test_no_json_returns_default_safe_observation():
    obs = parse_observation("I cannot analyze this image.")
    assert obs == DEFAULT_SAFE_OBSERVATION


def test_default_safe_observation_scores_zero():
    """Parse failure pulls toward normal: the substitute scores 0."""
    report = score(parse_observation("no json here"))
    assert report.risk_score == 0
    assert report.status.value == "normal"
    assert report.anomaly_flags == []


@pytest.mark.parametrize(
    "text",
    [
        '{"faceCount": "2", "cameraBlocked": false, "highMotion": false, "environmentStable": true}',
        '{"faceCount": -1, "cameraBlocked": false, "highMotion": false, "environmentStable": true}',
        '{"faceCount": 1.5, "cameraBlocked": false, "highMotion": false, "environmentStable": true}',
        '{"faceCount": true, "cameraBlocked": false, "highMotion": false, "environmentStable": true}',
        '{"faceCount": 1, "cameraBlocked": "no", "highMotion": false, "environmentStable": true}',
        '{"faceCount": 1, "highMotion": false, "environmentStable": true}',
        '{"faceCount": 1, "cameraBlocked": false, "highMotion": false, "environmentStable": true, "confidence": 150}',
    ],
)
def test_invalid_fields_degrade_to_default(text):
    """Wrong types, out-of-range values and missing fields all yield the default."""
    with pytest.raises(MalformedObservation, match="invalid fields"):
        parse_observation_strict(text)
    assert parse_observation(text) == DEFAULT_SAFE_OBSERVATION


def test_strict_raises_when_no_json():
    with pytest.raises(MalformedObservation, match="No JSON found"):
        parse_observation_strict("")


def test_extract_json_object_ignores_arrays():
    assert extract_json_object("[1, 2, 3]") is None
    assert extract_json_object('[{"a": 1}]') == {"a": 1}
    assert extract_json_object("") is None
