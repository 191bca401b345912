"""
Classifier package — external vision model adapter and defensive reply parsing.
"""

from backend_voteguard.classifier.adapter import (
    Classifier,
    ClassifierAdapter,
    ClassifierConfig,
    build_prompt,
)
from backend_voteguard.classifier.parser import (
    extract_json_object,
    parse_observation,
    parse_observation_strict,
)

__all__ = [
    "Classifier",
    "ClassifierAdapter",
    "ClassifierConfig",
    "build_prompt",
    "extract_json_object",
    "parse_observation",
    "parse_observation_strict",
]
