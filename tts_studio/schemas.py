from __future__ import annotations

import numbers
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .elevenlabs import DEFAULT_SIMILARITY_BOOST, DEFAULT_STABILITY, SynthesisInput, character_limit_for
from .languages import AUTO_LANGUAGE, is_supported_language

DEFAULT_VALIDATION_MESSAGE = "Please review the submitted values."
LATENCY_LEVELS = (0, 1, 2)

# (payload key, label used in messages)
_UNIT_RANGE_FIELDS = (
    ("stability", "Stability"),
    ("similarityBoost", "Similarity boost"),
    ("styleExaggeration", "Style exaggeration"),
)


class ValidationFailed(ValueError):
    """Raised with the first violation found in a synthesis payload."""

    def __init__(self, message: str, *, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field


@dataclass
class SynthesisRequest:
    text: str
    voice_id: str
    language: Optional[str] = None
    stability: Optional[float] = None
    similarity_boost: Optional[float] = None
    style_exaggeration: Optional[float] = None
    optimize_streaming_latency: Optional[int] = None
    model_id: Optional[str] = None

    def to_input(self) -> SynthesisInput:
        return SynthesisInput(
            text=self.text,
            voice_id=self.voice_id,
            language_code=self.language,
            model_id=self.model_id,
            stability=DEFAULT_STABILITY if self.stability is None else self.stability,
            similarity_boost=DEFAULT_SIMILARITY_BOOST if self.similarity_boost is None else self.similarity_boost,
            style_exaggeration=self.style_exaggeration,
            optimize_streaming_latency=self.optimize_streaming_latency,
        )


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def _first_message(field_errors: Dict[str, List[str]], form_errors: List[str]) -> ValidationFailed:
    for field, messages in field_errors.items():
        if messages:
            return ValidationFailed(messages[0], field=field)
    return ValidationFailed(form_errors[0] if form_errors else DEFAULT_VALIDATION_MESSAGE)


def validate_synthesis_payload(payload: Any, *, default_model: Optional[str] = None) -> SynthesisRequest:
    """Check an untyped JSON payload and build a :class:`SynthesisRequest`.

    Only the first violation is reported, in field declaration order. The
    text length bound depends on the model the request will use
    (``modelId`` when given, else ``default_model``), see
    :func:`tts_studio.elevenlabs.character_limit_for`.
    """
    if not isinstance(payload, dict):
        raise _first_message({}, ["Expected a JSON object"])

    errors: Dict[str, List[str]] = {}

    def fail(field: str, message: str) -> None:
        errors.setdefault(field, []).append(message)

    text = payload.get("text")
    voice_id = payload.get("voiceId")
    language = payload.get("language") or None
    model_id = payload.get("modelId") or None

    language_ok = language is None or (
        isinstance(language, str) and (language == AUTO_LANGUAGE or is_supported_language(language))
    )
    limit = character_limit_for(
        language if language_ok else None,
        model_id if isinstance(model_id, str) else default_model,
    )

    if text is None or text == "":
        fail("text", "Text is required")
    elif not isinstance(text, str):
        fail("text", "Text must be a string")
    elif len(text) > limit:
        fail("text", f"Text must be shorter than {limit:,} characters")

    if voice_id is None or voice_id == "":
        fail("voiceId", "Voice is required")
    elif not isinstance(voice_id, str):
        fail("voiceId", "Voice must be a string")

    if not language_ok:
        fail("language", "Unsupported language selected")

    unit_values: Dict[str, Optional[float]] = {}
    for key, label in _UNIT_RANGE_FIELDS:
        value = payload.get(key)
        unit_values[key] = None
        if value is None:
            continue
        if not _is_number(value):
            fail(key, f"{label} must be a number")
        elif not 0 <= value <= 1:
            fail(key, f"{label} must be between 0 and 1")
        else:
            unit_values[key] = float(value)

    latency = payload.get("optimizeStreamingLatency")
    if latency is not None:
        if _is_number(latency) and latency in LATENCY_LEVELS:
            latency = int(latency)
        else:
            fail("optimizeStreamingLatency", "Optimize streaming latency must be 0, 1, or 2")

    if model_id is not None and not isinstance(model_id, str):
        fail("modelId", "Model must be a string")

    if errors:
        raise _first_message(errors, [])

    return SynthesisRequest(
        text=text,
        voice_id=voice_id,
        language=language,
        stability=unit_values["stability"],
        similarity_boost=unit_values["similarityBoost"],
        style_exaggeration=unit_values["styleExaggeration"],
        optimize_streaming_latency=latency,
        model_id=model_id,
    )
