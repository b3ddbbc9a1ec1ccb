"""ElevenLabs REST client.

Translates studio requests into the provider's wire format (snake_case JSON)
and translates voices and errors back. Only ``voice_from_wire`` and
``ElevenLabsClient.build_request_body`` know about the provider schema.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple

import requests

from .config import DEFAULT_MODEL_ID, ConfigLoader, StudioConfig
from .http_utils import read_json_safe
from .languages import AUTO_LANGUAGE, resolve_language_code

logger = logging.getLogger(__name__)

HIGH_QUALITY_MODEL = "eleven_v3"
FAST_MODEL = "eleven_turbo_v2_5"
# Languages only the high-quality model can speak.
HIGH_QUALITY_ONLY_LANGUAGES = {"he"}

DEFAULT_OUTPUT_FORMAT = "mp3_44100_128"

DEFAULT_STABILITY = 0.5
DEFAULT_SIMILARITY_BOOST = 0.8
STREAM_CHUNK_SIZE = 8192

MODEL_CHARACTER_LIMITS: Dict[str, int] = {
    "eleven_v3": 3_000,
    # The API accepts 40k for v2.5 models; keep headroom.
    "eleven_flash_v2_5": 30_000,
    "eleven_turbo_v2_5": 30_000,
    "eleven_flash_v2": 30_000,
    "eleven_turbo_v2": 30_000,
    "eleven_multilingual_v2": 10_000,
    "eleven_multilingual_v1": 10_000,
    "eleven_monolingual_v1": 10_000,
}
DEFAULT_CHARACTER_LIMIT = 5_000

# Voice label keys that may carry the language, in priority order.
_LANGUAGE_LABEL_KEYS = ("language", "accent", "lang", "Locale", "Language")


class ProviderError(RuntimeError):
    """A non-success answer from the provider."""

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        status_text: Optional[str] = None,
        detail: Any = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.status_text = status_text
        self.detail = detail

    @classmethod
    def from_response(cls, action: str, response: requests.Response) -> "ProviderError":
        detail = read_json_safe(response)
        rendered = json.dumps(detail) if detail else "unknown error"
        message = f"Failed to {action} ({response.status_code} {response.reason}): {rendered}"
        return cls(message, status=response.status_code, status_text=response.reason, detail=detail)


@dataclass
class Voice:
    id: str
    name: str
    description: Optional[str] = None
    language_code: Optional[str] = None
    language: Optional[str] = None
    accent: Optional[str] = None
    category: Optional[str] = None
    preview_url: Optional[str] = None

    def to_json(self) -> Dict[str, Any]:
        fields = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "languageCode": self.language_code,
            "language": self.language,
            "accent": self.accent,
            "category": self.category,
            "previewUrl": self.preview_url,
        }
        return {key: value for key, value in fields.items() if value is not None}

    @classmethod
    def from_json(cls, payload: Dict[str, Any]) -> "Voice":
        return cls(
            id=str(payload.get("id") or ""),
            name=str(payload.get("name") or ""),
            description=payload.get("description"),
            language_code=payload.get("languageCode"),
            language=payload.get("language"),
            accent=payload.get("accent"),
            category=payload.get("category"),
            preview_url=payload.get("previewUrl"),
        )


def voice_from_wire(raw: Dict[str, Any]) -> Voice:
    labels = raw.get("labels") or {}
    language_label = None
    for key in _LANGUAGE_LABEL_KEYS:
        if labels.get(key):
            language_label = labels[key]
            break
    return Voice(
        id=raw["voice_id"],
        name=raw.get("name") or raw["voice_id"],
        description=raw.get("description"),
        language_code=resolve_language_code(language_label),
        language=language_label,
        accent=labels.get("accent"),
        category=raw.get("category"),
        preview_url=raw.get("preview_url"),
    )


@dataclass
class SynthesisInput:
    text: str
    voice_id: str
    language_code: Optional[str] = None
    model_id: Optional[str] = None
    stability: float = DEFAULT_STABILITY
    similarity_boost: float = DEFAULT_SIMILARITY_BOOST
    style_exaggeration: Optional[float] = None
    use_speaker_boost: bool = True
    optimize_streaming_latency: Optional[int] = None
    output_format: Optional[str] = None


def clamp(value: float, lower: float, upper: float) -> float:
    return min(max(value, lower), upper)


def select_model_for_language(language_code: Optional[str], model_id: Optional[str] = None) -> str:
    """Pick the model for a request.

    Hebrew is only spoken by the high-quality model, so it wins over any
    override. The generic multilingual default counts as "no preference".
    """
    if language_code in HIGH_QUALITY_ONLY_LANGUAGES:
        return HIGH_QUALITY_MODEL
    if model_id and model_id != DEFAULT_MODEL_ID:
        return model_id
    return FAST_MODEL


def get_model_character_limit(model_id: str) -> int:
    return MODEL_CHARACTER_LIMITS.get(model_id, DEFAULT_CHARACTER_LIMIT)


def character_limit_for(language_code: Optional[str], model_id: Optional[str] = None) -> int:
    return get_model_character_limit(select_model_for_language(language_code, model_id))


def quantize_stability(value: float) -> float:
    # eleven_v3 accepts only 0.0, 0.5 and 1.0
    if value <= 0.25:
        return 0.0
    if value <= 0.75:
        return 0.5
    return 1.0


def resolve_stability(value: float, model_id: str) -> float:
    if model_id == HIGH_QUALITY_MODEL:
        return quantize_stability(value)
    return clamp(value, 0.0, 1.0)


class ElevenLabsClient:
    def __init__(self, config_loader: ConfigLoader, *, session: Optional[requests.Session] = None) -> None:
        self.config_loader = config_loader
        self.session = session or requests.Session()

    def _headers(self, config: StudioConfig, accept: str) -> Dict[str, str]:
        headers = {"Accept": accept, "xi-api-key": config.api_key}
        if accept != "application/json":
            headers["Content-Type"] = "application/json"
        return headers

    def _timeout(self, config: StudioConfig) -> Tuple[float, float]:
        return (min(10.0, config.timeout), config.timeout)

    def fetch_voices(self) -> List[Voice]:
        config = self.config_loader.get()
        logger.info("Fetching voices (key %s)", config.masked_key)
        response = self.session.get(
            f"{config.base_url}/voices",
            headers=self._headers(config, "application/json"),
            timeout=self._timeout(config),
        )
        if not response.ok:
            logger.error("Voice fetch failed: %s %s", response.status_code, response.reason)
            raise ProviderError.from_response("fetch voices", response)
        payload = read_json_safe(response)
        if not isinstance(payload, dict):
            raise ProviderError("Failed to fetch voices: malformed response body", status=response.status_code, detail=payload)
        raw_voices = payload.get("voices") or []
        logger.info("Received %d voices", len(raw_voices))
        try:
            return [voice_from_wire(raw) for raw in raw_voices]
        except (KeyError, TypeError, AttributeError) as exc:
            raise ProviderError(
                f"Failed to fetch voices: malformed voice entry ({exc!r})",
                status=response.status_code,
                detail=payload,
            ) from exc

    def build_request_body(self, data: SynthesisInput, config: StudioConfig) -> Tuple[str, Dict[str, Any]]:
        model = select_model_for_language(data.language_code, data.model_id or config.model_id)
        latency = data.optimize_streaming_latency
        if latency is None:
            latency = config.optimize_latency if config.optimize_latency is not None else 0

        voice_settings: Dict[str, Any] = {
            "stability": resolve_stability(data.stability, model),
            "similarity_boost": clamp(data.similarity_boost, 0.0, 1.0),
            "use_speaker_boost": data.use_speaker_boost,
        }
        if data.style_exaggeration is not None:
            voice_settings["style"] = clamp(data.style_exaggeration, 0.0, 1.0)

        body: Dict[str, Any] = {
            "text": data.text,
            "model_id": model,
            "voice_settings": voice_settings,
            "optimize_streaming_latency": latency,
            "output_format": data.output_format or DEFAULT_OUTPUT_FORMAT,
        }
        if data.language_code and data.language_code != AUTO_LANGUAGE:
            body["language_code"] = data.language_code
        return model, body

    def _post_synthesis(self, data: SynthesisInput, *, stream: bool) -> requests.Response:
        config = self.config_loader.get()
        model, body = self.build_request_body(data, config)
        path = f"/text-to-speech/{data.voice_id}"
        if stream:
            path += "/stream"
        logger.info(
            "Synthesizing speech%s voice=%s language=%s model=%s chars=%d",
            " (streaming)" if stream else "",
            data.voice_id,
            data.language_code,
            model,
            len(data.text),
        )
        return self.session.post(
            f"{config.base_url}{path}",
            headers=self._headers(config, "audio/mpeg"),
            json=body,
            stream=stream,
            timeout=self._timeout(config),
        )

    def synthesize(self, data: SynthesisInput) -> bytes:
        response = self._post_synthesis(data, stream=False)
        if not response.ok:
            logger.error("Synthesis failed: %s %s", response.status_code, response.reason)
            raise ProviderError.from_response("synthesize speech", response)
        audio = response.content
        logger.info("Synthesis succeeded (%d bytes)", len(audio))
        return audio

    def synthesize_stream(self, data: SynthesisInput, *, chunk_size: int = STREAM_CHUNK_SIZE) -> Iterator[bytes]:
        """Start a streamed synthesis and return an iterator over audio chunks.

        The status is checked before returning, so provider errors surface
        here rather than halfway through the caller's iteration.
        """
        response = self._post_synthesis(data, stream=True)
        if not response.ok:
            logger.error("Streaming synthesis failed: %s %s", response.status_code, response.reason)
            error = ProviderError.from_response("synthesize speech", response)
            response.close()
            raise error
        if response.raw is None:
            response.close()
            raise ProviderError("Response body is null", status=response.status_code, status_text=response.reason)
        logger.info("Streaming synthesis started")
        return _iter_response(response, chunk_size)


def _iter_response(response: requests.Response, chunk_size: int) -> Iterator[bytes]:
    try:
        for chunk in response.iter_content(chunk_size=chunk_size):
            if chunk:
                yield chunk
    finally:
        response.close()
