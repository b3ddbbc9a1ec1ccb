"""Endpoint tests for the voice listing and synthesis proxies."""

from __future__ import annotations

import logging

import pytest

from tts_studio.app import (
    SYNTHESIS_FAILED_MESSAGE,
    VOICES_GENERIC_MESSAGE,
    VOICES_PERMISSION_MESSAGE,
    VOICES_UNAUTHORIZED_MESSAGE,
)
from tts_studio.app import create_app
from tts_studio.config import ConfigLoader
from tts_studio.elevenlabs import ElevenLabsClient, ProviderError, Voice

from tests.fakes import FakeResponse, FakeSession


def test_voices_returns_provider_voices(client, provider) -> None:
    """A successful provider call should be relayed as `{voices: [...]}`."""

    provider.voices = [Voice(id="1", name="Voice 1"), Voice(id="2", name="Voice 2")]

    response = client.get("/api/voices")

    assert response.status_code == 200
    assert response.get_json() == {
        "voices": [
            {"id": "1", "name": "Voice 1"},
            {"id": "2", "name": "Voice 2"},
        ]
    }


def test_voices_serialises_camel_case_fields(client, provider) -> None:
    """Internal snake_case attributes should leave the server as camelCase."""

    provider.voices = [
        Voice(id="v", name="Noa", language_code="he", language="Hebrew", preview_url="https://x/p.mp3")
    ]

    voice = client.get("/api/voices").get_json()["voices"][0]

    assert voice == {
        "id": "v",
        "name": "Noa",
        "languageCode": "he",
        "language": "Hebrew",
        "previewUrl": "https://x/p.mp3",
    }


@pytest.mark.parametrize(
    ("detail", "expected"),
    [
        ("401 Unauthorized", VOICES_UNAUTHORIZED_MESSAGE),
        ('Failed to fetch voices (401 ): {"detail": {"status": "missing_permissions"}}', VOICES_PERMISSION_MESSAGE),
        ("Connection reset", VOICES_GENERIC_MESSAGE),
    ],
)
def test_voices_maps_failures_to_friendly_messages(client, provider, detail: str, expected: str) -> None:
    """Provider failures should become stable messages chosen by substring."""

    provider.voices_error = ProviderError(detail)

    response = client.get("/api/voices")

    assert response.status_code == 500
    assert response.get_json() == {"error": expected}


def test_voices_unauthorized_message_text(client, provider) -> None:
    """The invalid-key hint should read exactly as documented."""

    provider.voices_error = ProviderError("401 Unauthorized")

    body = client.get("/api/voices").get_json()

    assert body == {"error": "Invalid or unauthorized ElevenLabs API key. Check your key."}


def test_voices_reports_missing_configuration(provider) -> None:
    """A missing API key should surface as the generic connectivity hint."""

    from tts_studio.app import create_app
    from tts_studio.config import ConfigLoader

    app = create_app(ConfigLoader({}), None)

    response = app.test_client().get("/api/voices")

    assert response.status_code == 500
    assert response.get_json() == {"error": VOICES_GENERIC_MESSAGE}


@pytest.mark.parametrize(
    "body",
    [
        {"voices": [{"name": "no id"}]},
        {"voices": ["not-a-voice"]},
        ["not", "an", "object"],
    ],
)
def test_voices_malformed_provider_body_gets_friendly_message(body) -> None:
    """A 200 answer with an unusable body should still map to the connectivity hint."""

    loader = ConfigLoader({"ELEVENLABS_API_KEY": "test-key-1234"})
    elevenlabs = ElevenLabsClient(loader, session=FakeSession(FakeResponse(json_body=body)))  # type: ignore[arg-type]
    app = create_app(loader, elevenlabs)

    response = app.test_client().get("/api/voices")

    assert response.status_code == 500
    assert response.get_json() == {"error": VOICES_GENERIC_MESSAGE}


def test_synthesize_rejects_invalid_json(client, provider) -> None:
    """An unparseable body should be answered with 400 before any upstream call."""

    response = client.post(
        "/api/synthesize",
        data="{ not-valid json }",
        content_type="application/json",
    )

    assert response.status_code == 400
    assert response.get_json() == {"error": "Invalid JSON payload"}
    assert provider.stream_calls == []


def test_synthesize_rejects_invalid_input(client, provider) -> None:
    """Schema violations should return 422 with the first field message."""

    response = client.post("/api/synthesize", json={"text": "", "voiceId": ""})
    body = response.get_json()

    assert response.status_code == 422
    assert body["error"].lower().startswith("invalid input")
    assert body["error"] == "Invalid input: Text is required"
    assert provider.stream_calls == []


def test_synthesize_validates_before_configuration(provider) -> None:
    """Bad input should get 422 even when the API key is missing."""

    app = create_app(ConfigLoader({}), provider)  # type: ignore[arg-type]

    response = app.test_client().post("/api/synthesize", json={"text": "", "voiceId": ""})

    assert response.status_code == 422
    assert response.get_json() == {"error": "Invalid input: Text is required"}
    assert provider.stream_calls == []


def test_synthesize_missing_configuration_is_502(provider) -> None:
    """Valid input without an API key should fail as an upstream error."""

    app = create_app(ConfigLoader({}), provider)  # type: ignore[arg-type]

    response = app.test_client().post("/api/synthesize", json={"text": "Hello", "voiceId": "voice-1"})

    assert response.status_code == 502
    assert response.get_json() == {"error": SYNTHESIS_FAILED_MESSAGE}
    assert provider.stream_calls == []


def test_synthesize_rejects_out_of_range_stability(client, provider) -> None:
    """Style values outside [0, 1] should be rejected with 422."""

    response = client.post(
        "/api/synthesize",
        json={"text": "Hello", "voiceId": "voice-1", "stability": 1.5},
    )

    assert response.status_code == 422
    assert response.get_json() == {"error": "Invalid input: Stability must be between 0 and 1"}


def test_synthesize_hides_upstream_failure_detail(client, provider, caplog) -> None:
    """Upstream failures should return 502 with a generic message and log the detail."""

    provider.stream_error = ProviderError("Failed to synthesize speech (500 Server Error): secret detail", status=500)

    with caplog.at_level(logging.ERROR, logger="tts_studio.app"):
        response = client.post(
            "/api/synthesize",
            json={
                "text": "Hello world",
                "voiceId": "voice-1",
                "language": "en",
                "stability": 0.5,
                "similarityBoost": 0.7,
                "optimizeStreamingLatency": 1,
            },
        )

    assert response.status_code == 502
    assert response.get_json() == {"error": SYNTHESIS_FAILED_MESSAGE}
    assert len(provider.stream_calls) == 1
    assert "secret detail" in caplog.text


def test_synthesize_streams_audio(client, provider) -> None:
    """A valid request should relay the provider's audio chunks as audio/mpeg."""

    provider.chunks = [b"abc", b"def", b"ghi"]

    response = client.post(
        "/api/synthesize",
        json={
            "text": "Hello world",
            "voiceId": "voice-1",
            "language": "en",
            "stability": 0.3,
            "similarityBoost": 0.7,
            "styleExaggeration": 0.2,
            "optimizeStreamingLatency": 2,
        },
    )

    assert response.status_code == 200
    assert response.mimetype == "audio/mpeg"
    assert response.data == b"abcdefghi"
    sent = provider.stream_calls[0]
    assert sent.text == "Hello world"
    assert sent.voice_id == "voice-1"
    assert sent.language_code == "en"
    assert sent.stability == 0.3
    assert sent.similarity_boost == 0.7
    assert sent.style_exaggeration == 0.2
    assert sent.optimize_streaming_latency == 2


def test_synthesize_accepts_british_spelling_route(client, provider) -> None:
    """The `/synthesise` alias should behave like `/synthesize`."""

    response = client.post("/api/synthesise", json={"text": "Hi", "voiceId": "v"})

    assert response.status_code == 200
    assert response.data == b"ID3audio"


def test_languages_exposes_character_limits(client) -> None:
    """Languages should be listed in catalog order with per-language limits."""

    languages = client.get("/api/languages").get_json()["languages"]
    by_code = {item["code"]: item for item in languages}

    assert languages[0]["code"] == "auto"
    assert languages[1]["code"] == "he"
    assert by_code["he"]["characterLimit"] == 3_000
    assert by_code["en"]["characterLimit"] == 30_000
    assert by_code["en"]["sample"] == "Hello world"


def test_languages_follow_configured_model(provider) -> None:
    """An explicit default model should change the advertised limit for non-Hebrew languages."""

    from tts_studio.app import create_app
    from tts_studio.config import ConfigLoader

    loader = ConfigLoader({"ELEVENLABS_API_KEY": "k", "ELEVENLABS_MODEL_ID": "eleven_multilingual_v1"})
    app = create_app(loader, provider)  # type: ignore[arg-type]

    by_code = {item["code"]: item for item in app.test_client().get("/api/languages").get_json()["languages"]}

    assert by_code["en"]["characterLimit"] == 10_000
    assert by_code["he"]["characterLimit"] == 3_000


def test_health_and_index(client) -> None:
    """Health should answer ok and the root should serve the studio page."""

    assert client.get("/health").get_json() == {"status": "ok"}
    index = client.get("/")
    assert index.status_code == 200
    assert b"TTS Studio" in index.data


def test_unknown_api_path_is_json_404(client) -> None:
    """Unknown API paths should not fall through to the studio page."""

    response = client.get("/api/does-not-exist")

    assert response.status_code == 404
    assert response.get_json() == {"error": "Not found"}
