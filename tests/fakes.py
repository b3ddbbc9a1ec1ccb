"""Hand-written doubles for requests and the provider client."""

from __future__ import annotations

from typing import Any, Dict, Iterable, Iterator, List, Optional

from tts_studio.elevenlabs import SynthesisInput, Voice

_MISSING = object()


class FakeResponse:
    """Minimal stand-in for ``requests.Response``."""

    def __init__(
        self,
        *,
        status_code: int = 200,
        reason: str = "OK",
        json_body: Any = _MISSING,
        chunks: Iterable[bytes] = (),
        headers: Optional[Dict[str, str]] = None,
        raw: Any = _MISSING,
    ) -> None:
        self.status_code = status_code
        self.reason = reason
        self._json = json_body
        self._chunks = list(chunks)
        self.headers = headers or {}
        self.raw = object() if raw is _MISSING else raw
        self.closed = False

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    @property
    def content(self) -> bytes:
        return b"".join(self._chunks)

    def json(self) -> Any:
        if self._json is _MISSING:
            raise ValueError("No JSON object could be decoded")
        return self._json

    def iter_content(self, chunk_size: int = 1) -> Iterator[bytes]:
        yield from self._chunks

    def close(self) -> None:
        self.closed = True


class FakeSession:
    """Records outgoing calls and answers them from a queue of responses."""

    def __init__(self, *responses: FakeResponse) -> None:
        self.responses: List[FakeResponse] = list(responses)
        self.calls: List[Dict[str, Any]] = []

    def _next(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        return self.responses.pop(0)

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._next("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._next("POST", url, **kwargs)

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        return self._next(method, url, **kwargs)


class FakeProvider:
    """Provider client double used by the endpoint tests."""

    def __init__(self) -> None:
        self.voices: List[Voice] = []
        self.voices_error: Optional[Exception] = None
        self.stream_error: Optional[Exception] = None
        self.chunks: List[bytes] = [b"ID3", b"audio"]
        self.stream_calls: List[SynthesisInput] = []

    def fetch_voices(self) -> List[Voice]:
        if self.voices_error is not None:
            raise self.voices_error
        return list(self.voices)

    def synthesize_stream(self, data: SynthesisInput) -> Iterator[bytes]:
        self.stream_calls.append(data)
        if self.stream_error is not None:
            raise self.stream_error
        return iter(self.chunks)


