from __future__ import annotations

import os
from typing import Any, Dict, Iterator, List, Optional

import requests

from .elevenlabs import Voice
from .http_utils import get_error_message, read_json_safe

DEFAULT_API_BASE = "http://127.0.0.1:7860/api"
DEFAULT_TIMEOUT = (10.0, 120.0)


class StudioApiError(RuntimeError):
    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class StudioApiClient:
    """Client for the studio's own ``/api`` endpoints."""

    def __init__(self, base_url: Optional[str] = None, *, session: Optional[requests.Session] = None) -> None:
        self.base_url = (base_url or os.environ.get("TTS_STUDIO_API_BASE") or DEFAULT_API_BASE).rstrip("/")
        self.session = session or requests.Session()

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _raise_for(self, response: requests.Response, fallback: str) -> None:
        if response.ok:
            return
        message = get_error_message(response, read_json_safe(response), fallback)
        response.close()
        raise StudioApiError(message, status=response.status_code)

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        url = self._url(path)
        try:
            return self.session.request(method, url, timeout=DEFAULT_TIMEOUT, **kwargs)
        except requests.RequestException as exc:
            raise StudioApiError(f"Failed to reach {url}: {exc}") from exc

    def languages(self) -> List[Dict[str, Any]]:
        response = self._request("GET", "languages")
        self._raise_for(response, "Unable to load languages")
        return list((response.json() or {}).get("languages") or [])

    def voices(self) -> List[Voice]:
        response = self._request("GET", "voices")
        self._raise_for(response, "Unable to load voices")
        return [Voice.from_json(item) for item in (response.json() or {}).get("voices") or []]

    def synthesize(self, payload: Dict[str, Any]) -> Iterator[bytes]:
        response = self._request("POST", "synthesize", json=payload, stream=True)
        self._raise_for(response, "Speech synthesis failed")
        content_type = response.headers.get("Content-Type", "")
        if "audio" not in content_type:
            response.close()
            raise StudioApiError("Unexpected response format")
        return _iter_chunks(response)


def _iter_chunks(response: requests.Response) -> Iterator[bytes]:
    try:
        for chunk in response.iter_content(chunk_size=8192):
            if chunk:
                yield chunk
    except requests.RequestException as exc:
        raise StudioApiError(f"Audio stream interrupted: {exc}") from exc
    finally:
        response.close()
