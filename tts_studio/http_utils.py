from __future__ import annotations

from typing import Any, Optional

import requests

DEFAULT_ERROR_MESSAGE = "Request failed"


def read_json_safe(response: requests.Response) -> Any:
    """Return the decoded JSON body, or ``None`` when the body is not JSON."""
    try:
        return response.json()
    except ValueError:
        return None


def _extract_from_payload(payload: Any) -> Optional[str]:
    if isinstance(payload, str):
        return payload.strip() or None
    if isinstance(payload, dict):
        candidate = payload.get("error")
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()
    return None


def get_error_message(
    response: Optional[requests.Response],
    payload: Any,
    fallback: str = DEFAULT_ERROR_MESSAGE,
) -> str:
    from_payload = _extract_from_payload(payload)
    if from_payload:
        return from_payload
    reason = (getattr(response, "reason", None) or "").strip()
    if reason:
        return reason
    return fallback
