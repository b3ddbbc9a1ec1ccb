from __future__ import annotations

import os
import threading
from dataclasses import dataclass
from typing import Mapping, Optional

ELEVENLABS_BASE_URL = "https://api.elevenlabs.io/v1"
DEFAULT_MODEL_ID = "eleven_multilingual_v2"
DEFAULT_TIMEOUT_SECONDS = 60.0
DEVELOPMENT_MODES = {"development", "dev"}


class ConfigError(RuntimeError):
    """Raised when the process configuration is missing or invalid."""


@dataclass(frozen=True)
class StudioConfig:
    api_key: str
    model_id: str = DEFAULT_MODEL_ID
    optimize_latency: Optional[int] = None
    base_url: str = ELEVENLABS_BASE_URL
    timeout: float = DEFAULT_TIMEOUT_SECONDS

    @property
    def masked_key(self) -> str:
        return f"…{self.api_key[-4:]}"


def _parse_latency(raw: Optional[str]) -> Optional[int]:
    if raw is None:
        return None
    raw = raw.strip()
    if not raw:
        return None
    try:
        value = int(raw)
    except ValueError:
        # Unparseable values are treated as unset rather than rejected.
        return None
    if value not in (0, 1, 2):
        raise ConfigError(f"ELEVENLABS_OPTIMIZE_LATENCY must be 0, 1 or 2 (got {value}).")
    return value


def _parse_timeout(raw: Optional[str]) -> float:
    if raw is None or not raw.strip():
        return DEFAULT_TIMEOUT_SECONDS
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigError(f"ELEVENLABS_TIMEOUT must be a number of seconds (got {raw!r}).") from exc
    if value <= 0:
        raise ConfigError("ELEVENLABS_TIMEOUT must be positive.")
    return value


def parse_config(environ: Mapping[str, str]) -> StudioConfig:
    api_key = (environ.get("ELEVENLABS_API_KEY") or "").strip()
    if not api_key:
        raise ConfigError("Invalid environment configuration: ELEVENLABS_API_KEY is required")
    model_id = (environ.get("ELEVENLABS_MODEL_ID") or "").strip() or DEFAULT_MODEL_ID
    base_url = (environ.get("ELEVENLABS_BASE_URL") or "").strip() or ELEVENLABS_BASE_URL
    return StudioConfig(
        api_key=api_key,
        model_id=model_id,
        optimize_latency=_parse_latency(environ.get("ELEVENLABS_OPTIMIZE_LATENCY")),
        base_url=base_url.rstrip("/"),
        timeout=_parse_timeout(environ.get("ELEVENLABS_TIMEOUT")),
    )


def is_development_mode(environ: Mapping[str, str]) -> bool:
    mode = environ.get("STUDIO_ENV") or environ.get("FLASK_ENV") or ""
    return mode.strip().lower() in DEVELOPMENT_MODES


class ConfigLoader:
    """Reads :class:`StudioConfig` from an environment mapping.

    The first successful read is cached. With ``reload_on_access`` every
    call to :meth:`get` parses the environment again so edits show up
    without a restart.
    """

    def __init__(self, environ: Optional[Mapping[str, str]] = None, *, reload_on_access: bool = False) -> None:
        self._environ = environ
        self.reload_on_access = reload_on_access
        self._cached: Optional[StudioConfig] = None
        self._lock = threading.Lock()

    @classmethod
    def from_environment(cls, environ: Optional[Mapping[str, str]] = None) -> "ConfigLoader":
        source = os.environ if environ is None else environ
        return cls(environ, reload_on_access=is_development_mode(source))

    @property
    def environ(self) -> Mapping[str, str]:
        return os.environ if self._environ is None else self._environ

    def get(self) -> StudioConfig:
        if self.reload_on_access:
            return parse_config(self.environ)
        if self._cached is None:
            with self._lock:
                if self._cached is None:
                    self._cached = parse_config(self.environ)
        return self._cached

    def invalidate(self) -> None:
        with self._lock:
            self._cached = None
