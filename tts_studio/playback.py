"""Audio playback helper.

``AudioPlayer`` drives a single externally owned audio handle through
source changes and play attempts. Every attempt ends in one of three
outcomes: ``"played"``, ``"blocked"`` or ``"idle"``. Play failures are
logged and reported as ``"blocked"``; they never propagate to callers.
"""
from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path
from typing import List, Literal, Optional, Protocol, Sequence

logger = logging.getLogger(__name__)

PlayResult = Literal["played", "blocked", "idle"]

# Errors a browser raises when autoplay policy or a newer load interrupts play().
POLICY_ERRORS = {"NotAllowedError", "AbortError"}

# Command-line players tried in order; the source path is appended.
DEFAULT_PLAYERS: Sequence[Sequence[str]] = (
    ("afplay",),
    ("ffplay", "-nodisp", "-autoexit", "-loglevel", "quiet"),
    ("mpg123", "-q"),
    ("paplay",),
)


class PlaybackError(Exception):
    """A rejected play attempt. ``name`` mirrors the DOMException names."""

    def __init__(self, message: str, name: str = "PlaybackError") -> None:
        super().__init__(message)
        self.name = name


class AudioHandle(Protocol):
    src: str
    current_time: float

    def load(self) -> None: ...

    def play(self) -> None: ...

    def pause(self) -> None: ...


class AudioPlayer:
    def __init__(self, handle: Optional[AudioHandle] = None) -> None:
        self.handle = handle

    def play(self, src: str) -> PlayResult:
        handle = self.handle
        if handle is None:
            return "idle"
        if handle.src != src:
            handle.src = src
        try:
            handle.load()
        except Exception:
            # Some handles reload on their own when the source changes.
            pass
        return _play_handle(handle)

    def replay(self) -> PlayResult:
        handle = self.handle
        if handle is None or not handle.src:
            return "idle"
        try:
            handle.current_time = 0
        except Exception:
            pass
        return _play_handle(handle)

    def pause(self) -> None:
        if self.handle is None:
            return
        try:
            self.handle.pause()
        except Exception as exc:
            logger.warning("Failed to pause audio: %s", exc)


def _play_handle(handle: AudioHandle) -> PlayResult:
    try:
        handle.play()
    except PlaybackError as exc:
        if exc.name in POLICY_ERRORS:
            logger.warning("Autoplay blocked by playback policy: %s", exc)
        else:
            logger.warning("Failed to play audio: %s", exc)
        return "blocked"
    except Exception as exc:
        logger.warning("Failed to play audio: %s", exc)
        return "blocked"
    return "played"


class ExternalPlayerHandle:
    """Audio handle that plays local files through a command-line player."""

    def __init__(self, command: Optional[Sequence[str]] = None) -> None:
        self.src = ""
        self.current_time = 0.0
        self._command = list(command) if command else None
        self._process: Optional[subprocess.Popen] = None

    def _resolve_command(self) -> Optional[List[str]]:
        candidates = [self._command] if self._command else [list(c) for c in DEFAULT_PLAYERS]
        for candidate in candidates:
            if candidate and shutil.which(candidate[0]):
                return list(candidate)
        return None

    def load(self) -> None:
        self.pause()
        self.current_time = 0.0

    def play(self) -> None:
        if not self.src or not Path(self.src).is_file():
            raise PlaybackError(f"Audio source not found: {self.src or '<empty>'}", name="NotSupportedError")
        command = self._resolve_command()
        if command is None:
            raise PlaybackError("No command-line audio player available.", name="NotAllowedError")
        self.pause()
        self._process = subprocess.Popen(
            command + [self.src],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )

    def pause(self) -> None:
        process = self._process
        self._process = None
        if process is not None and process.poll() is None:
            process.terminate()
            try:
                process.wait(timeout=2)
            except subprocess.TimeoutExpired:
                process.kill()

    @property
    def playing(self) -> bool:
        return self._process is not None and self._process.poll() is None
