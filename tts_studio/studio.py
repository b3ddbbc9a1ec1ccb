from __future__ import annotations

import logging
import time
import uuid
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Deque, Dict, Iterable, Iterator, List, Optional, Tuple

from .client import StudioApiClient, StudioApiError
from .elevenlabs import Voice, character_limit_for
from .languages import AUTO_LANGUAGE, LANGUAGE_CODES
from .playback import AudioPlayer, PlayResult

logger = logging.getLogger(__name__)

MAX_HISTORY = 5
DEFAULT_LANGUAGE = "he"
DEFAULT_STABILITY = 0.55
DEFAULT_SIMILARITY_BOOST = 0.85
DEFAULT_LATENCY = 1


class StudioError(RuntimeError):
    """User-facing studio failure; the message is shown as-is."""


@dataclass
class HistoryItem:
    id: str
    text: str
    voice_name: str
    created_at: str
    audio_src: str


def _now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


def dedupe_voices(voices: Iterable[Voice]) -> List[Voice]:
    seen = set()
    unique: List[Voice] = []
    for voice in voices:
        if voice.id in seen:
            continue
        seen.add(voice.id)
        unique.append(voice)
    return unique


def filter_voices(voices: Iterable[Voice], language: str) -> List[Voice]:
    if language == AUTO_LANGUAGE:
        return list(voices)
    return [voice for voice in voices if voice.language_code == language]


class RenderHistory:
    """Most recent renders, newest first."""

    def __init__(self, limit: int = MAX_HISTORY) -> None:
        self.limit = limit
        self._items: Deque[HistoryItem] = deque(maxlen=limit)

    def add(self, item: HistoryItem) -> None:
        self._items.appendleft(item)

    def __iter__(self) -> Iterator[HistoryItem]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, index: int) -> HistoryItem:
        return list(self._items)[index]

    def items(self) -> List[HistoryItem]:
        return list(self._items)


class StudioSession:
    """Terminal counterpart of the browser studio.

    Holds the voice list, the current selection and tuning values, and the
    render history. Rendered audio is written to ``audio_dir``; those files
    play the role of the browser's object URLs and live as long as the
    directory does.
    """

    def __init__(
        self,
        api: StudioApiClient,
        player: AudioPlayer,
        audio_dir: Path,
        *,
        language: str = DEFAULT_LANGUAGE,
    ) -> None:
        self.api = api
        self.player = player
        self.audio_dir = Path(audio_dir)
        self.language = language
        self.voices: List[Voice] = []
        self.selected_voice_id: Optional[str] = None
        self.text = ""
        self.stability = DEFAULT_STABILITY
        self.similarity_boost = DEFAULT_SIMILARITY_BOOST
        self.optimize_latency = DEFAULT_LATENCY
        self.history = RenderHistory()
        self.current_src: Optional[str] = None
        self._limits: Dict[str, int] = {}

    # ---------- catalog ----------
    def load_languages(self) -> List[Dict[str, Any]]:
        languages = self.api.languages()
        self._limits = {
            str(item["code"]): int(item["characterLimit"])
            for item in languages
            if item.get("code") and item.get("characterLimit")
        }
        return languages

    def load_voices(self) -> List[Voice]:
        self.voices = dedupe_voices(self.api.voices())
        self._ensure_selection()
        return self.voices

    @property
    def filtered_voices(self) -> List[Voice]:
        """Voices for the current language, or every voice when none match."""
        return filter_voices(self.voices, self.language) or list(self.voices)

    def _ensure_selection(self) -> None:
        candidates = self.filtered_voices
        if not candidates:
            return
        if not self.selected_voice_id or all(v.id != self.selected_voice_id for v in candidates):
            self.selected_voice_id = candidates[0].id

    def set_language(self, code: str) -> None:
        if code not in LANGUAGE_CODES:
            raise StudioError(f"Unsupported language '{code}'.")
        self.language = code
        self.text = ""
        self._ensure_selection()

    def select_voice(self, voice_id: str) -> Voice:
        for voice in self.voices:
            if voice.id == voice_id:
                self.selected_voice_id = voice.id
                return voice
        raise StudioError(f"Unknown voice '{voice_id}'.")

    @property
    def selected_voice(self) -> Optional[Voice]:
        for voice in self.voices:
            if voice.id == self.selected_voice_id:
                return voice
        return None

    @property
    def character_limit(self) -> int:
        if self.language in self._limits:
            return self._limits[self.language]
        return character_limit_for(self.language)

    # ---------- rendering ----------
    def build_payload(self, text: str) -> Dict[str, Any]:
        return {
            "text": text,
            "voiceId": self.selected_voice_id,
            "language": self.language,
            "stability": self.stability,
            "similarityBoost": self.similarity_boost,
            "optimizeStreamingLatency": self.optimize_latency,
        }

    def _write_audio(self, chunks: Iterable[bytes]) -> Path:
        self.audio_dir.mkdir(parents=True, exist_ok=True)
        path = self.audio_dir / f"render_{uuid.uuid4().hex[:12]}.mp3"
        # The whole file is assembled before playback starts.
        try:
            with path.open("wb") as fh:
                for chunk in chunks:
                    fh.write(chunk)
        except BaseException:
            path.unlink(missing_ok=True)
            raise
        return path

    def synthesize(self, text: Optional[str] = None) -> Tuple[HistoryItem, PlayResult]:
        if text is not None:
            self.text = text
        if not self.selected_voice_id:
            raise StudioError("Please select a voice first.")
        script = self.text
        if len(script) > self.character_limit:
            raise StudioError(f"Text must be shorter than {self.character_limit:,} characters")
        try:
            path = self._write_audio(self.api.synthesize(self.build_payload(script)))
        except StudioApiError as exc:
            raise StudioError(str(exc) or "Speech synthesis failed") from exc

        voice = self.selected_voice
        item = HistoryItem(
            id=uuid.uuid4().hex,
            text=script,
            voice_name=voice.name if voice else "Unknown",
            created_at=_now_iso(),
            audio_src=str(path),
        )
        self.history.add(item)
        self.current_src = item.audio_src
        logger.info("Rendered %d chars with %s -> %s", len(script), item.voice_name, path)
        return item, self.player.play(item.audio_src)

    def play_history(self, item: HistoryItem) -> PlayResult:
        self.current_src = item.audio_src
        return self.player.play(item.audio_src)

    def replay(self) -> PlayResult:
        return self.player.replay()

    def pause(self) -> None:
        self.player.pause()
