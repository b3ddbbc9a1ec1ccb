#!/usr/bin/env python3
"""
Terminal client for TTS Studio

- Lists languages and voices exposed by the studio backend
- Synthesises a script with a chosen voice and saves the audio
- Interactive studio: pick language/voice, render, replay, browse history

Environment
  TTS_STUDIO_API_BASE (default http://127.0.0.1:7860/api)
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

from .client import StudioApiClient, StudioApiError
from .languages import LANGUAGE_CODES, LANGUAGE_OPTIONS, get_language_option
from .playback import AudioPlayer, ExternalPlayerHandle, PlayResult
from .studio import DEFAULT_LANGUAGE, StudioError, StudioSession, dedupe_voices, filter_voices

BLOCKED_HINT = "Playback was blocked. Choose 'Replay last render' to play it."


def _input(prompt: str) -> str:
    try:
        return input(prompt)
    except EOFError:
        return ""


def _prompt_choice(title: str, options: List[str], *, allow_back: bool = True) -> Optional[int]:
    print(title)
    for i, opt in enumerate(options, start=1):
        print(f"  {i}. {opt}")
    if allow_back:
        print("  0. Back")
    raw = _input("Select: ").strip()
    if allow_back and raw in {"", "0"}:
        return None
    try:
        idx = int(raw)
    except ValueError:
        return None
    if 1 <= idx <= len(options):
        return idx - 1
    return None


def _prompt_unit(label: str, current: float) -> float:
    raw = _input(f"{label} [0-1] ({current:.2f}): ").strip()
    if not raw:
        return current
    try:
        value = float(raw)
    except ValueError:
        print("Not a number; keeping current value.")
        return current
    if not 0 <= value <= 1:
        print("Out of range; keeping current value.")
        return current
    return value


def _report_play(result: PlayResult) -> None:
    if result == "blocked":
        print(BLOCKED_HINT)
    elif result == "idle":
        print("Nothing to play.")


def _language_label(code: str) -> str:
    option = get_language_option(code)
    return f"{option.label} ({code})" if option else code


def cmd_languages(args: argparse.Namespace) -> None:
    client = StudioApiClient(args.api_base)
    try:
        languages = client.languages()
    except StudioApiError as exc:
        raise SystemExit(f"Could not load languages: {exc}")
    if args.json:
        print(json.dumps(languages, indent=2, ensure_ascii=False))
        return
    for item in languages:
        limit = item.get("characterLimit") or 0
        print(f"{item['code']:>5}  {item['label']:<12}  limit={limit:,}")


def cmd_voices(args: argparse.Namespace) -> None:
    client = StudioApiClient(args.api_base)
    try:
        voices = dedupe_voices(client.voices())
    except StudioApiError as exc:
        raise SystemExit(f"Could not load voices: {exc}")
    if args.language:
        voices = filter_voices(voices, args.language)
    if args.json:
        print(json.dumps([voice.to_json() for voice in voices], indent=2, ensure_ascii=False))
        return
    if not voices:
        print("No voices found.")
        return
    for i, voice in enumerate(voices, start=1):
        language = voice.language or "unknown"
        code = voice.language_code or "?"
        print(f"{i:2d}. {voice.name}  [{voice.id}]  language={language} ({code})")


def _read_text(args: argparse.Namespace) -> str:
    text = args.text if args.text is not None else sys.stdin.read().strip()
    if not text:
        raise SystemExit("Provide --text or pipe text on stdin")
    return text


def cmd_say(args: argparse.Namespace) -> None:
    text = _read_text(args)
    payload: Dict[str, Any] = {"text": text, "voiceId": args.voice}
    optional = {
        "language": args.language,
        "stability": args.stability,
        "similarityBoost": args.similarity,
        "styleExaggeration": args.style,
        "optimizeStreamingLatency": args.latency,
        "modelId": args.model,
    }
    payload.update({key: value for key, value in optional.items() if value is not None})

    client = StudioApiClient(args.api_base)
    try:
        chunks = client.synthesize(payload)
        out_path = Path(args.out).expanduser()
        out_path.parent.mkdir(parents=True, exist_ok=True)
        with out_path.open("wb") as fh:
            for chunk in chunks:
                fh.write(chunk)
    except StudioApiError as exc:
        raise SystemExit(f"Synthesis failed: {exc}")
    print(f"Saved: {out_path.resolve()}")
    if args.play:
        _report_play(AudioPlayer(ExternalPlayerHandle()).play(str(out_path.resolve())))


# ---------- interactive studio ----------


def _menu_language(session: StudioSession) -> None:
    idx = _prompt_choice("Languages", [f"{o.label} ({o.code})" for o in LANGUAGE_OPTIONS])
    if idx is None:
        return
    session.set_language(LANGUAGE_OPTIONS[idx].code)
    voice = session.selected_voice
    print(f"Language: {_language_label(session.language)} · voice: {voice.name if voice else 'none'}")


def _menu_voice(session: StudioSession) -> None:
    voices = session.filtered_voices
    if not voices:
        print("No voices available for this language. Try 'Auto detect'.")
        return
    labels = []
    for voice in voices:
        marker = "*" if voice.id == session.selected_voice_id else " "
        labels.append(f"{marker} {voice.name}  [{voice.language or 'unknown'}]")
    idx = _prompt_choice("Voices", labels)
    if idx is None:
        return
    session.select_voice(voices[idx].id)
    print(f"Voice: {voices[idx].name}")


def _menu_synthesise(session: StudioSession) -> None:
    option = get_language_option(session.language)
    if option and option.sample:
        print(f"Sample: {option.sample}")
    text = _input(f"Script (max {session.character_limit:,} chars): ").strip()
    if not text:
        print("No text provided.")
        return
    print("Rendering…")
    item, result = session.synthesize(text)
    print(f"Rendered with {item.voice_name}: {item.audio_src}")
    _report_play(result)


def _menu_history(session: StudioSession) -> None:
    items = session.history.items()
    if not items:
        print("No renders yet.")
        return
    labels = [f"{item.created_at}  {item.voice_name}: {item.text[:48]}" for item in items]
    idx = _prompt_choice("Recent renders (newest first)", labels)
    if idx is None:
        return
    _report_play(session.play_history(items[idx]))


def _menu_settings(session: StudioSession) -> None:
    session.stability = _prompt_unit("Stability", session.stability)
    session.similarity_boost = _prompt_unit("Similarity boost", session.similarity_boost)
    raw = _input(f"Optimize latency [0 quality / 1 balanced / 2 low latency] ({session.optimize_latency}): ").strip()
    if raw in {"0", "1", "2"}:
        session.optimize_latency = int(raw)
    elif raw:
        print("Latency must be 0, 1 or 2; keeping current value.")
    print("Settings updated.")


def run_studio(session: StudioSession) -> None:
    try:
        session.load_languages()
        session.load_voices()
    except StudioApiError as exc:
        print(f"Could not load the studio catalog: {exc}")
        return
    actions = {
        "1": _menu_language,
        "2": _menu_voice,
        "3": _menu_synthesise,
        "4": lambda s: _report_play(s.replay()),
        "5": _menu_history,
        "6": _menu_settings,
    }
    while True:
        voice = session.selected_voice
        print("\nTTS Studio — Menu")
        print(
            f"  {_language_label(session.language)} · voice: {voice.name if voice else 'none'}"
            f" · stability {session.stability:.2f} · similarity {session.similarity_boost:.2f}"
            f" · latency {session.optimize_latency}"
        )
        print("  1. Change language")
        print("  2. Choose voice")
        print("  3. Enter script and synthesise")
        print("  4. Replay last render")
        print("  5. History")
        print("  6. Voice settings")
        print("  0. Exit")
        choice = _input("Select: ").strip()
        if choice in {"", "0"}:
            session.pause()
            return
        action = actions.get(choice)
        if action is None:
            print("Unknown choice.")
            continue
        try:
            action(session)
        except StudioError as exc:
            print(f"Error: {exc}")


def cmd_studio(args: argparse.Namespace) -> None:
    language = getattr(args, "language", None) or DEFAULT_LANGUAGE
    if language not in LANGUAGE_CODES:
        raise SystemExit(f"Unsupported language '{language}'. Run 'tts-studio languages' for the list.")
    client = StudioApiClient(getattr(args, "api_base", None))
    player = AudioPlayer(ExternalPlayerHandle())
    with tempfile.TemporaryDirectory(prefix="tts-studio-") as tmp:
        session = StudioSession(client, player, Path(tmp), language=language)
        run_studio(session)


def main(argv: Optional[List[str]] = None) -> None:
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s [%(name)s] %(message)s")
    p = argparse.ArgumentParser(description="Terminal client for TTS Studio")
    p.add_argument("--api-base", help="Studio API base URL (default $TTS_STUDIO_API_BASE)", default=None)
    sub = p.add_subparsers(dest="cmd", required=False)

    p_lang = sub.add_parser("languages", help="List supported languages")
    p_lang.add_argument("--json", action="store_true", help="Print raw JSON")
    p_lang.set_defaults(func=cmd_languages)

    p_voices = sub.add_parser("voices", help="List available voices")
    p_voices.add_argument("--language", help="Only voices for this language code", default=None)
    p_voices.add_argument("--json", action="store_true", help="Print raw JSON")
    p_voices.set_defaults(func=cmd_voices)

    p_say = sub.add_parser("say", help="Synthesise a script and save the audio")
    p_say.add_argument("--voice", required=True, help="Voice id")
    p_say.add_argument("--text", help="Text to synthesise (or pipe on stdin)")
    p_say.add_argument("--language", help="Language code or 'auto'")
    p_say.add_argument("--stability", type=float)
    p_say.add_argument("--similarity", type=float, help="Similarity boost")
    p_say.add_argument("--style", type=float, help="Style exaggeration")
    p_say.add_argument("--latency", type=int, choices=[0, 1, 2], help="Optimize streaming latency")
    p_say.add_argument("--model", help="Model id override")
    p_say.add_argument("--out", default="out/speech.mp3", help="Output file (default out/speech.mp3)")
    p_say.add_argument("--play", action="store_true", help="Attempt to play the audio")
    p_say.set_defaults(func=cmd_say)

    p_studio = sub.add_parser("studio", help="Interactive studio")
    p_studio.add_argument("--language", help="Initial language code", default=None)
    p_studio.set_defaults(func=cmd_studio)

    args = p.parse_args(argv)
    if not getattr(args, "cmd", None):
        return cmd_studio(args)
    args.func(args)


if __name__ == "__main__":
    main()
