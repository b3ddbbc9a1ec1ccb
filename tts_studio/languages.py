from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional, Tuple

AUTO_LANGUAGE = "auto"


@dataclass(frozen=True)
class LanguageOption:
    code: str
    label: str
    sample: Optional[str] = None

    def to_json(self) -> Dict[str, str]:
        payload = {"code": self.code, "label": self.label}
        if self.sample:
            payload["sample"] = self.sample
        return payload


# Order matters: the language selector is populated in this order.
LANGUAGE_OPTIONS: Tuple[LanguageOption, ...] = (
    LanguageOption(AUTO_LANGUAGE, "Auto detect"),
    LanguageOption("he", "Hebrew", "שלום עולם"),
    LanguageOption("en", "English", "Hello world"),
    LanguageOption("es", "Spanish", "Hola mundo"),
    LanguageOption("fr", "French", "Bonjour le monde"),
    LanguageOption("de", "German", "Hallo Welt"),
    LanguageOption("it", "Italian", "Ciao mondo"),
    LanguageOption("pt", "Portuguese", "Olá mundo"),
    LanguageOption("ru", "Russian", "Привет мир"),
    LanguageOption("ja", "Japanese", "こんにちは世界"),
    LanguageOption("ko", "Korean", "안녕하세요 세계"),
    LanguageOption("zh", "Chinese", "你好世界"),
    LanguageOption("ar", "Arabic", "مرحبا بالعالم"),
    LanguageOption("hi", "Hindi", "नमस्ते दुनिया"),
    LanguageOption("cs", "Czech", "Ahoj světe"),
    LanguageOption("da", "Danish", "Hej verden"),
    LanguageOption("fi", "Finnish", "Hei maailma"),
    LanguageOption("hu", "Hungarian", "Helló világ"),
    LanguageOption("nl", "Dutch", "Hallo wereld"),
    LanguageOption("pl", "Polish", "Witaj świecie"),
    LanguageOption("sv", "Swedish", "Hej världen"),
    LanguageOption("tr", "Turkish", "Merhaba dünya"),
    LanguageOption("uk", "Ukrainian", "Привіт світ"),
)

LANGUAGE_CODES: FrozenSet[str] = frozenset(option.code for option in LANGUAGE_OPTIONS)

# Provider voice labels come in several spellings; keys are lower-case.
NAME_TO_CODE: Dict[str, str] = {
    "auto": "auto",
    "he": "he",
    "hebrew": "he",
    "hebrew (modern)": "he",
    "en": "en",
    "english": "en",
    "american english": "en",
    "british english": "en",
    "es": "es",
    "spanish": "es",
    "castilian spanish": "es",
    "latin american spanish": "es",
    "fr": "fr",
    "french": "fr",
    "de": "de",
    "german": "de",
    "it": "it",
    "italian": "it",
    "pt": "pt",
    "portuguese": "pt",
    "br portuguese": "pt",
    "ru": "ru",
    "russian": "ru",
    "ja": "ja",
    "japanese": "ja",
    "ko": "ko",
    "korean": "ko",
    "zh": "zh",
    "chinese": "zh",
    "mandarin chinese": "zh",
    "ar": "ar",
    "arabic": "ar",
    "hi": "hi",
    "hindi": "hi",
    "cs": "cs",
    "czech": "cs",
    "da": "da",
    "danish": "da",
    "fi": "fi",
    "finnish": "fi",
    "hu": "hu",
    "hungarian": "hu",
    "nl": "nl",
    "dutch": "nl",
    "pl": "pl",
    "polish": "pl",
    "sv": "sv",
    "swedish": "sv",
    "tr": "tr",
    "turkish": "tr",
    "uk": "uk",
    "ukrainian": "uk",
}

_ISO_TAG_RE = re.compile(r"^[a-z]{2}(?:[-_][a-z]{2})?$", re.IGNORECASE)


def is_supported_language(code: Optional[str]) -> bool:
    return bool(code) and code in LANGUAGE_CODES


def get_language_option(code: str) -> Optional[LanguageOption]:
    for option in LANGUAGE_OPTIONS:
        if option.code == code:
            return option
    return None


def resolve_language_code(label: Optional[str]) -> Optional[str]:
    """Map a free-text provider label ("Hebrew (Modern)", "en-US") to a language code.

    Returns ``None`` when the label is empty or unrecognised.
    """
    if not label:
        return None
    normalised = label.strip().lower()
    if not normalised:
        return None
    direct = NAME_TO_CODE.get(normalised)
    if direct:
        return direct
    if _ISO_TAG_RE.match(normalised):
        prefix = normalised[:2]
        return NAME_TO_CODE.get(prefix, prefix)
    return None
