"""Language code normalization and display names.

Subtitle and audio tracks arrive with ISO 639-1 codes ("en"), ISO 639-2
bibliographic or terminological codes ("ger", "deu"), or locale tags
("pt-BR", "en_US"). Everything is reduced to a lowercase 2-letter code
where a mapping is known.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from typing import Protocol, TypeVar

DEFAULT_PREFERRED_LANGUAGES: tuple[str, ...] = ("en",)

UNKNOWN_LANGUAGE_NAME = "Unknown"

_LOCALE_SEPARATOR_RE = re.compile(r"[-_]")

# ISO 639-2/B and 639-2/T to ISO 639-1
_ISO_639_2_TO_1: dict[str, str] = {
    "eng": "en",
    "deu": "de",
    "ger": "de",
    "fra": "fr",
    "fre": "fr",
    "spa": "es",
    "ita": "it",
    "por": "pt",
    "nld": "nl",
    "dut": "nl",
    "swe": "sv",
    "nor": "no",
    "dan": "da",
    "fin": "fi",
    "pol": "pl",
    "ces": "cs",
    "cze": "cs",
    "slk": "sk",
    "slo": "sk",
    "hun": "hu",
    "ron": "ro",
    "rum": "ro",
    "bul": "bg",
    "ell": "el",
    "gre": "el",
    "tur": "tr",
    "rus": "ru",
    "ukr": "uk",
    "ara": "ar",
    "heb": "he",
    "hin": "hi",
    "tha": "th",
    "vie": "vi",
    "ind": "id",
    "msa": "ms",
    "may": "ms",
    "jpn": "ja",
    "kor": "ko",
    "zho": "zh",
    "chi": "zh",
    "ben": "bn",
    "tam": "ta",
    "tel": "te",
    "mar": "mr",
    "urd": "ur",
    "pan": "pa",
    "guj": "gu",
    "kan": "kn",
    "mal": "ml",
    "ori": "or",
    "asm": "as",
    "nep": "ne",
    "sin": "si",
    "mya": "my",
    "khm": "km",
    "lao": "lo",
    "fil": "tl",  # Filipino / Tagalog
    "cat": "ca",
    "eus": "eu",
    "baq": "eu",
    "glg": "gl",
    "hrv": "hr",
    "srp": "sr",
    "slv": "sl",
    "bos": "bs",
    "mkd": "mk",
    "mac": "mk",
    "sqi": "sq",
    "alb": "sq",
    "lav": "lv",
    "lit": "lt",
    "est": "et",
    "isl": "is",
    "ice": "is",
    "fas": "fa",
    "per": "fa",
    "pus": "ps",
    "kur": "ku",
    "hye": "hy",
    "arm": "hy",
    "kat": "ka",
    "geo": "ka",
    "aze": "az",
    "kaz": "kk",
    "uzb": "uz",
    "tgk": "tg",
    "mon": "mn",
    "afr": "af",
    "swa": "sw",
    "amh": "am",
    "hau": "ha",
    "yor": "yo",
    "ibo": "ig",
    "zul": "zu",
    "xho": "xh",
}

_LANGUAGE_NAMES_EN: dict[str, str] = {
    "en": "English",
    "de": "German",
    "fr": "French",
    "es": "Spanish",
    "it": "Italian",
    "pt": "Portuguese",
    "nl": "Dutch",
    "sv": "Swedish",
    "no": "Norwegian",
    "da": "Danish",
    "fi": "Finnish",
    "pl": "Polish",
    "cs": "Czech",
    "sk": "Slovak",
    "hu": "Hungarian",
    "ro": "Romanian",
    "bg": "Bulgarian",
    "el": "Greek",
    "tr": "Turkish",
    "ru": "Russian",
    "uk": "Ukrainian",
    "ar": "Arabic",
    "he": "Hebrew",
    "hi": "Hindi",
    "th": "Thai",
    "vi": "Vietnamese",
    "id": "Indonesian",
    "ms": "Malay",
    "ja": "Japanese",
    "ko": "Korean",
    "zh": "Chinese",
    "bn": "Bengali",
    "ta": "Tamil",
    "te": "Telugu",
    "mr": "Marathi",
    "ur": "Urdu",
    "pa": "Punjabi",
    "gu": "Gujarati",
    "kn": "Kannada",
    "ml": "Malayalam",
    "or": "Oriya",
    "as": "Assamese",
    "ne": "Nepali",
    "si": "Sinhala",
    "my": "Burmese",
    "km": "Khmer",
    "lo": "Lao",
    "tl": "Filipino",
    "ca": "Catalan",
    "eu": "Basque",
    "gl": "Galician",
    "hr": "Croatian",
    "sr": "Serbian",
    "sl": "Slovenian",
    "bs": "Bosnian",
    "mk": "Macedonian",
    "sq": "Albanian",
    "lv": "Latvian",
    "lt": "Lithuanian",
    "et": "Estonian",
    "is": "Icelandic",
    "fa": "Persian",
    "ps": "Pashto",
    "ku": "Kurdish",
    "hy": "Armenian",
    "ka": "Georgian",
    "az": "Azerbaijani",
    "kk": "Kazakh",
    "uz": "Uzbek",
    "tg": "Tajik",
    "mn": "Mongolian",
    "af": "Afrikaans",
    "sw": "Swahili",
    "am": "Amharic",
    "ha": "Hausa",
    "yo": "Yoruba",
    "ig": "Igbo",
    "zu": "Zulu",
    "xh": "Xhosa",
}


def normalize_language_code(language: str | None) -> str | None:
    """Reduce a language tag to a lowercase ISO 639-1 code when possible.

    Region suffixes are dropped ("pt-BR" -> "pt"). Unmapped codes are
    returned as their lowercase base. Blank input yields None.
    """
    if language is None:
        return None
    trimmed = language.strip()
    if not trimmed:
        return None

    base = _LOCALE_SEPARATOR_RE.split(trimmed, maxsplit=1)[0].lower()
    if not base:
        return None
    if len(base) == 2:
        return base
    if len(base) == 3:
        mapped = _ISO_639_2_TO_1.get(base)
        if mapped:
            return mapped
    return base


def unique_normalized_codes(codes: Iterable[str | None]) -> list[str]:
    """Normalize and de-duplicate, keeping first-occurrence order."""
    seen: set[str] = set()
    out: list[str] = []
    for code in codes:
        normalized = normalize_language_code(code)
        if normalized and normalized not in seen:
            seen.add(normalized)
            out.append(normalized)
    return out


def preferred_language_codes(
    preferred: Sequence[str] | None,
    default: Sequence[str] = DEFAULT_PREFERRED_LANGUAGES,
) -> list[str]:
    """Normalized preference list, falling back to ``default`` when empty."""
    codes = unique_normalized_codes(preferred or ())
    if codes:
        return codes
    return unique_normalized_codes(default)


def language_display_name(language: str) -> str:
    """English display name for a code, or the raw code when unknown."""
    code = normalize_language_code(language) or language.lower()
    return _LANGUAGE_NAMES_EN.get(code, language)


class _HasLanguage(Protocol):
    @property
    def language(self) -> str | None: ...


_T = TypeVar("_T", bound=_HasLanguage)


def find_best_track_by_language(
    tracks: Sequence[_T], preferred_codes: Sequence[str]
) -> _T | None:
    """First track matching the earliest preferred code that has any match."""
    for preferred in preferred_codes:
        for track in tracks:
            if normalize_language_code(track.language) == preferred:
                return track
    return None
