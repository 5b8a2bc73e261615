# src/config/languages.py — v1
"""Target-language codes accepted by the generation pipeline.

Codes are BCP-47 style primary tags, optionally with a region subtag
("pt-br", "zh-tw"). Normalization folds case and underscores so that
"pt_BR" and "pt-br" address the same cache entry.
"""

from __future__ import annotations

LANGUAGE_NAMES: dict[str, str] = {
    "ar": "Arabic",
    "bn": "Bengali",
    "de": "German",
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "hi": "Hindi",
    "id": "Indonesian",
    "it": "Italian",
    "ja": "Japanese",
    "ko": "Korean",
    "nl": "Dutch",
    "pl": "Polish",
    "pt": "Portuguese",
    "pt-br": "Brazilian Portuguese",
    "ru": "Russian",
    "sv": "Swedish",
    "ta": "Tamil",
    "th": "Thai",
    "tr": "Turkish",
    "uk": "Ukrainian",
    "vi": "Vietnamese",
    "zh": "Chinese (Simplified)",
    "zh-tw": "Chinese (Traditional)",
}

DEFAULT_SUPPORTED_LANGUAGES = ",".join(LANGUAGE_NAMES)


def normalize_language(code: str) -> str:
    """Lowercase, trim and replace '_' with '-'."""
    return code.strip().lower().replace("_", "-")


def language_name(code: str) -> str:
    """Display name used inside prompts; falls back to the code itself."""
    normalized = normalize_language(code)
    return LANGUAGE_NAMES.get(normalized, normalized)
