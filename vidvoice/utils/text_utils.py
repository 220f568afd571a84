#!/usr/bin/env python3
"""
VidVoice Text Utilities

Transcript normalization and language code helpers.
"""

from typing import Any, Optional


LANGUAGE_CODES = {
    "en": "en-US",
    "zh-TW": "zh-TW",
    "zh-CN": "zh-CN",
    "es": "es-ES",
    "pt-BR": "pt-BR",
    "pt": "pt-PT",
    "de": "de-DE",
    "fr": "fr-FR",
    "ru": "ru-RU",
    "ar": "ar-SA",
    "ja": "ja-JP",
    "ko": "ko-KR",
}


def normalize_transcript(text: Any) -> Optional[str]:
    """Lower-case and trim a transcript; None for empty or non-string input."""
    if not isinstance(text, str):
        return None
    normalized = text.lower().strip()
    return normalized or None


def get_language_code(language: str) -> str:
    """Map an app language to the BCP-47-like code used by recognizers."""
    return LANGUAGE_CODES.get(language, "en-US")


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))
