"""
voicerelay/nlp/router.py
=========================
Translation Router — VoiceRelay

Responsibility:
    - Resolve the target language for a speaker and detected source language
    - Parse the free-form translation payload defensively (never raises)
    - Normalize a raw payload into a validated TranslationResult whose
      ``should_reply`` flag enforces the eligibility rules below

Target resolution priority (strict):
    1. Per-speaker forced target language
    2. Global default target language
    3. language_pairs[detected_language]

Eligibility requires ALL of:
    - the service reported should_reply
    - non-empty translated text
    - a resolved target language
    - detected language is known (not "unknown")
    - detected language != target language

This module does NOT:
    - Call any external API (see translator.py)
    - Synthesize or play audio
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any

from voicerelay.settings.parsers import normalize_language_token
from voicerelay.settings.store import RuntimeSettings

logger = logging.getLogger("voicerelay.nlp.router")

UNKNOWN_LANGUAGE = "unknown"

_FENCE_OPEN_RE = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE_RE = re.compile(r"\s*```$")

_NO_RESULT_PAYLOAD: dict[str, Any] = {
    "detected_language": UNKNOWN_LANGUAGE,
    "target_language": "",
    "translated_text": "",
    "should_reply": False,
}


# ---------------------------------------------------------------------------
# Data types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TranslationRoute:
    """Routing context derived from the settings for one speaker."""

    forced_target_language: str = ""
    language_pairs: dict[str, str] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        return {
            "forced_target_language": self.forced_target_language,
            "language_pairs": dict(self.language_pairs),
        }


@dataclass(frozen=True)
class TranslationResult:
    """Validated translation outcome."""

    detected_language: str
    target_language: str
    translated_text: str
    should_reply: bool

    @property
    def label(self) -> str:
        return f"[{self.detected_language}->{self.target_language}]"


NO_RESULT = TranslationResult(
    detected_language=UNKNOWN_LANGUAGE,
    target_language="",
    translated_text="",
    should_reply=False,
)


# ---------------------------------------------------------------------------
# Routing
# ---------------------------------------------------------------------------


def resolve_forced_target(speaker_id: str, settings: RuntimeSettings) -> str:
    """Per-speaker target first, then the global default, else ""."""
    per_speaker = settings.user_target_languages.get(speaker_id, "")
    if per_speaker:
        return per_speaker
    if settings.default_target_language:
        return settings.default_target_language
    return ""


def resolve_target(
    detected_language: str,
    forced_target_language: str,
    language_pairs: dict[str, str],
) -> str:
    if forced_target_language:
        return forced_target_language
    if detected_language != UNKNOWN_LANGUAGE and detected_language in language_pairs:
        return language_pairs.get(detected_language) or ""
    return ""


def build_route(speaker_id: str, settings: RuntimeSettings) -> TranslationRoute:
    return TranslationRoute(
        forced_target_language=resolve_forced_target(speaker_id, settings),
        language_pairs=dict(settings.language_pairs),
    )


def is_eligible(
    detected_language: str,
    target_language: str,
    translated_text: str,
    service_should_reply: bool = True,
) -> bool:
    return (
        bool(service_should_reply)
        and bool(translated_text)
        and bool(target_language)
        and detected_language != UNKNOWN_LANGUAGE
        and detected_language != target_language
    )


# ---------------------------------------------------------------------------
# Payload parsing
# ---------------------------------------------------------------------------


def parse_translation_payload(raw: Any) -> dict[str, Any]:
    """
    Parse the translation service's text payload into a dict.

    Markdown code fences around the JSON are stripped. Empty, unparseable or
    non-object payloads yield the "no result" payload instead of raising.
    """
    trimmed = str(raw if raw is not None else "").strip()
    if not trimmed:
        return dict(_NO_RESULT_PAYLOAD)

    without_fences = _FENCE_CLOSE_RE.sub("", _FENCE_OPEN_RE.sub("", trimmed)).strip()

    try:
        parsed = json.loads(without_fences)
    except (json.JSONDecodeError, ValueError):
        logger.warning("Translation payload is not valid JSON: %r", trimmed[:200])
        return dict(_NO_RESULT_PAYLOAD)

    if not isinstance(parsed, dict):
        logger.warning(
            "Translation payload is not a JSON object (got %s).", type(parsed).__name__,
        )
        return dict(_NO_RESULT_PAYLOAD)

    return parsed


def normalize_detected_language(value: Any) -> str:
    return normalize_language_token(value) or UNKNOWN_LANGUAGE


def build_result(raw: Any, route: TranslationRoute) -> TranslationResult:
    """
    Turn a raw translation payload into a validated TranslationResult.

    The target language is always resolved locally from ``route``; the
    service's own ``target_language`` is ignored.
    """
    parsed = parse_translation_payload(raw)

    detected = normalize_detected_language(parsed.get("detected_language"))
    target = resolve_target(detected, route.forced_target_language, route.language_pairs)
    text_value = parsed.get("translated_text")
    translated_text = text_value.strip() if isinstance(text_value, str) else ""
    service_flag = bool(parsed.get("should_reply"))

    return TranslationResult(
        detected_language=detected,
        target_language=target,
        translated_text=translated_text,
        should_reply=is_eligible(detected, target, translated_text, service_flag),
    )
