"""
voicerelay/settings/store.py
=============================
Runtime Settings Store — VoiceRelay

Responsibility:
    - Hold the process-wide RuntimeSettings snapshot
    - Offer a single validated mutation entry point: ``apply(key, value)``
    - Replace one named field per call by swapping in a new immutable
      snapshot, so readers never observe a partially-applied value

Readers call ``store.current`` once per decision and keep using that
snapshot; they never hold a reference into a mutable structure.

This module does NOT:
    - Read environment variables (see voicerelay/config.py)
    - Persist settings anywhere
"""

import dataclasses
import logging
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Mapping

from voicerelay.settings.parsers import (
    SettingError,
    UnknownSettingError,
    ids_to_csv,
    mapping_to_csv,
    parse_boolean_strict,
    parse_language_pairs_strict,
    parse_language_token_strict,
    parse_non_empty_string,
    parse_positive_int_strict,
    parse_speaker_ids_strict,
    parse_speaker_targets_strict,
    parse_tts_format,
)

logger = logging.getLogger("voicerelay.settings.store")


# ---------------------------------------------------------------------------
# Data types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RuntimeSettings:
    """Immutable snapshot of every live-tunable parameter."""

    translate_model: str = "gpt-4.1-mini"
    transcribe_model: str = "whisper-1"
    tts_model: str = "gpt-4o-mini-tts"
    tts_voice: str = "alloy"
    tts_format: str = "opus"
    silence_ms: int = 1200
    voice_min_pcm_bytes: int = 96000
    voice_max_pcm_bytes: int = 9600000
    language_pairs: Mapping[str, str] = field(default_factory=lambda: {"en": "ro", "ro": "en"})
    default_target_language: str = ""
    user_target_languages: Mapping[str, str] = field(default_factory=dict)
    allowed_speaker_ids: frozenset[str] = frozenset()
    text_feedback: bool = False

    def __post_init__(self) -> None:
        # Mapping fields are frozen too: updates must go through SettingsStore.apply.
        for name in ("language_pairs", "user_target_languages"):
            object.__setattr__(self, name, MappingProxyType(dict(getattr(self, name))))


@dataclass(frozen=True)
class _SettingSpec:
    field_name: str
    parse: Callable[[str], Any]
    render: Callable[[Any], str]


def _render_text(value: Any) -> str:
    return str(value) if value not in ("", None) else "-"


def _render_bool(value: bool) -> str:
    return "on" if value else "off"


# Order is the order shown in help texts and status output.
_SETTINGS: dict[str, _SettingSpec] = {
    "language_pairs": _SettingSpec(
        "language_pairs", parse_language_pairs_strict,
        lambda v: mapping_to_csv(v) or "-",
    ),
    "default_target_language": _SettingSpec(
        "default_target_language",
        lambda v: parse_language_token_strict(v, allow_clear=True),
        _render_text,
    ),
    "user_target_languages": _SettingSpec(
        "user_target_languages", parse_speaker_targets_strict,
        lambda v: mapping_to_csv(v) or "-",
    ),
    "allowed_speaker_ids": _SettingSpec(
        "allowed_speaker_ids", parse_speaker_ids_strict,
        lambda v: ids_to_csv(v) or "-",
    ),
    "translate_model": _SettingSpec("translate_model", parse_non_empty_string, _render_text),
    "transcribe_model": _SettingSpec("transcribe_model", parse_non_empty_string, _render_text),
    "tts_model": _SettingSpec("tts_model", parse_non_empty_string, _render_text),
    "tts_voice": _SettingSpec("tts_voice", parse_non_empty_string, _render_text),
    "tts_format": _SettingSpec("tts_format", parse_tts_format, _render_text),
    "silence_ms": _SettingSpec("silence_ms", parse_positive_int_strict, str),
    "voice_min_pcm_bytes": _SettingSpec("voice_min_pcm_bytes", parse_positive_int_strict, str),
    "voice_max_pcm_bytes": _SettingSpec("voice_max_pcm_bytes", parse_positive_int_strict, str),
    "text_feedback": _SettingSpec("text_feedback", parse_boolean_strict, _render_bool),
}

SETTING_KEYS: list[str] = list(_SETTINGS)


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class SettingsStore:
    """Encapsulated holder of the current RuntimeSettings snapshot."""

    def __init__(self, initial: RuntimeSettings | None = None):
        self._current = initial or RuntimeSettings()
        self._write_lock = threading.Lock()

    @property
    def current(self) -> RuntimeSettings:
        return self._current

    def get(self, key: str) -> str:
        """Return the rendered value of one setting."""
        spec = self._spec_for(key)
        return spec.render(getattr(self._current, spec.field_name))

    def as_dict(self) -> dict[str, str]:
        snapshot = self._current
        return {
            key: spec.render(getattr(snapshot, spec.field_name))
            for key, spec in _SETTINGS.items()
        }

    def apply(self, key: str, value: str) -> str:
        """
        Validate ``value`` for ``key`` and atomically replace that field.

        Args:
            key:   Setting name (case-insensitive).
            value: Raw textual value as typed by an operator.

        Returns:
            The canonical rendered form of the newly applied value.

        Raises:
            UnknownSettingError: If ``key`` is not a supported setting.
            SettingError:        If ``value`` fails validation.
        """
        spec = self._spec_for(key)
        parsed = spec.parse(value)

        with self._write_lock:
            updated = dataclasses.replace(self._current, **{spec.field_name: parsed})
            _check_consistency(updated)
            self._current = updated

        rendered = spec.render(parsed)
        logger.info("Runtime setting updated: %s = %s", spec.field_name, rendered)
        return rendered

    @staticmethod
    def _spec_for(key: str) -> _SettingSpec:
        normalized = str(key or "").strip().lower()
        spec = _SETTINGS.get(normalized)
        if spec is None:
            raise UnknownSettingError(normalized, SETTING_KEYS)
        return spec


def _check_consistency(settings: RuntimeSettings) -> None:
    if settings.voice_min_pcm_bytes > settings.voice_max_pcm_bytes:
        raise SettingError(
            "voice_min_pcm_bytes must not exceed voice_max_pcm_bytes "
            f"({settings.voice_min_pcm_bytes} > {settings.voice_max_pcm_bytes})"
        )
