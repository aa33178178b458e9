"""
voicerelay/settings/parsers.py
===============================
Value Parsers — VoiceRelay Runtime Settings

Responsibility:
    - Normalize language tokens ("EN_us" → "en-us")
    - Parse the textual forms accepted for every runtime setting
    - Render parsed values back to their canonical textual form

Two flavours are provided for the list-valued settings:
    - *lenient* parsers for startup environment values: malformed entries are
      skipped so a slightly wrong .env never prevents the relay from starting
    - *strict* parsers for live updates: any malformed entry raises
      SettingError and nothing is applied

This module does NOT:
    - Hold any state (see store.py)
    - Decide which key maps to which parser (see store.py)
"""

import re
from typing import Mapping

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SUPPORTED_TTS_FORMATS: tuple[str, ...] = ("opus", "mp3", "wav", "aac", "flac", "pcm")

_LANGUAGE_TOKEN_RE = re.compile(r"^[a-z][a-z0-9-]{1,31}$")
_SPEAKER_ID_RE = re.compile(r"^[A-Za-z0-9_.-]{1,64}$")

_CLEAR_VALUES: set[str] = {"", "-", "none", "clear"}
_TRUE_VALUES: set[str] = {"1", "true", "yes", "y", "on"}
_FALSE_VALUES: set[str] = {"0", "false", "no", "n", "off"}


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class SettingError(Exception):
    """Raised when a runtime setting value (or key) is rejected."""
    pass


class UnknownSettingError(SettingError):
    """Raised when a setting key is not one of the supported keys."""

    def __init__(self, key: str, valid_keys: list[str]):
        self.key = key
        self.valid_keys = valid_keys
        super().__init__(
            f"key '{key}' not supported. Use: {', '.join(valid_keys)}"
        )


# ---------------------------------------------------------------------------
# Scalars
# ---------------------------------------------------------------------------


def normalize_command(value: object) -> str:
    return str(value if value is not None else "").strip().lower()


def is_clear_value(value: object) -> bool:
    return normalize_command(value) in _CLEAR_VALUES


def normalize_language_token(value: object) -> str:
    """
    Normalize a language token to lowercase, hyphen-separated form.

    Returns "" when the value is empty or does not look like a language
    token (letters/digits/hyphen, 2–32 chars, starting with a letter).
    """
    normalized = normalize_command(value).replace("_", "-")
    if not normalized:
        return ""
    if not _LANGUAGE_TOKEN_RE.match(normalized):
        return ""
    return normalized


def is_speaker_id(value: object) -> bool:
    return bool(_SPEAKER_ID_RE.match(str(value if value is not None else "")))


def parse_positive_int(value: object, fallback: int) -> int:
    """Lenient positive int: anything unparseable returns ``fallback``."""
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        return fallback
    return parsed if parsed > 0 else fallback


def parse_positive_int_strict(value: object) -> int:
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        raise SettingError("value must be a positive integer")
    if parsed <= 0:
        raise SettingError("value must be a positive integer")
    return parsed


def parse_boolean(value: object, fallback: bool) -> bool:
    if not isinstance(value, str):
        return fallback
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    return fallback


def parse_boolean_strict(value: object) -> bool:
    normalized = normalize_command(value)
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise SettingError("value must be a boolean: on/off, true/false, yes/no, 1/0")


def parse_language_token_strict(value: object, allow_clear: bool = False) -> str:
    if allow_clear and is_clear_value(value):
        return ""
    normalized = normalize_language_token(value)
    if not normalized:
        raise SettingError(
            "language must use letters/numbers/hyphen, example: en, ro, ru, pt-br"
        )
    return normalized


def parse_non_empty_string(value: object) -> str:
    text = str(value if value is not None else "").strip()
    if not text:
        raise SettingError("value must not be empty")
    return text


def parse_tts_format(value: object) -> str:
    normalized = normalize_command(value)
    if normalized not in SUPPORTED_TTS_FORMATS:
        raise SettingError(
            f"tts format must be one of: {', '.join(SUPPORTED_TTS_FORMATS)}"
        )
    return normalized


# ---------------------------------------------------------------------------
# Lists
# ---------------------------------------------------------------------------


def _split_items(value: object) -> list[str]:
    return [
        item.strip()
        for item in str(value if value is not None else "").split(",")
        if item.strip()
    ]


def parse_language_pairs(value: object) -> dict[str, str]:
    """Lenient "src:dst,src:dst" parser; bad or identity pairs are skipped."""
    pairs: dict[str, str] = {}
    for item in _split_items(value):
        source_raw, _, target_raw = item.partition(":")
        source = normalize_language_token(source_raw)
        target = normalize_language_token(target_raw)
        if not source or not target or source == target:
            continue
        pairs[source] = target
    return pairs


def parse_language_pairs_strict(value: object, allow_clear: bool = True) -> dict[str, str]:
    if allow_clear and is_clear_value(value):
        return {}

    items = _split_items(value)
    if not items:
        raise SettingError("value must contain at least one pair: source:target")

    pairs: dict[str, str] = {}
    for item in items:
        if ":" not in item:
            raise SettingError("pair format must be source:target,source:target")
        source_raw, _, target_raw = item.partition(":")
        source = parse_language_token_strict(source_raw)
        target = parse_language_token_strict(target_raw)
        if source == target:
            raise SettingError("source and target language must be different")
        pairs[source] = target
    return pairs


def parse_speaker_targets(value: object) -> dict[str, str]:
    """Lenient "speakerId:lang,..." parser."""
    targets: dict[str, str] = {}
    for item in _split_items(value):
        speaker_raw, _, language_raw = item.partition(":")
        speaker_id = speaker_raw.strip()
        if not is_speaker_id(speaker_id):
            continue
        language = normalize_language_token(language_raw)
        if not language:
            continue
        targets[speaker_id] = language
    return targets


def parse_speaker_targets_strict(value: object, allow_clear: bool = True) -> dict[str, str]:
    if allow_clear and is_clear_value(value):
        return {}

    items = _split_items(value)
    if not items:
        raise SettingError("value must contain one or more entries: speakerId:language")

    targets: dict[str, str] = {}
    for item in items:
        if ":" not in item:
            raise SettingError("value format must be speakerId:language,speakerId:language")
        speaker_raw, _, language_raw = item.partition(":")
        speaker_id = speaker_raw.strip()
        language = parse_language_token_strict(language_raw)
        if not is_speaker_id(speaker_id):
            raise SettingError(f"invalid speaker id: {speaker_id!r}")
        targets[speaker_id] = language
    return targets


def parse_speaker_ids(value: object) -> frozenset[str]:
    return frozenset(item for item in _split_items(value) if is_speaker_id(item))


def parse_speaker_ids_strict(value: object, allow_clear: bool = True) -> frozenset[str]:
    if allow_clear and is_clear_value(value):
        return frozenset()

    items = _split_items(value)
    if not items:
        raise SettingError("value must contain one or more speaker ids")
    for item in items:
        if not is_speaker_id(item):
            raise SettingError(f"invalid speaker id: {item!r}")
    return frozenset(items)


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def mapping_to_csv(mapping: Mapping[str, str]) -> str:
    return ",".join(f"{key}:{value}" for key, value in mapping.items())


def ids_to_csv(ids: frozenset[str]) -> str:
    return ",".join(sorted(ids))
