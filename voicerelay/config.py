"""
voicerelay/config.py
=====================
Startup Configuration — VoiceRelay

Responsibility:
    - Read startup configuration from environment variables (.env is loaded
      by main.py via python-dotenv before this module is used)
    - Fail fast on missing credentials or invalid required configuration
    - Build the initial RuntimeSettings snapshot

Startup parsing is lenient for optional values: malformed list entries are
skipped and malformed optional numbers fall back to defaults. Only the cases
below refuse to start:
    - OPENAI_API_KEY is missing
    - OPENAI_TTS_FORMAT is not a supported format
    - VOICE_MIN_PCM_BYTES exceeds VOICE_MAX_PCM_BYTES
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Mapping

from voicerelay.settings.parsers import (
    SUPPORTED_TTS_FORMATS,
    normalize_command,
    normalize_language_token,
    parse_boolean,
    parse_language_pairs,
    parse_positive_int,
    parse_speaker_ids,
    parse_speaker_targets,
)
from voicerelay.settings.store import RuntimeSettings

logger = logging.getLogger("voicerelay.config")


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(Exception):
    """Raised when startup configuration is missing or invalid."""
    pass


# ---------------------------------------------------------------------------
# Data types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AppConfig:
    """Process-level configuration that does not change at runtime."""

    openai_api_key: str
    settings: RuntimeSettings = field(default_factory=RuntimeSettings)
    require_start_command: bool = False
    feedback_webhook_url: str = ""
    control_api_token: str = ""
    playback_ack_timeout_s: float = 120.0
    host: str = "127.0.0.1"
    port: int = 8000


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(environ: Mapping[str, str] | None = None) -> AppConfig:
    """
    Build the AppConfig from environment variables.

    Args:
        environ: Mapping to read from. Defaults to ``os.environ``.

    Returns:
        Validated AppConfig with the initial RuntimeSettings.

    Raises:
        ConfigError: On missing credentials or invalid required values.
    """
    env = os.environ if environ is None else environ

    api_key = str(env.get("OPENAI_API_KEY", "")).strip()
    if not api_key:
        raise ConfigError("missing required env var: OPENAI_API_KEY")

    tts_format = normalize_command(env.get("OPENAI_TTS_FORMAT") or "opus")
    if tts_format not in SUPPORTED_TTS_FORMATS:
        raise ConfigError(
            f"OPENAI_TTS_FORMAT invalid: {tts_format}. "
            f"Supported: {','.join(SUPPORTED_TTS_FORMATS)}"
        )
    if tts_format != "opus":
        logger.warning(
            "OPENAI_TTS_FORMAT=%s. For best playback compatibility use opus.",
            tts_format,
        )

    defaults = RuntimeSettings()
    settings = RuntimeSettings(
        translate_model=env.get("OPENAI_MODEL") or defaults.translate_model,
        transcribe_model=env.get("OPENAI_TRANSCRIBE_MODEL") or defaults.transcribe_model,
        tts_model=env.get("OPENAI_TTS_MODEL") or defaults.tts_model,
        tts_voice=env.get("OPENAI_TTS_VOICE") or defaults.tts_voice,
        tts_format=tts_format,
        silence_ms=parse_positive_int(env.get("SPEECH_SILENCE_MS"), defaults.silence_ms),
        voice_min_pcm_bytes=parse_positive_int(
            env.get("VOICE_MIN_PCM_BYTES"), defaults.voice_min_pcm_bytes
        ),
        voice_max_pcm_bytes=parse_positive_int(
            env.get("VOICE_MAX_PCM_BYTES"), defaults.voice_max_pcm_bytes
        ),
        language_pairs=parse_language_pairs(env.get("LANGUAGE_PAIRS", "en:ro,ro:en")),
        default_target_language=normalize_language_token(env.get("DEFAULT_TARGET_LANGUAGE", "")),
        user_target_languages=parse_speaker_targets(env.get("SPEAKER_TARGET_LANGUAGES", "")),
        allowed_speaker_ids=parse_speaker_ids(env.get("VOICE_ALLOWED_SPEAKER_IDS", "")),
        text_feedback=parse_boolean(env.get("VOICE_TEXT_FEEDBACK"), False),
    )

    if settings.voice_min_pcm_bytes > settings.voice_max_pcm_bytes:
        raise ConfigError(
            "VOICE_MIN_PCM_BYTES must not exceed VOICE_MAX_PCM_BYTES "
            f"({settings.voice_min_pcm_bytes} > {settings.voice_max_pcm_bytes})"
        )

    try:
        ack_timeout = float(env.get("PLAYBACK_ACK_TIMEOUT_S") or 120)
    except ValueError:
        ack_timeout = 120.0

    return AppConfig(
        openai_api_key=api_key,
        settings=settings,
        require_start_command=parse_boolean(env.get("REQUIRE_START_COMMAND"), False),
        feedback_webhook_url=str(env.get("FEEDBACK_WEBHOOK_URL", "")).strip(),
        control_api_token=str(env.get("CONTROL_API_TOKEN", "")).strip(),
        playback_ack_timeout_s=ack_timeout if ack_timeout > 0 else 120.0,
        host=env.get("HOST") or "127.0.0.1",
        port=parse_positive_int(env.get("PORT"), 8000),
    )
