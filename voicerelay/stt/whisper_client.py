"""
voicerelay/stt/whisper_client.py
=================================
OpenAI Transcription Client — VoiceRelay

Responsibility:
    - Send one utterance (WAV bytes) to the OpenAI transcription endpoint
    - Return the recognized text, stripped

This module does NOT:
    - Detect utterance boundaries (see voicerelay/audio/capture.py)
    - Translate text or decide routing
"""

import io
import logging
import os
import time

from openai import OpenAI

from voicerelay.openai_retry import with_retry

logger = logging.getLogger("voicerelay.stt.whisper_client")


@with_retry
def _create_transcription(client: OpenAI, **kwargs):
    return client.audio.transcriptions.create(**kwargs)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def transcribe(wav_bytes: bytes, model: str) -> str:
    """
    Transcribe one utterance using the OpenAI audio transcription API.

    Args:
        wav_bytes: Utterance audio in a WAV container.
        model:     Transcription model identifier (e.g. "whisper-1").

    Returns:
        Recognized text with surrounding whitespace removed ("" if none).

    Raises:
        RuntimeError: If the API key is missing or the API call fails.
    """
    api_key = os.environ.get("OPENAI_API_KEY")
    if not api_key:
        raise RuntimeError("OPENAI_API_KEY environment variable is not set.")

    # Retries are handled by with_retry; keep the SDK from retrying as well.
    client = OpenAI(api_key=api_key, max_retries=0)

    audio_file = io.BytesIO(wav_bytes)
    audio_file.name = f"voice-{int(time.time() * 1000)}.wav"

    try:
        response = _create_transcription(client, model=model, file=audio_file)
    except Exception as exc:
        raise RuntimeError(f"OpenAI transcription failed: {exc}") from exc

    if isinstance(response, dict):
        text = response.get("text", "")
    else:
        text = getattr(response, "text", "")

    return str(text or "").strip()
