"""
voicerelay/tts/speech_client.py
================================
OpenAI Speech Synthesis Client — VoiceRelay

Responsibility:
    - Turn translated text into encoded audio bytes via OpenAI audio.speech
    - Bound the input to the endpoint's accepted length (truncate, never
      reject)

This module does NOT:
    - Queue or play audio (see voicerelay/audio/playback.py)
"""

import logging
import os

from openai import OpenAI

from voicerelay.openai_retry import with_retry

logger = logging.getLogger("voicerelay.tts.speech_client")

MAX_INPUT_CHARS = 3900


@with_retry
def _create_speech(client: OpenAI, **kwargs) -> bytes:
    response = client.audio.speech.create(**kwargs)
    return response.content


def synthesize(text: str, model: str, voice: str, response_format: str) -> bytes:
    """
    Synthesize ``text`` into audio.

    Raises:
        RuntimeError: If the API key is missing, the API call fails or the
            service returns no audio.
    """
    api_key = os.environ.get("OPENAI_API_KEY")
    if not api_key:
        raise RuntimeError("OPENAI_API_KEY environment variable is not set.")

    client = OpenAI(api_key=api_key, max_retries=0)
    bounded = str(text or "")[:MAX_INPUT_CHARS]
    if len(bounded) < len(text or ""):
        logger.info("Speech input truncated from %d to %d chars.", len(text), MAX_INPUT_CHARS)

    try:
        audio = _create_speech(
            client,
            model=model,
            voice=voice,
            input=bounded,
            response_format=response_format,
        )
    except Exception as exc:
        raise RuntimeError(f"OpenAI speech failed: {exc}") from exc

    if not audio:
        raise RuntimeError("OpenAI speech returned no audio.")
    return bytes(audio)
