# voicerelay/tts/__init__.py
# ===========================
# Text-to-Speech Layer — VoiceRelay
#
# Public API:
#   synthesize(text, model, voice, response_format) → bytes

from voicerelay.tts.speech_client import MAX_INPUT_CHARS, synthesize  # noqa: F401

__all__ = ["MAX_INPUT_CHARS", "synthesize"]
