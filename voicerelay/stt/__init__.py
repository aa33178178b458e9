# voicerelay/stt/__init__.py
# ===========================
# Speech-to-Text Layer — VoiceRelay
#
# Public API:
#   transcribe(wav_bytes, model) → str

from voicerelay.stt.whisper_client import transcribe  # noqa: F401

__all__ = ["transcribe"]
