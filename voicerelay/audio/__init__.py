# voicerelay/audio/__init__.py
# =============================
# Audio Layer — VoiceRelay
#
#   - capture.py:  per-speaker utterance capture + Size Guard
#   - playback.py: single-output ordered playback queue
#   - wav.py:      headerless PCM → WAV framing for transcription

from voicerelay.audio.capture import (  # noqa: F401
    CaptureRegistry,
    CapturedUtterance,
    SizeGuard,
    SpeakerSession,
)
from voicerelay.audio.playback import (  # noqa: F401
    PlaybackError,
    PlaybackItem,
    PlaybackQueue,
)

__all__ = [
    "CaptureRegistry",
    "CapturedUtterance",
    "PlaybackError",
    "PlaybackItem",
    "PlaybackQueue",
    "SizeGuard",
    "SpeakerSession",
]
