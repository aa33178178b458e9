"""
voicerelay/audio/wav.py
========================
PCM Framing — VoiceRelay

Responsibility:
    - Wrap headerless decoded PCM (as delivered by the voice transport) into a
      self-describing WAV container the transcription endpoint accepts

The voice transport delivers signed 16-bit little-endian PCM, 48 kHz,
interleaved stereo. A trailing partial frame (fewer bytes than one sample
per channel) is dropped before framing.
"""

import io

from pydub import AudioSegment


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

PCM_SAMPLE_RATE = 48000  # Hz
PCM_CHANNELS = 2
PCM_SAMPLE_WIDTH = 2  # bytes (16-bit)
OUTPUT_FORMAT = "wav"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class AudioFramingError(Exception):
    """Raised when PCM cannot be framed into a WAV container."""
    pass


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def pcm_to_wav(
    pcm: bytes,
    sample_rate: int = PCM_SAMPLE_RATE,
    channels: int = PCM_CHANNELS,
    sample_width: int = PCM_SAMPLE_WIDTH,
) -> bytes:
    """
    Frame raw PCM into WAV bytes.

    Args:
        pcm:          Headerless interleaved PCM samples.
        sample_rate:  Samples per second per channel.
        channels:     Interleaved channel count.
        sample_width: Bytes per sample.

    Returns:
        WAV file bytes (RIFF header + PCM data).

    Raises:
        AudioFramingError: If the PCM is empty or export fails.
    """
    frame_width = sample_width * channels
    usable = len(pcm) - (len(pcm) % frame_width)
    if usable <= 0:
        raise AudioFramingError("PCM buffer holds no complete frame.")

    try:
        segment = AudioSegment(
            data=bytes(pcm[:usable]),
            sample_width=sample_width,
            frame_rate=sample_rate,
            channels=channels,
        )
        buffer = io.BytesIO()
        segment.export(buffer, format=OUTPUT_FORMAT)
        return buffer.getvalue()
    except Exception as exc:
        raise AudioFramingError(f"Failed to frame PCM as WAV: {exc}") from exc

