"""
voicerelay/audio/capture.py
============================
Utterance Capture — VoiceRelay

Responsibility:
    - Turn a per-speaker stream of start / chunk / end events into at most one
      bounded audio buffer per speaking episode
    - Keep at most one active SpeakerSession per speaker identity
    - Enforce the PCM size bounds (Size Guard):
          total > voice_max_pcm_bytes → truncated, upstream closed, dropped
          total < voice_min_pcm_bytes → dropped silently as noise

Per-speaker state machine:

    Idle ──start──▶ Capturing ──chunk──▶ Capturing
                        │
                  end / error
                        ▼
                   Finalizing ──▶ (released, speaker back to Idle)

    - A start for a speaker that is already Capturing is ignored.
    - Finalization is idempotent; only the first end/error has effect.
    - End events address the session object, so a late end from an older
      stream can never finalize a newer session of the same speaker.

All methods are synchronous and meant to be called from the event loop
thread; sessions of different speakers share nothing but the read-only
settings snapshot.

This module does NOT:
    - Detect silence (the transport signals end-of-speech)
    - Transcribe, translate or play anything
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol

from voicerelay.settings.store import RuntimeSettings, SettingsStore

logger = logging.getLogger("voicerelay.audio.capture")


# ---------------------------------------------------------------------------
# Data types
# ---------------------------------------------------------------------------


class UpstreamStream(Protocol):
    """The transport's per-speaker audio stream; closing stops delivery."""

    def close(self) -> None:
        ...


class SessionState(str, Enum):
    CAPTURING = "capturing"
    FINALIZING = "finalizing"
    FINALIZED = "finalized"


@dataclass(frozen=True)
class CapturedUtterance:
    """Immutable snapshot handed from capture to the utterance pipeline."""

    speaker_id: str
    pcm: bytes
    truncated: bool = False

    @property
    def byte_count(self) -> int:
        return len(self.pcm)


# ---------------------------------------------------------------------------
# Size Guard
# ---------------------------------------------------------------------------


class SizeGuard:
    """Minimum/maximum PCM size policy for one decision."""

    def __init__(self, min_bytes: int, max_bytes: int):
        self.min_bytes = min_bytes
        self.max_bytes = max_bytes

    @classmethod
    def from_settings(cls, settings: RuntimeSettings) -> "SizeGuard":
        return cls(settings.voice_min_pcm_bytes, settings.voice_max_pcm_bytes)

    def overflows(self, total_bytes: int) -> bool:
        return total_bytes > self.max_bytes

    def admit(self, session: "SpeakerSession") -> Optional[CapturedUtterance]:
        """
        Decide whether a finalized session becomes a CapturedUtterance.

        Returns:
            The utterance, or None when the session was truncated or is
            below the minimum size.
        """
        if session.truncated:
            logger.warning(
                "Ignored long speech from speaker %s (%d bytes > %d).",
                session.speaker_id,
                session.total_bytes,
                self.max_bytes,
            )
            return None

        if session.total_bytes < self.min_bytes:
            logger.debug(
                "Dropped short capture from speaker %s (%d bytes < %d).",
                session.speaker_id,
                session.total_bytes,
                self.min_bytes,
            )
            return None

        return CapturedUtterance(
            speaker_id=session.speaker_id,
            pcm=b"".join(session.chunks),
            truncated=False,
        )


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class SpeakerSession:
    """In-progress accumulation state for one utterance of one speaker."""

    def __init__(
        self,
        speaker_id: str,
        registry: "CaptureRegistry",
        stream: Optional[UpstreamStream] = None,
    ):
        self.speaker_id = speaker_id
        self.chunks: list[bytes] = []
        self.total_bytes = 0
        self.truncated = False
        self.state = SessionState.CAPTURING
        self._registry = registry
        self._stream = stream

    @property
    def finalized(self) -> bool:
        return self.state is not SessionState.CAPTURING

    def feed(self, chunk: bytes) -> bool:
        """
        Append one chunk of decoded audio.

        Returns:
            True if the chunk was accumulated; False if the session is
            truncated or already finalized.
        """
        if self.finalized or self.truncated:
            return False
        if not chunk:
            return True

        self.chunks.append(bytes(chunk))
        self.total_bytes += len(chunk)

        guard = SizeGuard.from_settings(self._registry.settings)
        if guard.overflows(self.total_bytes):
            self.truncated = True
            # Memory for a runaway capture is released immediately; only the
            # byte count is kept for the diagnostic.
            self.chunks = []
            logger.info(
                "Speaker %s exceeded %d PCM bytes; closing upstream stream.",
                self.speaker_id,
                guard.max_bytes,
            )
            self._close_stream()
        return True

    def finish(self, error: Optional[BaseException] = None) -> Optional[CapturedUtterance]:
        """
        Finalize the session (end-of-speech, explicit close, or error).

        Only the first call has any effect; later calls return None.
        """
        if self.finalized:
            return None
        self.state = SessionState.FINALIZING

        if error is not None:
            logger.warning("Audio stream error for speaker %s: %s", self.speaker_id, error)

        self._registry._release(self)
        try:
            utterance = SizeGuard.from_settings(self._registry.settings).admit(self)
        finally:
            self.chunks = []
            self.state = SessionState.FINALIZED

        if utterance is not None:
            self._registry._emit(utterance)
        return utterance

    def _close_stream(self) -> None:
        if self._stream is None:
            return
        try:
            self._stream.close()
        except Exception as exc:
            logger.warning("Closing stream for speaker %s failed: %s", self.speaker_id, exc)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class CaptureRegistry:
    """Keyed registry of active SpeakerSessions, one per speaker identity."""

    def __init__(
        self,
        settings_store: SettingsStore,
        on_utterance: Callable[[CapturedUtterance], None],
    ):
        self._settings_store = settings_store
        self._on_utterance = on_utterance
        self._sessions: dict[str, SpeakerSession] = {}

    @property
    def settings(self) -> RuntimeSettings:
        return self._settings_store.current

    @property
    def active_speakers(self) -> list[str]:
        return sorted(self._sessions)

    def is_active(self, speaker_id: str) -> bool:
        return speaker_id in self._sessions

    def start(
        self,
        speaker_id: str,
        stream: Optional[UpstreamStream] = None,
    ) -> Optional[SpeakerSession]:
        """
        Open a session for ``speaker_id``.

        Returns:
            The new session, or None if one is already active for the
            speaker (the duplicate start is ignored).
        """
        if speaker_id in self._sessions:
            logger.debug("Speaker %s already capturing; start ignored.", speaker_id)
            return None

        session = SpeakerSession(speaker_id, self, stream)
        self._sessions[speaker_id] = session
        logger.debug("Capture started for speaker %s.", speaker_id)
        return session

    def feed(self, speaker_id: str, chunk: bytes) -> bool:
        session = self._sessions.get(speaker_id)
        if session is None:
            return False
        return session.feed(chunk)

    def end(
        self,
        speaker_id: str,
        error: Optional[BaseException] = None,
    ) -> Optional[CapturedUtterance]:
        session = self._sessions.get(speaker_id)
        if session is None:
            return None
        return session.finish(error)

    def close_all(self) -> None:
        """Finalize every active session (used on shutdown)."""
        for session in list(self._sessions.values()):
            session.finish()

    # Internal hooks used by SpeakerSession

    def _release(self, session: SpeakerSession) -> None:
        if self._sessions.get(session.speaker_id) is session:
            del self._sessions[session.speaker_id]

    def _emit(self, utterance: CapturedUtterance) -> None:
        logger.info(
            "Captured utterance from speaker %s (%d bytes).",
            utterance.speaker_id,
            utterance.byte_count,
        )
        try:
            self._on_utterance(utterance)
        except Exception as exc:
            logger.error(
                "Utterance handler failed for speaker %s: %s",
                utterance.speaker_id,
                exc,
                exc_info=True,
            )
