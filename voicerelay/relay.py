"""
voicerelay/relay.py
====================
Voice Relay Composition Root — VoiceRelay

Responsibility:
    - Own the CaptureRegistry, UtterancePipeline and PlaybackQueue and wire
      them to the shared SettingsStore
    - Gate new speaking episodes: translation must be enabled and, when an
      allowed-speaker list is configured, the speaker must be on it
    - Run one pipeline task per captured utterance and keep references to
      in-flight tasks until they finish
    - Render status for the control surface
"""

import asyncio
import logging
from typing import Any, Optional

from voicerelay.audio.capture import (
    CaptureRegistry,
    CapturedUtterance,
    SpeakerSession,
    UpstreamStream,
)
from voicerelay.audio.playback import PlaybackQueue
from voicerelay.pipeline import UtterancePipeline
from voicerelay.settings.store import SettingsStore

logger = logging.getLogger("voicerelay.relay")


class VoiceRelay:
    def __init__(
        self,
        settings_store: SettingsStore,
        *,
        require_start_command: bool = False,
        playback_queue: Optional[PlaybackQueue] = None,
        pipeline: Optional[UtterancePipeline] = None,
        feedback_webhook_url: str = "",
    ):
        self.settings_store = settings_store
        self.playback_queue = playback_queue if playback_queue is not None else PlaybackQueue()
        if pipeline is None:
            pipeline = UtterancePipeline(
                settings_store,
                self.playback_queue,
                feedback_webhook_url=feedback_webhook_url,
            )
        self.pipeline = pipeline
        self.registry = CaptureRegistry(settings_store, self._on_utterance)
        self._translation_enabled = not require_start_command
        self._tasks: set[asyncio.Task] = set()
        self._closing = False

    # ==================== translation gating ====================

    @property
    def translation_enabled(self) -> bool:
        return self._translation_enabled

    def start_translation(self) -> None:
        self._translation_enabled = True
        logger.info("Voice translation started.")

    def stop_translation(self) -> None:
        self._translation_enabled = False
        logger.info("Voice translation stopped.")

    def accepts_speaker(self, speaker_id: str) -> bool:
        if self._closing or not self._translation_enabled:
            return False
        allowed = self.settings_store.current.allowed_speaker_ids
        return not allowed or speaker_id in allowed

    # ==================== audio ingress ====================

    def on_speaking_start(
        self,
        speaker_id: str,
        stream: Optional[UpstreamStream] = None,
    ) -> Optional[SpeakerSession]:
        """
        Handle a "speaker started talking" signal.

        Returns:
            The new session, or None if the speaker is gated out or already
            capturing.
        """
        if not self.accepts_speaker(speaker_id):
            return None
        return self.registry.start(speaker_id, stream)

    def _on_utterance(self, utterance: CapturedUtterance) -> None:
        if self._closing:
            return
        task = asyncio.get_running_loop().create_task(
            self.pipeline.process(utterance),
            name=f"utterance-{utterance.speaker_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every in-flight pipeline task to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        self._closing = True
        # Open captures are released; their utterances are not processed.
        self.registry.close_all()
        for task in list(self._tasks):
            if not task.done():
                task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        await self.playback_queue.close()
        logger.info("Voice relay stopped.")

    # ==================== status ====================

    def status(self) -> dict[str, Any]:
        return {
            "voice_translation": "ON" if self._translation_enabled else "OFF",
            "queue": len(self.playback_queue),
            "playing": self.playback_queue.is_playing,
            "output_attached": self.playback_queue.has_sink,
            "active_speakers": self.registry.active_speakers,
            "in_flight": self.in_flight,
            "settings": self.settings_store.as_dict(),
        }

    def render_status(self) -> str:
        status = self.status()
        settings = status["settings"]
        parts = [
            f"voice_translation={status['voice_translation']}",
            f"queue={status['queue']}",
            f"model={settings['translate_model']}",
            f"transcribe_model={settings['transcribe_model']}",
            f"tts_model={settings['tts_model']}",
            f"tts_voice={settings['tts_voice']}",
            f"tts_format={settings['tts_format']}",
            f"silence_ms={settings['silence_ms']}",
            f"language_pairs={settings['language_pairs']}",
            f"default_target={settings['default_target_language']}",
            f"user_targets={settings['user_target_languages']}",
        ]
        return " | ".join(parts)
