"""
voicerelay/pipeline.py
=======================
Utterance Pipeline — VoiceRelay

Responsibility:
    Drive one CapturedUtterance end to end:
        1. Frame headerless PCM as WAV
        2. Transcribe (empty text → stop)
        3. Route + translate (not eligible → stop)
        4. Synthesize the translated text
        5. Enqueue the audio on the Playback Queue
        6. Optionally post a text-feedback disclosure

Each utterance runs in its own asyncio task. The blocking OpenAI SDK calls
run in worker threads (asyncio.to_thread) so only the calling task suspends
and other speakers' pipelines keep running.

Failure at any stage is logged and abandons this one utterance. ``process``
never raises (task cancellation excepted).

This module does NOT:
    - Decide utterance boundaries (see voicerelay/audio/capture.py)
    - Own the audio output (see voicerelay/audio/playback.py)
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from voicerelay.audio.capture import CapturedUtterance
from voicerelay.audio.playback import PlaybackItem, PlaybackQueue, encoding_for_format
from voicerelay.audio.wav import pcm_to_wav
from voicerelay.feedback import post_feedback
from voicerelay.nlp.router import TranslationResult, TranslationRoute, build_route
from voicerelay.nlp.translator import translate
from voicerelay.settings.store import SettingsStore
from voicerelay.stt.whisper_client import transcribe
from voicerelay.tts.speech_client import synthesize

logger = logging.getLogger("voicerelay.pipeline")

TranscribeFn = Callable[[bytes, str], str]
TranslateFn = Callable[[str, TranslationRoute, str], TranslationResult]
SynthesizeFn = Callable[[str, str, str, str], bytes]
FeedbackFn = Callable[[str, str], Awaitable[bool]]


class UtterancePipeline:
    """Transcribe → translate → synthesize → enqueue, for one utterance at a time."""

    def __init__(
        self,
        settings_store: SettingsStore,
        playback_queue: PlaybackQueue,
        *,
        feedback_webhook_url: str = "",
        transcribe_fn: TranscribeFn = transcribe,
        translate_fn: TranslateFn = translate,
        synthesize_fn: SynthesizeFn = synthesize,
        feedback_fn: FeedbackFn = post_feedback,
    ):
        self._settings_store = settings_store
        self._playback_queue = playback_queue
        self._feedback_webhook_url = feedback_webhook_url
        self._transcribe = transcribe_fn
        self._translate = translate_fn
        self._synthesize = synthesize_fn
        self._post_feedback = feedback_fn

    async def process(self, utterance: CapturedUtterance) -> Optional[PlaybackItem]:
        """
        Run the full pipeline for ``utterance``.

        Returns:
            The enqueued PlaybackItem, or None if the utterance was
            abandoned (nothing recognized, not eligible, or a stage failed).
        """
        speaker_id = utterance.speaker_id
        stage = "framing"
        try:
            # ----------------------------------------------------------
            # Step 1: Frame PCM as WAV
            # ----------------------------------------------------------
            wav_bytes = pcm_to_wav(utterance.pcm)

            # ----------------------------------------------------------
            # Step 2: Transcribe
            # ----------------------------------------------------------
            stage = "transcription"
            settings = self._settings_store.current
            text = await asyncio.to_thread(
                self._transcribe, wav_bytes, settings.transcribe_model
            )
            text = str(text or "").strip()
            if not text:
                logger.debug("Empty transcription for speaker %s; nothing to translate.", speaker_id)
                return None
            logger.info("Transcribed speaker %s: %d chars.", speaker_id, len(text))

            # ----------------------------------------------------------
            # Step 3: Route + translate
            # ----------------------------------------------------------
            stage = "translation"
            settings = self._settings_store.current
            route = build_route(speaker_id, settings)
            result = await asyncio.to_thread(
                self._translate, text, route, settings.translate_model
            )
            if not result.should_reply:
                logger.info(
                    "Translation for speaker %s not eligible %s; skipping.",
                    speaker_id,
                    result.label,
                )
                return None

            # ----------------------------------------------------------
            # Step 4: Synthesize
            # ----------------------------------------------------------
            stage = "synthesis"
            settings = self._settings_store.current
            audio = await asyncio.to_thread(
                self._synthesize,
                result.translated_text,
                settings.tts_model,
                settings.tts_voice,
                settings.tts_format,
            )

            # ----------------------------------------------------------
            # Step 5: Enqueue
            # ----------------------------------------------------------
            stage = "enqueue"
            item = PlaybackItem(
                audio=audio,
                encoding=encoding_for_format(settings.tts_format),
                speaker_id=speaker_id,
                source_language=result.detected_language,
                target_language=result.target_language,
                text=result.translated_text,
            )
            self._playback_queue.enqueue(item)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error(
                "Processing error for speaker %s during %s: %s",
                speaker_id,
                stage,
                exc,
            )
            return None

        # --------------------------------------------------------------
        # Step 6: Optional text feedback (never affects playback)
        # --------------------------------------------------------------
        if settings.text_feedback and self._feedback_webhook_url:
            try:
                await self._post_feedback(
                    self._feedback_webhook_url,
                    f"{result.label} {result.translated_text}",
                )
            except Exception as exc:
                logger.warning("Text feedback failed for speaker %s: %s", speaker_id, exc)

        return item
