"""
voicerelay/audio/playback.py
=============================
Playback Queue — VoiceRelay

Responsibility:
    - Accept synthesized audio from any number of concurrent pipelines
    - Play items strictly in enqueue order on exactly one output (sink)
    - Never overlap two items and never interrupt the current one

Rules:
    - ``enqueue`` never blocks: it appends and triggers a play attempt.
    - A play attempt proceeds only when nothing is playing, a sink is
      attached, and the queue is non-empty.
    - When an item finishes (end of audio or sink error) the slot is freed
      and the next item starts. Failed items are dropped, not retried.
    - Items wait in the queue while no sink is attached.

This module does NOT:
    - Encode or decode audio
    - Know how the sink delivers audio (see voicerelay/api/voice.py)
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Optional, Protocol

logger = logging.getLogger("voicerelay.audio.playback")

ENCODING_OGG_OPUS = "ogg/opus"
ENCODING_ARBITRARY = "arbitrary"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class PlaybackError(Exception):
    """Raised by a sink when an item could not be played."""
    pass


# ---------------------------------------------------------------------------
# Data types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PlaybackItem:
    """Synthesized audio plus diagnostic metadata; never mutated."""

    audio: bytes = field(repr=False)
    encoding: str
    speaker_id: str
    source_language: str
    target_language: str
    text: str

    def header(self) -> dict:
        return {
            "type": "audio",
            "encoding": self.encoding,
            "speaker_id": self.speaker_id,
            "source_language": self.source_language,
            "target_language": self.target_language,
            "text": self.text,
            "bytes": len(self.audio),
        }


class AudioSink(Protocol):
    """The single audio output. ``play`` returns once the item has finished."""

    async def play(self, item: PlaybackItem) -> None:
        ...


def encoding_for_format(tts_format: str) -> str:
    return ENCODING_OGG_OPUS if tts_format == "opus" else ENCODING_ARBITRARY


# ---------------------------------------------------------------------------
# Queue
# ---------------------------------------------------------------------------


class PlaybackQueue:
    """FIFO of PlaybackItem draining into one active output at a time."""

    def __init__(self) -> None:
        self._items: deque[PlaybackItem] = deque()
        self._current: Optional[PlaybackItem] = None
        self._task: Optional[asyncio.Task] = None
        self._sink: Optional[AudioSink] = None
        self._closed = False
        self._idle = asyncio.Event()
        self._idle.set()

    # -- introspection ------------------------------------------------------

    def __len__(self) -> int:
        return len(self._items)

    @property
    def is_playing(self) -> bool:
        return self._current is not None

    @property
    def current(self) -> Optional[PlaybackItem]:
        return self._current

    @property
    def has_sink(self) -> bool:
        return self._sink is not None

    # -- output ownership ---------------------------------------------------

    def attach(self, sink: AudioSink) -> bool:
        """Attach the output. Returns False if another sink already owns it."""
        if self._sink is not None and self._sink is not sink:
            return False
        self._sink = sink
        logger.info("Playback output attached (%d item(s) queued).", len(self._items))
        self._play_next()
        return True

    def detach(self, sink: Optional[AudioSink] = None) -> None:
        if sink is not None and self._sink is not sink:
            return
        self._sink = None
        logger.info("Playback output detached.")

    # -- producers ----------------------------------------------------------

    def enqueue(self, item: PlaybackItem) -> int:
        """
        Append ``item`` and start playback if the output is idle.

        Returns:
            Number of items waiting after this enqueue (0 if it started
            playing immediately).
        """
        if self._closed:
            logger.warning("Playback queue closed; dropping item from speaker %s.", item.speaker_id)
            return len(self._items)

        self._items.append(item)
        self._idle.clear()
        logger.info(
            "Queued speech from speaker %s %s (%d bytes, queue=%d).",
            item.speaker_id,
            f"[{item.source_language}->{item.target_language}]",
            len(item.audio),
            len(self._items),
        )
        self._play_next()
        return len(self._items)

    async def wait_idle(self) -> None:
        """Wait until nothing is playing and nothing is queued."""
        await self._idle.wait()

    async def close(self) -> None:
        self._closed = True
        self._items.clear()
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._current = None
        self._task = None
        self._idle.set()

    # -- draining -----------------------------------------------------------

    def _play_next(self) -> None:
        if self._closed or self._current is not None:
            return
        sink = self._sink
        if sink is None or not self._items:
            self._update_idle()
            return

        item = self._items.popleft()
        self._current = item
        self._task = asyncio.get_running_loop().create_task(self._play(sink, item))

    async def _play(self, sink: AudioSink, item: PlaybackItem) -> None:
        try:
            await sink.play(item)
            logger.debug("Playback finished for speaker %s.", item.speaker_id)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error(
                "Audio output error for speaker %s: %s; skipping item.",
                item.speaker_id,
                exc,
            )
        finally:
            self._current = None
            self._task = None
            if not self._closed:
                self._play_next()

    def _update_idle(self) -> None:
        if self._current is None and not self._items:
            self._idle.set()
        else:
            self._idle.clear()
