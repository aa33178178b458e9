"""
voicerelay/api/voice.py
========================
WebSocket Voice Transport — VoiceRelay

Audio ingress: ``/ws/voice/{speaker_id}``
    - Binary messages are raw PCM (s16le, 48 kHz, stereo).
    - The first frame after idle is the speaker's "start" signal.
    - Every frame is a "chunk".
    - "end" is signalled by: no frame for ``silence_ms``; a text message
      ``{"type": "end"}`` (answered with ``{"type": "ended", "emitted": bool}``);
      or disconnect / receive error.
    - After a capture overflows, its stream is closed: frames are dropped
      until the episode ends.

Audio egress: ``/ws/playback``
    - Exactly one listener at a time; a second one is closed with 1013.
    - Per item the server sends the JSON header (PlaybackItem.header()) and
      then one binary message, and waits for ``{"event": "idle"}`` or
      ``{"event": "error", "message": ...}``.
"""

import asyncio
import json
import logging
from typing import Any, Optional

from fastapi import APIRouter, WebSocket

from voicerelay.audio.capture import SpeakerSession
from voicerelay.audio.playback import PlaybackError, PlaybackItem
from voicerelay.settings.parsers import is_speaker_id

logger = logging.getLogger("voicerelay.api.voice")

router = APIRouter()

_LISTENER_CLOSED = object()


# ---------------------------------------------------------------------------
# Ingress
# ---------------------------------------------------------------------------


class EpisodeStream:
    """Upstream handle for one speaking episode; closing drops further frames."""

    def __init__(self) -> None:
        self.closed = False

    def close(self) -> None:
        self.closed = True


def _parse_control_message(text: Optional[str]) -> dict[str, Any]:
    try:
        parsed = json.loads(text or "")
    except ValueError:
        return {}
    return parsed if isinstance(parsed, dict) else {}


@router.websocket("/ws/voice/{speaker_id}")
async def voice_ingress(websocket: WebSocket, speaker_id: str):
    relay = websocket.app.state.relay

    if not is_speaker_id(speaker_id):
        await websocket.close(code=1008, reason="invalid speaker id")
        return

    await websocket.accept()
    logger.info("Voice ingress connected for speaker %s.", speaker_id)

    session: Optional[SpeakerSession] = None
    stream: Optional[EpisodeStream] = None
    error: Optional[BaseException] = None

    try:
        while True:
            timeout = None
            if session is not None:
                timeout = relay.settings_store.current.silence_ms / 1000.0

            try:
                message = await asyncio.wait_for(websocket.receive(), timeout)
            except asyncio.TimeoutError:
                session.finish()
                session, stream = None, None
                continue

            if message["type"] == "websocket.disconnect":
                break

            data = message.get("bytes")
            if data is not None:
                if session is None:
                    stream = EpisodeStream()
                    session = relay.on_speaking_start(speaker_id, stream)
                    if session is None:
                        continue
                if not stream.closed:
                    session.feed(data)
                continue

            control = _parse_control_message(message.get("text"))
            if control.get("type") == "end":
                emitted = False
                if session is not None:
                    emitted = session.finish() is not None
                    session, stream = None, None
                await websocket.send_json({"type": "ended", "emitted": emitted})
    except Exception as exc:
        error = exc
    finally:
        if session is not None:
            session.finish(error)
        logger.info("Voice ingress closed for speaker %s.", speaker_id)


# ---------------------------------------------------------------------------
# Egress
# ---------------------------------------------------------------------------


class WebSocketSink:
    """Playback output backed by one connected listener."""

    def __init__(self, websocket: WebSocket, ack_timeout_s: float):
        self._websocket = websocket
        self._ack_timeout_s = ack_timeout_s
        self._acks: asyncio.Queue = asyncio.Queue()
        self._ready = asyncio.Event()
        self.closed = False

    def mark_ready(self) -> None:
        self._ready.set()

    def acknowledge(self, payload: dict[str, Any]) -> None:
        self._acks.put_nowait(payload)

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._acks.put_nowait(_LISTENER_CLOSED)
            self._ready.set()

    async def play(self, item: PlaybackItem) -> None:
        await self._ready.wait()
        if self.closed:
            raise PlaybackError("playback listener disconnected")

        while not self._acks.empty():
            self._acks.get_nowait()

        try:
            await self._websocket.send_json(item.header())
            await self._websocket.send_bytes(item.audio)
        except Exception as exc:
            raise PlaybackError(f"sending audio failed: {exc}") from exc

        try:
            ack = await asyncio.wait_for(self._acks.get(), self._ack_timeout_s)
        except asyncio.TimeoutError:
            raise PlaybackError(
                f"no playback acknowledgement within {self._ack_timeout_s:.0f}s"
            )

        if ack is _LISTENER_CLOSED:
            raise PlaybackError("playback listener disconnected")
        event = ack.get("event")
        if event == "error":
            raise PlaybackError(str(ack.get("message") or "listener reported an error"))
        if event != "idle":
            raise PlaybackError(f"unexpected playback event: {event!r}")


@router.websocket("/ws/playback")
async def playback_egress(websocket: WebSocket):
    relay = websocket.app.state.relay
    config = websocket.app.state.config

    # The output is claimed before the handshake completes so that a client
    # which got its accept is guaranteed to own it.
    sink = WebSocketSink(websocket, config.playback_ack_timeout_s)
    if not relay.playback_queue.attach(sink):
        await websocket.accept()
        await websocket.close(code=1013, reason="playback output already in use")
        return

    try:
        await websocket.accept()
        sink.mark_ready()
        logger.info("Playback listener connected.")
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            payload = _parse_control_message(message.get("text"))
            if payload.get("event") in ("idle", "error"):
                sink.acknowledge(payload)
    except Exception as exc:
        logger.warning("Playback listener error: %s", exc)
    finally:
        sink.close()
        relay.playback_queue.detach(sink)
