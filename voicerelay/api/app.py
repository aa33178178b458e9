"""
voicerelay/api/app.py
======================
FastAPI application factory — VoiceRelay
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from voicerelay.api import control, voice
from voicerelay.config import AppConfig
from voicerelay.relay import VoiceRelay
from voicerelay.settings import SettingsStore

logger = logging.getLogger("voicerelay.api")


def create_app(config: AppConfig, relay: Optional[VoiceRelay] = None) -> FastAPI:
    """
    Build the FastAPI app serving the control API and the voice transport.

    Args:
        config: Validated startup configuration.
        relay:  Pre-built relay (tests); built from ``config`` when omitted.
    """
    if relay is None:
        relay = VoiceRelay(
            SettingsStore(config.settings),
            require_start_command=config.require_start_command,
            feedback_webhook_url=config.feedback_webhook_url,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Voice relay ready: %s", relay.render_status())
        if relay.settings_store.current.allowed_speaker_ids:
            logger.info(
                "Strict speaker mode enabled, allowed_speakers=%s",
                relay.settings_store.get("allowed_speaker_ids"),
            )
        if not relay.translation_enabled:
            logger.info("Start-command mode enabled, voice_translation=OFF")
        yield
        await relay.shutdown()

    app = FastAPI(
        title="VoiceRelay",
        description="Live voice translation relay: control API and voice transport.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.relay = relay

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(control.router)
    app.include_router(voice.router)
    return app
