"""
voicerelay/api/control.py
==========================
Control API — VoiceRelay

Responsibility:
    - Expose status, settings get/set and translation start/stop over HTTP
    - Map settings validation failures to HTTP errors

Endpoints (prefix /api/v1):
    GET  /health
    GET  /status
    GET  /settings
    GET  /settings/{key}
    PUT  /settings/{key}          body: {"value": "<raw value>"}
    POST /translation/start
    POST /translation/stop

When CONTROL_API_TOKEN is configured every endpoint except /health requires
``Authorization: Bearer <token>``.
"""

import logging
import secrets

from fastapi import APIRouter, Body, Depends, HTTPException, Request

from voicerelay.relay import VoiceRelay
from voicerelay.settings import SETTING_KEYS, SettingError, UnknownSettingError

logger = logging.getLogger("voicerelay.api.control")

router = APIRouter(prefix="/api/v1")


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def get_relay(request: Request) -> VoiceRelay:
    return request.app.state.relay


def require_token(request: Request) -> None:
    expected = request.app.state.config.control_api_token
    if not expected:
        return
    header = request.headers.get("authorization", "")
    scheme, _, supplied = header.partition(" ")
    if scheme.lower() != "bearer" or not secrets.compare_digest(supplied.strip(), expected):
        raise HTTPException(status_code=401, detail="Invalid or missing control token.")


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("/health")
async def health():
    return {"status": "ok"}


@router.get("/status", dependencies=[Depends(require_token)])
async def status(relay: VoiceRelay = Depends(get_relay)):
    body = relay.status()
    body["summary"] = relay.render_status()
    return body


@router.get("/settings", dependencies=[Depends(require_token)])
async def list_settings(relay: VoiceRelay = Depends(get_relay)):
    return {"settings": relay.settings_store.as_dict(), "keys": SETTING_KEYS}


@router.get("/settings/{key}", dependencies=[Depends(require_token)])
async def get_setting(key: str, relay: VoiceRelay = Depends(get_relay)):
    try:
        value = relay.settings_store.get(key)
    except UnknownSettingError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return {"key": key.strip().lower(), "value": value}


@router.put("/settings/{key}", dependencies=[Depends(require_token)])
async def set_setting(
    key: str,
    value: str = Body(..., embed=True),
    relay: VoiceRelay = Depends(get_relay),
):
    try:
        rendered = relay.settings_store.apply(key, value)
    except UnknownSettingError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except SettingError as exc:
        logger.info("Rejected setting %s=%r: %s", key, value, exc)
        raise HTTPException(status_code=422, detail=f"Invalid setting: {exc}")
    return {"key": key.strip().lower(), "value": rendered}


@router.post("/translation/start", dependencies=[Depends(require_token)])
async def start_translation(relay: VoiceRelay = Depends(get_relay)):
    relay.start_translation()
    return {"voice_translation": "ON", "message": "Voice translation started."}


@router.post("/translation/stop", dependencies=[Depends(require_token)])
async def stop_translation(relay: VoiceRelay = Depends(get_relay)):
    relay.stop_translation()
    return {"voice_translation": "OFF", "message": "Voice translation stopped."}
