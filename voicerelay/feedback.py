"""
voicerelay/feedback.py
=======================
Text Feedback — VoiceRelay

Posts a short disclosure of each spoken translation ("[en->ro] ...") to the
configured control webhook. Purely informational: failures are logged and
never affect playback or routing.
"""

import logging

import aiohttp

logger = logging.getLogger("voicerelay.feedback")

MAX_MESSAGE_CHARS = 1900
REQUEST_TIMEOUT_S = 30


async def post_feedback(webhook_url: str, text: str) -> bool:
    """
    POST ``{"content": text}`` to ``webhook_url``.

    Returns:
        True if the webhook answered with a 2xx status.
    """
    if not webhook_url:
        logger.debug("FEEDBACK_WEBHOOK_URL not configured; skipping POST.")
        return False

    payload = {"content": str(text or "")[:MAX_MESSAGE_CHARS]}
    try:
        async with aiohttp.ClientSession() as session:
            async with session.post(
                webhook_url,
                json=payload,
                headers={"Content-Type": "application/json"},
                timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT_S),
            ) as resp:
                logger.debug("Feedback POST to %s returned status %d", webhook_url, resp.status)
                return 200 <= resp.status < 300
    except Exception as exc:
        logger.warning("Feedback POST failed: %s", exc)
        return False
