"""
voicerelay/nlp/translator.py
=============================
Translator — VoiceRelay

Responsibility:
    - Send transcribed text plus its routing context to OpenAI chat
      completions, asking for a strict JSON routing/translation object
    - Hand the raw reply to the router for validation

The model is asked for:
    {"detected_language", "target_language", "translated_text", "should_reply"}
but its answer is never trusted: router.build_result re-resolves the target
locally and recomputes eligibility.

This module does NOT:
    - Perform STT or speech synthesis
    - Decide eligibility on its own
"""

import json
import logging
import os

from openai import OpenAI

from voicerelay.nlp.router import TranslationResult, TranslationRoute, build_result
from voicerelay.openai_retry import with_retry

logger = logging.getLogger("voicerelay.nlp.translator")


# ---------------------------------------------------------------------------
# OpenAI prompt: strict translation router
# ---------------------------------------------------------------------------

_SYSTEM_PROMPT: str = " ".join([
    "You are a strict translation router.",
    "Return ONLY valid JSON (no markdown) with this exact schema:",
    '{"detected_language":"string","target_language":"string",'
    '"translated_text":"string","should_reply":true|false}',
    "Rules:",
    "1) Detect input language and return a concise lowercase language token "
    "(for example: en, ro, ru, fr, de, es, pt-br).",
    "2) Read routing_config from user message JSON. Priority: "
    "forced_target_language first; if empty then use "
    "language_pairs[detected_language].",
    '3) If target language cannot be resolved, set should_reply=false and translated_text="".',
    '4) If detected_language equals target_language, set should_reply=false and translated_text="".',
    "5) If should_reply=true, translate naturally into target_language.",
    "6) Keep names, numbers and meaning intact.",
])


def _build_user_message(text: str, route: TranslationRoute) -> str:
    return json.dumps(
        {"routing_config": route.to_payload(), "text": text},
        ensure_ascii=False,
    )


@with_retry
def _create_completion(client: OpenAI, **kwargs):
    return client.chat.completions.create(**kwargs)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def translate(text: str, route: TranslationRoute, model: str) -> TranslationResult:
    """
    Detect the language of ``text`` and translate it according to ``route``.

    Args:
        text:  Transcribed utterance text (non-empty).
        route: Forced target and language-pair table for this speaker.
        model: Chat model identifier.

    Returns:
        Validated TranslationResult. Malformed model output yields a result
        with ``should_reply=False`` rather than an exception.

    Raises:
        RuntimeError: If the API key is missing or the API call fails.
    """
    api_key = os.environ.get("OPENAI_API_KEY")
    if not api_key:
        raise RuntimeError("OPENAI_API_KEY environment variable is not set.")

    client = OpenAI(api_key=api_key, max_retries=0)

    try:
        response = _create_completion(
            client,
            model=model,
            temperature=0,  # Deterministic routing for identical inputs
            response_format={"type": "json_object"},
            messages=[
                {"role": "system", "content": _SYSTEM_PROMPT},
                {"role": "user", "content": _build_user_message(text, route)},
            ],
        )
    except Exception as exc:
        raise RuntimeError(f"OpenAI translation failed: {exc}") from exc

    try:
        raw_content = response.choices[0].message.content or ""
    except (AttributeError, IndexError, TypeError):
        raw_content = ""

    logger.debug("OpenAI raw translation response: %s", raw_content)

    return build_result(raw_content, route)
