# voicerelay/nlp/__init__.py
# ===========================
# Translation Layer — VoiceRelay
#
#   - router.py:     target resolution, payload parsing, eligibility
#   - translator.py: OpenAI chat call producing the raw routing payload
#
# Public API:
#   translate(text, route, model) → TranslationResult

from voicerelay.nlp.router import (  # noqa: F401
    TranslationResult,
    TranslationRoute,
    build_route,
)
from voicerelay.nlp.translator import translate  # noqa: F401

__all__ = [
    "TranslationResult",
    "TranslationRoute",
    "build_route",
    "translate",
]
