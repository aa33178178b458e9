"""
tests/test_router.py
=====================
Translation Router Tests — VoiceRelay

Tests verify:
    1. Target resolution priority (speaker → default → language pair)
    2. Defensive payload parsing (fences, invalid JSON, non-objects)
    3. Eligibility: unknown/same/unresolved languages never produce replies
    4. Translator request shape with a mocked OpenAI client

All tests are OFFLINE (the OpenAI client is mocked).
"""

import json
import os
import sys
import unittest
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

# Ensure project root is on sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from voicerelay.nlp.router import (
    UNKNOWN_LANGUAGE,
    TranslationRoute,
    build_result,
    build_route,
    parse_translation_payload,
    resolve_target,
)
from voicerelay.nlp.translator import translate
from voicerelay.settings import RuntimeSettings

PAIRS = {"en": "ro", "ro": "en"}


def _payload(**fields) -> str:
    return json.dumps(fields)


# ===================================================================
# 1. Target resolution
# ===================================================================


class TestTargetResolution(unittest.TestCase):

    def test_speaker_target_beats_default(self):
        settings = RuntimeSettings(
            default_target_language="de",
            user_target_languages={"alice": "fr"},
        )
        self.assertEqual(build_route("alice", settings).forced_target_language, "fr")
        self.assertEqual(build_route("bob", settings).forced_target_language, "de")

    def test_no_forced_target(self):
        route = build_route("bob", RuntimeSettings(language_pairs=PAIRS))
        self.assertEqual(route.forced_target_language, "")
        self.assertEqual(route.language_pairs, PAIRS)

    def test_forced_target_beats_language_pairs(self):
        self.assertEqual(resolve_target("en", "fr", PAIRS), "fr")

    def test_language_pair_lookup(self):
        self.assertEqual(resolve_target("ro", "", PAIRS), "en")

    def test_unresolvable(self):
        self.assertEqual(resolve_target("de", "", PAIRS), "")
        self.assertEqual(resolve_target(UNKNOWN_LANGUAGE, "", PAIRS), "")


# ===================================================================
# 2. Payload parsing
# ===================================================================


class TestPayloadParsing(unittest.TestCase):

    def test_plain_json(self):
        self.assertEqual(parse_translation_payload('{"a": 1}'), {"a": 1})

    def test_fenced_json(self):
        raw = '```json\n{"detected_language": "en"}\n```'
        self.assertEqual(parse_translation_payload(raw), {"detected_language": "en"})

    def test_bare_fence(self):
        raw = '```\n{"detected_language": "ro"}\n```'
        self.assertEqual(parse_translation_payload(raw)["detected_language"], "ro")

    def test_empty_payload(self):
        for raw in ("", "   ", None):
            parsed = parse_translation_payload(raw)
            self.assertFalse(parsed["should_reply"])
            self.assertEqual(parsed["detected_language"], UNKNOWN_LANGUAGE)

    def test_invalid_json(self):
        with self.assertLogs("voicerelay.nlp.router", level="WARNING"):
            parsed = parse_translation_payload("not json at all")
        self.assertFalse(parsed["should_reply"])

    def test_non_object_json(self):
        with self.assertLogs("voicerelay.nlp.router", level="WARNING"):
            parsed = parse_translation_payload('["en", "ro"]')
        self.assertEqual(parsed["translated_text"], "")


# ===================================================================
# 3. Result normalization / eligibility
# ===================================================================


class TestBuildResult(unittest.TestCase):

    def setUp(self):
        self.route = TranslationRoute(forced_target_language="", language_pairs=PAIRS)

    def test_pair_translation_eligible(self):
        """Scenario A: English utterance routed to Romanian."""
        raw = _payload(
            detected_language="EN",
            target_language="ro",
            translated_text="  Salut, ce faci?  ",
            should_reply=True,
        )
        result = build_result(raw, self.route)
        self.assertEqual(result.detected_language, "en")
        self.assertEqual(result.target_language, "ro")
        self.assertEqual(result.translated_text, "Salut, ce faci?")
        self.assertTrue(result.should_reply)
        self.assertEqual(result.label, "[en->ro]")

    def test_same_language_not_eligible(self):
        """Scenario B: forced target equals the detected language."""
        route = TranslationRoute(forced_target_language="en", language_pairs=PAIRS)
        raw = _payload(
            detected_language="en",
            target_language="en",
            translated_text="Hello",
            should_reply=True,
        )
        result = build_result(raw, route)
        self.assertEqual(result.target_language, "en")
        self.assertFalse(result.should_reply)

    def test_service_target_is_ignored(self):
        raw = _payload(
            detected_language="en",
            target_language="fr",
            translated_text="Bonjour",
            should_reply=True,
        )
        result = build_result(raw, self.route)
        self.assertEqual(result.target_language, "ro")

    def test_unknown_language_not_eligible(self):
        raw = _payload(
            detected_language="???",
            translated_text="something",
            should_reply=True,
        )
        result = build_result(raw, TranslationRoute(forced_target_language="fr"))
        self.assertEqual(result.detected_language, UNKNOWN_LANGUAGE)
        self.assertFalse(result.should_reply)

    def test_unresolved_target_not_eligible(self):
        raw = _payload(detected_language="de", translated_text="Hallo", should_reply=True)
        result = build_result(raw, self.route)
        self.assertEqual(result.target_language, "")
        self.assertFalse(result.should_reply)

    def test_empty_text_not_eligible(self):
        raw = _payload(detected_language="en", translated_text="   ", should_reply=True)
        self.assertFalse(build_result(raw, self.route).should_reply)

    def test_service_declined(self):
        raw = _payload(detected_language="en", translated_text="Salut", should_reply=False)
        self.assertFalse(build_result(raw, self.route).should_reply)

    def test_truthy_flag_counts_as_reply(self):
        for flag in (1, "true", "yes"):
            raw = _payload(detected_language="en", translated_text="Salut", should_reply=flag)
            self.assertTrue(build_result(raw, self.route).should_reply, flag)

    def test_missing_or_falsy_flag_blocks_reply(self):
        for flag in (0, "", None):
            raw = _payload(detected_language="en", translated_text="Salut", should_reply=flag)
            self.assertFalse(build_result(raw, self.route).should_reply, flag)
        raw = _payload(detected_language="en", translated_text="Salut")
        self.assertFalse(build_result(raw, self.route).should_reply)

    def test_non_string_text(self):
        raw = _payload(detected_language="en", translated_text=42, should_reply=True)
        result = build_result(raw, self.route)
        self.assertEqual(result.translated_text, "")
        self.assertFalse(result.should_reply)


# ===================================================================
# 4. Translator (mocked OpenAI)
# ===================================================================


def _completion(content):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))]
    )


@patch.dict(os.environ, {"OPENAI_API_KEY": "sk-test"})
class TestTranslator(unittest.TestCase):

    @patch("voicerelay.nlp.translator.OpenAI")
    def test_request_shape(self, mock_openai):
        client = MagicMock()
        client.chat.completions.create.return_value = _completion(
            _payload(
                detected_language="en",
                target_language="ro",
                translated_text="Salut",
                should_reply=True,
            )
        )
        mock_openai.return_value = client

        route = TranslationRoute(forced_target_language="", language_pairs=PAIRS)
        result = translate("Hello", route, "gpt-4.1-mini")

        self.assertTrue(result.should_reply)
        self.assertEqual(result.translated_text, "Salut")

        kwargs = client.chat.completions.create.call_args.kwargs
        self.assertEqual(kwargs["model"], "gpt-4.1-mini")
        self.assertEqual(kwargs["temperature"], 0)
        self.assertEqual(kwargs["response_format"], {"type": "json_object"})
        self.assertEqual(kwargs["messages"][0]["role"], "system")
        user_message = json.loads(kwargs["messages"][1]["content"])
        self.assertEqual(user_message["text"], "Hello")
        self.assertEqual(
            user_message["routing_config"],
            {"forced_target_language": "", "language_pairs": PAIRS},
        )

    @patch("voicerelay.nlp.translator.OpenAI")
    def test_empty_content_is_no_result(self, mock_openai):
        client = MagicMock()
        client.chat.completions.create.return_value = _completion(None)
        mock_openai.return_value = client

        result = translate("Hello", TranslationRoute(language_pairs=PAIRS), "m")
        self.assertFalse(result.should_reply)

    @patch("voicerelay.nlp.translator.OpenAI")
    def test_api_failure_raises_runtime_error(self, mock_openai):
        client = MagicMock()
        client.chat.completions.create.side_effect = ValueError("bad request")
        mock_openai.return_value = client

        with self.assertRaises(RuntimeError):
            translate("Hello", TranslationRoute(language_pairs=PAIRS), "m")

    def test_missing_key_raises(self):
        with patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(RuntimeError):
                translate("Hello", TranslationRoute(), "m")


if __name__ == "__main__":
    unittest.main(verbosity=2)
