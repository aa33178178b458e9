"""
tests/test_settings.py
=======================
Runtime Settings & Startup Config Tests — VoiceRelay

Test categories:
    1. Value parsers (language tokens, pairs, speaker targets, booleans)
    2. SettingsStore: validated per-key apply, unknown keys, snapshot swap
    3. load_config: required credentials, lenient parsing, fatal cases

All tests are OFFLINE.
"""

import os
import sys
import unittest

# Ensure project root is on sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from voicerelay.config import ConfigError, load_config
from voicerelay.settings import (
    SETTING_KEYS,
    RuntimeSettings,
    SettingError,
    SettingsStore,
    UnknownSettingError,
)
from voicerelay.settings.parsers import (
    is_clear_value,
    normalize_language_token,
    parse_boolean,
    parse_language_pairs,
    parse_language_pairs_strict,
    parse_positive_int,
    parse_positive_int_strict,
    parse_speaker_targets,
    parse_speaker_targets_strict,
)


# ===================================================================
# 1. Parsers
# ===================================================================


class TestLanguageTokens(unittest.TestCase):

    def test_normalizes_case_and_underscore(self):
        self.assertEqual(normalize_language_token(" PT_BR "), "pt-br")

    def test_rejects_single_letter(self):
        self.assertEqual(normalize_language_token("e"), "")

    def test_rejects_leading_digit(self):
        self.assertEqual(normalize_language_token("1en"), "")

    def test_rejects_punctuation(self):
        self.assertEqual(normalize_language_token("en!"), "")

    def test_none_is_empty(self):
        self.assertEqual(normalize_language_token(None), "")


class TestLenientParsers(unittest.TestCase):

    def test_pairs_skip_malformed_and_identity(self):
        pairs = parse_language_pairs("en:ro, ro:en, bad, fr:fr, de:")
        self.assertEqual(pairs, {"en": "ro", "ro": "en"})

    def test_speaker_targets_skip_invalid(self):
        targets = parse_speaker_targets("alice:fr,bad id:de,bob:??,carol:EN")
        self.assertEqual(targets, {"alice": "fr", "carol": "en"})

    def test_positive_int_fallback(self):
        self.assertEqual(parse_positive_int("abc", 7), 7)
        self.assertEqual(parse_positive_int("-3", 7), 7)
        self.assertEqual(parse_positive_int(" 42 ", 7), 42)
        self.assertEqual(parse_positive_int(None, 7), 7)

    def test_boolean_fallback(self):
        self.assertTrue(parse_boolean("YES", False))
        self.assertFalse(parse_boolean("off", True))
        self.assertTrue(parse_boolean("maybe", True))
        self.assertFalse(parse_boolean(None, False))


class TestStrictParsers(unittest.TestCase):

    def test_pairs_clear(self):
        for value in ("clear", "-", "none", ""):
            self.assertEqual(parse_language_pairs_strict(value), {})
            self.assertTrue(is_clear_value(value))

    def test_pairs_missing_colon(self):
        with self.assertRaises(SettingError):
            parse_language_pairs_strict("en-ro")

    def test_pairs_identity_rejected(self):
        with self.assertRaises(SettingError):
            parse_language_pairs_strict("en:en")

    def test_pairs_invalid_token(self):
        with self.assertRaises(SettingError):
            parse_language_pairs_strict("en:r")

    def test_speaker_targets_invalid_id(self):
        with self.assertRaises(SettingError):
            parse_speaker_targets_strict("bad id:fr")

    def test_positive_int_rejects_zero(self):
        with self.assertRaises(SettingError):
            parse_positive_int_strict("0")
        with self.assertRaises(SettingError):
            parse_positive_int_strict("ten")


# ===================================================================
# 2. SettingsStore
# ===================================================================


class TestSettingsStore(unittest.TestCase):

    def setUp(self):
        self.store = SettingsStore(RuntimeSettings())

    def test_apply_language_pairs(self):
        rendered = self.store.apply("language_pairs", "ro:en, EN:ro")
        self.assertEqual(rendered, "ro:en,en:ro")
        self.assertEqual(self.store.current.language_pairs, {"ro": "en", "en": "ro"})

    def test_apply_clears_default_target(self):
        self.store.apply("default_target_language", "fr")
        self.assertEqual(self.store.current.default_target_language, "fr")
        rendered = self.store.apply("default_target_language", "clear")
        self.assertEqual(rendered, "-")
        self.assertEqual(self.store.current.default_target_language, "")

    def test_apply_user_targets(self):
        self.store.apply("user_target_languages", "alice:fr,bob:de")
        self.assertEqual(
            self.store.current.user_target_languages, {"alice": "fr", "bob": "de"}
        )

    def test_apply_allowed_speakers(self):
        rendered = self.store.apply("allowed_speaker_ids", "bob,alice")
        self.assertEqual(rendered, "alice,bob")
        self.assertEqual(self.store.current.allowed_speaker_ids, frozenset({"alice", "bob"}))

    def test_apply_boolean_and_format(self):
        self.assertEqual(self.store.apply("text_feedback", "on"), "on")
        self.assertTrue(self.store.current.text_feedback)
        self.assertEqual(self.store.apply("tts_format", "MP3"), "mp3")

    def test_invalid_tts_format(self):
        with self.assertRaises(SettingError):
            self.store.apply("tts_format", "ogg")

    def test_key_is_case_insensitive(self):
        self.assertEqual(self.store.apply("Silence_MS", "900"), "900")
        self.assertEqual(self.store.current.silence_ms, 900)

    def test_unknown_key_lists_valid_keys(self):
        with self.assertRaises(UnknownSettingError) as ctx:
            self.store.apply("volume", "11")
        message = str(ctx.exception)
        for key in SETTING_KEYS:
            self.assertIn(key, message)

    def test_unknown_key_is_a_setting_error(self):
        with self.assertRaises(SettingError):
            self.store.get("volume")

    def test_invalid_value_leaves_state_untouched(self):
        before = self.store.current
        with self.assertRaises(SettingError):
            self.store.apply("voice_min_pcm_bytes", "-1")
        self.assertIs(self.store.current, before)

    def test_min_above_max_rejected(self):
        self.store.apply("voice_max_pcm_bytes", "200000")
        with self.assertRaises(SettingError):
            self.store.apply("voice_min_pcm_bytes", "300000")
        self.assertEqual(self.store.current.voice_min_pcm_bytes, 96000)
        with self.assertRaises(SettingError):
            self.store.apply("voice_max_pcm_bytes", "1000")
        self.assertEqual(self.store.current.voice_max_pcm_bytes, 200000)

    def test_apply_swaps_snapshot(self):
        """A reader holding the old snapshot never sees the new value."""
        old = self.store.current
        self.store.apply("tts_voice", "nova")
        self.assertEqual(old.tts_voice, "alloy")
        self.assertEqual(self.store.current.tts_voice, "nova")
        self.assertIsNot(old, self.store.current)

    def test_snapshot_mappings_are_read_only(self):
        snapshot = self.store.current
        with self.assertRaises(TypeError):
            snapshot.language_pairs["de"] = "en"
        with self.assertRaises(TypeError):
            snapshot.user_target_languages["alice"] = "de"
        self.assertEqual(snapshot.language_pairs, {"en": "ro", "ro": "en"})

        self.store.apply("language_pairs", "en:de")
        self.assertEqual(self.store.current.language_pairs, {"en": "de"})
        self.assertEqual(snapshot.language_pairs, {"en": "ro", "ro": "en"})
        with self.assertRaises(TypeError):
            self.store.current.language_pairs["de"] = "en"

    def test_empty_string_setting_rejected(self):
        with self.assertRaises(SettingError):
            self.store.apply("tts_model", "   ")

    def test_as_dict_covers_every_key(self):
        rendered = self.store.as_dict()
        self.assertEqual(list(rendered), SETTING_KEYS)
        self.assertEqual(rendered["language_pairs"], "en:ro,ro:en")
        self.assertEqual(rendered["default_target_language"], "-")
        self.assertEqual(rendered["text_feedback"], "off")


# ===================================================================
# 3. load_config
# ===================================================================


class TestLoadConfig(unittest.TestCase):

    def test_missing_api_key_is_fatal(self):
        with self.assertRaises(ConfigError):
            load_config({})

    def test_defaults(self):
        config = load_config({"OPENAI_API_KEY": "sk-test"})
        self.assertEqual(config.openai_api_key, "sk-test")
        self.assertEqual(config.settings, RuntimeSettings())
        self.assertFalse(config.require_start_command)
        self.assertEqual(config.port, 8000)

    def test_invalid_tts_format_is_fatal(self):
        with self.assertRaises(ConfigError):
            load_config({"OPENAI_API_KEY": "sk-test", "OPENAI_TTS_FORMAT": "ogg"})

    def test_non_opus_format_warns(self):
        with self.assertLogs("voicerelay.config", level="WARNING"):
            config = load_config({"OPENAI_API_KEY": "sk-test", "OPENAI_TTS_FORMAT": "mp3"})
        self.assertEqual(config.settings.tts_format, "mp3")

    def test_min_above_max_is_fatal(self):
        with self.assertRaises(ConfigError):
            load_config({
                "OPENAI_API_KEY": "sk-test",
                "VOICE_MIN_PCM_BYTES": "5000",
                "VOICE_MAX_PCM_BYTES": "4000",
            })

    def test_lenient_values(self):
        config = load_config({
            "OPENAI_API_KEY": "sk-test",
            "LANGUAGE_PAIRS": "en:fr,oops",
            "SPEECH_SILENCE_MS": "not-a-number",
            "SPEAKER_TARGET_LANGUAGES": "alice:de",
            "VOICE_ALLOWED_SPEAKER_IDS": "alice, bob ,bad id",
            "REQUIRE_START_COMMAND": "true",
            "VOICE_TEXT_FEEDBACK": "1",
            "PLAYBACK_ACK_TIMEOUT_S": "zero",
        })
        self.assertEqual(config.settings.language_pairs, {"en": "fr"})
        self.assertEqual(config.settings.silence_ms, 1200)
        self.assertEqual(config.settings.user_target_languages, {"alice": "de"})
        self.assertEqual(config.settings.allowed_speaker_ids, frozenset({"alice", "bob"}))
        self.assertTrue(config.require_start_command)
        self.assertTrue(config.settings.text_feedback)
        self.assertEqual(config.playback_ack_timeout_s, 120.0)


if __name__ == "__main__":
    unittest.main(verbosity=2)
