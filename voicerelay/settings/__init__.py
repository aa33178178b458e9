# voicerelay/settings/__init__.py
# ================================
# Runtime Settings — VoiceRelay
#
# A single encapsulated store of live-tunable parameters (models, silence
# threshold, PCM size bounds, routing tables, feedback toggle).
#
# Public API:
#   SettingsStore.apply(key, value) → rendered value
#   SettingsStore.current           → immutable RuntimeSettings snapshot

from voicerelay.settings.parsers import SettingError, UnknownSettingError  # noqa: F401
from voicerelay.settings.store import (                                    # noqa: F401
    SETTING_KEYS,
    RuntimeSettings,
    SettingsStore,
)

__all__ = [
    "SETTING_KEYS",
    "RuntimeSettings",
    "SettingError",
    "SettingsStore",
    "UnknownSettingError",
]
