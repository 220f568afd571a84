#!/usr/bin/env python3
"""
VidVoice Settings

Persisted voice-control settings: the always-listening flag and the
command usage counter, stored as one JSON object under a single key.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from vidvoice.services.storage import KeyValueStore

SETTINGS_KEY = "voiceControlSettings"


@dataclass
class VoiceSettingsData:
    always_listening: bool = False
    usage_count: int = 0


class VoiceSettings:
    """Read-modify-write accessor for the settings record (last writer wins)."""

    def __init__(self, store: KeyValueStore, logger: logging.Logger):
        self.store = store
        self.logger = logger
        self._lock = threading.Lock()

    def load(self) -> VoiceSettingsData:
        raw = self.store.get_json(SETTINGS_KEY, fallback=None)
        if not isinstance(raw, dict):
            return VoiceSettingsData()

        always_listening = raw.get("alwaysListening", False)
        usage_count = raw.get("usageCount", 0)

        if not isinstance(always_listening, bool):
            self.logger.warning(f"Ignoring invalid alwaysListening value: {always_listening!r}")
            always_listening = False
        if isinstance(usage_count, bool) or not isinstance(usage_count, int) or usage_count < 0:
            self.logger.warning(f"Ignoring invalid usageCount value: {usage_count!r}")
            usage_count = 0

        return VoiceSettingsData(always_listening=always_listening, usage_count=usage_count)

    def save(self, always_listening: Optional[bool] = None,
             usage_count: Optional[int] = None) -> VoiceSettingsData:
        """Update the given fields and write the whole record back."""
        with self._lock:
            current = self.load()
            if always_listening is not None:
                current.always_listening = bool(always_listening)
            if usage_count is not None:
                current.usage_count = max(0, int(usage_count))

            self.store.set_json(SETTINGS_KEY, {
                "alwaysListening": current.always_listening,
                "usageCount": current.usage_count,
            })
            return current

    def increment_usage(self, weight: int = 1) -> int:
        with self._lock:
            current = self.load()
            current.usage_count += max(0, weight)
            self.store.set_json(SETTINGS_KEY, {
                "alwaysListening": current.always_listening,
                "usageCount": current.usage_count,
            })
            return current.usage_count
