#!/usr/bin/env python3
"""
VidVoice Shortcut Bridge

Lets a host's system assistant (Siri shortcuts and the like) trigger
player intents directly, without going through capture and matching.
"""

import logging
from typing import Any, Dict, List, Optional

from vidvoice.core.command_dispatcher import CommandDispatcher, ExecutionResult, INTENT_ACTIONS
from vidvoice.data.command_catalog import CommandCatalog, DEFAULT_LANGUAGE
from vidvoice.services.storage import KeyValueStore
from vidvoice.utils.event_bus import EventBus, VOICE_COMMAND

SHORTCUTS_KEY = "shortcutSettings"


class ShortcutBridge:
    """Routes system-level shortcut intents to the dispatcher."""

    def __init__(self, dispatcher: CommandDispatcher, event_bus: EventBus,
                 logger: logging.Logger, store: Optional[KeyValueStore] = None):
        self.dispatcher = dispatcher
        self.event_bus = event_bus
        self.logger = logger
        self.store = store

        self.last_event: Optional[Dict[str, Any]] = None
        self.registered: List[Dict[str, str]] = []

        settings = store.get_json(SHORTCUTS_KEY, fallback={}) if store else {}
        self.enabled = bool(settings.get("enabled", False)) if isinstance(settings, dict) else False

        self.event_bus.subscribe(VOICE_COMMAND, self._on_voice_command)

    def _on_voice_command(self, payload: Dict[str, Any]):
        self.last_event = dict(payload)

    def _persist(self):
        if self.store is not None:
            self.store.set_json(SHORTCUTS_KEY, {"enabled": self.enabled})

    def enable(self):
        self.enabled = True
        self._persist()
        self.logger.info("Shortcut integration enabled")

    def disable(self):
        self.enabled = False
        self._persist()
        self.logger.info("Shortcut integration disabled")

    def register_shortcuts(self, catalog: CommandCatalog,
                           language: str = DEFAULT_LANGUAGE) -> List[Dict[str, str]]:
        """Suggested invocation phrase per intent, for the host to register."""
        self.registered = []
        for command in catalog.intents:
            if command.intent not in INTENT_ACTIONS:
                continue
            phrases = command.utterances_for(language)
            if phrases:
                self.registered.append({"intent": command.intent, "phrase": phrases[0]})
        self.logger.info(f"Prepared {len(self.registered)} shortcuts")
        return self.registered

    def handle(self, intent_name: str) -> ExecutionResult:
        """Run a shortcut intent such as 'PauseVideoIntent'."""
        if not self.enabled:
            self.logger.info(f"Shortcut '{intent_name}' ignored, integration disabled")
            return ExecutionResult(success=False, message="Shortcuts are disabled", error="disabled")

        if intent_name not in INTENT_ACTIONS:
            self.logger.warning(f"Unknown shortcut intent: {intent_name}")
            return ExecutionResult(success=False, message=f"Unknown shortcut: {intent_name}",
                                   error="unknown_intent")

        return self.dispatcher.execute(intent_name, source="shortcut")

    def shutdown(self):
        self.event_bus.unsubscribe(VOICE_COMMAND, self._on_voice_command)
