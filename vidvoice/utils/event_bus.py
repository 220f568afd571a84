#!/usr/bin/env python3
"""
VidVoice Event Bus

Topic based publish/subscribe for one-way notifications, such as the
voice_command broadcast sent after every dispatched command.
"""

import threading
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

VOICE_COMMAND = "voice_command"

Handler = Callable[[Dict[str, Any]], None]


class EventBus:
    """Delivers each published payload to the topic's handlers in subscription order."""

    def __init__(self):
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, topic: str, handler: Handler):
        with self._lock:
            self._handlers[topic].append(handler)

    def unsubscribe(self, topic: str, handler: Handler):
        with self._lock:
            if handler in self._handlers.get(topic, []):
                self._handlers[topic].remove(handler)

    def publish(self, topic: str, payload: Optional[Dict[str, Any]] = None) -> int:
        """Call every handler for ``topic``; returns how many were called."""
        with self._lock:
            handlers = list(self._handlers.get(topic, []))

        for handler in handlers:
            handler(dict(payload or {}))
        return len(handlers)
