#!/usr/bin/env python3
"""
Shared fixtures: a manual timer scheduler, scripted capture sessions and a
fully wired voice pipeline over an in-memory store and virtual player.
"""

import logging

import pytest

from config import VoiceConfig
from vidvoice.core.command_dispatcher import CommandDispatcher
from vidvoice.core.custom_commands import CustomCommandRegistry
from vidvoice.core.listening import EventType, ListeningEvent, ListeningStateMachine
from vidvoice.core.matcher import CommandMatcher
from vidvoice.core.player import PlayerControl, VirtualPlayer
from vidvoice.data.command_catalog import get_catalog
from vidvoice.services.settings import VoiceSettings
from vidvoice.services.storage import MemoryStore
from vidvoice.utils.event_bus import EventBus


class FakeTimer:
    def __init__(self, when, callback):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Scheduler whose clock only moves when the test calls advance()."""

    def __init__(self):
        self.now = 0.0
        self.timers = []

    def call_later(self, delay, callback):
        timer = FakeTimer(self.now + delay, callback)
        self.timers.append(timer)
        return timer

    def pending(self):
        return [t for t in self.timers if not t.cancelled]

    def advance(self, seconds):
        target = self.now + seconds
        while True:
            due = sorted((t for t in self.pending() if t.when <= target), key=lambda t: t.when)
            if not due:
                break
            timer = due[0]
            self.timers.remove(timer)
            self.now = timer.when
            timer.callback()
        self.now = target


class FakeSession:
    """Capture session driven by the test."""

    def __init__(self, session_id, emit):
        self.session_id = session_id
        self.emit = emit
        self.active = False
        self.closed = False
        self.continuous = None
        self.language = None

    def open(self, continuous, language):
        self.continuous = continuous
        self.language = language
        self.active = True

    def close(self):
        self.active = False
        self.closed = True

    def interim(self, text, confidence):
        self.emit(ListeningEvent(EventType.INTERIM_RESULT, transcript=text,
                                 confidence=confidence, session_id=self.session_id))

    def final(self, text, confidence=0.85):
        self.emit(ListeningEvent(EventType.FINAL_RESULT, transcript=text,
                                 confidence=confidence, session_id=self.session_id))

    def end(self):
        self.active = False
        self.emit(ListeningEvent(EventType.SESSION_END, session_id=self.session_id))

    def error(self, code):
        self.active = False
        self.emit(ListeningEvent(EventType.SESSION_ERROR, error=code, session_id=self.session_id))


class SessionFactory:
    def __init__(self):
        self.sessions = []

    def __call__(self, session_id, emit):
        session = FakeSession(session_id, emit)
        self.sessions.append(session)
        return session

    @property
    def last(self):
        return self.sessions[-1]


@pytest.fixture
def logger():
    return logging.getLogger("vidvoice.tests")


@pytest.fixture
def catalog():
    return get_catalog()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def engine():
    return VirtualPlayer(duration=100.0)


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def settings(store, logger):
    return VoiceSettings(store, logger)


@pytest.fixture
def dispatcher(engine, logger, settings, event_bus):
    return CommandDispatcher(PlayerControl(engine, logger), logger, settings, event_bus)


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def sessions():
    return SessionFactory()


@pytest.fixture
def voice_config():
    return VoiceConfig()


@pytest.fixture
def machine_factory(voice_config, logger, catalog, dispatcher, store, settings, scheduler, sessions):
    """Build a state machine; keyword arguments override the defaults."""
    def build(**overrides):
        options = dict(
            custom_commands=CustomCommandRegistry(store, logger),
            session_factory=sessions,
            settings=settings,
            scheduler=scheduler,
        )
        options.update(overrides)
        return ListeningStateMachine(
            voice_config, logger, CommandMatcher(catalog, logger), dispatcher, **options
        )
    return build
