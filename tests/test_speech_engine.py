#!/usr/bin/env python3
"""
Tests for microphone capture sessions
"""

import logging
import threading
import time
from unittest.mock import MagicMock, Mock

import speech_recognition as sr

from config import TranscriptionConfig, VoiceConfig
from vidvoice.core.listening import EventType
from vidvoice.core.speech_engine import MicrophoneCaptureSession, SpeechEngine
from vidvoice.services.transcription import TranscriptionClient, TranscriptionError

logger = logging.getLogger("vidvoice.tests")


def _run_session(recognizer, transcriber, continuous=False):
    events = []
    session = MicrophoneCaptureSession(
        7, events.append, recognizer, MagicMock(), transcriber, VoiceConfig(), logger
    )
    session.open(continuous=continuous, language="en")
    session._thread.join(timeout=2.0)
    return session, events


def test_final_result_then_session_end():
    recognizer = Mock()
    recognizer.listen.return_value = Mock(get_wav_data=Mock(return_value=b"wav"))
    transcriber = Mock()
    transcriber.transcribe.return_value = "pause"

    session, events = _run_session(recognizer, transcriber)

    assert [e.type for e in events] == [EventType.FINAL_RESULT, EventType.SESSION_END]
    assert events[0].transcript == "pause"
    assert events[0].confidence == 0.85
    assert all(e.session_id == 7 for e in events)
    assert not session.active
    transcriber.transcribe.assert_called_once_with(b"wav", "en")


def test_listen_timeout_reports_no_speech():
    recognizer = Mock()
    recognizer.listen.side_effect = sr.WaitTimeoutError("timeout")

    session, events = _run_session(recognizer, Mock())

    assert len(events) == 1
    assert events[0].type == EventType.SESSION_ERROR
    assert events[0].error == "no-speech"


def test_transcription_failure_reports_error():
    recognizer = Mock()
    recognizer.listen.return_value = Mock(get_wav_data=Mock(return_value=b"wav"))
    transcriber = Mock()
    transcriber.transcribe.side_effect = TranscriptionError("503")

    session, events = _run_session(recognizer, transcriber)

    assert [e.error for e in events] == ["transcription"]


def test_microphone_error_reports_audio_capture():
    recognizer = Mock()
    recognizer.listen.side_effect = OSError("no device")

    session, events = _run_session(recognizer, Mock())

    assert [e.error for e in events] == ["audio-capture"]


def test_closed_session_emits_nothing():
    events = []
    session = MicrophoneCaptureSession(1, events.append, Mock(), MagicMock(), Mock(), VoiceConfig(), logger)
    session.close()
    assert events == []
    assert not session.active


def test_engine_without_capture_creates_no_session():
    engine = SpeechEngine(VoiceConfig(), logger, TranscriptionClient(TranscriptionConfig(), logger))
    assert engine.create_session(1, lambda event: None) is None
    assert engine.speak("hello") is False


class SingleUseMicrophone:
    """Audio source that, like sr.Microphone, cannot be entered twice at once."""

    def __init__(self):
        self.stream = None
        self.entered = threading.Event()

    def __enter__(self):
        assert self.stream is None, "This audio source is already inside a context manager"
        self.stream = object()
        self.entered.set()
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.stream = None


class QuietRecognizer:
    """Never hears speech; each listen call waits out its timeout."""

    def __init__(self):
        self.calls = 0

    def listen(self, source, timeout=None, phrase_time_limit=None):
        self.calls += 1
        time.sleep(timeout)
        raise sr.WaitTimeoutError("listening timed out while waiting for phrase to start")


def test_close_releases_microphone_while_waiting_for_speech():
    microphone = SingleUseMicrophone()
    events = []
    session = MicrophoneCaptureSession(
        1, events.append, QuietRecognizer(), microphone, Mock(), VoiceConfig(listen_timeout_seconds=5), logger
    )
    session.open(continuous=True, language="en")
    assert microphone.entered.wait(timeout=2.0)

    started = time.monotonic()
    session.close()

    assert microphone.stream is None
    assert time.monotonic() - started < 2.0
    assert not session.active
    assert events == []


def test_session_opened_after_close_can_listen():
    microphone = SingleUseMicrophone()
    first = MicrophoneCaptureSession(
        1, lambda event: None, QuietRecognizer(), microphone, Mock(), VoiceConfig(), logger
    )
    first.open(continuous=True, language="en")
    assert microphone.entered.wait(timeout=2.0)
    first.close()

    recognizer = Mock()
    recognizer.listen.return_value = Mock(get_wav_data=Mock(return_value=b"wav"))
    transcriber = Mock()
    transcriber.transcribe.return_value = "play"
    events = []
    second = MicrophoneCaptureSession(2, events.append, recognizer, microphone, transcriber, VoiceConfig(), logger)
    second.open(continuous=False, language="en")
    second._thread.join(timeout=2.0)

    recognizer.listen.assert_called_once()
    assert [e.type for e in events] == [EventType.FINAL_RESULT, EventType.SESSION_END]
    assert not second.active


def test_busy_microphone_reports_session_error():
    microphone = SingleUseMicrophone()
    microphone.stream = object()
    events = []
    session = MicrophoneCaptureSession(3, events.append, Mock(), microphone, Mock(), VoiceConfig(), logger)
    session.open(continuous=True, language="en")
    session._thread.join(timeout=2.0)

    assert [(e.type, e.error) for e in events] == [(EventType.SESSION_ERROR, "unknown")]
    assert not session.active
