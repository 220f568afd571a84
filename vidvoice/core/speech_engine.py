#!/usr/bin/env python3
"""
VidVoice Speech Engine

Microphone capture sessions and optional spoken feedback. Capture records
short clips with speech_recognition, sends them to the transcription
client and reports results back to the listening state machine as events.
Missing audio libraries make the related feature unavailable, never fatal.
"""

import logging
import threading
from typing import Callable, List, Optional

try:
    import speech_recognition as sr
except ImportError:
    sr = None

try:
    import pyttsx3
except ImportError:
    pyttsx3 = None

try:
    import pyaudio
except ImportError:
    pyaudio = None

from vidvoice.core.listening import EventType, ListeningEvent
from vidvoice.services.transcription import TranscriptionClient, TranscriptionError

TRANSCRIPT_CONFIDENCE = 0.85

# Longest wait inside one listen call while no speech has started
LISTEN_SLICE_SECONDS = 0.5


class CaptureSession:
    """One capture session; reports results through ``emit``."""

    def __init__(self, session_id: int, emit: Callable[[ListeningEvent], None]):
        self.session_id = session_id
        self.emit = emit
        self.active = False
        self.continuous = False
        self.language = "en"

    def open(self, continuous: bool, language: str):
        self.continuous = continuous
        self.language = language
        self.active = True

    def close(self):
        self.active = False

    def _send(self, event_type: EventType, **kwargs):
        self.emit(ListeningEvent(event_type, session_id=self.session_id, **kwargs))


class MicrophoneCaptureSession(CaptureSession):
    """Records clips from the default microphone on a background thread.

    The microphone is shared by every session and only one may hold it, so
    ``close`` waits until the capture thread has left the microphone before
    returning. Listening happens in short slices so a close is noticed while
    waiting for speech; a phrase already being recorded finishes first.
    """

    def __init__(self, session_id: int, emit: Callable[[ListeningEvent], None],
                 recognizer, microphone, transcriber: TranscriptionClient,
                 config, logger: logging.Logger):
        super().__init__(session_id, emit)
        self.recognizer = recognizer
        self.microphone = microphone
        self.transcriber = transcriber
        self.config = config
        self.logger = logger

        self._stop = threading.Event()
        self._released = threading.Event()
        self._released.set()
        self._hold_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

    @property
    def release_timeout(self) -> float:
        return self.config.record_seconds + LISTEN_SLICE_SECONDS + 1.0

    def open(self, continuous: bool, language: str):
        super().open(continuous, language)
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._capture_loop,
            name=f"CaptureSession-{self.session_id}",
            daemon=True
        )
        self._thread.start()

    def close(self):
        with self._hold_lock:
            self.active = False
            self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            if not self._released.wait(timeout=self.release_timeout):
                self.logger.warning(f"Capture session {self.session_id} still holds the microphone")
        self._thread = None

    def _fail(self, code: str):
        self.active = False
        if not self._stop.is_set():
            self._send(EventType.SESSION_ERROR, error=code)

    def _listen_for_phrase(self):
        """Wait for one phrase; None when the session was closed first."""
        waited = 0.0
        with self._hold_lock:
            if self._stop.is_set():
                return None
            self._released.clear()
        try:
            with self.microphone as source:
                while not self._stop.is_set():
                    try:
                        return self.recognizer.listen(
                            source,
                            timeout=LISTEN_SLICE_SECONDS,
                            phrase_time_limit=self.config.record_seconds
                        )
                    except sr.WaitTimeoutError:
                        waited += LISTEN_SLICE_SECONDS
                        if waited >= self.config.listen_timeout_seconds:
                            raise
                return None
        finally:
            self._released.set()

    def _capture_loop(self):
        self.logger.debug(f"Capture session {self.session_id} started")

        try:
            while not self._stop.is_set():
                try:
                    audio = self._listen_for_phrase()
                except sr.WaitTimeoutError:
                    self._fail("no-speech")
                    return
                except OSError as e:
                    self.logger.error(f"Microphone error: {e}")
                    self._fail("audio-capture")
                    return

                if audio is None or self._stop.is_set():
                    return

                try:
                    text = self.transcriber.transcribe(audio.get_wav_data(), self.language)
                except TranscriptionError as e:
                    self.logger.warning(f"Transcription failed: {e}")
                    self._fail("transcription")
                    return

                if self._stop.is_set():
                    return
                self._send(EventType.FINAL_RESULT, transcript=text, confidence=TRANSCRIPT_CONFIDENCE)

                if not self.continuous:
                    break
        except Exception as e:
            # e.g. the microphone is still inside another session's context
            self.logger.error(f"Capture session {self.session_id} failed: {e!r}")
            self._fail("unknown")
            return

        if not self._stop.is_set():
            self.active = False
            self._send(EventType.SESSION_END)


class SpeechEngine:
    """Creates capture sessions and speaks status feedback."""

    def __init__(self, config, logger: logging.Logger, transcriber: TranscriptionClient):
        self.config = config
        self.logger = logger
        self.transcriber = transcriber

        # Audio components
        self.recognizer = None
        self.microphone = None
        self.tts_engine = None
        self._tts_lock = threading.Lock()

    @property
    def capture_available(self) -> bool:
        return self.recognizer is not None and self.microphone is not None

    def initialize(self) -> bool:
        """Detect capture and TTS support once; returns whether capture works."""
        self.logger.info("Initializing speech engine...")

        if sr is None:
            self.logger.warning("speech_recognition library not installed, voice capture disabled")
        elif pyaudio is None:
            self.logger.warning("pyaudio library not installed, voice capture disabled")
        else:
            try:
                self.recognizer = sr.Recognizer()
                self.recognizer.energy_threshold = 300
                self.recognizer.dynamic_energy_threshold = True
                self.recognizer.pause_threshold = 0.8

                self.microphone = sr.Microphone()
                with self.microphone as source:
                    self.recognizer.adjust_for_ambient_noise(source, duration=1)
                self.logger.debug("Microphone initialized successfully")
            except (OSError, AttributeError) as e:
                self.logger.error(f"Failed to initialize microphone: {e}")
                self.recognizer = None
                self.microphone = None

        if self.config.spoken_feedback:
            if pyttsx3 is None:
                self.logger.warning("pyttsx3 library not installed, spoken feedback disabled")
            else:
                try:
                    self.tts_engine = pyttsx3.init()
                    self.tts_engine.setProperty('rate', 200)
                    self.tts_engine.setProperty('volume', 0.9)
                except (RuntimeError, OSError) as e:
                    self.logger.error(f"Failed to initialize TTS engine: {e}")
                    self.tts_engine = None

        self.logger.info(f"Speech engine ready (capture: {self.capture_available}, "
                         f"tts: {self.tts_engine is not None})")
        return self.capture_available

    def create_session(self, session_id: int,
                       emit: Callable[[ListeningEvent], None]) -> Optional[CaptureSession]:
        if not self.capture_available:
            return None
        return MicrophoneCaptureSession(
            session_id, emit, self.recognizer, self.microphone,
            self.transcriber, self.config, self.logger
        )

    def speak(self, text: str) -> bool:
        """Speak text on a background thread."""
        if not self.tts_engine or not text:
            return False

        def run():
            with self._tts_lock:
                try:
                    self.tts_engine.say(text)
                    self.tts_engine.runAndWait()
                except RuntimeError as e:
                    self.logger.error(f"TTS error: {e}")

        threading.Thread(target=run, daemon=True).start()
        return True

    def list_microphones(self) -> List[str]:
        if sr is None or pyaudio is None:
            return []
        try:
            return sr.Microphone.list_microphone_names()
        except OSError as e:
            self.logger.error(f"Failed to enumerate microphones: {e}")
            return []

    def shutdown(self):
        self.logger.info("Shutting down speech engine...")
        if self.tts_engine:
            try:
                self.tts_engine.stop()
            except RuntimeError as e:
                self.logger.error(f"Error stopping TTS engine: {e}")
        self.logger.info("Speech engine shutdown complete")
