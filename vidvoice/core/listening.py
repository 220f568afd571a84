#!/usr/bin/env python3
"""
VidVoice Listening State Machine

Owns the capture session lifecycle. Every input (user requests, session
callbacks, timers) becomes a ListeningEvent on one queue, and a single
transition function applies them in order, so a stop can never interleave
with a half-finished restart.

States: IDLE -> LISTENING -> PROCESSING -> LISTENING/IDLE.
"""

import logging
import queue
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from vidvoice.core.command_dispatcher import CommandDispatcher, ExecutionResult
from vidvoice.core.custom_commands import CustomCommandRegistry
from vidvoice.core.matcher import CommandMatcher
from vidvoice.data import responses
from vidvoice.services.settings import VoiceSettings
from vidvoice.utils.error_handler import ErrorCategory, ErrorHandler, ErrorSeverity
from vidvoice.utils.text_utils import clamp, normalize_transcript

# Session error codes that mean capture cannot work at all
FATAL_ERRORS = {"not-allowed", "audio-capture", "service-not-allowed"}
NO_SPEECH = "no-speech"

MIN_INTERIM_LENGTH = 2


class ListeningState(Enum):
    IDLE = "idle"
    LISTENING = "listening"
    PROCESSING = "processing"


class EventType(Enum):
    START = "start"
    STOP = "stop"
    INTERIM_RESULT = "interim_result"
    FINAL_RESULT = "final_result"
    MANUAL_TRANSCRIPT = "manual_transcript"
    SESSION_END = "session_end"
    SESSION_ERROR = "session_error"
    RESTART = "restart"
    KEEP_ALIVE = "keep_alive"
    CLEAR_STATUS = "clear_status"


@dataclass
class ListeningEvent:
    """One input to the state machine."""
    type: EventType
    transcript: Optional[str] = None
    confidence: float = 1.0
    error: Optional[str] = None
    session_id: Optional[int] = None
    token: int = 0
    done: threading.Event = field(default_factory=threading.Event, repr=False, compare=False)


@dataclass
class ListeningSnapshot:
    state: ListeningState
    always_listening: bool
    session_active: bool
    last_command: str
    confidence: float
    status: str


class TimerScheduler:
    """Runs callbacks after a delay on threading.Timer threads."""

    def __init__(self):
        self._timers = set()
        self._lock = threading.Lock()

    def call_later(self, delay: float, callback: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        with self._lock:
            self._timers = {t for t in self._timers if t.is_alive()}
            self._timers.add(timer)
        timer.start()
        return timer

    def shutdown(self):
        with self._lock:
            for timer in self._timers:
                timer.cancel()
            self._timers.clear()


class ListeningStateMachine:
    """Continuous listening with auto-restart, driven by an event queue."""

    def __init__(
        self,
        config,
        logger: logging.Logger,
        matcher: CommandMatcher,
        dispatcher: CommandDispatcher,
        custom_commands: Optional[CustomCommandRegistry] = None,
        session_factory: Optional[Callable[[int, Callable[[ListeningEvent], None]], Any]] = None,
        settings: Optional[VoiceSettings] = None,
        scheduler=None,
        error_handler: Optional[ErrorHandler] = None,
        on_status: Optional[Callable[[str], None]] = None,
    ):
        self.config = config
        self.logger = logger
        self.matcher = matcher
        self.dispatcher = dispatcher
        self.custom_commands = custom_commands
        self.session_factory = session_factory
        self.settings = settings
        self.scheduler = scheduler or TimerScheduler()
        self.error_handler = error_handler or ErrorHandler(logger)
        self.on_status = on_status

        self.language = config.language
        self.always_listening = bool(config.always_listening)
        if settings is not None:
            self.always_listening = self.always_listening or settings.load().always_listening

        # Machine state, only touched by the transition function
        self.state = ListeningState.IDLE
        self.session = None
        self.session_id: Optional[int] = None
        self._session_seq = 0
        self.last_command = ""
        self.confidence = 0.0
        self.status = ""

        # Timers
        self._keep_alive_handle = None
        self._keep_alive_token = 0
        self._restart_handle = None
        self._restart_pending = False
        self._restart_token = 0
        self._status_handle = None
        self._status_token = 0

        # Event queue
        self._queue: "queue.Queue[ListeningEvent]" = queue.Queue()
        self._pump_lock = threading.Lock()
        self._pumping_thread: Optional[int] = None
        self._worker: Optional[threading.Thread] = None
        self._worker_stop = threading.Event()

        # Statistics
        self.sessions_opened = 0
        self.restarts = 0
        self.transcripts_processed = 0

    # Public API

    def start(self):
        self.post(ListeningEvent(EventType.START), wait=True)

    def stop(self):
        """Stop listening; the capture session is released before this returns."""
        self.post(ListeningEvent(EventType.STOP), wait=True)

    def submit_transcript(self, transcript: str, confidence: float = 1.0):
        """Feed a typed or externally transcribed utterance through the pipeline."""
        self.post(ListeningEvent(EventType.MANUAL_TRANSCRIPT, transcript=transcript,
                                 confidence=confidence), wait=True)

    def toggle_always_listening(self) -> bool:
        return self.set_always_listening(not self.always_listening)

    def set_always_listening(self, enabled: bool) -> bool:
        self.always_listening = bool(enabled)
        if self.settings is not None:
            self.settings.save(always_listening=self.always_listening)
        self.logger.info(f"Always listening {'enabled' if enabled else 'disabled'}")

        if self.always_listening:
            self.start()
        else:
            self.stop()
        return self.always_listening

    def snapshot(self) -> ListeningSnapshot:
        return ListeningSnapshot(
            state=self.state,
            always_listening=self.always_listening,
            session_active=self._session_active(),
            last_command=self.last_command,
            confidence=self.confidence,
            status=self.status,
        )

    # Event queue

    def post(self, event: ListeningEvent, wait: bool = False):
        """Enqueue an event; drained by the worker thread or inline."""
        self._queue.put(event)

        if self._worker is None or not self._worker.is_alive():
            self.process_pending()

        if wait and not self._in_machine_thread():
            event.done.wait(timeout=2.0)

    def emit(self, event: ListeningEvent):
        """Callback handed to capture sessions."""
        self.post(event)

    def _in_machine_thread(self) -> bool:
        ident = threading.get_ident()
        if self._pumping_thread == ident:
            return True
        return self._worker is not None and self._worker.ident == ident

    def process_pending(self):
        """Drain queued events on the calling thread."""
        while True:
            if not self._pump_lock.acquire(blocking=False):
                # Another pump (or an outer frame of this one) is draining
                return
            self._pumping_thread = threading.get_ident()
            try:
                while True:
                    try:
                        event = self._queue.get_nowait()
                    except queue.Empty:
                        break
                    self._handle(event)
            finally:
                self._pumping_thread = None
                self._pump_lock.release()
            if self._queue.empty():
                return

    def start_worker(self):
        if self._worker is not None and self._worker.is_alive():
            return
        self._worker_stop.clear()
        self._worker = threading.Thread(target=self._worker_loop, name="ListeningStateMachine", daemon=True)
        self._worker.start()
        self.logger.debug("Listening worker started")

    def stop_worker(self):
        self._worker_stop.set()
        if self._worker is not None:
            self._worker.join(timeout=2.0)
        self._worker = None
        self.process_pending()

    def _worker_loop(self):
        while not self._worker_stop.is_set():
            try:
                event = self._queue.get(timeout=0.5)
            except queue.Empty:
                continue
            with self._pump_lock:
                self._handle(event)

    def _handle(self, event: ListeningEvent):
        try:
            self._transition(event)
        except Exception as e:
            self.error_handler.handle_error(
                e,
                context={"event": event.type.value, "state": self.state.value},
                severity=ErrorSeverity.HIGH,
                category=ErrorCategory.SYSTEM,
            )
        finally:
            event.done.set()

    # Transition function

    def _transition(self, event: ListeningEvent):
        if event.session_id is not None and event.session_id != self.session_id:
            self.logger.debug(f"Ignoring {event.type.value} from closed session {event.session_id}")
            return

        handler = {
            EventType.START: self._on_start,
            EventType.STOP: self._on_stop,
            EventType.INTERIM_RESULT: self._on_interim,
            EventType.FINAL_RESULT: self._on_final,
            EventType.MANUAL_TRANSCRIPT: self._on_manual,
            EventType.SESSION_END: self._on_session_end,
            EventType.SESSION_ERROR: self._on_session_error,
            EventType.RESTART: self._on_restart,
            EventType.KEEP_ALIVE: self._on_keep_alive,
            EventType.CLEAR_STATUS: self._on_clear_status,
        }[event.type]
        handler(event)

    def _on_start(self, event: ListeningEvent):
        if self.state != ListeningState.IDLE:
            self.logger.debug(f"Start ignored while {self.state.value}")
            if self.always_listening and self._keep_alive_handle is None:
                self._arm_keep_alive()
            return
        if self._open_session() and self.always_listening:
            self._arm_keep_alive()

    def _on_stop(self, event: ListeningEvent):
        self._cancel_keep_alive()
        self._cancel_restart()
        self._close_session()
        self.state = ListeningState.IDLE
        self.logger.info("Voice control stopped")

    def _on_interim(self, event: ListeningEvent):
        text = normalize_transcript(event.transcript)
        if text is None or len(text) <= MIN_INTERIM_LENGTH:
            return
        self.last_command = text

        if event.confidence > self.config.interim_confidence_threshold:
            # Speculative dispatch; the final result for the same phrase dispatches again
            self.logger.debug(f"Speculative match on interim result: '{text}' ({event.confidence:.2f})")
            self._run_pipeline(text, event.confidence, update_status=False)

    def _on_final(self, event: ListeningEvent):
        self.state = ListeningState.PROCESSING
        try:
            self._run_pipeline(event.transcript, event.confidence)
        finally:
            if self._session_active():
                self.state = ListeningState.LISTENING
            else:
                self._close_session()
                self.state = ListeningState.IDLE
                if self.always_listening:
                    self._schedule_restart(self.config.restart_delay_on_end)

    def _on_manual(self, event: ListeningEvent):
        previous = self.state
        self.state = ListeningState.PROCESSING
        try:
            self._run_pipeline(event.transcript, event.confidence)
        finally:
            self.state = previous

    def _on_session_end(self, event: ListeningEvent):
        self.logger.debug("Capture session ended")
        self._close_session()
        self.state = ListeningState.IDLE
        if self.always_listening:
            self._schedule_restart(self.config.restart_delay_on_end)

    def _on_session_error(self, event: ListeningEvent):
        code = event.error or "unknown"

        if code in FATAL_ERRORS:
            self.logger.error(f"Voice capture unavailable ({code}), stopping")
            self._set_status(responses.error_message(code))
            self._on_stop(event)
            return

        self._close_session()
        self.state = ListeningState.IDLE

        if code == NO_SPEECH:
            self.logger.debug("No speech detected")
            if self.always_listening:
                self._schedule_restart(self.config.restart_delay_on_error)
            return

        self.logger.warning(f"Capture session error: {code}")
        self._set_status(responses.error_message(code))
        if self.always_listening:
            self._schedule_restart(self.config.restart_delay_on_error)

    def _on_restart(self, event: ListeningEvent):
        if not self._restart_pending or event.token != self._restart_token:
            return
        self._restart_pending = False
        self._restart_handle = None

        if self.always_listening and self.state == ListeningState.IDLE:
            self.restarts += 1
            self.logger.debug("Restarting capture session")
            self._open_session()

    def _on_keep_alive(self, event: ListeningEvent):
        if event.token != self._keep_alive_token:
            return
        self._keep_alive_handle = None
        if not self.always_listening:
            return

        if self.state != ListeningState.PROCESSING and not self._session_active():
            self.logger.debug("Keep-alive found no active session, restarting")
            self._close_session()
            self.state = ListeningState.IDLE
            self._cancel_restart()
            self._open_session()
        self._arm_keep_alive()

    def _on_clear_status(self, event: ListeningEvent):
        if event.token == self._status_token:
            self._publish_status("")

    # Helpers

    def _session_active(self) -> bool:
        return self.session is not None and bool(getattr(self.session, "active", False))

    def _open_session(self) -> bool:
        if self.session_factory is None:
            self.logger.warning("Voice capture is not available on this system")
            self._set_status(responses.error_message("service-not-allowed"))
            return False

        self._session_seq += 1
        session_id = self._session_seq
        try:
            session = self.session_factory(session_id, self.emit)
            if session is None:
                self.logger.warning("Voice capture is not available on this system")
                return False
            self.session = session
            self.session_id = session_id
            session.open(continuous=self.always_listening, language=self.language)
        except Exception as e:
            self.error_handler.handle_error(e, context={"action": "open_session"}, category=ErrorCategory.AUDIO)
            self._close_session()
            self.state = ListeningState.IDLE
            return False

        self.sessions_opened += 1
        self.state = ListeningState.LISTENING
        self._set_status(responses.STATUS_UPDATES["listening"], clear=False)
        self.logger.info(f"Listening (session {session_id}, continuous={self.always_listening})")
        return True

    def _close_session(self):
        session, self.session = self.session, None
        self.session_id = None
        if session is None:
            return
        try:
            session.close()
        except Exception as e:
            self.logger.error(f"Error closing capture session: {e}")

    def _run_pipeline(self, transcript: Any, confidence: float,
                      update_status: bool = True) -> Optional[ExecutionResult]:
        text = normalize_transcript(transcript)
        if text is None:
            return None

        confidence = clamp(float(confidence), 0.0, 1.0)
        self.last_command = text
        self.confidence = confidence
        self.transcripts_processed += 1

        if confidence < self.config.final_confidence_threshold:
            self.logger.info(responses.COMMAND_FEEDBACK["low_confidence"].format(
                confidence=confidence, transcript=text))

        target = self.matcher.match(text, self.language)
        if target is None and self.custom_commands is not None:
            target = self.custom_commands.match(text)

        if target is None:
            self.logger.info(f"No command matched: '{text}'")
            if update_status:
                self._set_status(responses.COMMAND_FEEDBACK["not_recognized"].format(transcript=text))
            return None

        result = self.dispatcher.execute(target)
        if update_status:
            self._set_status(result.message if result.success or result.error == "unsupported"
                             else responses.COMMAND_FEEDBACK["failed"])
        return result

    def _set_status(self, message: str, clear: bool = True):
        self._publish_status(message)
        self._status_token += 1
        if self._status_handle is not None:
            self._status_handle.cancel()
            self._status_handle = None
        if clear and message:
            token = self._status_token
            self._status_handle = self.scheduler.call_later(
                self.config.status_clear_delay,
                lambda: self.post(ListeningEvent(EventType.CLEAR_STATUS, token=token)),
            )

    def _publish_status(self, message: str):
        self.status = message
        if self.on_status is not None:
            try:
                self.on_status(message)
            except Exception as e:
                self.logger.error(f"Status callback failed: {e}")

    def _schedule_restart(self, delay: float):
        if self._restart_pending:
            self.logger.debug("Restart already pending")
            return
        self._restart_pending = True
        self._restart_token += 1
        token = self._restart_token
        self._restart_handle = self.scheduler.call_later(
            delay, lambda: self.post(ListeningEvent(EventType.RESTART, token=token))
        )

    def _cancel_restart(self):
        if self._restart_handle is not None:
            self._restart_handle.cancel()
        self._restart_handle = None
        self._restart_pending = False
        self._restart_token += 1

    def _arm_keep_alive(self):
        self._cancel_keep_alive()
        token = self._keep_alive_token
        self._keep_alive_handle = self.scheduler.call_later(
            self.config.keep_alive_interval,
            lambda: self.post(ListeningEvent(EventType.KEEP_ALIVE, token=token)),
        )

    def _cancel_keep_alive(self):
        if self._keep_alive_handle is not None:
            self._keep_alive_handle.cancel()
        self._keep_alive_handle = None
        self._keep_alive_token += 1

    def get_statistics(self):
        return {
            "state": self.state.value,
            "always_listening": self.always_listening,
            "sessions_opened": self.sessions_opened,
            "restarts": self.restarts,
            "transcripts_processed": self.transcripts_processed,
        }

    def shutdown(self):
        self.logger.info("Shutting down listening state machine...")
        self.stop()
        self.stop_worker()
        if hasattr(self.scheduler, "shutdown"):
            self.scheduler.shutdown()
